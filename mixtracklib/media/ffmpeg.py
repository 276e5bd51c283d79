#!/usr/bin/env python3

from mixtracklib.media.ffmpeg_process import ProcessRunner
from mixtracklib.media.ffmpeg_process import build_probe_command
from mixtracklib.media.ffmpeg_process import build_run_command

__all__ = [
	'ProcessRunner',
	'build_probe_command',
	'build_run_command',
]
