#!/usr/bin/env python3

"""
Integration tests for probing and mixing with a real ffmpeg.
"""

# Standard Library
import json
import os
import shutil
import subprocess
import sys
import tempfile
import unittest
from decimal import Decimal

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
	sys.path.insert(0, REPO_ROOT)

from mixtracklib.core import utils
from mixtracklib.core.catalog import Chapter
from mixtracklib.core.mixer import MediaTrackMixer
from mixtracklib.core.planner import TrackMap
from mixtracklib.core.planner import make_sync

#============================================

REQUIRED_TOOLS = ("ffmpeg", "ffprobe")
MISSING_TOOLS = [tool for tool in REQUIRED_TOOLS if shutil.which(tool) is None]
HAVE_TOOLS = len(MISSING_TOOLS) == 0
SKIP_TOOLS_REASON = f"missing tools: {', '.join(MISSING_TOOLS)}"

#============================================

def _run(cmd: list) -> None:
	subprocess.run(cmd, check=True,
		stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)

#============================================

def _make_sources(temp_dir: str) -> tuple:
	video_path = os.path.join(temp_dir, "source.mkv")
	_run([
		"ffmpeg", "-y", "-hide_banner", "-loglevel", "error",
		"-f", "lavfi", "-i", "testsrc=duration=2:size=160x120:rate=10",
		"-f", "lavfi", "-i", "sine=frequency=440:duration=2",
		"-c:v", "mpeg4", "-c:a", "mp2",
		"-metadata", "title=Test Source",
		video_path,
	])
	audio_path = os.path.join(temp_dir, "dub.mka")
	_run([
		"ffmpeg", "-y", "-hide_banner", "-loglevel", "error",
		"-f", "lavfi", "-i", "sine=frequency=220:duration=2",
		"-c:a", "mp2", "-metadata:s:a:0", "language=jpn",
		audio_path,
	])
	return (video_path, audio_path)

#============================================

def _probe_json(path: str) -> dict:
	cmd = ["ffprobe", "-v", "error", "-show_format", "-show_streams",
		"-show_chapters", "-of", "json", path]
	payload = subprocess.check_output(cmd).decode("utf-8")
	return json.loads(payload)

#============================================

def _lower_tags(entry: dict) -> dict:
	return {key.lower(): value for (key, value) in entry.get("tags", {}).items()}

#============================================

@unittest.skipUnless(HAVE_TOOLS, SKIP_TOOLS_REASON)
class MixIntegrationTest(unittest.TestCase):
	#============================================
	def setUp(self) -> None:
		utils.set_quiet_mode(True)
		self.temp_dir = tempfile.TemporaryDirectory()
		(self.video_path, self.audio_path) = _make_sources(self.temp_dir.name)
		self.mixer = MediaTrackMixer()

	#============================================
	def tearDown(self) -> None:
		utils.set_quiet_mode(False)
		self.temp_dir.cleanup()

	#============================================
	def test_probe_reads_both_sources(self) -> None:
		track_groups = self.mixer.probe([self.video_path, self.audio_path])
		self.assertEqual([group.path for group in track_groups],
			[self.video_path, self.audio_path])
		source = track_groups[0]
		self.assertEqual([track.kind for track in source.tracks], ['video', 'audio'])
		self.assertEqual(dict(source.global_metadata).get("title"), "Test Source")
		self.assertGreater(source.duration, Decimal("1.5"))
		dub = track_groups[1]
		self.assertEqual(dub.tracks[0].kind, 'audio')
		self.assertEqual(dict(dub.tracks[0].metadata).get("language"), "jpn")

	#============================================
	def test_mix_writes_metadata_and_chapters(self) -> None:
		track_groups = self.mixer.probe([self.video_path, self.audio_path])
		output_path = os.path.join(self.temp_dir.name, "mixed.mkv")
		chapters = (Chapter(Decimal(0), Decimal(1), (("title", "Opening"),)),)
		track_maps = [
			TrackMap(self.video_path, 0, 'video'),
			TrackMap(self.audio_path, 0, 'audio',
				metadata=(("language", "jpn"), ("title", "Dub")),
				dispositions=('default',),
				sync=make_sync('delay', Decimal("0.5"))),
		]
		reported = []
		result = self.mixer.mix(track_groups, output_path, (("title", "Mixed"),),
			chapters, track_maps, progress=reported.append)
		self.assertTrue(result.success, result.failure_line)
		self.assertEqual(reported[-1], 100.0)
		data = _probe_json(output_path)
		self.assertEqual(_lower_tags(data["format"]).get("title"), "Mixed")
		self.assertEqual(len(data["chapters"]), 1)
		self.assertEqual(_lower_tags(data["chapters"][0]).get("title"), "Opening")
		streams = data["streams"]
		self.assertEqual([stream["codec_type"] for stream in streams],
			["video", "audio"])
		audio_tags = _lower_tags(streams[1])
		self.assertEqual(audio_tags.get("title"), "Dub")
		self.assertEqual(audio_tags.get("language"), "jpn")
		self.assertEqual(streams[1]["disposition"]["default"], 1)

#============================================

def main() -> None:
	"""Run the unit tests."""
	unittest.main()

#============================================

if __name__ == "__main__":
	main()
