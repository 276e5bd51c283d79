#!/usr/bin/env python3

import threading
import typing

from mixtracklib.core import config
from mixtracklib.core import utils
from mixtracklib.core.catalog import MediaCatalogBuilder
from mixtracklib.core.loader import JobLoader
from mixtracklib.core.loader import resolve_job
from mixtracklib.core.parser import DiagnosticTreeParser
from mixtracklib.core.planner import MuxPlanner
from mixtracklib.core.planner import TrackMap
from mixtracklib.core.progress import ProgressTracker
from mixtracklib.media import ffmpeg

#============================================

class MixResult(typing.NamedTuple):
	success: bool
	exit_code: typing.Optional[int]
	failure_line: typing.Optional[str]
	cancelled: bool = False

#============================================

class MediaTrackMixer():
	def __init__(self, settings: dict = None, line_sink=None):
		if settings is None:
			settings = config.load_settings()
		self.settings = settings
		self.ffmpeg_path = settings['ffmpeg_path']
		self.codec_policy = settings['codecs']
		self.output_flags = settings['output_flags']
		# line_sink(channel, line) sees every diagnostic line of a mix run
		self.line_sink = line_sink
		self._runner = None
		self._cancelled = False
		self._lock = threading.Lock()

	#============================
	def probe(self, paths: list) -> list:
		"""
		Probe sources with one ffmpeg call and build their catalog.

		Args:
			paths: Source media paths, in input order.

		Returns:
			list: One TrackGroup per readable source.
		"""
		paths = list(paths)
		if len(paths) == 0:
			raise RuntimeError("at least one source is required")
		utils.ensure_command(self.ffmpeg_path)
		for path in paths:
			utils.ensure_file_exists(path)
		runner = ffmpeg.ProcessRunner(ffmpeg.build_probe_command(self.ffmpeg_path, paths))
		# ffmpeg exits non-zero here since no output is given
		(_, lines) = runner.run()
		forest = DiagnosticTreeParser().parse(lines)
		track_groups = MediaCatalogBuilder(paths).build(forest)
		if len(track_groups) == 0:
			last_line = lines[-1] if len(lines) > 0 else "no output"
			raise RuntimeError(f"ffmpeg could not read any input: {last_line}")
		return track_groups

	#============================
	def planner(self, track_groups) -> MuxPlanner:
		return MuxPlanner(track_groups, codec_policy=self.codec_policy,
			output_flags=self.output_flags)

	#============================
	def plan(self, track_groups, output_path: str, global_metadata, chapters,
		track_maps):
		return self.planner(track_groups).plan(output_path, global_metadata,
			chapters, track_maps)

	#============================
	def mix(self, track_groups, output_path: str, global_metadata, chapters,
		track_maps, progress=None, raise_on_failure: bool = False) -> MixResult:
		plan = self.plan(track_groups, output_path, global_metadata, chapters,
			track_maps)
		return self.execute(plan, progress=progress,
			raise_on_failure=raise_on_failure)

	#============================
	def extract_attachment(self, track_groups, path: str, index: int,
		output_path: str, progress=None, raise_on_failure: bool = False) -> MixResult:
		track_map = TrackMap(path, index, 'attachment')
		return self.mix(track_groups, output_path, (), (), [track_map],
			progress=progress, raise_on_failure=raise_on_failure)

	#============================
	def load_job(self, yaml_file: str, output_override: str = None):
		"""
		Load a job file, probe its sources and resolve the track maps.

		Returns:
			tuple: (track_groups, ResolvedJob)
		"""
		job = JobLoader(yaml_file, output_override=output_override).load()
		track_groups = self.probe(job.sources())
		return (track_groups, resolve_job(job, track_groups))

	#============================
	def plan_job(self, yaml_file: str, output_override: str = None):
		(track_groups, resolved) = self.load_job(yaml_file, output_override)
		return self.plan(track_groups, resolved.output, resolved.global_metadata,
			resolved.chapters, resolved.track_maps)

	#============================
	def execute(self, plan, progress=None, raise_on_failure: bool = False) -> MixResult:
		"""
		Run a MuxPlan or ExtractionPlan and report the outcome.
		"""
		utils.ensure_command(self.ffmpeg_path)
		utils.remove_stale_output(plan.output_path)
		tracker = ProgressTracker(plan.total_duration, sink=progress)
		command = ffmpeg.build_run_command(self.ffmpeg_path, plan.args)
		runner = ffmpeg.ProcessRunner(command, input_text=plan.stdin_text)
		with self._lock:
			self._cancelled = False
			self._runner = runner
		try:
			with runner:
				for (channel, line) in runner.lines():
					tracker.feed(line)
					if self.line_sink is not None:
						self.line_sink(channel, line)
		finally:
			with self._lock:
				self._runner = None
		cancelled = self._cancelled
		success = False
		if not cancelled:
			success = tracker.finish(runner.returncode)
		failure_line = tracker.failure_line
		if cancelled and failure_line is None:
			failure_line = "cancelled"
		result = MixResult(success, runner.returncode, failure_line, cancelled)
		if raise_on_failure and not success:
			raise RuntimeError(f"ffmpeg failed: {failure_line}")
		return result

	#============================
	def cancel(self) -> None:
		"""
		Terminate the running mix, if any.
		"""
		with self._lock:
			if self._runner is None:
				return
			self._cancelled = True
			self._runner.terminate()
