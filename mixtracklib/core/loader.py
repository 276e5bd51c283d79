#!/usr/bin/env python3

import os
import typing
import yaml

from mixtracklib.core import catalog
from mixtracklib.core import planner
from mixtracklib.core import schema
from mixtracklib.core import utils

#============================================

class TrackRequest(typing.NamedTuple):
	source: str
	index: int
	# None fields fall back to the probed stream
	kind: typing.Optional[str]
	metadata: typing.Optional[tuple]
	dispositions: typing.Optional[tuple]
	sync: planner.SyncAdjustment

class ResolvedJob(typing.NamedTuple):
	output: str
	global_metadata: tuple
	chapters: tuple
	track_maps: tuple

#============================================

class JobData():
	def __init__(self):
		self.yaml_file = None
		self.output_override = None
		self.data = {}
		self.output = None
		self.global_metadata = None
		self.chapters = None
		self.tracks = []

	#============================
	def sources(self) -> list:
		"""
		Source paths in first-reference order.
		"""
		paths = []
		for request in self.tracks:
			if request.source not in paths:
				paths.append(request.source)
		return paths

#============================================

class JobLoader():
	def __init__(self, yaml_file: str, output_override: str = None):
		self.yaml_file = yaml_file
		self.output_override = output_override

	#============================
	def load(self) -> JobData:
		job = JobData()
		job.yaml_file = self.yaml_file
		job.output_override = self.output_override
		job.data = self._load_yaml()
		self._validate_required_keys(job.data)
		job.output = self._parse_output(job.data.get('output'))
		if 'global_metadata' in job.data:
			job.global_metadata = self._parse_metadata(job.data['global_metadata'],
				'global_metadata')
		if 'chapters' in job.data:
			job.chapters = self._parse_chapters(job.data['chapters'])
		job.tracks = self._parse_tracks(job.data.get('tracks'))
		return job

	#============================
	def _error(self, message: str) -> RuntimeError:
		return RuntimeError(f"job {self.yaml_file}: {message}")

	#============================
	def _load_yaml(self) -> dict:
		file_size = os.path.getsize(self.yaml_file)
		if file_size > 10 ** 7:
			raise RuntimeError("yaml file is larger than 10MB")
		with open(self.yaml_file, 'r', encoding='utf-8') as data_file:
			data = yaml.safe_load(data_file)
		if not isinstance(data, dict):
			raise self._error("yaml must be a mapping at the top level")
		return data

	#============================
	def _validate_required_keys(self, data: dict) -> None:
		if data.get('mixtrack') != 1:
			raise self._error("mixtrack must be set to 1")
		if 'tracks' not in data:
			raise self._error("missing required key: tracks")

	#============================
	def _parse_output(self, output):
		if self.output_override is not None:
			return self.output_override
		if output is None:
			return None
		if not isinstance(output, str) or output.strip() == "":
			raise self._error("output must be a file path")
		return output

	#============================
	def _parse_metadata(self, metadata, key_path: str) -> tuple:
		if metadata is None:
			return ()
		# a plain mapping is accepted when keys are unique
		if isinstance(metadata, dict):
			metadata = [{'key': key, 'value': value} for key, value in metadata.items()]
		if not isinstance(metadata, list):
			raise self._error(f"{key_path} must be a list of key/value mappings")
		pairs = []
		for position, entry in enumerate(metadata):
			entry_path = f"{key_path}[{position}]"
			if not isinstance(entry, dict) or 'key' not in entry:
				raise self._error(f"{entry_path} must have key and value")
			key = entry.get('key')
			if not isinstance(key, str) or key == "":
				raise self._error(f"{entry_path}.key must be a non-empty string")
			value = entry.get('value')
			if value is None:
				value = ""
			if isinstance(value, (dict, list)):
				raise self._error(f"{entry_path}.value must be a scalar")
			pairs.append((key, str(value)))
		return tuple(pairs)

	#============================
	def _parse_chapters(self, chapters) -> tuple:
		if chapters is None:
			return ()
		if not isinstance(chapters, list):
			raise self._error("chapters must be a list")
		parsed = []
		for position, chapter in enumerate(chapters):
			key_path = f"chapters[{position}]"
			if not isinstance(chapter, dict):
				raise self._error(f"{key_path} must be a mapping")
			try:
				start = utils.parse_timecode(chapter.get('start'))
				end = utils.parse_timecode(chapter.get('end'))
			except (RuntimeError, ArithmeticError) as error:
				raise self._error(f"{key_path}: {error}") from error
			if start < 0 or end < start:
				raise self._error(f"{key_path} must satisfy 0 <= start <= end")
			metadata = self._parse_metadata(chapter.get('metadata'),
				f"{key_path}.metadata")
			title = chapter.get('title')
			if title is not None and catalog.metadata_value(metadata, 'title') is None:
				metadata = (('title', str(title)),) + metadata
			parsed.append(catalog.Chapter(start, end, metadata))
		return tuple(parsed)

	#============================
	def _parse_tracks(self, tracks) -> list:
		if not isinstance(tracks, list) or len(tracks) == 0:
			raise self._error("tracks must be a non-empty list")
		requests = []
		for position, track in enumerate(tracks):
			requests.append(self._parse_track(track, f"tracks[{position}]"))
		return requests

	#============================
	def _parse_track(self, track, key_path: str) -> TrackRequest:
		if not isinstance(track, dict):
			raise self._error(f"{key_path} must be a mapping")
		source = track.get('source')
		if not isinstance(source, str) or source == "":
			raise self._error(f"{key_path}.source is required")
		index = track.get('index')
		if isinstance(index, bool) or not isinstance(index, int) or index < 0:
			raise self._error(f"{key_path}.index must be a non-negative integer")
		kind = track.get('kind')
		if kind is not None and kind not in schema.TRACK_KINDS:
			raise self._error(
				f"{key_path}.kind must be one of {', '.join(schema.TRACK_KINDS)}"
			)
		metadata = None
		if 'metadata' in track:
			metadata = self._parse_metadata(track['metadata'], f"{key_path}.metadata")
		dispositions = None
		if 'dispositions' in track:
			dispositions = self._parse_dispositions(track['dispositions'],
				f"{key_path}.dispositions")
		sync = self._parse_sync(track.get('sync'), f"{key_path}.sync")
		return TrackRequest(source, index, kind, metadata, dispositions, sync)

	#============================
	def _parse_dispositions(self, dispositions, key_path: str) -> tuple:
		if dispositions is None:
			return ()
		if isinstance(dispositions, str):
			dispositions = [item for item in dispositions.split('+') if item]
		if not isinstance(dispositions, list):
			raise self._error(f"{key_path} must be a list")
		selected = []
		for keyword in dispositions:
			if keyword not in schema.DISPOSITIONS:
				raise self._error(f"{key_path}: unknown disposition {keyword}")
			if keyword not in selected:
				selected.append(keyword)
		return tuple(selected)

	#============================
	def _parse_sync(self, sync, key_path: str) -> planner.SyncAdjustment:
		if sync is None:
			return planner.NO_SYNC
		if not isinstance(sync, dict):
			raise self._error(f"{key_path} must be a mapping")
		try:
			return planner.make_sync(sync.get('kind', 'none'), sync.get('seconds', 0))
		except (RuntimeError, ArithmeticError) as error:
			raise self._error(f"{key_path}: {error}") from error

#============================================

def default_output_path(source: str, extension: str) -> str:
	(stem, _) = os.path.splitext(source)
	return f"{stem}.mixed{extension}"

#============================================

def resolve_job(job: JobData, track_groups) -> ResolvedJob:
	"""
	Fill omitted job fields from the probed catalog.

	Args:
		job: Loaded job.
		track_groups: Catalog returned by the probe.

	Returns:
		ResolvedJob: Output path, metadata, chapters and track maps.
	"""
	track_maps = []
	first_group = None
	for request in job.tracks:
		group = catalog.find_group(track_groups, request.source)
		if group is None:
			raise planner.TrackMapRangeError(f"source was not probed: {request.source}")
		stream = group.find_stream(request.index)
		if stream is None:
			raise planner.TrackMapRangeError(
				f"stream index {request.index} out of range for {request.source}"
			)
		if first_group is None:
			first_group = group
		kind = request.kind if request.kind is not None else stream.kind
		metadata = request.metadata
		if metadata is None:
			metadata = stream.metadata
		dispositions = request.dispositions
		if dispositions is None:
			dispositions = stream.dispositions
		track_maps.append(planner.TrackMap(request.source, request.index, kind,
			tuple(metadata), tuple(dispositions), request.sync))
	global_metadata = job.global_metadata
	if global_metadata is None:
		global_metadata = first_group.global_metadata
	chapters = job.chapters
	if chapters is None:
		chapters = first_group.chapters
	output = job.output
	if output is None:
		output = default_output_path(job.tracks[0].source,
			_suggest_extension(track_groups, track_maps, chapters))
	return ResolvedJob(output, tuple(global_metadata), tuple(chapters),
		tuple(track_maps))

#============================================

def _suggest_extension(track_groups, track_maps, chapters) -> str:
	subtitle_codec = None
	attachment_name = None
	for track_map in track_maps:
		stream = catalog.find_group(track_groups, track_map.path).find_stream(track_map.index)
		if track_map.kind == 'subtitle' and subtitle_codec is None:
			subtitle_codec = getattr(stream, 'codec', None)
		if track_map.kind == 'attachment' and attachment_name is None:
			attachment_name = catalog.metadata_value(track_map.metadata, 'filename')
	kinds = [track_map.kind for track_map in track_maps]
	return planner.suggest_output_extension(kinds, has_chapters=len(chapters) > 0,
		subtitle_codec=subtitle_codec, attachment_name=attachment_name)
