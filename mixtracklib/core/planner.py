#!/usr/bin/env python3

"""
Build ffmpeg remux invocations from track selections.

Every plan pipes an ffmetadata sidecar as the last input and binds the
output's global metadata, chapters and per-stream metadata to it, so the
result does not depend on which media input happens to come first.
"""

import os
import typing
from decimal import Decimal

from mixtracklib.core import catalog
from mixtracklib.core import schema
from mixtracklib.core import utils
from mixtracklib.core.parser import UNKNOWN_DURATION

#============================================

SYNC_KINDS = ('none', 'delay', 'hasten')

SIDECAR_HEADER = ";FFMETADATA1"
SIDECAR_INPUT = ["-f", "ffmetadata", "-i", "pipe:0"]
CLEAR_DISPOSITION = "0"
METADATA_SPECIAL = ('=', ';', '#', '\\', '\n')

DEFAULT_CODECS = {
	'video': 'copy',
	'audio': 'copy',
	'subtitle': 'copy',
}

# output extension -> codec overrides
CODEC_POLICY = {
	'.mp4': {'subtitle': 'mov_text'},
	'.m4v': {'subtitle': 'mov_text'},
	'.mov': {'subtitle': 'mov_text'},
	'.mp3': {'audio': 'libmp3lame'},
	'.ass': {'subtitle': 'ass'},
	'.srt': {'subtitle': 'copy'},
	'.mkv': {'subtitle': 'copy'},
}

DEFAULT_OUTPUT_FLAGS = ["-max_interleave_delta", "0"]

#============================================

class TrackMapRangeError(RuntimeError):
	pass

#============================================

class SyncAdjustment(typing.NamedTuple):
	kind: str = 'none'
	seconds: Decimal = Decimal(0)

	#============================
	@property
	def offset(self) -> Decimal:
		if self.kind == 'delay':
			return Decimal(self.seconds)
		if self.kind == 'hasten':
			return -Decimal(self.seconds)
		return Decimal(0)

NO_SYNC = SyncAdjustment()

#============================================

def make_sync(kind: str = 'none', seconds=0) -> SyncAdjustment:
	if kind not in SYNC_KINDS:
		raise RuntimeError(f"sync kind must be one of {', '.join(SYNC_KINDS)}")
	amount = utils.parse_timecode(seconds)
	if amount < 0:
		raise RuntimeError("sync seconds must not be negative")
	if kind == 'none':
		amount = Decimal(0)
	return SyncAdjustment(kind, amount)

#============================================

class TrackMap(typing.NamedTuple):
	path: str
	index: int
	kind: str
	metadata: tuple = ()
	dispositions: tuple = ()
	sync: SyncAdjustment = NO_SYNC

class InputSlot(typing.NamedTuple):
	path: str
	offset: Decimal

#============================================

class MuxPlan():
	def __init__(self, output_path: str, inputs: tuple, bindings: tuple,
		sidecar_text: str, args: list, total_duration, track_maps: tuple):
		self.output_path = output_path
		self.inputs = inputs
		self.bindings = bindings
		self.sidecar_text = sidecar_text
		self.args = args
		self.total_duration = total_duration
		self.track_maps = track_maps
		self.is_extraction = False

	#============================
	@property
	def sidecar_index(self) -> int:
		return len(self.inputs)

	#============================
	@property
	def stdin_text(self) -> str:
		return self.sidecar_text

#============================================

class ExtractionPlan():
	def __init__(self, output_path: str, path: str, index: int):
		self.output_path = output_path
		self.path = path
		self.index = index
		self.args = [f"-dump_attachment:{index}", output_path, "-i", path]
		self.total_duration = UNKNOWN_DURATION
		self.stdin_text = None
		self.is_extraction = True

#============================================

def escape_metadata(text: str) -> str:
	"""
	Backslash-escape every ffmetadata special character.
	"""
	escaped = []
	for char in str(text):
		if char in METADATA_SPECIAL:
			escaped.append("\\")
		escaped.append(char)
	return "".join(escaped)

#============================================

def _metadata_lines(metadata) -> list:
	lines = []
	for (key, value) in metadata:
		lines.append(f"{escape_metadata(key)}={escape_metadata(value)}")
	return lines

#============================================

def build_sidecar(global_metadata, chapters, stream_metadata) -> str:
	"""
	Build the ffmetadata document piped in as the last input.

	Args:
		global_metadata: Ordered (key, value) pairs for the container.
		chapters: Chapter objects with start/end seconds and metadata.
		stream_metadata: One ordered metadata list per mapped track.

	Returns:
		str: Document text.
	"""
	lines = [SIDECAR_HEADER]
	lines.extend(_metadata_lines(global_metadata))
	lines.append("")
	for chapter in chapters:
		lines.append("[CHAPTER]")
		lines.append("TIMEBASE=1/1000")
		lines.append(f"START={utils.milliseconds_from_seconds(chapter.start)}")
		lines.append(f"END={utils.milliseconds_from_seconds(chapter.end)}")
		lines.extend(_metadata_lines(chapter.metadata))
	lines.append("")
	for metadata in stream_metadata:
		lines.append("[STREAM]")
		lines.extend(_metadata_lines(metadata))
	return "\n".join(lines) + "\n"

#============================================

def resolve_codecs(output_path: str, overrides: dict = None) -> dict:
	extension = os.path.splitext(output_path)[1].lower()
	codecs = dict(DEFAULT_CODECS)
	codecs.update(CODEC_POLICY.get(extension, {}))
	if overrides is not None:
		codecs.update(overrides.get(extension, {}))
	codecs['video'] = 'copy'
	return codecs

#============================================

def total_duration(groups):
	longest = UNKNOWN_DURATION
	for group in groups:
		if group.duration is UNKNOWN_DURATION:
			continue
		if longest is UNKNOWN_DURATION or group.duration > longest:
			longest = group.duration
	return longest

#============================================

def suggest_output_extension(kinds, has_chapters: bool = False,
	subtitle_codec: str = None, attachment_name: str = None) -> str:
	"""
	Pick an output container that can hold the selected track kinds.
	"""
	kinds = [kind for kind in kinds if kind in schema.TRACK_KINDS and kind != 'other']
	has_video = 'video' in kinds
	has_audio = 'audio' in kinds
	has_subtitles = 'subtitle' in kinds
	has_attachments = 'attachment' in kinds
	if has_chapters or ((has_video or has_audio) and (has_subtitles or has_attachments)):
		return ".mkv"
	if has_video:
		return ".mp4"
	if len(kinds) > 1:
		if has_audio or has_subtitles:
			return ".mp4"
		if has_attachments:
			return ".mkv"
	if has_audio:
		return ".mp3"
	if has_subtitles:
		if subtitle_codec == "ass":
			return ".ass"
		return ".srt"
	if has_attachments:
		extension = os.path.splitext(attachment_name or "")[1]
		if extension:
			return extension
		return ".bin"
	return ".mp4"

#============================================

class MuxPlanner():
	def __init__(self, track_groups, codec_policy: dict = None,
		output_flags: list = None):
		self.track_groups = list(track_groups)
		self.codec_policy = codec_policy
		if output_flags is None:
			output_flags = DEFAULT_OUTPUT_FLAGS
		self.output_flags = list(output_flags)

	#============================
	def validate(self, track_maps) -> list:
		"""
		Check every map against the probed catalog; return the groups used.
		"""
		used_groups = []
		for track_map in track_maps:
			group = catalog.find_group(self.track_groups, track_map.path)
			if group is None:
				raise TrackMapRangeError(f"source was not probed: {track_map.path}")
			stream = group.find_stream(track_map.index)
			if stream is None:
				raise TrackMapRangeError(
					f"stream index {track_map.index} out of range for {track_map.path}"
				)
			if track_map.kind != stream.kind:
				raise TrackMapRangeError(
					f"stream {track_map.index} of {track_map.path} is {stream.kind}, "
					f"not {track_map.kind}"
				)
			if track_map.sync.kind not in SYNC_KINDS:
				raise RuntimeError(f"unknown sync kind: {track_map.sync.kind}")
			if group not in used_groups:
				used_groups.append(group)
		return used_groups

	#============================
	def plan(self, output_path: str, global_metadata, chapters, track_maps):
		track_maps = tuple(track_maps)
		if len(track_maps) == 0:
			raise RuntimeError("at least one track map is required")
		used_groups = self.validate(track_maps)
		if len(track_maps) == 1 and track_maps[0].kind == 'attachment':
			return ExtractionPlan(output_path, track_maps[0].path, track_maps[0].index)
		(inputs, bindings) = self._dedupe_inputs(track_maps)
		sidecar_text = build_sidecar(global_metadata, chapters,
			[track_map.metadata for track_map in track_maps])
		args = self._build_args(output_path, inputs, bindings, track_maps)
		return MuxPlan(output_path, inputs, bindings, sidecar_text, args,
			total_duration(used_groups), track_maps)

	#============================
	def _dedupe_inputs(self, track_maps) -> tuple:
		inputs = []
		slots = {}
		bindings = []
		for track_map in track_maps:
			key = (track_map.path, track_map.sync.offset)
			if key not in slots:
				slots[key] = len(inputs)
				inputs.append(InputSlot(track_map.path, track_map.sync.offset))
			bindings.append(slots[key])
		return (tuple(inputs), tuple(bindings))

	#============================
	def _build_args(self, output_path: str, inputs: tuple, bindings: tuple,
		track_maps: tuple) -> list:
		args = []
		for slot in inputs:
			if slot.offset != 0:
				args += ["-itsoffset", utils.format_offset(slot.offset)]
			args += ["-i", slot.path]
		args += SIDECAR_INPUT
		sidecar_index = len(inputs)
		codecs = resolve_codecs(output_path, self.codec_policy)
		args += ["-c:v", codecs['video'], "-c:a", codecs['audio'],
			"-c:s", codecs['subtitle']]
		args += ["-map_metadata", str(sidecar_index),
			"-map_chapters", str(sidecar_index)]
		for (slot_index, track_map) in zip(bindings, track_maps):
			args += ["-map", f"{slot_index}:{track_map.index}"]
		for position in range(len(track_maps)):
			args += [f"-map_metadata:s:{position}", f"{sidecar_index}:s:{position}"]
		for (position, track_map) in enumerate(track_maps):
			disposition = "+".join(track_map.dispositions) or CLEAR_DISPOSITION
			args += [f"-disposition:{position}", disposition]
		args += self.output_flags
		args.append(output_path)
		return args
