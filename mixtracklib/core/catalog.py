#!/usr/bin/env python3

import typing

from mixtracklib.core import utils
from mixtracklib.core.parser import UNKNOWN_DURATION
from mixtracklib.core.schema import NodeTag

#============================================

class Track(typing.NamedTuple):
	index: int
	kind: str
	codec: str
	# ordered (key, value) pairs, duplicate keys kept
	metadata: tuple
	dispositions: tuple

class Attachment(typing.NamedTuple):
	index: int
	mimetype: str
	metadata: tuple
	dispositions: tuple

	#============================
	@property
	def kind(self) -> str:
		return 'attachment'

	#============================
	@property
	def filename(self):
		return metadata_value(self.metadata, 'filename')

class Chapter(typing.NamedTuple):
	start: typing.Any
	end: typing.Any
	metadata: tuple

	#============================
	@property
	def title(self):
		return metadata_value(self.metadata, 'title')

class TrackGroup(typing.NamedTuple):
	path: str
	global_metadata: tuple
	# Decimal seconds or UNKNOWN_DURATION
	duration: typing.Any
	tracks: tuple
	chapters: tuple
	attachments: tuple

	#============================
	def find_stream(self, index: int):
		for track in self.tracks:
			if track.index == index:
				return track
		for attachment in self.attachments:
			if attachment.index == index:
				return attachment
		return None

#============================================

def metadata_value(metadata, key: str):
	"""
	Return the first value stored under key, or None.
	"""
	for (item_key, item_value) in metadata:
		if item_key == key:
			return item_value
	return None

#============================================

def find_group(catalog, path: str):
	for group in catalog:
		if group.path == path:
			return group
	return None

#============================================

def flatten_entries(section_nodes) -> list:
	"""
	Collect (key, value) pairs from Metadata or Side data section nodes.

	Continuation lines of a multi-line value are joined onto the
	previous entry with a newline.
	"""
	pairs = []
	for section in section_nodes:
		for entry_node in section.group(NodeTag.METADATA_ENTRY):
			entry = entry_node.payload
			if entry.key is None:
				if len(pairs) > 0:
					(last_key, last_value) = pairs[-1]
					pairs[-1] = (last_key, f"{last_value}\n{entry.value}")
				continue
			pairs.append((entry.key, entry.value))
	return pairs

#============================================

class MediaCatalogBuilder():
	def __init__(self, source_paths: list = None):
		# paths handed to the probe, indexed by input number
		self.source_paths = list(source_paths) if source_paths is not None else None

	#============================
	def build(self, forest) -> list:
		catalog = []
		for input_node in forest:
			group = self._build_group(input_node)
			if group is not None:
				catalog.append(group)
		return catalog

	#============================
	def _resolve_path(self, info):
		if self.source_paths is not None and 0 <= info.index < len(self.source_paths):
			return self.source_paths[info.index]
		return info.path

	#============================
	def _build_group(self, input_node):
		if input_node.tag != NodeTag.INPUT:
			return None
		path = self._resolve_path(input_node.payload)
		if not path:
			return None
		global_metadata = flatten_entries(input_node.group(NodeTag.METADATA))
		duration = UNKNOWN_DURATION
		duration_nodes = input_node.group(NodeTag.DURATION)
		if len(duration_nodes) > 0:
			duration = duration_nodes[0].payload.duration
		chapters = []
		for chapters_node in input_node.group(NodeTag.CHAPTERS):
			for chapter_node in chapters_node.group(NodeTag.CHAPTER):
				chapters.append(self._build_chapter(chapter_node))
		tracks = []
		attachments = []
		for stream_node in input_node.group(NodeTag.STREAM):
			stream = self._build_stream(stream_node)
			if isinstance(stream, Attachment):
				attachments.append(stream)
			else:
				tracks.append(stream)
		return TrackGroup(path, tuple(global_metadata), duration, tuple(tracks),
			tuple(chapters), tuple(attachments))

	#============================
	def _build_chapter(self, chapter_node) -> Chapter:
		span = chapter_node.payload
		metadata = flatten_entries(chapter_node.group(NodeTag.METADATA))
		return Chapter(span.start, span.end, tuple(metadata))

	#============================
	def _build_stream(self, stream_node):
		info = stream_node.payload
		metadata = []
		if info.language:
			# ffmpeg prints the language on the stream line, not in Metadata
			metadata.append(('language', info.language))
		sections = []
		for group in stream_node.children:
			if group[0].tag in (NodeTag.METADATA, NodeTag.SIDE_DATA):
				sections.extend(group)
		metadata.extend(flatten_entries(sections))
		if info.kind == 'attachment':
			mimetype = metadata_value(metadata, 'mimetype') or info.codec
			return Attachment(info.index, mimetype, tuple(metadata),
				info.dispositions)
		return Track(info.index, info.kind, info.codec, tuple(metadata),
			info.dispositions)

#============================================

def _entries_to_list(metadata) -> list:
	return [{'key': key, 'value': value} for (key, value) in metadata]

#============================================

def group_to_dict(group: TrackGroup) -> dict:
	"""
	Plain-data view of a TrackGroup for yaml.safe_dump.
	"""
	duration = "N/A"
	if group.duration is not UNKNOWN_DURATION:
		duration = utils.format_timecode(group.duration)
	tracks = []
	for track in group.tracks:
		tracks.append({
			'index': track.index,
			'kind': track.kind,
			'codec': track.codec,
			'dispositions': list(track.dispositions),
			'metadata': _entries_to_list(track.metadata),
		})
	chapters = []
	for chapter in group.chapters:
		chapters.append({
			'start': utils.format_timecode(chapter.start),
			'end': utils.format_timecode(chapter.end),
			'metadata': _entries_to_list(chapter.metadata),
		})
	attachments = []
	for attachment in group.attachments:
		attachments.append({
			'index': attachment.index,
			'mimetype': attachment.mimetype,
			'filename': attachment.filename,
			'metadata': _entries_to_list(attachment.metadata),
		})
	return {
		'path': group.path,
		'duration': duration,
		'global_metadata': _entries_to_list(group.global_metadata),
		'tracks': tracks,
		'chapters': chapters,
		'attachments': attachments,
	}
