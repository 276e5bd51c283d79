#!/usr/bin/env python3

"""
Backtracking recursive-descent parser for the ffmpeg input report.

parse_node() is a pure function: it returns (nodes, lines_consumed) on a
match and (None, 0) otherwise, so sibling and repetition attempts can
try alternatives without moving the cursor.
"""

import re
import typing
from decimal import Decimal
from fractions import Fraction

from mixtracklib.core import schema
from mixtracklib.core import utils
from mixtracklib.core.schema import NodeTag

#============================================

class _UnknownDuration():
	"""
	Duration reported as N/A; never equal to a number.
	"""
	def __repr__(self) -> str:
		return "UNKNOWN_DURATION"

	def __str__(self) -> str:
		return "N/A"

UNKNOWN_DURATION = _UnknownDuration()

#============================================

class InputInfo(typing.NamedTuple):
	index: int
	format_name: str
	path: typing.Optional[str]

class DurationInfo(typing.NamedTuple):
	duration: typing.Any

class SectionHeader(typing.NamedTuple):
	label: str

class ChapterSpan(typing.NamedTuple):
	input_index: int
	index: int
	start: Decimal
	end: Decimal

class StreamInfo(typing.NamedTuple):
	input_index: int
	index: int
	kind: str
	codec: str
	language: typing.Optional[str]
	dispositions: tuple

class MetadataEntry(typing.NamedTuple):
	# key is None on a continuation line of a multi-line value
	key: typing.Optional[str]
	value: str

PAYLOAD_TYPES = {
	NodeTag.INPUT: InputInfo,
	NodeTag.DURATION: DurationInfo,
	NodeTag.CHAPTERS: SectionHeader,
	NodeTag.CHAPTER: ChapterSpan,
	NodeTag.STREAM: StreamInfo,
	NodeTag.METADATA: SectionHeader,
	NodeTag.METADATA_ENTRY: MetadataEntry,
	NodeTag.SIDE_DATA: SectionHeader,
	NodeTag.PROGRAM: SectionHeader,
}

#============================================

class ParsedNode(typing.NamedTuple):
	tag: NodeTag
	payload: typing.Any
	# tuple of same-tag node runs, in schema declaration order
	children: tuple

	#============================
	def group(self, tag: NodeTag) -> tuple:
		for group in self.children:
			if len(group) > 0 and group[0].tag == tag:
				return group
		return ()

#============================================

def make_node(tag: NodeTag, payload, children: tuple = ()) -> ParsedNode:
	expected = PAYLOAD_TYPES[tag]
	if not isinstance(payload, expected):
		raise TypeError(f"{tag.name} node requires {expected.__name__} payload")
	return ParsedNode(tag, payload, tuple(tuple(group) for group in children))

#============================================

_INPUT_RE = re.compile(r"^Input #(\d+)(.*)$")
_INPUT_FROM_RE = re.compile(r"^, (.*?), from '(.*)':\s*$")
_DURATION_RE = re.compile(r"^Duration: (N/A|\d+:\d{2}:\d{2}(?:\.\d+)?)")
_CHAPTER_RE = re.compile(
	r"^Chapter #(\d+):(\d+): start (-?\d+(?:\.\d+)?), end (-?\d+(?:\.\d+)?)"
)
_STREAM_RE = re.compile(
	r"^Stream #(\d+):(\d+)(?:\[[^\]]*\])?(?:\(([^)]*)\))?(?:\[[^\]]*\])?"
	r": (\w+):(?: ([^\s,]*))?(.*)$"
)
_DISPOSITION_RE = re.compile(r"\(([a-z][a-z _-]*)\)")
_ENTRY_RE = re.compile(r"^(?P<key>\S.*?)?\s*:(?: (?P<value>.*))?$")
_LOG_CONTEXT_RE = re.compile(r"^\[[^\]]+ @ (?:0x)?[0-9a-fA-F]+\]")
_PROGRAM_RE = re.compile(r"^(No Program|Program \d+.*?)\s*$")

#============================================

def _extract_input(text: str):
	match = _INPUT_RE.match(text)
	if match is None:
		return None
	index = int(match.group(1))
	rest = match.group(2)
	from_match = _INPUT_FROM_RE.match(rest)
	if from_match is None:
		format_name = rest.strip(" ,:")
		return InputInfo(index, format_name, None)
	return InputInfo(index, from_match.group(1), from_match.group(2))

#============================================

def _extract_duration(text: str):
	match = _DURATION_RE.match(text)
	if match is None:
		return None
	raw = match.group(1)
	if raw == "N/A":
		return DurationInfo(UNKNOWN_DURATION)
	return DurationInfo(utils.parse_timecode(raw))

#============================================

def _extract_chapter(text: str):
	match = _CHAPTER_RE.match(text)
	if match is None:
		return None
	return ChapterSpan(int(match.group(1)), int(match.group(2)),
		Decimal(match.group(3)), Decimal(match.group(4)))

#============================================

def _extract_stream(text: str):
	match = _STREAM_RE.match(text)
	if match is None:
		return None
	kind = schema.KIND_BY_STREAM_TYPE.get(match.group(4), 'other')
	codec = match.group(5) or ""
	dispositions = []
	for raw in _DISPOSITION_RE.findall(match.group(6)):
		keyword = re.sub(r"[ -]", "_", raw)
		if keyword in schema.DISPOSITIONS and keyword not in dispositions:
			dispositions.append(keyword)
	return StreamInfo(int(match.group(1)), int(match.group(2)), kind, codec,
		match.group(3) or None, tuple(dispositions))

#============================================

def _extract_entry(text: str):
	match = _ENTRY_RE.match(text)
	if match is None:
		return None
	return MetadataEntry(match.group('key'), match.group('value') or "")

#============================================

def _extract_program(text: str):
	match = _PROGRAM_RE.match(text)
	if match is None:
		return None
	return SectionHeader(match.group(1))

#============================================

_EXTRACTORS = {
	NodeTag.INPUT: _extract_input,
	NodeTag.DURATION: _extract_duration,
	NodeTag.CHAPTERS: lambda text: SectionHeader("Chapters"),
	NodeTag.CHAPTER: _extract_chapter,
	NodeTag.STREAM: _extract_stream,
	NodeTag.METADATA: lambda text: SectionHeader("Metadata"),
	NodeTag.METADATA_ENTRY: _extract_entry,
	NodeTag.SIDE_DATA: lambda text: SectionHeader("Side data"),
	NodeTag.PROGRAM: _extract_program,
}

#============================================

def _dedent(line: str, depth: int):
	prefix = schema.INDENT_UNIT * depth
	if not line.startswith(prefix):
		return None
	return line[len(prefix):]

#============================================

def _parse_single(lines: list, schema_node, start_line: int, depth: int):
	if start_line >= len(lines):
		return (None, start_line)
	text = _dedent(lines[start_line], depth)
	if text is None:
		return (None, start_line)
	if schema_node.keyword is not None and not text.startswith(schema_node.keyword):
		return (None, start_line)
	payload = _EXTRACTORS[schema_node.tag](text)
	if payload is None:
		return (None, start_line)
	(groups, cursor) = _parse_children(lines, schema_node, start_line + 1, depth)
	return (make_node(schema_node.tag, payload, groups), cursor)

#============================================

def _parse_children(lines: list, schema_node, cursor: int, depth: int) -> tuple:
	"""
	Match the children of schema_node starting at cursor.

	Children are tried in declaration order. A repeatable child that
	already matched may match again later, so interleaved runs such as
	Program / Stream / Program / Stream all land in their tag's group.
	A line nested deeper than the children that none of them matches
	is skipped.
	"""
	children = schema_node.children
	found = {}
	next_child = 0
	nested_prefix = schema.INDENT_UNIT * (depth + 2)
	while cursor < len(lines) and len(children) > 0:
		matched = False
		for (position, child) in enumerate(children):
			if position < next_child and not child.repeatable:
				continue
			(child_nodes, consumed) = parse_node(lines, child, cursor, depth + 1)
			if child_nodes is None:
				continue
			found.setdefault(position, []).extend(child_nodes)
			cursor += consumed
			next_child = max(next_child, position + 1)
			matched = True
			break
		if matched:
			continue
		if not lines[cursor].startswith(nested_prefix):
			break
		cursor += 1
	groups = [tuple(found[position]) for position in sorted(found)]
	return (groups, cursor)

#============================================

def parse_node(lines: list, schema_node, start_line: int, depth: int) -> tuple:
	"""
	Match schema_node (and its repeats, when repeatable) at start_line.

	Returns:
		tuple: (tuple of ParsedNode, lines consumed) or (None, 0).
	"""
	nodes = []
	cursor = start_line
	while True:
		(node, next_cursor) = _parse_single(lines, schema_node, cursor, depth)
		if node is None:
			break
		nodes.append(node)
		cursor = next_cursor
		if not schema_node.repeatable:
			break
	if len(nodes) == 0:
		return (None, 0)
	return (tuple(nodes), cursor - start_line)

#============================================

def clean_lines(raw_lines, keyword: str = None) -> list:
	"""
	Drop blank and log-context lines and everything before the first block.
	"""
	if keyword is None:
		keyword = schema.INPUT_SCHEMA.keyword
	lines = []
	for raw in raw_lines:
		line = raw.rstrip("\r\n")
		if line.strip() == "":
			continue
		if _LOG_CONTEXT_RE.match(line):
			continue
		lines.append(line)
	for index, line in enumerate(lines):
		if line.startswith(keyword):
			return lines[index:]
	return []

#============================================

class DiagnosticTreeParser():
	def __init__(self, root=None):
		self.root = root if root is not None else schema.INPUT_SCHEMA

	#============================
	def parse(self, raw_lines) -> list:
		"""
		Parse a full report into one top-level node per probed input.
		"""
		lines = clean_lines(raw_lines, self.root.keyword)
		forest = []
		cursor = 0
		while cursor < len(lines):
			(nodes, consumed) = parse_node(lines, self.root, cursor, 0)
			if nodes is None:
				# not part of any input block, e.g. the trailing usage error
				cursor += 1
				continue
			forest.extend(nodes)
			cursor += consumed
		return forest

#============================================

def _format_duration(value) -> str:
	if value is UNKNOWN_DURATION:
		return "N/A"
	centis = utils.round_half_up_fraction(Fraction(str(value)) * 100)
	hours = centis // 360000
	minutes = (centis // 6000) % 60
	seconds = (centis // 100) % 60
	return f"{hours:02d}:{minutes:02d}:{seconds:02d}.{centis % 100:02d}"

#============================================

def format_payload(node: ParsedNode) -> str:
	payload = node.payload
	if node.tag == NodeTag.INPUT:
		return f"Input #{payload.index}, {payload.format_name}, from '{payload.path}':"
	if node.tag == NodeTag.DURATION:
		duration_text = _format_duration(payload.duration)
		return f"Duration: {duration_text}, start: 0.000000, bitrate: N/A"
	if node.tag == NodeTag.CHAPTER:
		return (f"Chapter #{payload.input_index}:{payload.index}: "
			f"start {payload.start:.6f}, end {payload.end:.6f}")
	if node.tag == NodeTag.STREAM:
		text = f"Stream #{payload.input_index}:{payload.index}"
		if payload.language:
			text += f"({payload.language})"
		stream_type = schema.STREAM_TYPE_BY_KIND[payload.kind]
		text += f": {stream_type}: {payload.codec}"
		for disposition in payload.dispositions:
			text += f" ({disposition.replace('_', ' ')})"
		return text
	if node.tag == NodeTag.METADATA_ENTRY:
		key = payload.key or ""
		return f"{key:<16}: {payload.value}"
	if node.tag == NodeTag.PROGRAM:
		return payload.label
	return f"{payload.label}:"

#============================================

def format_forest(forest, depth: int = 0) -> list:
	"""
	Render parsed nodes back into report lines.
	"""
	lines = []
	for node in forest:
		lines.append(schema.INDENT_UNIT * depth + format_payload(node))
		for group in node.children:
			lines.extend(format_forest(group, depth + 1))
	return lines
