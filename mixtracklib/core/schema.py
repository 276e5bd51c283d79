#!/usr/bin/env python3

"""
Grammar of the ffmpeg input report.

ffmpeg prints one block per input on stderr, nested by two-space indents:

	Input #0, matroska,webm, from 'movie.mkv':
	  Metadata:
	    title           : Movie
	  Duration: 00:10:00.00, start: 0.000000, bitrate: 1234 kb/s
	  Chapters:
	    Chapter #0:0: start 0.000000, end 300.000000
	      Metadata:
	        title           : Opening
	  Stream #0:0(eng): Video: h264 (High), yuv420p, 1920x1080 (default)
	    Metadata:
	      BPS             : 1234
	    Side data:
	      cpb: bitrate max/min/avg: 0/0/0 buffer size: 0 vbv_delay: N/A

The tree below is read-only; the parser walks it.
"""

import enum

#============================================

INDENT_UNIT = "  "

#============================================

class NodeTag(enum.Enum):
	INPUT = 'input'
	DURATION = 'duration'
	CHAPTERS = 'chapters'
	CHAPTER = 'chapter'
	STREAM = 'stream'
	METADATA = 'metadata'
	METADATA_ENTRY = 'metadata_entry'
	SIDE_DATA = 'side_data'
	PROGRAM = 'program'

#============================================

class SchemaNode():
	def __init__(self, tag: NodeTag, keyword: str = None,
		repeatable: bool = False, children: tuple = ()):
		self.tag = tag
		# None leaves matching to the payload extractor alone
		self.keyword = keyword
		self.repeatable = repeatable
		self.children = tuple(children)

	#============================
	def __repr__(self) -> str:
		return f"SchemaNode({self.tag.name}, keyword={self.keyword!r})"

	#============================
	def child(self, tag: NodeTag):
		for child in self.children:
			if child.tag == tag:
				return child
		return None

#============================================

def _metadata_block() -> SchemaNode:
	entry = SchemaNode(NodeTag.METADATA_ENTRY, repeatable=True)
	return SchemaNode(NodeTag.METADATA, keyword="Metadata:", children=(entry,))

#============================================

def build_schema() -> SchemaNode:
	side_data = SchemaNode(NodeTag.SIDE_DATA, keyword="Side data:",
		children=(SchemaNode(NodeTag.METADATA_ENTRY, repeatable=True),))
	stream = SchemaNode(NodeTag.STREAM, keyword="Stream #", repeatable=True,
		children=(_metadata_block(), side_data))
	chapter = SchemaNode(NodeTag.CHAPTER, keyword="Chapter #", repeatable=True,
		children=(_metadata_block(),))
	chapters = SchemaNode(NodeTag.CHAPTERS, keyword="Chapters:",
		children=(chapter,))
	duration = SchemaNode(NodeTag.DURATION, keyword="Duration:")
	# "Program N" and "No Program" headers; their streams follow at stream depth
	program = SchemaNode(NodeTag.PROGRAM, repeatable=True,
		children=(_metadata_block(),))
	return SchemaNode(NodeTag.INPUT, keyword="Input #", repeatable=True,
		children=(_metadata_block(), duration, chapters, program, stream))

#============================================

INPUT_SCHEMA = build_schema()

#============================================

# stream type word printed by ffmpeg -> track kind
KIND_BY_STREAM_TYPE = {
	'Video': 'video',
	'Audio': 'audio',
	'Subtitle': 'subtitle',
	'Attachment': 'attachment',
}

STREAM_TYPE_BY_KIND = {
	'video': 'Video',
	'audio': 'Audio',
	'subtitle': 'Subtitle',
	'attachment': 'Attachment',
	'other': 'Data',
}

TRACK_KINDS = ('video', 'audio', 'subtitle', 'attachment', 'other')

# every stream disposition keyword ffmpeg accepts for -disposition
DISPOSITIONS = (
	'default',
	'dub',
	'original',
	'comment',
	'lyrics',
	'karaoke',
	'forced',
	'hearing_impaired',
	'visual_impaired',
	'clean_effects',
	'attached_pic',
	'timed_thumbnails',
	'non_diegetic',
	'captions',
	'descriptions',
	'metadata',
	'dependent',
	'still_image',
	'multilayer',
)
