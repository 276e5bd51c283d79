#!/usr/bin/env python3

"""
Unit tests for building the track catalog from a parsed report.
"""

# Standard Library
import os
import sys
from decimal import Decimal

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
	sys.path.insert(0, REPO_ROOT)

# tests helpers
TESTS_DIR = os.path.abspath(os.path.dirname(__file__))
if TESTS_DIR not in sys.path:
	sys.path.insert(0, TESTS_DIR)
import report_samples

# local repo modules
from mixtracklib.core import catalog
from mixtracklib.core.catalog import MediaCatalogBuilder
from mixtracklib.core.parser import DiagnosticTreeParser
from mixtracklib.core.parser import UNKNOWN_DURATION

#============================================

def _build(lines: list, source_paths: list = None) -> list:
	forest = DiagnosticTreeParser().parse(lines)
	return MediaCatalogBuilder(source_paths).build(forest)

#============================================

def test_single_video_audio_source() -> None:
	"""
	Ensure a ten minute video+audio source becomes one two-track group.
	"""
	groups = _build(report_samples.SINGLE_SOURCE_LINES)
	assert len(groups) == 1
	group = groups[0]
	assert group.path == "movie.mkv"
	assert group.duration == Decimal(600)
	assert [track.index for track in group.tracks] == [0, 1]
	assert [track.kind for track in group.tracks] == ['video', 'audio']
	assert group.chapters == ()
	assert group.attachments == ()
	assert group.global_metadata == (("title", "Movie"), ("ENCODER", "Lavf60.16.100"))

#============================================

def test_language_leads_stream_metadata() -> None:
	group = _build(report_samples.SINGLE_SOURCE_LINES)[0]
	assert group.tracks[1].metadata == (("language", "eng"),)
	assert group.tracks[0].metadata == (("DURATION", "00:10:00.000000000"),)

#============================================

def test_full_source_projection() -> None:
	group = _build(report_samples.FULL_SOURCE_LINES)[0]
	assert group.duration == Decimal("1200.5")
	assert group.global_metadata[1] == ("COMMENT", "first line\nsecond line")
	assert [chapter.title for chapter in group.chapters] == ["Opening", "Episode"]
	assert group.chapters[1].start == Decimal(300)
	video = group.tracks[0]
	# duplicates kept, side data after metadata
	assert [key for (key, value) in video.metadata] == ["BPS", "BPS", "cpb"]
	subtitle = group.tracks[2]
	assert subtitle.kind == 'subtitle'
	assert subtitle.codec == 'ass'
	assert subtitle.dispositions == ('forced', 'hearing_impaired')
	assert subtitle.metadata == (("language", "eng"), ("title", "Signs"))
	assert len(group.tracks) == 3
	attachment = group.attachments[0]
	assert attachment.index == 3
	assert attachment.kind == 'attachment'
	assert attachment.mimetype == "font/ttf"
	assert attachment.filename == "font.ttf"
	assert group.find_stream(3) is attachment
	assert group.find_stream(9) is None

#============================================

def test_transport_stream_programs_keep_tracks() -> None:
	group = _build(report_samples.PROGRAM_SOURCE_LINES)[0]
	assert group.path == "broadcast.ts"
	assert group.duration == Decimal(30)
	assert [track.index for track in group.tracks] == [0, 1, 2, 3]
	assert [track.kind for track in group.tracks] == ['video', 'audio', 'audio', 'other']
	assert group.tracks[2].metadata == (("language", "fra"),)
	# program service names are not container metadata
	assert group.global_metadata == ()

#============================================

def test_multi_line_value_reaches_catalog() -> None:
	lines = [
		"Input #0, matroska,webm, from 'notes.mkv':",
		"  Metadata:",
		"    COMMENT         : first line",
		"                    : second line",
		"  Stream #0:0: Audio: opus, 48000 Hz, stereo",
	]
	group = _build(lines)[0]
	assert group.global_metadata == (("COMMENT", "first line\nsecond line"),)
	assert [track.kind for track in group.tracks] == ['audio']

#============================================

def test_missing_sections_use_sentinels() -> None:
	group = _build(report_samples.NO_DURATION_LINES)[0]
	assert group.duration is UNKNOWN_DURATION
	assert group.chapters == ()
	assert group.global_metadata == ()
	group = _build(report_samples.UNKNOWN_DURATION_LINES)[0]
	assert group.duration is UNKNOWN_DURATION

#============================================

def test_input_without_path_is_dropped() -> None:
	lines = [
		"Input #0, lavfi",
		"  Stream #0:0: Video: rawvideo",
	] + report_samples.UNKNOWN_DURATION_LINES
	groups = _build(lines)
	assert [group.path for group in groups] == ["live.ts"]

#============================================

def test_probe_paths_override_report_paths() -> None:
	lines = report_samples.SINGLE_SOURCE_LINES[:-1] + report_samples.UNKNOWN_DURATION_LINES
	groups = _build(lines, ["/media/movie.mkv", "/media/live.ts"])
	assert [group.path for group in groups] == ["/media/movie.mkv", "/media/live.ts"]
	assert catalog.find_group(groups, "/media/live.ts") is groups[1]
	assert catalog.find_group(groups, "live.ts") is None

#============================================

def test_group_to_dict() -> None:
	group = _build(report_samples.FULL_SOURCE_LINES)[0]
	data = catalog.group_to_dict(group)
	assert data['path'] == "show.mkv"
	assert data['duration'] == "00:20:00.500"
	assert data['chapters'][0]['end'] == "00:05:00.000"
	assert data['attachments'][0]['filename'] == "font.ttf"
	assert data['tracks'][1]['dispositions'] == ['default', 'original']
	unknown = catalog.group_to_dict(_build(report_samples.NO_DURATION_LINES)[0])
	assert unknown['duration'] == "N/A"
