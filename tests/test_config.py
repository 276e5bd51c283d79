#!/usr/bin/env python3

"""
Unit tests for the mixtrack config file.
"""

# Standard Library
import os
import sys
import tempfile
import unittest

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
	sys.path.insert(0, REPO_ROOT)

from mixtracklib.core import config

#============================================

def _write(temp_dir: str, lines: list) -> str:
	path = os.path.join(temp_dir, "mixtrack_config.yaml")
	with open(path, "w") as handle:
		handle.write("\n".join(lines))
		handle.write("\n")
	return path

#============================================

class ConfigTest(unittest.TestCase):
	#============================================
	def test_defaults(self) -> None:
		settings = config.load_settings()
		self.assertEqual(settings['ffmpeg_path'], 'ffmpeg')
		self.assertEqual(settings['output_flags'], ["-max_interleave_delta", "0"])
		self.assertEqual(settings['codecs'], {})

	#============================================
	def test_overrides(self) -> None:
		with tempfile.TemporaryDirectory() as temp_dir:
			path = _write(temp_dir, [
				"mixtrack_config: 1",
				"settings:",
				"  ffmpeg_path: /opt/ffmpeg/bin/ffmpeg",
				"  output_flags: -max_muxing_queue_size 1024",
				"  codecs:",
				"    WEBM: {audio: libopus, subtitle: webvtt}",
				"    .mp4: {subtitle: mov_text}",
			])
			settings = config.load_settings(path)
		self.assertEqual(settings['ffmpeg_path'], "/opt/ffmpeg/bin/ffmpeg")
		self.assertEqual(settings['output_flags'], ["-max_muxing_queue_size", "1024"])
		self.assertEqual(settings['codecs']['.webm'],
			{'audio': 'libopus', 'subtitle': 'webvtt'})
		self.assertEqual(settings['codecs']['.mp4'], {'subtitle': 'mov_text'})

	#============================================
	def test_missing_version_raises(self) -> None:
		with tempfile.TemporaryDirectory() as temp_dir:
			path = _write(temp_dir, ["settings: {ffmpeg_path: ffmpeg}"])
			with self.assertRaises(RuntimeError):
				config.load_settings(path)

	#============================================
	def test_video_codec_override_rejected(self) -> None:
		with tempfile.TemporaryDirectory() as temp_dir:
			path = _write(temp_dir, [
				"mixtrack_config: 1",
				"settings:",
				"  codecs:",
				"    .mkv: {video: libx264}",
			])
			with self.assertRaisesRegex(RuntimeError, "settings.codecs"):
				config.load_settings(path)

	#============================================
	def test_bad_output_flags_rejected(self) -> None:
		with self.assertRaises(RuntimeError):
			config.build_settings({'settings': {'output_flags': {'a': 1}}}, "test.yaml")

#============================================

def main() -> None:
	"""Run the unit tests."""
	unittest.main()

#============================================

if __name__ == "__main__":
	main()
