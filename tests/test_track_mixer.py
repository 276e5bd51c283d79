#!/usr/bin/env python3

"""
Tests for MediaTrackMixer driven by a scripted stand-in for ffmpeg.
"""

# Standard Library
import os
import stat
import sys
import tempfile
import threading
import unittest
from decimal import Decimal
from unittest import mock

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
	sys.path.insert(0, REPO_ROOT)

from mixtracklib.core import utils
from mixtracklib.core.mixer import MediaTrackMixer
from mixtracklib.core.planner import TrackMap

#============================================

# prints a probe report without -y, otherwise copies the piped sidecar
# into the output file and prints two status lines; FAKE_FFMPEG_FAIL and
# FAKE_FFMPEG_STALL fail or hang the run after the first status line
FAKE_FFMPEG = """
import os
import sys
import time

args = sys.argv[1:]
inputs = [args[i + 1] for i in range(len(args) - 1) if args[i] == "-i"]
if "-y" not in args:
	for number, path in enumerate(inputs):
		sys.stderr.write(f"Input #{number}, matroska,webm, from '{path}':\\n")
		sys.stderr.write("  Metadata:\\n")
		sys.stderr.write(f"    title           : Source {number}\\n")
		sys.stderr.write("  Duration: 00:00:10.00, start: 0.000000, bitrate: N/A\\n")
		sys.stderr.write(f"  Stream #{number}:0: Video: h264 (default)\\n")
		sys.stderr.write(f"  Stream #{number}:1(eng): Audio: aac\\n")
		sys.stderr.write(f"  Stream #{number}:2: Attachment: ttf\\n")
		sys.stderr.write("    Metadata:\\n")
		sys.stderr.write("      filename        : font.ttf\\n")
	sys.stderr.write("At least one output file must be specified\\n")
	sys.exit(1)
sidecar = ""
if "pipe:0" in args:
	sidecar = sys.stdin.read()
out_path = args[-1]
for i, arg in enumerate(args):
	if arg.startswith("-dump_attachment"):
		out_path = args[i + 1]
with open(out_path, "w") as handle:
	handle.write(sidecar)
sys.stderr.write("size=     100kB time=00:00:05.00 bitrate=N/A speed=1x\\r")
if os.environ.get("FAKE_FFMPEG_STALL"):
	# a lone carriage return is held back by the reader until more text comes
	sys.stderr.write("\\n")
	sys.stderr.flush()
	time.sleep(30)
if os.environ.get("FAKE_FFMPEG_FAIL"):
	sys.stderr.write("Conversion failed!\\n")
	sys.exit(0)
sys.stderr.write("size=     200kB time=00:00:10.00 bitrate=N/A speed=1x\\n")
"""

#============================================

@unittest.skipUnless(os.name == "posix", "needs an executable script shebang")
class TrackMixerTest(unittest.TestCase):
	#============================================
	def setUp(self) -> None:
		utils.set_quiet_mode(True)
		self.temp_dir = tempfile.TemporaryDirectory()
		self.fake_ffmpeg = os.path.join(self.temp_dir.name, "fake_ffmpeg")
		with open(self.fake_ffmpeg, "w") as handle:
			handle.write(f"#!{sys.executable}\n")
			handle.write(FAKE_FFMPEG)
		mode = os.stat(self.fake_ffmpeg).st_mode
		os.chmod(self.fake_ffmpeg, mode | stat.S_IXUSR)
		self.source = os.path.join(self.temp_dir.name, "a.mkv")
		with open(self.source, "w") as handle:
			handle.write("")
		self.output = os.path.join(self.temp_dir.name, "out.mkv")
		settings = {
			'ffmpeg_path': self.fake_ffmpeg,
			'output_flags': ["-max_interleave_delta", "0"],
			'codecs': {},
		}
		self.lines = []
		self.mixer = MediaTrackMixer(settings,
			line_sink=lambda channel, line: self.lines.append(line))

	#============================================
	def tearDown(self) -> None:
		utils.set_quiet_mode(False)
		self.temp_dir.cleanup()

	#============================================
	def test_probe_builds_catalog(self) -> None:
		track_groups = self.mixer.probe([self.source])
		self.assertEqual(len(track_groups), 1)
		group = track_groups[0]
		self.assertEqual(group.path, self.source)
		self.assertEqual(group.duration, Decimal(10))
		self.assertEqual(group.global_metadata, (("title", "Source 0"),))
		self.assertEqual([track.kind for track in group.tracks], ['video', 'audio'])
		self.assertEqual(group.attachments[0].filename, "font.ttf")

	#============================================
	def test_probe_missing_file_raises(self) -> None:
		with self.assertRaises(RuntimeError):
			self.mixer.probe([os.path.join(self.temp_dir.name, "missing.mkv")])

	#============================================
	def test_mix_pipes_sidecar_and_reports_progress(self) -> None:
		track_groups = self.mixer.probe([self.source])
		with open(self.output, "w") as handle:
			handle.write("stale")
		reported = []
		maps = [TrackMap(self.source, 0, 'video'),
			TrackMap(self.source, 1, 'audio', metadata=(("language", "jpn"),))]
		result = self.mixer.mix(track_groups, self.output, (("title", "A=B"),), (),
			maps, progress=reported.append)
		self.assertTrue(result.success)
		self.assertEqual(result.exit_code, 0)
		self.assertIsNone(result.failure_line)
		self.assertEqual(reported, [50.0, 100.0, 100.0])
		with open(self.output) as handle:
			sidecar = handle.read()
		self.assertTrue(sidecar.startswith(";FFMETADATA1\ntitle=A\\=B\n"))
		self.assertIn("[STREAM]\nlanguage=jpn\n", sidecar)
		self.assertTrue(any(line.startswith("size=") for line in self.lines))

	#============================================
	def test_failure_marker_fails_run(self) -> None:
		track_groups = self.mixer.probe([self.source])
		maps = [TrackMap(self.source, 0, 'video')]
		with mock.patch.dict(os.environ, {"FAKE_FFMPEG_FAIL": "1"}):
			result = self.mixer.mix(track_groups, self.output, (), (), maps)
			self.assertFalse(result.success)
			self.assertEqual(result.exit_code, 0)
			self.assertEqual(result.failure_line, "Conversion failed!")
			with self.assertRaisesRegex(RuntimeError, "Conversion failed!"):
				self.mixer.mix(track_groups, self.output, (), (), maps,
					raise_on_failure=True)

	#============================================
	def test_extract_attachment_uses_dump_attachment(self) -> None:
		track_groups = self.mixer.probe([self.source])
		events = []
		utils.set_command_reporter(events.append)
		try:
			result = self.mixer.extract_attachment(track_groups, self.source, 2,
				os.path.join(self.temp_dir.name, "font.ttf"))
		finally:
			utils.clear_command_reporter()
		self.assertTrue(result.success)
		self.assertIn("-dump_attachment:2", events[0]['command'])
		self.assertTrue(os.path.isfile(os.path.join(self.temp_dir.name, "font.ttf")))

	#============================================
	def test_cancel_during_run_reports_cancelled(self) -> None:
		track_groups = self.mixer.probe([self.source])
		maps = [TrackMap(self.source, 0, 'video')]
		started = threading.Event()
		reported = []

		def on_progress(percent: float) -> None:
			reported.append(percent)
			started.set()

		def cancel_when_started() -> None:
			if started.wait(10):
				self.mixer.cancel()

		canceller = threading.Thread(target=cancel_when_started)
		canceller.start()
		with mock.patch.dict(os.environ, {"FAKE_FFMPEG_STALL": "1"}):
			result = self.mixer.mix(track_groups, self.output, (), (), maps,
				progress=on_progress)
		canceller.join()
		self.assertTrue(result.cancelled)
		self.assertFalse(result.success)
		self.assertEqual(result.failure_line, "cancelled")
		self.assertNotEqual(result.exit_code, 0)
		self.assertEqual(reported, [50.0])
		# a later cancel with nothing running does nothing
		self.mixer.cancel()

	#============================================
	def test_cancel_without_run_is_harmless(self) -> None:
		self.mixer.cancel()

#============================================

def main() -> None:
	"""Run the unit tests."""
	unittest.main()

#============================================

if __name__ == "__main__":
	main()
