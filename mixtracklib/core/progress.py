#!/usr/bin/env python3

import re
from decimal import Decimal

from mixtracklib.core import utils
from mixtracklib.core.parser import UNKNOWN_DURATION

#============================================

FAILURE_LITERAL = "Conversion failed!"
FAILURE_PREFIXES = (
	"error initializing the muxer",
	"error opening output file",
)

_PROGRESS_RE = re.compile(r"^(?:frame|size)=\s*.+?time=(\d{2}:\d{2}:\d{2}\.\d{2})")
_LOG_PREFIX_RE = re.compile(r"^\[[^\]]+ @ (?:0x)?[0-9a-fA-F]+\]\s*")

#============================================

def is_failure_line(line: str) -> bool:
	text = line.strip()
	if text == FAILURE_LITERAL:
		return True
	text = _LOG_PREFIX_RE.sub("", text).lower()
	return text.startswith(FAILURE_PREFIXES)

#============================================

def parse_elapsed(line: str):
	"""
	Return elapsed media seconds from a status line, or None.
	"""
	match = _PROGRESS_RE.match(line.strip())
	if match is None:
		return None
	return utils.parse_timecode(match.group(1))

#============================================

class ProgressTracker():
	def __init__(self, total_duration=UNKNOWN_DURATION, sink=None):
		self.total_duration = total_duration
		# sink(percent: float) receives every reported value
		self.sink = sink
		self.percent = None
		self.failed = False
		self.failure_line = None

	#============================
	def _report(self, percent: float) -> None:
		self.percent = percent
		if self.sink is not None:
			self.sink(percent)

	#============================
	def _total_known(self) -> bool:
		if self.total_duration is UNKNOWN_DURATION or self.total_duration is None:
			return False
		return self.total_duration > 0

	#============================
	def feed(self, line: str):
		"""
		Consume one diagnostic line; return the new percentage or None.
		"""
		if self.failed:
			return None
		if is_failure_line(line):
			self.failed = True
			self.failure_line = line.strip()
			return None
		elapsed = parse_elapsed(line)
		if elapsed is None or not self._total_known():
			return None
		ratio = elapsed / Decimal(self.total_duration)
		percent = min(float(ratio * 100), 100.0)
		self._report(percent)
		return percent

	#============================
	def finish(self, exit_code: int) -> bool:
		"""
		Close out the run; True when no failure marker was seen.
		"""
		# the exit code is informational only, ffmpeg can exit 0 after a muxer error
		if self.failed:
			return False
		self._report(100.0)
		return True
