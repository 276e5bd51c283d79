#!/usr/bin/env python3

import os
import shlex
import shutil
import time
from decimal import Decimal
from fractions import Fraction

#============================================

_QUIET_MODE = False
_COMMAND_REPORTER = None
_COMMAND_TOTAL = None
_COMMAND_COUNT = 0

#============================================

def set_quiet_mode(quiet: bool) -> None:
	global _QUIET_MODE
	_QUIET_MODE = bool(quiet)

#============================================

def is_quiet_mode() -> bool:
	return _QUIET_MODE

#============================================

def set_command_reporter(reporter) -> None:
	"""
	Install a callable that receives command start/end event dicts.
	"""
	global _COMMAND_REPORTER
	_COMMAND_REPORTER = reporter

#============================================

def clear_command_reporter() -> None:
	global _COMMAND_REPORTER
	_COMMAND_REPORTER = None

#============================================

def set_command_total(total) -> None:
	global _COMMAND_TOTAL
	global _COMMAND_COUNT
	_COMMAND_TOTAL = total
	_COMMAND_COUNT = 0

#============================================

def command_prefix(index: int, total) -> str:
	if total is None or total <= 0:
		return ""
	return f"[{index}/{total}]"

#============================================

def show_command(cmd: list) -> str:
	return shlex.join([str(item) for item in cmd])

#============================================

def report_command_start(cmd: list) -> float:
	"""
	Announce an external command and return its start time.
	"""
	global _COMMAND_COUNT
	_COMMAND_COUNT += 1
	showcmd = show_command(cmd)
	if not _QUIET_MODE:
		prefix = command_prefix(_COMMAND_COUNT, _COMMAND_TOTAL)
		if prefix:
			print(prefix)
		print(f"CMD: '{showcmd}'")
	if _COMMAND_REPORTER is not None:
		_COMMAND_REPORTER({
			'event': 'start',
			'command': showcmd,
			'index': _COMMAND_COUNT,
			'total': _COMMAND_TOTAL,
		})
	return time.time()

#============================================

def report_command_end(cmd: list, returncode: int, start_time: float) -> None:
	if _COMMAND_REPORTER is None:
		return
	_COMMAND_REPORTER({
		'event': 'end',
		'command': show_command(cmd),
		'returncode': returncode,
		'seconds': time.time() - start_time,
	})

#============================================

def ensure_command(cmd_name: str) -> None:
	if shutil.which(cmd_name) is None and not os.path.isfile(cmd_name):
		raise RuntimeError(f"missing dependency: {cmd_name}")

#============================================

def ensure_file_exists(filepath: str) -> None:
	if not os.path.exists(filepath):
		raise RuntimeError(f"file not found: {filepath}")
	return

#============================================

def remove_stale_output(filepath: str) -> None:
	# errors other than a missing file propagate to the caller
	if os.path.lexists(filepath):
		os.remove(filepath)

#============================================

def parse_timecode(raw_time) -> Decimal:
	if raw_time is None:
		raise RuntimeError("time value is required")
	if isinstance(raw_time, bool):
		raise RuntimeError("time values must be int, float, or timecode string")
	if isinstance(raw_time, int):
		return Decimal(raw_time)
	if isinstance(raw_time, float):
		return Decimal(str(raw_time))
	if isinstance(raw_time, Decimal):
		return raw_time
	if isinstance(raw_time, str):
		value = raw_time.strip()
		negative = value.startswith('-')
		if negative:
			value = value[1:]
		if ':' not in value:
			seconds = Decimal(value)
		else:
			parts = value.split(':')
			seconds = Decimal(parts.pop())
			minutes = Decimal(parts.pop())
			hours = Decimal(0)
			if len(parts) > 0:
				hours = Decimal(parts.pop())
			seconds = hours * Decimal(3600) + minutes * Decimal(60) + seconds
		if negative:
			return -seconds
		return seconds
	raise RuntimeError("time values must be int, float, or timecode string")

#============================================

def format_timecode(seconds: Decimal) -> str:
	"""
	Format seconds as HH:MM:SS.mmm.
	"""
	milliseconds = milliseconds_from_seconds(seconds)
	sign = ""
	if milliseconds < 0:
		sign = "-"
		milliseconds = -milliseconds
	hours = milliseconds // 3600000
	minutes = (milliseconds // 60000) % 60
	secs = (milliseconds // 1000) % 60
	millis = milliseconds % 1000
	return f"{sign}{hours:02d}:{minutes:02d}:{secs:02d}.{millis:03d}"

#============================================

def round_half_up_fraction(value: Fraction) -> int:
	numerator = value.numerator
	denominator = value.denominator
	whole = numerator // denominator
	remainder = numerator - (whole * denominator)
	if remainder * 2 >= denominator:
		return whole + 1
	return whole

#============================================

def milliseconds_from_seconds(seconds: Decimal) -> int:
	seconds_fraction = Fraction(str(seconds))
	return round_half_up_fraction(seconds_fraction * 1000)

#============================================

def format_offset(seconds: Decimal) -> str:
	# itsoffset accepts plain signed seconds
	return f"{Decimal(seconds):.3f}"
