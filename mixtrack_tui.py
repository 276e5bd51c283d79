#!/usr/bin/env python3

"""
Textual TUI wrapper for mixtrack jobs.
"""

# Standard Library
import argparse
import os
import re
import shlex
import sys
import threading
import time
import traceback

script_dir = os.path.dirname(os.path.abspath(__file__))
repo_root = script_dir
if os.path.basename(script_dir) == "tools":
	repo_root = os.path.dirname(script_dir)
if repo_root not in sys.path:
	sys.path.insert(0, repo_root)

# PIP3 modules
from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.widgets import ProgressBar, RichLog, Static
from rich.text import Text

# local repo modules
from mixtracklib.core import config
from mixtracklib.core import progress
from mixtracklib.core import utils
from mixtracklib.core.mixer import MediaTrackMixer

#============================================

NORD_COLORS = {
	'background': "#2E3440",
	'foreground': "#D8DEE9",
	'dim': "#4C566A",
	'header': "#88C0D0",
	'command': "#ECEFF4",
	'flags': "#81A1C1",
	'numbers': "#B48EAD",
	'paths': "#A3BE8C",
	'strings': "#EBCB8B",
	'error': "#BF616A",
}

# probe + mix
COMMAND_TOTAL = 2

#============================================

def parse_args():
	"""
	Parse command-line arguments.
	"""
	parser = argparse.ArgumentParser(description="mixtrack TUI wrapper")
	parser.add_argument('-j', '--job', dest='job_file', required=True,
		help='mixtrack job yaml file')
	parser.add_argument('-o', '--output', dest='output_file',
		help='override output file from yaml')
	parser.add_argument('-c', '--config', dest='config_file',
		help='mixtrack_config yaml file with ffmpeg path and codec overrides')
	parser.add_argument('-d', '--debug', dest='debug_log', action='store_true',
		help='write debug log to mixtrack_tui.log in the current directory')
	args = parser.parse_args()
	return args

#============================================

class MixtrackTuiApp(App):
	BINDINGS = [
		("q", "cancel_quit", "Cancel and quit"),
	]

	CSS = """
	#root {
		height: 1fr;
	}

	#top_row {
		height: 30%;
		min-height: 8;
	}

	#left_panel {
		width: 40%;
		height: 1fr;
		border: solid gray;
	}

	#right_panel {
		width: 60%;
		height: 1fr;
		border: solid gray;
	}

	#metrics_title {
		height: 1;
		color: #88C0D0;
	}

	#metrics {
		height: 1fr;
	}

	#job_title {
		height: 1;
		color: #88C0D0;
	}

	#job_info {
		height: 1fr;
	}

	#footer_note {
		height: 1;
		color: #4C566A;
	}

	#progress {
		height: 1;
	}

	#log {
		height: 1fr;
		border: solid gray;
	}
	"""

	def __init__(self, job_file: str, output_override: str = None,
		config_file: str = None, debug_log: bool = False):
		super().__init__()
		self.job_file = job_file
		self.output_override = output_override
		self.config_file = config_file
		self.mixer = None
		self.command_count = 0
		self.command_total = COMMAND_TOTAL
		self.current_summary = ""
		self.percent = None
		self.start_time = None
		self.finish_time = None
		self.error_text = None
		self.cancelled = False
		self.output_file = None
		self.sources = []
		self.metrics_widget = None
		self.job_widget = None
		self.progress_widget = None
		self.log_widget = None
		self.finished = False
		self.command_styles = self._build_command_styles()
		self.debug_mode = debug_log
		self.log_path = None
		self.log_lock = threading.Lock()
		if self.debug_mode:
			self.log_path = os.path.join(os.getcwd(), "mixtrack_tui.log")
			self._reset_log()
			self._write_log(f"debug log: {self.log_path}")

	#============================
	def compose(self) -> ComposeResult:
		yield Static("MIXTRACK TUI", id="header")
		with Vertical(id="root"):
			with Horizontal(id="top_row"):
				with Vertical(id="left_panel"):
					yield Static("Dashboard", id="metrics_title")
					yield Static("", id="metrics")
					yield Static("Press q to cancel and quit", id="footer_note")
				with Vertical(id="right_panel"):
					yield Static("Job", id="job_title")
					yield Static("", id="job_info")
			yield ProgressBar(total=100, id="progress", show_eta=False)
			yield RichLog(id="log", wrap=True, highlight=False)

	#============================
	def on_mount(self) -> None:
		self.metrics_widget = self.query_one("#metrics", Static)
		self.job_widget = self.query_one("#job_info", Static)
		self.progress_widget = self.query_one("#progress", ProgressBar)
		self.log_widget = self.query_one(RichLog)
		self.start_time = time.time()
		self._update_job_info()
		if self.debug_mode and self.log_widget is not None and self.log_path is not None:
			self.log_widget.write(f"debug log: {self.log_path}")
		thread = threading.Thread(target=self._run_job, daemon=True)
		thread.start()
		self.set_interval(0.5, self._refresh_status)

	#============================
	def _refresh_status(self) -> None:
		self._update_metrics()

	#============================
	def _run_job(self) -> None:
		utils.set_quiet_mode(True)
		utils.set_command_reporter(self._report_command)
		utils.set_command_total(self.command_total)
		try:
			settings = config.load_settings(self.config_file)
			self.mixer = MediaTrackMixer(settings, line_sink=self._report_line)
			plan = self.mixer.plan_job(self.job_file,
				output_override=self.output_override)
			self.output_file = plan.output_path
			self.sources = self._plan_sources(plan)
			self.call_from_thread(self._update_job_info)
			result = self.mixer.execute(plan, progress=self._report_progress)
			if result.cancelled:
				self.call_from_thread(self._set_cancelled)
			elif not result.success:
				self.call_from_thread(self._set_error,
					f"ffmpeg failed: {result.failure_line}")
		except Exception as exc:
			self.call_from_thread(self._set_error, str(exc), traceback.format_exc())
		finally:
			utils.set_command_total(None)
			utils.clear_command_reporter()
			utils.set_quiet_mode(False)
			self.call_from_thread(self._finish)

	#============================
	def _plan_sources(self, plan) -> list:
		if plan.is_extraction:
			return [plan.path]
		return [slot.path for slot in plan.inputs]

	#============================
	def action_cancel_quit(self) -> None:
		if self.mixer is not None and not self.finished:
			self.mixer.cancel()
		self.exit()

	#============================
	def _set_error(self, text: str, trace_text: str = None) -> None:
		self.error_text = text
		if trace_text:
			self._write_log(trace_text)
		if self.log_widget is not None:
			self.log_widget.write(
				Text(f"error: {text}", style=f"bold {NORD_COLORS['error']}")
			)

	#============================
	def _set_cancelled(self) -> None:
		self.cancelled = True
		if self.log_widget is not None:
			self.log_widget.write(Text("cancelled", style=NORD_COLORS['strings']))
		self._write_log("cancelled")

	#============================
	def _finish(self) -> None:
		if self.log_widget is None or self.metrics_widget is None:
			return
		self.finished = True
		if self.start_time is not None and self.finish_time is None:
			self.finish_time = time.time() - self.start_time
		if self.error_text is None and not self.cancelled:
			self._write_complete_banner()
			self.log_widget.write(f"complete: {self.output_file}")
			self._write_log(f"complete: {self.output_file}")
		elif self.error_text is not None:
			self.log_widget.write("complete with errors")
			self._write_log("complete with errors")
		self._update_metrics()

	#============================
	def _report_command(self, event: dict) -> None:
		self.call_from_thread(self._handle_command_event, event)

	#============================
	def _report_progress(self, percent: float) -> None:
		self.call_from_thread(self._set_progress, percent)

	#============================
	def _report_line(self, channel: str, line: str) -> None:
		# status lines only move the progress bar
		if progress.parse_elapsed(line) is not None:
			return
		self.call_from_thread(self._handle_line, channel, line)

	#============================
	def _set_progress(self, percent: float) -> None:
		self.percent = percent
		if self.progress_widget is not None:
			self.progress_widget.update(progress=percent)

	#============================
	def _handle_line(self, channel: str, line: str) -> None:
		if self.log_widget is None:
			return
		if progress.is_failure_line(line):
			self.log_widget.write(Text(line, style=f"bold {NORD_COLORS['error']}"))
		else:
			self.log_widget.write(Text(line, style=NORD_COLORS['dim']))
		self._write_log(f"{channel}: {line}")

	#============================
	def _handle_command_event(self, event: dict) -> None:
		if self.log_widget is None:
			return
		event_type = event.get('event')
		command = event.get('command', '')
		summary = self._summarize_command(command)
		if event_type == 'start':
			self.command_count = event.get('index', self.command_count + 1)
			self.command_total = event.get('total', self.command_total)
			self.current_summary = summary
			prefix = utils.command_prefix(self.command_count, self.command_total)
			if prefix:
				self.log_widget.write("")
				self.log_widget.write(Text(prefix, style=f"bold {NORD_COLORS['header']}"))
			self.log_widget.write(self._highlight_command(command))
			self._write_log(f"start: {command}")
			self._update_metrics()
		if event_type == 'end':
			seconds = event.get('seconds', 0.0)
			code = event.get('returncode')
			self._write_log(f"end ({code}, {seconds:.3f}s): {command}")
			self._update_metrics()

	#============================
	def _write_log(self, message: str) -> None:
		if not self.debug_mode or self.log_path is None:
			return
		timestamp = time.strftime("%Y-%m-%d %H:%M:%S")
		line = f"[{timestamp}] {message}\n"
		with self.log_lock:
			with open(self.log_path, "a", encoding="utf-8") as handle:
				handle.write(line)

	#============================
	def _reset_log(self) -> None:
		if not self.debug_mode or self.log_path is None:
			return
		with self.log_lock:
			with open(self.log_path, "w", encoding="utf-8"):
				return

	#============================
	def _summarize_command(self, command: str) -> str:
		if command is None or command == "":
			return "command"
		try:
			parts = shlex.split(command)
		except ValueError:
			return command
		if len(parts) == 0:
			return command
		tool = os.path.basename(parts[0])
		for (position, part) in enumerate(parts):
			if part.startswith("-dump_attachment") and position + 1 < len(parts):
				return f"{tool}: extract {os.path.basename(parts[position + 1])}"
		if "-f" in parts and "ffmetadata" in parts and len(parts) > 1:
			return f"{tool}: {os.path.basename(parts[-1])}"
		inputs = [parts[i + 1] for i in range(len(parts) - 1) if parts[i] == "-i"]
		if len(inputs) > 0:
			names = ", ".join(os.path.basename(path) for path in inputs)
			return f"{tool}: probe {names}"
		return f"{tool}: {command}"

	#============================
	def _update_metrics(self) -> None:
		if self.metrics_widget is None:
			return
		if self.start_time is None:
			elapsed = 0.0
		elif self.finished:
			elapsed = self.finish_time or (time.time() - self.start_time)
		else:
			elapsed = time.time() - self.start_time
		if self.error_text is not None:
			status = "failed"
		elif self.cancelled:
			status = "cancelled"
		elif self.finished:
			status = "done"
		else:
			status = "running"
		metrics = Text()
		status_style = NORD_COLORS['foreground']
		if status == "failed":
			status_style = NORD_COLORS['error']
		elif status == "cancelled":
			status_style = NORD_COLORS['strings']
		elif status == "done":
			status_style = NORD_COLORS['paths']
		metrics.append("Status: ", style=NORD_COLORS['dim'])
		metrics.append(status, style=status_style)
		metrics.append("\n")
		metrics.append("Elapsed: ", style=NORD_COLORS['dim'])
		metrics.append(self._format_duration(elapsed), style=NORD_COLORS['numbers'])
		metrics.append("\n")
		metrics.append("Commands: ", style=NORD_COLORS['dim'])
		metrics.append(f"{self.command_count}", style=NORD_COLORS['numbers'])
		if self.command_total:
			metrics.append(f"/{self.command_total}", style=NORD_COLORS['numbers'])
		metrics.append(" | Progress: ", style=NORD_COLORS['dim'])
		percent_text = self._format_percent(self.percent)
		percent_style = NORD_COLORS['numbers']
		if percent_text == "N/A":
			percent_style = NORD_COLORS['dim']
		metrics.append(percent_text, style=percent_style)
		metrics.append("\n")
		metrics.append("Current: ", style=NORD_COLORS['dim'])
		metrics.append(self.current_summary, style=NORD_COLORS['foreground'])
		self.metrics_widget.update(metrics)

	#============================
	def _update_job_info(self) -> None:
		if self.job_widget is None:
			return
		job = Text()
		job.append("YAML: ", style=NORD_COLORS['dim'])
		job.append(self.job_file, style=NORD_COLORS['paths'])
		job.append("\n")
		output_value = self.output_override or self.output_file or "N/A"
		job.append("Output: ", style=NORD_COLORS['dim'])
		output_style = NORD_COLORS['paths']
		if output_value == "N/A":
			output_style = NORD_COLORS['dim']
		job.append(output_value, style=output_style)
		job.append("\n")
		config_value = self.config_file or "default"
		job.append("Config: ", style=NORD_COLORS['dim'])
		config_style = NORD_COLORS['paths']
		if config_value == "default":
			config_style = NORD_COLORS['dim']
		job.append(config_value, style=config_style)
		job.append("\n")
		job.append("Sources: ", style=NORD_COLORS['dim'])
		if len(self.sources) == 0:
			job.append("N/A", style=NORD_COLORS['dim'])
		else:
			job.append(", ".join(self.sources), style=NORD_COLORS['paths'])
		if self.debug_mode and self.log_path is not None:
			job.append("\n")
			job.append("Debug log: ", style=NORD_COLORS['dim'])
			job.append(self.log_path, style=NORD_COLORS['paths'])
		self.job_widget.update(job)

	#============================
	def _build_command_styles(self) -> list:
		return [
			(re.compile(r"\bcopy\b|\bmov_text\b|\blibmp3lame\b|\bffmetadata\b"),
				NORD_COLORS['foreground']),
			(re.compile(r"--?[A-Za-z0-9][A-Za-z0-9_:-]*"), NORD_COLORS['flags']),
			(re.compile(r"\b\d+\.\d+\b"), NORD_COLORS['numbers']),
			(re.compile(r"\b\d+\b(?!\.\d)"), NORD_COLORS['numbers']),
			(re.compile(r"'[^']*'|\"[^\"]*\""), NORD_COLORS['strings']),
			(re.compile(r"(?:/|~|\./|\.\./)[^\s'\"`]+"), NORD_COLORS['paths']),
		]

	#============================
	def _highlight_command(self, command: str):
		if command is None or command == "":
			return ""
		text = Text(command, style=f"bold {NORD_COLORS['command']}")
		for pattern, style in self.command_styles:
			for match in pattern.finditer(command):
				text.stylize(style, match.start(), match.end())
		return text

	#============================
	def _write_complete_banner(self) -> None:
		if self.log_widget is None:
			return
		lines = [
			"  ____ ___  __  __ ____  _     _____ _____ _____ _ ",
			" / ___/ _ \\|  \\/  |  _ \\| |   | ____|_   _| ____| |",
			"| |  | | | | |\\/| | |_) | |   |  _|   | | |  _| | |",
			"| |__| |_| | |  | |  __/| |___| |___  | | | |___|_|",
			" \\____\\___/|_|  |_|_|   |_____|_____| |_| |_____(_)",
		]
		self.log_widget.write("")
		for line in lines:
			self.log_widget.write(line)
		self._write_log("complete banner")

	#============================
	def _format_percent(self, percent) -> str:
		if percent is None:
			return "N/A"
		return f"{percent:.1f}%"

	#============================
	def _format_duration(self, seconds: float) -> str:
		if seconds < 60:
			return f"{seconds:.1f}s"
		minutes = int(seconds // 60)
		remaining = seconds - (minutes * 60)
		seconds_text = f"{remaining:04.1f}"
		if minutes < 60:
			return f"{minutes}m {seconds_text}s"
		hours = int(minutes // 60)
		minutes = minutes - (hours * 60)
		return f"{hours}h {minutes:02d}m {seconds_text}s"

#============================================

def main():
	args = parse_args()
	sys.argv = [arg for arg in sys.argv if arg not in ("-d", "--debug")]
	app = MixtrackTuiApp(args.job_file,
		output_override=args.output_file,
		config_file=args.config_file,
		debug_log=args.debug_log)
	app.run()

#============================================

if __name__ == '__main__':
	main()
