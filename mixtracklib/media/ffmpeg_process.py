#!/usr/bin/env python3

import queue
import subprocess
import threading

from mixtracklib.core import utils

#============================================

def build_probe_command(ffmpeg_path: str, paths: list) -> list:
	cmd = [ffmpeg_path, "-hide_banner"]
	for path in paths:
		cmd += ["-i", path]
	return cmd

#============================================

def build_run_command(ffmpeg_path: str, args: list) -> list:
	# the planner removes stale outputs itself, -y only avoids the prompt
	return [ffmpeg_path, "-hide_banner", "-y"] + list(args)

#============================================

class ProcessRunner():
	"""
	Run one external command and stream both output channels line by line.

	stdout and stderr are drained on daemon reader threads into a queue;
	lines() yields (channel, line) pairs as they arrive. Text mode splits
	on carriage returns too, so ffmpeg status updates arrive as lines.
	"""
	def __init__(self, args: list, input_text: str = None):
		self.args = [str(item) for item in args]
		self.input_text = input_text
		self.process = None
		self.returncode = None
		self._queue = queue.Queue()
		self._threads = []
		self._start_time = None
		self._ended = False
		self._drained = False

	#============================
	def __enter__(self):
		if self.process is None:
			self.start()
		return self

	#============================
	def __exit__(self, exc_type, exc_value, traceback):
		# a drained process is already exiting on its own
		if not self._drained:
			self.terminate()
		self.wait()

	#============================
	def start(self):
		if self.process is not None:
			raise RuntimeError("process already started")
		self._start_time = utils.report_command_start(self.args)
		stdin = subprocess.DEVNULL
		if self.input_text is not None:
			stdin = subprocess.PIPE
		self.process = subprocess.Popen(self.args, stdin=stdin,
			stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True,
			encoding='utf-8', errors='replace')
		for (channel, stream) in (('stdout', self.process.stdout),
			('stderr', self.process.stderr)):
			thread = threading.Thread(target=self._read_stream,
				args=(channel, stream), daemon=True)
			thread.start()
			self._threads.append(thread)
		if self.input_text is not None:
			thread = threading.Thread(target=self._write_input, daemon=True)
			thread.start()
			self._threads.append(thread)
		return self

	#============================
	def _read_stream(self, channel: str, stream) -> None:
		for line in iter(stream.readline, ""):
			self._queue.put((channel, line.rstrip("\n")))
		stream.close()
		# end-of-channel marker
		self._queue.put((channel, None))

	#============================
	def _write_input(self) -> None:
		stdin = self.process.stdin
		try:
			stdin.write(self.input_text)
			stdin.close()
		except (OSError, ValueError):
			# the process exited or was terminated before reading all of its
			# input; stderr says why
			return

	#============================
	def lines(self):
		"""
		Yield (channel, line) until both output channels are closed.
		"""
		if self.process is None:
			raise RuntimeError("process not started")
		open_channels = 2
		while open_channels > 0:
			(channel, line) = self._queue.get()
			if line is None:
				open_channels -= 1
				continue
			yield (channel, line)
		self._drained = True

	#============================
	def wait(self) -> int:
		if self.process is None:
			raise RuntimeError("process not started")
		self.returncode = self.process.wait()
		for thread in self._threads:
			thread.join()
		if not self._ended:
			self._ended = True
			utils.report_command_end(self.args, self.returncode, self._start_time)
		return self.returncode

	#============================
	def terminate(self) -> None:
		"""
		Ask the process to stop; safe to call at any time, any number of times.
		"""
		if self.process is None:
			return
		if self.process.poll() is not None:
			return
		self.process.terminate()

	#============================
	def run(self) -> tuple:
		"""
		Start, collect every output line, and wait.

		Returns:
			tuple: (returncode, list of lines in arrival order)
		"""
		if self.process is None:
			self.start()
		collected = [line for (channel, line) in self.lines()]
		returncode = self.wait()
		return (returncode, collected)
