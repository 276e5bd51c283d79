#!/usr/bin/env python3

import argparse
import yaml
from tqdm import tqdm

from mixtracklib.core import catalog
from mixtracklib.core import config
from mixtracklib.core import utils
from mixtracklib.core.mixer import MediaTrackMixer
from mixtracklib.media import ffmpeg

#============================================

def parse_args():
	"""
	Parse command-line arguments.
	"""
	parser = argparse.ArgumentParser(description="Remux and re-tag media tracks with ffmpeg")
	parser.add_argument('-c', '--config', dest='config_file',
		help='mixtrack_config yaml file with ffmpeg path and codec overrides')
	parser.add_argument('-q', '--quiet', dest='quiet', action='store_true',
		help='do not print commands or progress')
	subparsers = parser.add_subparsers(dest='command', required=True)
	probe_parser = subparsers.add_parser('probe', help='print the track catalog of media files')
	probe_parser.add_argument('files', nargs='+', help='media files to probe')
	plan_parser = subparsers.add_parser('plan', help='print the ffmpeg command for a job')
	plan_parser.add_argument('job', help='mixtrack job yaml file')
	plan_parser.add_argument('-o', '--output', dest='output_file',
		help='override output file from yaml')
	mix_parser = subparsers.add_parser('mix', help='run a job')
	mix_parser.add_argument('job', help='mixtrack job yaml file')
	mix_parser.add_argument('-o', '--output', dest='output_file',
		help='override output file from yaml')
	parser.set_defaults(quiet=False)
	args = parser.parse_args()
	return args

#============================================

def probe(mixer: MediaTrackMixer, files: list) -> None:
	track_groups = mixer.probe(files)
	data = [catalog.group_to_dict(group) for group in track_groups]
	print(yaml.safe_dump(data, sort_keys=False, allow_unicode=True))

#============================================

def dump_plan(mixer: MediaTrackMixer, job_file: str, output_file: str = None) -> None:
	plan = mixer.plan_job(job_file, output_override=output_file)
	command = ffmpeg.build_run_command(mixer.ffmpeg_path, plan.args)
	data = {
		'output': plan.output_path,
		'command': utils.show_command(command),
		'args': list(plan.args),
		'sidecar': plan.stdin_text,
	}
	print(yaml.safe_dump(data, sort_keys=False, allow_unicode=True))

#============================================

def mix(mixer: MediaTrackMixer, job_file: str, output_file: str = None) -> None:
	plan = mixer.plan_job(job_file, output_override=output_file)
	with tqdm(total=100, unit='%', disable=utils.is_quiet_mode(),
		bar_format="{l_bar}{bar}| {n:.1f}/{total}%") as progress_bar:
		def advance(percent: float) -> None:
			progress_bar.update(percent - progress_bar.n)
		mixer.execute(plan, progress=advance, raise_on_failure=True)
	if not utils.is_quiet_mode():
		print(f"wrote {plan.output_path}")

#============================================

def main():
	args = parse_args()
	utils.set_quiet_mode(args.quiet)
	settings = config.load_settings(args.config_file)
	mixer = MediaTrackMixer(settings)
	if args.command == 'probe':
		probe(mixer, args.files)
		return
	if args.command == 'plan':
		dump_plan(mixer, args.job, args.output_file)
		return
	mix(mixer, args.job, args.output_file)


if __name__ == '__main__':
	main()
