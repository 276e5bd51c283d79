#!/usr/bin/env python3

import yaml

from mixtracklib.core import planner

#============================================

CODEC_KINDS = ('audio', 'subtitle')

#============================================

def coerce_str(value, config_path: str, key_path: str) -> str:
	"""
	Coerce a value to a non-empty string.

	Args:
		value: Raw value.
		config_path: Config file path.
		key_path: Key path string.

	Returns:
		str: Coerced string.
	"""
	if isinstance(value, bool) or value is None:
		raise RuntimeError(f"config {config_path}: {key_path} must be a string")
	if isinstance(value, (int, float)):
		value = str(value)
	if not isinstance(value, str) or value.strip() == "":
		raise RuntimeError(f"config {config_path}: {key_path} must be a string")
	return value

#============================================

def coerce_str_list(value, config_path: str, key_path: str) -> list:
	if isinstance(value, str):
		return value.split()
	if not isinstance(value, (list, tuple)):
		raise RuntimeError(f"config {config_path}: {key_path} must be a list")
	return [coerce_str(item, config_path, key_path) for item in value]

#============================================

def normalize_extension(value, config_path: str, key_path: str) -> str:
	extension = coerce_str(value, config_path, key_path).strip().lower()
	if not extension.startswith('.'):
		extension = f".{extension}"
	return extension

#============================================

def coerce_codecs(value, config_path: str, key_path: str) -> dict:
	"""
	Validate per-extension codec overrides.

	Args:
		value: Mapping of extension to {kind: codec}.
		config_path: Config file path.
		key_path: Key path string.

	Returns:
		dict: Normalized overrides keyed by lower-case dotted extension.
	"""
	if value is None:
		return {}
	if not isinstance(value, dict):
		raise RuntimeError(f"config {config_path}: {key_path} must be a mapping")
	codecs = {}
	for raw_extension, overrides in value.items():
		extension = normalize_extension(raw_extension, config_path, key_path)
		entry_path = f"{key_path}[{extension}]"
		if not isinstance(overrides, dict):
			raise RuntimeError(f"config {config_path}: {entry_path} must be a mapping")
		entry = {}
		for kind, codec in overrides.items():
			if kind not in CODEC_KINDS:
				raise RuntimeError(
					f"config {config_path}: {entry_path}.{kind} must be one of "
					f"{', '.join(CODEC_KINDS)}"
				)
			entry[kind] = coerce_str(codec, config_path, f"{entry_path}.{kind}")
		codecs[extension] = entry
	return codecs

#============================================

def default_config() -> dict:
	return {
		'mixtrack_config': 1,
		'settings': {
			'ffmpeg_path': 'ffmpeg',
			'output_flags': list(planner.DEFAULT_OUTPUT_FLAGS),
			'codecs': {},
		},
	}

#============================================

def load_config(config_path: str) -> dict:
	"""
	Load a config file from disk.

	Args:
		config_path: Config file path.

	Returns:
		dict: Parsed config dictionary.
	"""
	with open(config_path, 'r', encoding='utf-8') as handle:
		data = yaml.safe_load(handle)
	if not isinstance(data, dict):
		raise RuntimeError("config file must be a mapping")
	if data.get('mixtrack_config') != 1:
		raise RuntimeError("config file must set mixtrack_config: 1")
	return data

#============================================

def build_settings(config: dict, config_path: str) -> dict:
	"""
	Normalize settings with defaults.

	Args:
		config: Raw config dictionary.
		config_path: Config file path.

	Returns:
		dict: Normalized settings.
	"""
	settings = default_config()['settings']
	overrides = {}
	if isinstance(config, dict):
		overrides = config.get('settings', {}) or {}
	if not isinstance(overrides, dict):
		raise RuntimeError(f"config {config_path}: settings must be a mapping")
	ffmpeg_path = coerce_str(overrides.get('ffmpeg_path', settings['ffmpeg_path']),
		config_path, "settings.ffmpeg_path")
	output_flags = coerce_str_list(
		overrides.get('output_flags', settings['output_flags']),
		config_path, "settings.output_flags")
	codecs = coerce_codecs(overrides.get('codecs', settings['codecs']),
		config_path, "settings.codecs")
	return {
		'ffmpeg_path': ffmpeg_path,
		'output_flags': output_flags,
		'codecs': codecs,
	}

#============================================

def load_settings(config_path: str = None) -> dict:
	if config_path is None:
		return build_settings(default_config(), "<defaults>")
	return build_settings(load_config(config_path), config_path)
