import os
from typing import Any, Dict, Optional

import yaml

from .randomize import MIN_ITERATIONS
from .stats import DISPERSIONS

INPUTS = ('transcripts', 'intervals', 'genome')

DEFAULTS: Dict[str, Any] = {
    'transcripts': None,
    'intervals': None,
    'genome': None,
    'kmer_length': 6,
    'iterations': 10,
    'max_retries': 10,
    'seed': None,
    'workers': 1,
    'chrom_prefix': 'chr',
    'stranded': True,
    'dispersion': 'unnormalized',
    'intermediate_dir': None,
    'keep_intermediate': False,
    'verbose': False,
}


class ConfigError(ValueError):
    '''Invalid or incomplete run configuration.'''


def load_config(config_path: str) -> Dict[str, Any]:
    '''Load run settings from a YAML file.

    The file may hold an `inputs` section (transcripts, intervals, genome) and a
    `params` section with any other key from DEFAULTS. Both are flattened into
    one dict.
    '''
    if not os.path.exists(config_path):
        raise ConfigError(f"Config file not found: {config_path}")
    with open(config_path) as f:
        config = yaml.safe_load(f) or {}
    if not isinstance(config, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping")

    flat = {}
    for section in ('inputs', 'params'):
        values = config.get(section) or {}
        if not isinstance(values, dict):
            raise ConfigError(f"'{section}' in {config_path} must be a mapping")
        flat.update(values)

    unknown = set(flat) - set(DEFAULTS)
    if unknown:
        raise ConfigError(f"Unknown config keys in {config_path}: {', '.join(sorted(unknown))}")
    return flat


def resolve_config(cli: Dict[str, Any], file_config: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    '''Merge settings: defaults, then the config file, then explicit CLI values.

    CLI values of None mean "not given" and do not override.
    '''
    config = dict(DEFAULTS)
    config.update(file_config or {})
    config.update({k: v for k, v in cli.items() if k in DEFAULTS and v is not None})
    return config


def _is_int(value: Any) -> bool:
    # YAML true/false load as bool, which subclasses int
    return isinstance(value, int) and not isinstance(value, bool)


def validate_config(config: Dict[str, Any]) -> None:
    '''Raise ConfigError for anything that would stop the run.'''
    for key in INPUTS:
        path = config.get(key)
        if not path:
            raise ConfigError(f"Missing required input: {key}")
        if not os.path.isfile(path):
            raise ConfigError(f"Input file for {key} not found: {path}")

    if not _is_int(config['kmer_length']) or config['kmer_length'] < 1:
        raise ConfigError(f"kmer_length must be a positive integer, got {config['kmer_length']}")
    if not _is_int(config['iterations']) or config['iterations'] < MIN_ITERATIONS:
        raise ConfigError(f"iterations must be at least {MIN_ITERATIONS}, got {config['iterations']}")
    if not _is_int(config['max_retries']) or config['max_retries'] < 0:
        raise ConfigError(f"max_retries must be a non-negative integer, got {config['max_retries']}")
    if not _is_int(config['workers']) or config['workers'] < 1:
        raise ConfigError(f"workers must be at least 1, got {config['workers']}")
    if config['seed'] is not None and (not _is_int(config['seed']) or config['seed'] < 0):
        raise ConfigError(f"seed must be a non-negative integer, got {config['seed']}")
    if config['dispersion'] not in DISPERSIONS:
        raise ConfigError(f"dispersion must be one of {DISPERSIONS}, got {config['dispersion']}")
