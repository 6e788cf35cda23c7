"""System configuration: algorithm defaults, YAML loading and program resolution.

A system configuration is YAML with two optional sections:

    resources:
      lumpy: {cmd: /opt/lumpy/bin/lumpy}
      samblaster: /usr/local/bin/samblaster
      tmp: {dir: /scratch}
    algorithm:
      min_clip: 25
"""
import os
import sys

import toolz as tz
import yaml

from svprep.pipeline.shared import ConfigurationError


class CmdNotFound(Exception):
    pass

# ## Defaults

ALGORITHM_DEFAULTS = {
    "min_sample_weight": 4,
    "trim_threshold": 0,
    "max_split_count": 2,
    "min_non_overlap": 20,
    "insert_sample_cap": 1000000,
    "readlength_sample": 10000,
    "histogram_stdevs": 4,
    "discordant_z": 5,
    "back_distance": 10,
    "min_mapping_threshold": 20,
    "min_clip": 20,
    "depth_weight": 4,
    "evidence_weight": 1,
    "num_cores": 1,
}

# ## Loading

def load_system_config(config_file=None):
    """Load a YAML system configuration, filling in algorithm defaults.

    With no configuration file, returns the defaults alone so programs are
    resolved from the environment.
    """
    if config_file:
        if not os.path.exists(config_file):
            raise ConfigurationError("Could not find input system configuration file %s" % config_file)
        config = load_config(config_file)
    else:
        config = {"resources": {}}
    config["algorithm"] = tz.merge(ALGORITHM_DEFAULTS, config.get("algorithm") or {})
    config["svprep_system"] = config_file
    return config

def load_config(config_file):
    """Load YAML config file, expanding environment variables and `~` in values.

    Resource names are lowercased so `Lumpy` and `lumpy` resolve alike.
    """
    with open(config_file) as in_handle:
        try:
            config = yaml.safe_load(in_handle) or {}
        except yaml.YAMLError as msg:
            raise ConfigurationError("Could not parse configuration file %s: %s" % (config_file, msg))
    config = _expand_paths(config)
    config["resources"] = dict((k.lower(), v) for k, v in (config.get("resources") or {}).items())
    return config

def _expand_paths(config):
    if isinstance(config, dict):
        return dict((k, _expand_paths(v)) for k, v in config.items())
    return expand_path(config)

def expand_path(path):
    """Expand environment variables in a string value, treating `~` as $HOME.
    """
    if isinstance(path, str):
        return os.path.expandvars(path.replace("~", "$HOME"))
    return path

# ## Program resolution

def _is_executable(fname):
    return os.path.isfile(fname) and os.access(fname, os.X_OK)

def _configured_cmd(name, pconfig, default):
    if isinstance(pconfig, str):
        return pconfig
    elif pconfig and "cmd" in pconfig:
        return pconfig["cmd"]
    return default or name

def get_program(name, config, default=None):
    """Resolve the full path to a program.

    Checks an explicit `resources` entry first, then the bin directory of the
    running interpreter, then the PATH. Raises CmdNotFound if nothing
    executable is found.
    """
    # support taking in the data dictionary
    config = config.get("config", config)
    program = expand_path(_configured_cmd(name, config.get("resources", {}).get(name), default))
    if os.path.dirname(program):
        candidates = [program]
    else:
        search = [os.path.dirname(sys.executable)] + os.environ.get("PATH", "").split(os.pathsep)
        candidates = [os.path.join(d, program) for d in search if d]
    for candidate in candidates:
        if _is_executable(candidate):
            return candidate
    raise CmdNotFound("Required program %s not found (configured as %s)" % (name, program))

def program_available(name, config):
    try:
        get_program(name, config)
        return True
    except CmdNotFound:
        return False
