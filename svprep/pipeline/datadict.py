"""
Accessors for the run `data` dictionary.

Every entry in LOOKUPS generates `get_<name>(data, default=None)`,
`set_<name>(data, value)` and `is_set_<name>(data)`. Setters return an
updated copy and leave the original dictionary untouched.
"""
import toolz as tz

from svprep.pipeline.config_utils import ALGORITHM_DEFAULTS

LOOKUPS = {
    "config": {"keys": ['config']},
    "tmp_dir": {"keys": ['config', 'resources', 'tmp', 'dir']},
    "work_dir": {"keys": ['dirs', 'work']},
    "ref_file": {"keys": ['reference']},
    "sample_name": {"keys": ['unit', 'sample']},
    "library_name": {"keys": ['unit', 'library']},
    "exclude_file": {"keys": ['config', 'algorithm', 'exclude']},
    "probability_curves": {"keys": ['config', 'algorithm', 'probability_curves'],
                           "default": False},
    "keep_tmp": {"keys": ['config', 'algorithm', 'keep_tmp'], "default": False},
}

for _key, _default in ALGORITHM_DEFAULTS.items():
    LOOKUPS[_key] = {"keys": ['config', 'algorithm', _key], "default": _default}

def getter(keys, global_default=None):
    def lookup(data, default=None):
        return tz.get_in(keys, data, global_default if default is None else default)
    return lookup

def setter(keys):
    def update(data, value):
        return tz.assoc_in(data, keys, value)
    return update

def is_setter(keys):
    def present(data):
        return bool(tz.get_in(keys, data))
    return present

_g = globals()
for _name, _lookup in LOOKUPS.items():
    for _prefix, _make in [("get_", lambda k, l: getter(k, l.get("default"))),
                           ("set_", lambda k, l: setter(k)),
                           ("is_set_", lambda k, l: is_setter(k))]:
        # explicitly defined accessors win
        if _prefix + _name not in _g:
            _g[_prefix + _name] = _make(_lookup["keys"], _lookup)
