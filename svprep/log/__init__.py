"""Logging for evidence preparation runs, built on logbook channels.

Two channels separate the output:

- `svprep`: run progress, warnings and errors.
- `svprep-commands`: every external command line, for reproducing a run.
"""
import os
import sys

import logbook

from svprep import utils

LOG_NAME = "svprep"
CL_CHANNEL = LOG_NAME + "-commands"

logger = logbook.Logger(LOG_NAME)
logger_cl = logbook.Logger(CL_CHANNEL)

def _channel_filter(*channels):
    def _filter(record, handler):
        return record.channel in channels
    return _filter

_progress_only = _channel_filter(LOG_NAME)

class CloseableNestedSetup(logbook.NestedSetup):
    def close(self):
        for obj in self.objects:
            if hasattr(obj, "close"):
                obj.close()

def _file_handlers(log_dir, format_str):
    """Run log, debug log and command log inside `log_dir`.
    """
    utils.safe_makedir(log_dir)
    specs = [("%s.log" % LOG_NAME, "INFO", _progress_only),
             ("%s-debug.log" % LOG_NAME, "DEBUG", _progress_only),
             ("%s-commands.log" % LOG_NAME, "DEBUG", _channel_filter(CL_CHANNEL))]
    return [logbook.FileHandler(os.path.join(log_dir, fname), format_string=format_str,
                                level=level, filter=log_filter, bubble=True)
            for fname, level, log_filter in specs]

def _create_log_handler(config, verbose=False):
    logbook.set_datetime_format("utc")
    level = "DEBUG" if verbose else "INFO"
    format_str = "{record.message}"
    if config.get("include_time", True):
        format_str = "[{record.time:%Y-%m-%dT%H:%MZ}] " + format_str
    handlers = [logbook.NullHandler()]
    if config.get("log_dir"):
        handlers.extend(_file_handlers(config["log_dir"], format_str))
    handlers.append(logbook.StreamHandler(sys.stderr, format_string=format_str, level=level,
                                          filter=_progress_only, bubble=True))
    return CloseableNestedSetup(handlers)

def setup_local_logging(config=None, verbose=False):
    """Send run logging to stderr and, with a configured `log_dir`, to log files.

    The handler is pushed for the whole application so extraction worker
    threads log through it; callers pop and close it once the run finishes.
    """
    handler = _create_log_handler(config or {}, verbose)
    handler.push_application()
    return handler
