"""Run external commands with logging, pipe failure detection and output checks.

Two entry points:

- `run` executes one command, streaming its output to the debug log.
- `run_concurrent` executes a set of connected pipelines as one task graph,
  joining on all of them and stopping the rest at the first failure.
"""
import collections
import os
import shutil
import signal
import subprocess
import tempfile
import threading
import time

from svprep import utils
from svprep.log import logger, logger_cl
from svprep.pipeline import datadict as dd


def run(cmd, descr=None, data=None, checks=None, log_error=True):
    """Run a command, raising CalledProcessError with its trailing output on failure.
    """
    if descr:
        logger.debug(_descr_str(descr, data))
    logger_cl.debug(_cmd_str(cmd))
    try:
        _do_run(cmd)
        _check_outputs(checks)
    except (subprocess.CalledProcessError, IOError) as msg:
        if log_error:
            logger.error(str(msg))
        raise

def _cmd_str(cmd):
    return cmd if isinstance(cmd, str) else " ".join(str(x) for x in cmd)

def _descr_str(descr, data):
    """Append the sample and library being processed to a description.
    """
    if data:
        for extra in [dd.get_sample_name(data), dd.get_library_name(data)]:
            if extra:
                descr = "%s : %s" % (descr, extra)
    return descr

def _check_outputs(checks):
    """Catch failures that exit codes miss, such as missing outputs.
    """
    for check in checks or []:
        if not check():
            raise IOError("External command failed")

def find_bash():
    for test_bash in [shutil.which("bash"), "/bin/bash", "/usr/bin/bash", "/usr/local/bin/bash"]:
        if test_bash and os.path.exists(test_bash):
            return test_bash
    raise IOError("Could not find bash, needed to run pipes")

def _normalize_cmd_args(cmd):
    """Return (command, shell, executable) arguments for subprocess.

    Shell strings containing pipes or process substitution run in bash with
    pipefail, so a failure in any stage fails the whole command.
    """
    if not isinstance(cmd, str):
        return [str(x) for x in cmd], False, None
    if " | " in cmd or ">(" in cmd or "<(" in cmd:
        return "set -o pipefail; " + cmd, True, find_bash()
    return cmd, True, None

def _do_run(cmd):
    cmd, shell_arg, executable_arg = _normalize_cmd_args(cmd)
    tail = collections.deque(maxlen=100)
    proc = subprocess.Popen(cmd, shell=shell_arg, executable=executable_arg,
                            stdout=subprocess.PIPE, stderr=subprocess.STDOUT,
                            close_fds=True)
    with proc.stdout:
        for raw in proc.stdout:
            line = raw.decode("utf-8", errors="replace")
            if line.rstrip():
                tail.append(line)
                logger.debug(line.rstrip())
    exitcode = proc.wait()
    if exitcode != 0:
        raise subprocess.CalledProcessError(exitcode, "%s\n%s" % (_cmd_str(cmd), "".join(tail)))

# ## Concurrent task graphs

Branch = collections.namedtuple("Branch", ["name", "cmd", "proc", "handle"])

# set on SIGTERM/SIGHUP so task graphs running in worker threads stop too
shutdown_requested = threading.Event()
_CANCELLED = object()

def run_concurrent(cmds, descr=None, data=None, log_dir=None, checks=None, poll_interval=0.2,
                   cancel=None):
    """Run a set of shell pipelines concurrently and join on all of them.

    `cmds` is an ordered list of (name, command) pairs. Branches usually
    communicate through named pipes, so all of them start before any is waited
    on. Each branch runs in its own process group; the first branch to exit
    non-zero terminates every remaining branch and raises CalledProcessError.
    Setting the `cancel` event, shared with other task graphs, or
    `shutdown_requested` terminates the branches in the same way.
    Returns only once every branch has exited successfully.
    """
    if descr:
        descr = _descr_str(descr, data)
        logger.debug(descr)
    names = ", ".join(name for name, _ in cmds)
    branches = []
    try:
        if _cancelled(cancel):
            raise _cancelled_error(names)
        for name, cmd in cmds:
            shell_cmd, _, _ = _normalize_cmd_args(cmd)
            if not shell_cmd.startswith("set -o pipefail"):
                shell_cmd = "set -o pipefail; " + shell_cmd
            logger_cl.debug("[%s] %s" % (name, cmd))
            handle = tempfile.TemporaryFile(dir=log_dir)
            proc = subprocess.Popen(shell_cmd, shell=True, executable=find_bash(),
                                    stdout=handle, stderr=subprocess.STDOUT,
                                    close_fds=True, start_new_session=True)
            branches.append(Branch(name, cmd, proc, handle))
        failed = _join(branches, poll_interval, cancel)
        if failed is _CANCELLED:
            _terminate(branches)
            raise _cancelled_error(names)
        elif failed:
            _terminate(branches)
            error_msg = "%s branch failed: %s\n%s" % (failed.name, failed.cmd, _branch_output(failed))
            logger.error(error_msg)
            raise subprocess.CalledProcessError(failed.proc.returncode, error_msg)
        for branch in branches:
            for line in _branch_output(branch).splitlines():
                if line.rstrip():
                    logger.debug("[%s] %s" % (branch.name, line.rstrip()))
    finally:
        _terminate(branches)
        for branch in branches:
            branch.handle.close()
    _check_outputs(checks)

def _cancelled(cancel):
    return shutdown_requested.is_set() or (cancel is not None and cancel.is_set())

def _cancelled_error(names):
    return subprocess.CalledProcessError(-signal.SIGTERM, "Cancelled before completion: %s" % names)

def _join(branches, poll_interval, cancel=None):
    """Wait for all branches, returning the first one that fails.

    Returns `_CANCELLED` as soon as cancellation is requested.
    """
    pending = list(branches)
    while pending:
        if _cancelled(cancel):
            return _CANCELLED
        for branch in list(pending):
            exitcode = branch.proc.poll()
            if exitcode is None:
                continue
            pending.remove(branch)
            if exitcode != 0:
                return branch
        if pending:
            time.sleep(poll_interval)
    return None

def _terminate(branches, grace=5.0):
    """Stop any branches still running, signalling their whole process group.
    """
    running = [b for b in branches if b.proc.poll() is None]
    for sig in [signal.SIGTERM, signal.SIGKILL]:
        for branch in running:
            try:
                os.killpg(branch.proc.pid, sig)
            except (ProcessLookupError, PermissionError):
                pass
        for branch in running:
            try:
                branch.proc.wait(timeout=grace)
            except subprocess.TimeoutExpired:
                pass
        running = [b for b in running if b.proc.poll() is None]
        if not running:
            break

def _branch_output(branch, max_lines=100):
    branch.handle.flush()
    branch.handle.seek(0)
    lines = branch.handle.read().decode("utf-8", errors="replace").splitlines()
    return "\n".join(lines[-max_lines:])

# checks for validating run completed successfully

def file_nonempty(target_file):
    def check():
        ok = utils.file_exists(target_file)
        if not ok:
            logger.info("Did not find non-empty output file {0}".format(target_file))
        return ok
    return check

def file_exists(target_file):
    def check():
        ok = os.path.exists(target_file)
        if not ok:
            logger.info("Did not find output file {0}".format(target_file))
        return ok
    return check
