"""Scratch workspace holding intermediate evidence, statistics and named pipes.

One workspace belongs to one run. It is created before any extraction and
removed on every exit path through the `workspace` context manager, unless
the run asks to keep it for inspection. File names are namespaced by sample
and library index so concurrent units never write the same path.
"""
import contextlib
import os
import stat
import tempfile

from svprep import utils
from svprep.log import logger
from svprep.pipeline.shared import InputValidationError


class Workspace(object):
    """Layout of a run's scratch directory.
    """
    SUBDIRS = ["spl", "disc", "stats", "pipes", "logs", "tx"]
    PIPES = ["spl_pipe", "disc_pipe"]

    def __init__(self, base_dir):
        self.base_dir = os.path.abspath(base_dir)

    @property
    def split_dir(self):
        return os.path.join(self.base_dir, "spl")

    @property
    def disc_dir(self):
        return os.path.join(self.base_dir, "disc")

    @property
    def stats_dir(self):
        return os.path.join(self.base_dir, "stats")

    @property
    def log_dir(self):
        return os.path.join(self.base_dir, "logs")

    @property
    def tx_dir(self):
        return os.path.join(self.base_dir, "tx")

    @property
    def pipes(self):
        """The shared fan-out channels used by sequentially processed units.
        """
        return tuple(os.path.join(self.base_dir, p) for p in self.PIPES)

    def create(self):
        """Build the directory tree and the two named pipes.

        Named pipes left by an earlier kept run are reused.
        """
        utils.safe_makedir(self.base_dir)
        for dname in self.SUBDIRS:
            utils.safe_makedir(os.path.join(self.base_dir, dname))
        for pipe in self.pipes:
            _make_fifo(pipe)
        return self

    def release(self):
        utils.remove_safe(self.base_dir)

    def unit_pipes(self, sample_i, library_i):
        """Named pipes private to one unit, for concurrent extraction.
        """
        out = []
        for pipe in self.PIPES:
            path = os.path.join(self.base_dir, "pipes", "sample%s.lib%s.%s" % (sample_i, library_i, pipe))
            out.append(_make_fifo(path))
        return tuple(out)

    def unit_file(self, kind, sample_i, library_i):
        """Per-library evidence file of one kind: `split` or `discordant`.
        """
        dname = self.split_dir if kind == "split" else self.disc_dir
        return os.path.join(dname, "sample%s.lib%s.%s.bam" % (sample_i, library_i, kind))

    def sample_file(self, kind, sample_i):
        return os.path.join(self.base_dir, "sample%s.%s.bam" % (sample_i, kind))

    def histo_file(self, sample_i, library_i):
        return os.path.join(self.stats_dir, "sample%s.lib%s.x4.histo" % (sample_i, library_i))

    def stats_file(self, sample_i, library_i):
        return os.path.join(self.stats_dir, "sample%s.lib%s.insert.stats" % (sample_i, library_i))

    def unit_tmpdir(self, sample_i, library_i, kind):
        return utils.safe_makedir(os.path.join(self.base_dir, "tx", "sort-sample%s.lib%s.%s"
                                               % (sample_i, library_i, kind)))

    def read_group_file(self, sample_i, library_i, read_groups):
        """Write the read groups of a library, one per line, for view filtering.
        """
        out_file = os.path.join(self.stats_dir, "sample%s.lib%s.rgs" % (sample_i, library_i))
        with open(out_file, "w") as out_handle:
            for rg in read_groups:
                out_handle.write("%s\n" % rg)
        return out_file

    def caller_prefix(self, out_file):
        """Temporary file prefix handed to the caller.
        """
        return os.path.join(self.tx_dir, os.path.basename(out_file))


def _make_fifo(path):
    if os.path.exists(path):
        if not stat.S_ISFIFO(os.stat(path).st_mode):
            raise InputValidationError("Workspace path %s exists and is not a named pipe" % path)
    else:
        os.mkfifo(path)
    return path

@contextlib.contextmanager
def workspace(out_file, tmp_dir=None, keep=False):
    """Create the run workspace, removing it on exit unless `keep` is set.

    A given `tmp_dir` that does not exist yet is created and used directly.
    An existing one, such as a directory kept by an earlier run, gets a unique
    run directory inside it so its contents are never touched. Without a
    `tmp_dir`, the unique directory is made next to the output file.
    """
    prefix = "%s." % os.path.basename(out_file)
    if tmp_dir and not os.path.exists(tmp_dir):
        base_dir = utils.safe_makedir(os.path.abspath(tmp_dir))
    elif tmp_dir:
        if not os.path.isdir(tmp_dir):
            raise InputValidationError("Temporary directory %s is not a directory" % tmp_dir)
        base_dir = tempfile.mkdtemp(prefix=prefix, dir=os.path.abspath(tmp_dir))
    else:
        base_dir = tempfile.mkdtemp(prefix=prefix, dir=os.path.dirname(os.path.abspath(out_file)))
    ws = Workspace(base_dir)
    try:
        ws.create()
        logger.debug("Created workspace %s" % ws.base_dir)
        yield ws
    finally:
        if keep:
            logger.info("Keeping workspace %s" % ws.base_dir)
        else:
            ws.release()
            logger.debug("Removed workspace %s" % ws.base_dir)
