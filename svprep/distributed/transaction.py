"""Write outputs inside transactions so failed commands never leave final files.

Commands write into a scratch directory and their outputs are promoted to the
requested paths only once the wrapped block returns. A failing pipeline, a
collaborator error or a signal during the block leaves the final path
untouched, so a half written histogram, evidence file or call set never
looks complete.
"""
import contextlib
import os
import shutil
import tempfile

import toolz as tz

from svprep import utils


DEFAULT_TMP = 'svpreptx'

# index files travelling with an output
INDEX_EXTS = {".bam": [".bai", ".csi"], ".cram": [".crai"]}


def _configured_tmpdir(data):
    """Scratch location from a run `data` dictionary or a bare `config`.
    """
    return (tz.get_in(("config", "resources", "tmp", "dir"), data) or
            tz.get_in(("resources", "tmp", "dir"), data))


@contextlib.contextmanager
def tx_tmpdir(data=None, base_dir=None, remove=True):
    """Provide a unique scratch directory, removed when the block exits.

    Lives under the configured temporary directory, or a `svpreptx` directory
    in `base_dir` (default: the working directory) which is also cleaned up
    once empty.
    """
    configured = _configured_tmpdir(data)
    tmpdir_base = utils.get_abspath(configured or
                                    os.path.join(base_dir or os.getcwd(), DEFAULT_TMP))
    utils.safe_makedir(tmpdir_base)
    tmp_dir = tempfile.mkdtemp(dir=tmpdir_base)
    try:
        yield tmp_dir
    finally:
        if remove:
            utils.remove_safe(tmp_dir)
            if not configured:
                try:
                    os.rmdir(tmpdir_base)
                except OSError:
                    pass


@contextlib.contextmanager
def file_transaction(*data_and_files):
    """Yield scratch paths for output files, moving them into place on success.

    The first argument may be the run `data` or a `config` dictionary naming
    the scratch directory. Remaining arguments are output paths, or lists of
    them. A single output yields one scratch path, several yield a tuple.
    """
    data, out_files = _split_args(data_and_files)
    with tx_tmpdir(data) as tmp_dir:
        tx_files = [os.path.join(tmp_dir, os.path.basename(f)) for f in out_files]
        yield tx_files[0] if len(tx_files) == 1 else tuple(tx_files)
        for tx_file, out_file in zip(tx_files, out_files):
            if os.path.exists(tx_file):
                _promote(tx_file, out_file)


def _split_args(data_and_files):
    if data_and_files and isinstance(data_and_files[0], dict):
        data, files = data_and_files[0], data_and_files[1:]
    else:
        data, files = None, data_and_files
    out_files = []
    for f in files:
        out_files.extend(f if isinstance(f, (list, tuple)) else [f])
    return data, [f for f in out_files if f]


def _promote(tx_file, out_file):
    """Move a finished output and any index next to it to the final location.
    """
    utils.safe_makedir(os.path.dirname(out_file))
    if os.path.isdir(out_file) and os.path.isdir(tx_file):
        utils.remove_safe(out_file)
    _checked_move(tx_file, out_file)
    for ext, index_exts in INDEX_EXTS.items():
        if tx_file.endswith(ext):
            for index_ext in index_exts:
                if os.path.exists(tx_file + index_ext):
                    _checked_move(tx_file + index_ext, out_file + index_ext)


def _checked_move(tx_file, out_file):
    """Move a file, verifying the size survived the transfer.

    A `.svpreptmp` marker sits next to the destination during the move, so a
    leftover marker identifies an interrupted transfer.
    """
    marker = out_file + ".svpreptmp"
    open(marker, 'wb').close()
    want_size = utils.get_size(tx_file)
    shutil.move(tx_file, out_file)
    got_size = utils.get_size(out_file)
    if want_size != got_size:
        raise IOError("Moving %s to %s transferred %s of %s bytes"
                      % (tx_file, out_file, got_size, want_size))
    utils.remove_safe(marker)
