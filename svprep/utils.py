"""Helpful utilities for building evidence preparation pipelines.
"""
import os
import shutil
import time


def safe_makedir(dname, max_tries=5):
    """Make a directory if it doesn't exist, retrying when concurrent workers race.
    """
    if not dname:
        return dname
    for num_tries in range(max_tries + 1):
        if os.path.exists(dname):
            break
        try:
            os.makedirs(dname)
        except OSError:
            if num_tries == max_tries:
                raise
            time.sleep(2)
    return dname

def file_exists(fname):
    """Check if a file exists and is non-empty.
    """
    try:
        return bool(fname) and os.path.getsize(fname) > 0
    except OSError:
        return False

def get_size(path):
    """Bytes in a file, or summed over every file below a directory.
    """
    if os.path.isdir(path):
        return sum(get_size(os.path.join(path, f)) for f in os.listdir(path))
    return os.path.getsize(path)

def remove_safe(f):
    try:
        if os.path.isdir(f):
            shutil.rmtree(f)
        else:
            os.remove(f)
    except OSError:
        pass

def remove_plus(orig):
    """Remove an alignment file together with its index files.
    """
    for ext in ["", ".bai", ".crai", ".csi"]:
        if os.path.exists(orig + ext):
            remove_safe(orig + ext)

def get_abspath(path, pardir=None):
    """Absolute, normalized path with environment variables expanded.
    """
    return os.path.normpath(os.path.join(pardir or os.getcwd(), os.path.expandvars(path)))

def split_commas(xs):
    """Split comma separated command line values, dropping empty items.

    example: split_commas(["a.bam,b.bam", "c.bam"]) -> ["a.bam", "b.bam", "c.bam"]
    """
    out = []
    for x in xs or []:
        out.extend([y.strip() for y in x.split(",") if y.strip()])
    return out
