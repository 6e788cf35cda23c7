"""Functionality to query and extract information from aligned BAM and CRAM files.
"""
import gzip
import zlib

import pysam

from svprep.pipeline.shared import ConfigurationError, InputValidationError

BAM = "BAM"
CRAM = "CRAM"
INVALID = "INVALID"

GZIP_MAGIC = b"\x1f\x8b"

def alignment_format(in_file):
    """Classify an alignment file from its leading bytes.

    CRAM files start with the literal `CRAM`. BAM files are BGZF compressed,
    so they carry the gzip magic and decompress to a stream starting with `BAM`.
    Anything else, including unreadable files, is INVALID.
    """
    try:
        with open(in_file, "rb") as in_handle:
            if in_handle.read(4) == b"CRAM":
                return CRAM
            in_handle.seek(0)
            if in_handle.read(2) == GZIP_MAGIC:
                in_handle.seek(0)
                with gzip.GzipFile(fileobj=in_handle) as gz_handle:
                    if gz_handle.read(3) == b"BAM":
                        return BAM
    except (OSError, EOFError, zlib.error):
        pass
    return INVALID

def is_cram(in_file):
    return alignment_format(in_file) == CRAM

def open_samfile(in_file, ref_file=None):
    """Open a BAM or CRAM file with pysam, without requiring sequence headers.
    """
    if is_cram(in_file):
        return pysam.AlignmentFile(in_file, "rc", reference_filename=ref_file, check_sq=False)
    else:
        return pysam.AlignmentFile(in_file, "rb", check_sq=False)

def get_header(in_file, ref_file=None):
    """Retrieve the header of an alignment file as a dictionary.
    """
    try:
        with open_samfile(in_file, ref_file) as in_pysam:
            return in_pysam.header.to_dict()
    except (ValueError, OSError) as msg:
        raise InputValidationError("Could not read alignment header from %s: %s" % (in_file, msg))

def sample_name(in_file, ref_file=None):
    """Get the sample name from the first read group of an alignment file.
    """
    rgs = get_header(in_file, ref_file).get("RG", [])
    name = rgs[0].get("SM") if rgs else None
    if not name:
        raise ConfigurationError("Could not find a sample name (SM) in the first read group "
                                 "of %s" % in_file)
    return name

def max_read_length(in_file, read_groups=None, ref_file=None, nreads=10000):
    """Find the longest read within the first `nreads` records of a library.

    Only reads belonging to `read_groups` count when read groups are given.
    """
    rgs = set(read_groups or [])
    max_len = 0
    seen = 0
    with open_samfile(in_file, ref_file) as in_pysam:
        for read in in_pysam.fetch(until_eof=True):
            if rgs and (not read.has_tag("RG") or read.get_tag("RG") not in rgs):
                continue
            max_len = max(max_len, read.query_length or read.infer_read_length() or 0)
            seen += 1
            if seen >= nreads:
                break
    return max_len
