"""Group the read groups of an alignment file into sequencing libraries.

Read groups sharing a library (`LB`) share one insert size distribution, so
evidence extraction and insert size estimation happen once per library.
"""
import collections

from svprep import bam
from svprep.log import logger
from svprep.pipeline.shared import InputValidationError

Library = collections.namedtuple("Library", ["name", "read_groups"])

def get_libraries(in_file, ref_file=None):
    """Retrieve the ordered libraries of an alignment file.

    Libraries appear in the order their first read group appears in the
    header, so repeated calls on the same file give the same order. Read
    groups without a library tag form a library of their own. A file
    without read groups becomes a single library with no read group filter.
    """
    rgs = bam.get_header(in_file, ref_file).get("RG", [])
    if not rgs:
        logger.warning("No read groups found in %s; treating the file as a single library. "
                       "Paired-end statistics may be degraded." % in_file)
        return [Library(None, ())]
    libs = collections.OrderedDict()
    seen = set()
    for rg in rgs:
        rg_id = rg.get("ID")
        if not rg_id:
            raise InputValidationError("Read group without ID in %s: %s" % (in_file, rg))
        if rg_id in seen:
            raise InputValidationError("Duplicate read group ID %s in %s" % (rg_id, in_file))
        seen.add(rg_id)
        # library tags and read group IDs are separate namespaces
        key = ("LB", rg["LB"]) if rg.get("LB") else ("ID", rg_id)
        libs.setdefault(key, []).append(rg_id)
    return [Library(name, tuple(rg_ids)) for (_, name), rg_ids in libs.items()]

def all_read_groups(libraries):
    """Flatten libraries back into the read groups of their file, grouped by library.
    """
    out = []
    for lib in libraries:
        out.extend(lib.read_groups)
    return tuple(out)
