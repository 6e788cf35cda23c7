"""Run the insert size estimator for a library and collect its summary statistics.

Two entry points match the two ways libraries arrive:

- extraction: the estimator sits at the end of the duplicate marking pipe,
  see `estimator_cl`.
- supplied evidence: records are pulled from the full alignment file by read
  group and the trailing window fed to the estimator, see `from_alignments`.
"""
import collections
import math
import sys

from svprep.distributed.transaction import file_transaction
from svprep.pipeline import config_utils
from svprep.pipeline import datadict as dd
from svprep.pipeline.shared import CollaboratorError
from svprep.provenance import do

InsertStats = collections.namedtuple("InsertStats", ["mean", "stdev", "read_length", "histo_file"])

def estimator_cl(data, read_length, histo_file):
    """Command line for the estimator, reading SAM records on stdin.

    A `pairend_distro` entry in the configured resources replaces the
    bundled estimator.
    """
    config = dd.get_config(data) or {}
    if config.get("resources", {}).get("pairend_distro"):
        estimator = config_utils.get_program("pairend_distro", config)
    else:
        estimator = "%s -m svprep.bam.pairend" % sys.executable
    return ("{estimator} -r {read_length} -X {stdevs} -N {cap} -o {histo_file}"
            .format(estimator=estimator, read_length=read_length,
                    stdevs=dd.get_histogram_stdevs(data), cap=dd.get_insert_sample_cap(data),
                    histo_file=histo_file))

def from_alignments(in_file, library, read_length, histo_file, stats_file, backend, data,
                    rg_file=None, ref_file=None):
    """Estimate insert sizes for a library of a full alignment file.

    Used when split and discordant evidence is supplied directly. Keeps the
    trailing window of the library's records, skipping the start of the file.
    """
    with file_transaction(data, histo_file, stats_file) as (tx_histo_file, tx_stats_file):
        view_cl = backend.view_library_cl(in_file, library.read_groups, rg_file, ref_file,
                                          header=False)
        cmd = ("{view_cl} | tail -n {cap} | {estimator} > {tx_stats_file}"
               .format(view_cl=view_cl, cap=dd.get_insert_sample_cap(data),
                       estimator=estimator_cl(data, read_length, tx_histo_file),
                       tx_stats_file=tx_stats_file))
        do.run(cmd, "Estimate insert size distribution", data)
    return parse_stats(stats_file, read_length, histo_file)

def parse_stats(stats_file, read_length, histo_file):
    """Read the estimator's `key:value` summary into InsertStats.

    Missing or non-numeric mean and stdev fields are a collaborator error.
    """
    try:
        with open(stats_file) as in_handle:
            fields = in_handle.read().split()
    except IOError as msg:
        raise CollaboratorError("Could not read insert size statistics %s: %s" % (stats_file, msg))
    stats = {}
    for field in fields:
        if ":" in field:
            key, val = field.split(":", 1)
            stats[key] = val
    out = {}
    for key in ["mean", "stdev"]:
        try:
            out[key] = float(stats[key])
        except (KeyError, ValueError):
            raise CollaboratorError("Insert size statistics in %s lack a numeric %s: %s"
                                    % (stats_file, key, " ".join(fields)))
        if math.isnan(out[key]) or math.isinf(out[key]):
            raise CollaboratorError("Insert size statistics in %s have invalid %s: %s"
                                    % (stats_file, key, stats[key]))
    return InsertStats(out["mean"], out["stdev"], read_length, histo_file)
