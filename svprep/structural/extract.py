"""Extract split-read and discordant-pair evidence per (sample, library) unit.

One pass over a library's records feeds samblaster, which marks duplicates
and writes split reads and discordant pairs to two named pipes. Three
branches then run at once:

- split: sort the split-read channel into the unit's split evidence BAM.
- discordant: sort the discordant channel into the unit's discordant BAM.
- statistics: the deduplicated primary stream, capped at the sample limit,
  goes to the insert size estimator.

The orchestrator joins all three before the unit counts as done. A failing
stage anywhere fails the unit and the run.
"""
import collections
import threading

import joblib

from svprep import bam
from svprep.bam import insertsize
from svprep.distributed.transaction import file_transaction
from svprep.log import logger
from svprep.pipeline import config_utils
from svprep.pipeline import datadict as dd
from svprep.pipeline.shared import CollaboratorError
from svprep.provenance import do

Unit = collections.namedtuple("Unit", ["sample_index", "library_index", "in_file", "library"])
UnitEvidence = collections.namedtuple("UnitEvidence", ["unit", "split_file", "disc_file", "insert_stats"])

# re-flag supplementary alignments as secondary, the convention samblaster expects
NORMALIZE_FLAGS = ("awk 'BEGIN {FS = OFS = \"\\t\"} /^@/ {print; next} "
                   "{f = $2; if (int(f / 2048) % 2 == 1) {f -= 2048; if (int(f / 256) % 2 == 0) f += 256}; "
                   "$2 = f; print}'")

def samblaster_cl(data, spl_pipe, disc_pipe):
    samblaster = config_utils.get_program("samblaster", data)
    return ("{samblaster} --excludeDups --addMateTags --maxSplitCount {max_split} "
            "--minNonOverlap {min_non_overlap} --splitterFile {spl_pipe} --discordantFile {disc_pipe}"
            .format(max_split=dd.get_max_split_count(data),
                    min_non_overlap=dd.get_min_non_overlap(data), **locals()))

def _unit_data(data, unit):
    out = dict(data)
    out["unit"] = {"sample": "sample%s" % unit.sample_index,
                   "library": unit.library.name or "library%s" % unit.library_index}
    return out

def extract_unit(unit, workspace, backend, data, pipes=None, cancel=None):
    """Produce split, discordant and insert size outputs for one unit.

    Outputs are written through a file transaction, so they only appear at
    their workspace paths once every branch succeeded.
    """
    i, j = unit.sample_index, unit.library_index
    ref_file = dd.get_ref_file(data)
    unit_data = _unit_data(data, unit)
    read_length = bam.max_read_length(unit.in_file, unit.library.read_groups, ref_file,
                                      dd.get_readlength_sample(data))
    if not read_length:
        raise CollaboratorError("Could not determine read length for library %s of %s"
                                % (unit.library.name, unit.in_file))
    rg_file = (workspace.read_group_file(i, j, unit.library.read_groups)
               if unit.library.read_groups else None)
    spl_pipe, disc_pipe = pipes or workspace.pipes
    split_file = workspace.unit_file("split", i, j)
    disc_file = workspace.unit_file("discordant", i, j)
    histo_file = workspace.histo_file(i, j)
    stats_file = workspace.stats_file(i, j)
    with file_transaction(data, split_file, disc_file, histo_file, stats_file) as \
            (tx_split_file, tx_disc_file, tx_histo_file, tx_stats_file):
        producer = " | ".join([backend.view_library_cl(unit.in_file, unit.library.read_groups,
                                                       rg_file, ref_file),
                               NORMALIZE_FLAGS,
                               samblaster_cl(data, spl_pipe, disc_pipe)])
        stats_cmd = "%s | %s | %s > %s" % (producer, backend.view_sam_cl(),
                                            insertsize.estimator_cl(data, read_length, tx_histo_file),
                                            tx_stats_file)
        cmds = [("split", backend.to_sorted_bam_cl(spl_pipe, tx_split_file,
                                                   workspace.unit_tmpdir(i, j, "split"))),
                ("discordant", backend.to_sorted_bam_cl(disc_pipe, tx_disc_file,
                                                        workspace.unit_tmpdir(i, j, "discordant"))),
                ("statistics", stats_cmd)]
        do.run_concurrent(cmds, "Extract split and discordant evidence", unit_data,
                          log_dir=workspace.log_dir, cancel=cancel)
    stats = insertsize.parse_stats(stats_file, read_length, histo_file)
    logger.info("Library %s of %s: insert size mean %.1f, stdev %.1f, read length %s"
                % (unit_data["unit"]["library"], unit.in_file, stats.mean, stats.stdev, read_length))
    return UnitEvidence(unit, split_file, disc_file, stats)

def extract_units(units, workspace, backend, data):
    """Extract evidence for all units, keeping the input order in the results.

    Runs one unit at a time unless more than one core is configured, in which
    case up to that many units run at once, each with its own named pipes.
    The first failing unit cancels the others, stopping their running
    branches, and its error is the one raised.
    """
    cores = dd.get_num_cores(data)
    if cores <= 1 or len(units) <= 1:
        return [extract_unit(unit, workspace, backend, data) for unit in units]
    cancel = threading.Event()
    errors = []
    lock = threading.Lock()

    def _extract(unit):
        pipes = workspace.unit_pipes(unit.sample_index, unit.library_index)
        try:
            return extract_unit(unit, workspace, backend, data, pipes, cancel=cancel)
        except Exception as msg:
            with lock:
                if not cancel.is_set():
                    errors.append(msg)
                    cancel.set()
            raise

    try:
        return joblib.Parallel(n_jobs=min(cores, len(units)), batch_size=1, backend="threading")(
            joblib.delayed(_extract)(unit) for unit in units)
    except Exception:
        if errors:
            raise errors[0]
        raise
    finally:
        cancel.set()
