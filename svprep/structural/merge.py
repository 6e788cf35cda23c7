"""Consolidate per-library evidence files into one file per sample and kind.
"""
import os

from svprep import utils
from svprep.distributed.transaction import file_transaction
from svprep.log import logger
from svprep.pipeline.shared import CollaboratorError

KINDS = ["split", "discordant"]

def merge_sample_evidence(sample_index, unit_evidence, workspace, backend, data):
    """Merge or promote the unit evidence of one sample.

    Returns a dictionary of per-sample files keyed by kind. A single library
    is renamed into place; several are merged and the inputs removed after
    checking the merged record count equals the sum of the inputs.
    """
    out = {}
    for kind in KINDS:
        in_files = [x.split_file if kind == "split" else x.disc_file for x in unit_evidence]
        out_file = workspace.sample_file(kind, sample_index)
        if len(in_files) == 1:
            os.rename(in_files[0], out_file)
        else:
            _merge_checked(in_files, out_file, backend, data)
            for in_file in in_files:
                utils.remove_plus(in_file)
        out[kind] = out_file
    return out

def _merge_checked(in_files, out_file, backend, data):
    expected = sum(backend.count(f) for f in in_files)
    with file_transaction(data, out_file) as tx_out_file:
        backend.merge(in_files, tx_out_file, data)
    observed = backend.count(out_file)
    if observed != expected:
        raise CollaboratorError("Merged evidence %s has %s records, expected %s from %s"
                                % (out_file, observed, expected, ", ".join(in_files)))
    logger.debug("Merged %s records from %s files into %s" % (observed, len(in_files), out_file))
    return out_file
