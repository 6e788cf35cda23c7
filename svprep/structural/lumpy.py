"""Structural variation calling with lumpy from prepared split and discordant evidence.

https://github.com/arq5x/lumpy-sv

Prepares evidence for each input alignment file, either extracting split
reads and discordant pairs with samblaster or taking user supplied evidence
files, estimates insert size distributions per library and runs lumpy with
the assembled evidence descriptors.
"""
import os
import shlex

from svprep import bam, utils
from svprep.bam import backends, insertsize, readgroups
from svprep.distributed.transaction import file_transaction
from svprep.log import logger
from svprep.pipeline import config_utils
from svprep.pipeline import datadict as dd
from svprep.pipeline.shared import InputValidationError
from svprep.provenance import do
from svprep.structural import descriptors, extract, merge
from svprep.structural.workspace import workspace

def default_output(items):
    """Caller output named after the first input alignment file, in the current directory.
    """
    return os.path.abspath("%s.vcf" % os.path.basename(items[0]["align_bam"]))

# ## Validation

def _needs_extraction(item):
    return not (item.get("split_bam") and item.get("disc_bam"))

def validate(items, depths, data):
    """Check tools and inputs before any work starts.

    Raises CmdNotFound for unresolved programs and InputValidationError for
    missing or invalid inputs, naming the offending path.
    """
    config = dd.get_config(data)
    programs = ["samtools", "lumpy"]
    if any(_needs_extraction(x) for x in items):
        programs.append("samblaster")
    for program in programs:
        config_utils.get_program(program, config)
    ref_file = dd.get_ref_file(data)
    if ref_file and not os.path.isfile(ref_file):
        raise InputValidationError("Reference file not found: %s" % ref_file)
    for item in items:
        in_file = item["align_bam"]
        if not os.path.isfile(in_file):
            raise InputValidationError("Alignment file not found: %s" % in_file)
        fmt = bam.alignment_format(in_file)
        if fmt == bam.INVALID:
            raise InputValidationError("Not a BAM or CRAM file: %s" % in_file)
        if fmt == bam.CRAM and not ref_file:
            raise InputValidationError("CRAM input requires a reference file (-R): %s" % in_file)
        for key in ["split_bam", "disc_bam"]:
            if item.get(key) and not os.path.isfile(item[key]):
                raise InputValidationError("Evidence file not found: %s" % item[key])
    for _, bedpe_file in depths:
        if not os.path.isfile(bedpe_file):
            raise InputValidationError("Depth file not found: %s" % bedpe_file)
    exclude_file = dd.get_exclude_file(data)
    if exclude_file and not os.path.isfile(exclude_file):
        raise InputValidationError("Exclude file not found: %s" % exclude_file)

# ## Evidence preparation

def _prepare_supplied(i, item, libraries, ws, backend, builder, data):
    """Add descriptors for user supplied split and discordant evidence.
    """
    ref_file = dd.get_ref_file(data)
    for j, library in enumerate(libraries):
        read_length = bam.max_read_length(item["align_bam"], library.read_groups, ref_file,
                                          dd.get_readlength_sample(data))
        rg_file = ws.read_group_file(i, j, library.read_groups) if library.read_groups else None
        stats = insertsize.from_alignments(item["align_bam"], library, read_length,
                                           ws.histo_file(i, j), ws.stats_file(i, j), backend, data,
                                           rg_file=rg_file, ref_file=ref_file)
        builder.add_discordant(item["disc_bam"], library.read_groups, stats)
    builder.add_split(item["split_bam"], readgroups.all_read_groups(libraries))

def _prepare_extracted(i, libraries, unit_evidence, ws, backend, builder, data):
    """Merge extracted evidence for a sample and add its descriptors.
    """
    sample_files = merge.merge_sample_evidence(i, unit_evidence, ws, backend, data)
    for evidence in unit_evidence:
        builder.add_discordant(sample_files["discordant"], evidence.unit.library.read_groups,
                               evidence.insert_stats)
    builder.add_split(sample_files["split"], readgroups.all_read_groups(libraries))

def prepare_evidence(items, depths, ws, backend, data):
    """Build the evidence descriptors for all inputs.

    Libraries are discovered for every input before extraction starts, all
    extraction units run, then evidence is merged per sample.
    """
    builder = descriptors.DescriptorBuilder(data)
    for sample_id, bedpe_file in depths:
        builder.add_depth(sample_id, bedpe_file)
    ref_file = dd.get_ref_file(data)
    libraries = [readgroups.get_libraries(item["align_bam"], ref_file) for item in items]
    units = []
    for i, item in enumerate(items):
        if _needs_extraction(item):
            units.extend(extract.Unit(i, j, item["align_bam"], lib)
                         for j, lib in enumerate(libraries[i]))
    extracted = extract.extract_units(units, ws, backend, data)
    for i, item in enumerate(items):
        if _needs_extraction(item):
            _prepare_extracted(i, libraries[i], [x for x in extracted if x.unit.sample_index == i],
                               ws, backend, builder, data)
        else:
            _prepare_supplied(i, item, libraries[i], ws, backend, builder, data)
    return builder

# ## Calling

def caller_cl(builder, ws, out_file, data):
    """Build the lumpy command line as a list of arguments.
    """
    lumpy = config_utils.get_program("lumpy", dd.get_config(data))
    cmd = [lumpy, "-t", ws.caller_prefix(out_file),
           "-msw", str(dd.get_min_sample_weight(data)),
           "-tt", str(dd.get_trim_threshold(data))]
    if dd.get_probability_curves(data):
        cmd.append("-P")
    if dd.get_exclude_file(data):
        cmd.extend(["-x", dd.get_exclude_file(data)])
    return cmd + builder.to_args()

def call(builder, ws, out_file, data):
    """Run lumpy, writing standard output to the output file on success only.
    """
    with file_transaction(data, out_file) as tx_out_file:
        cmd = " ".join(shlex.quote(x) for x in caller_cl(builder, ws, out_file, data))
        do.run("%s > %s" % (cmd, shlex.quote(tx_out_file)), "Call structural variants with lumpy", data)
    return out_file

def run(items, data, depths=None, out_file=None, tmp_dir=None):
    """Prepare evidence for the input items and call structural variants.

    `items` are dictionaries with an `align_bam` and optional `split_bam` and
    `disc_bam` evidence files. Returns the caller output file.
    """
    depths = depths or []
    out_file = os.path.abspath(out_file or default_output(items))
    validate(items, depths, data)
    backend = backends.select_backend(dd.get_config(data))
    utils.safe_makedir(os.path.dirname(out_file))
    with workspace(out_file, tmp_dir, keep=dd.get_keep_tmp(data)) as ws:
        data = dd.set_tmp_dir(data, ws.tx_dir)
        builder = prepare_evidence(items, depths, ws, backend, data)
        logger.info("Calling with %s depth, %s discordant and %s split evidence descriptors"
                    % (len(builder.depth), len(builder.discordant), len(builder.split)))
        call(builder, ws, out_file, data)
    return out_file
