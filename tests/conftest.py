"""Pytest fixtures and test helper functions"""

import os
import re
import shutil

import pysam
import pytest

from svprep.pipeline import config_utils


def write_bam(path, read_groups, sample="NA12878", n_pairs=20, read_length=100, insert=400):
    """Write a small coordinate ordered paired-end BAM file.

    `read_groups` is a list of (id, library) pairs; a library of None leaves
    out the LB tag. An empty list writes a file without read groups.
    """
    header = {"HD": {"VN": "1.6", "SO": "unsorted"},
              "SQ": [{"SN": "chr1", "LN": 100000}]}
    if read_groups:
        header["RG"] = []
        for rg_id, lib in read_groups:
            rg = {"ID": rg_id, "SM": sample, "PL": "ILLUMINA"}
            if lib:
                rg["LB"] = lib
            header["RG"].append(rg)
    rg_ids = [rg_id for rg_id, _ in read_groups] or [None]
    with pysam.AlignmentFile(path, "wb", header=header) as out_handle:
        for i in range(n_pairs):
            for rg_id in rg_ids:
                for flag, start, mate_start, tlen in [(99, 1000 + i, 1000 + i + insert - read_length, insert),
                                                      (147, 1000 + i + insert - read_length, 1000 + i, -insert)]:
                    read = pysam.AlignedSegment()
                    read.query_name = "pair%s_%s" % (i, rg_id)
                    read.query_sequence = "A" * read_length
                    read.flag = flag
                    read.reference_id = 0
                    read.reference_start = start
                    read.mapping_quality = 60
                    read.cigartuples = [(0, read_length)]
                    read.next_reference_id = 0
                    read.next_reference_start = mate_start
                    read.template_length = tlen
                    read.query_qualities = pysam.qualitystring_to_array("I" * read_length)
                    if rg_id:
                        read.set_tag("RG", rg_id)
                    out_handle.write(read)
    return path


@pytest.fixture
def make_bam(tmp_path):
    def _make(name="sample.bam", read_groups=(("rg1", "lib1"),), **kwargs):
        return write_bam(str(tmp_path / name), list(read_groups), **kwargs)
    return _make


def fake_get_program(available=("samtools", "samblaster", "lumpy")):
    """Replacement for config_utils.get_program resolving only `available` programs.
    """
    def _get_program(name, config, default=None):
        if name in available:
            return "/opt/bin/%s" % name
        raise config_utils.CmdNotFound(name)
    return _get_program


def _option(cmd, flag):
    match = re.search(r"%s (\S+)" % re.escape(flag), cmd)
    return match.group(1) if match else None


def fake_extraction(template_bam, mean=500.0, stdev=50.0):
    """Replacement for do.run_concurrent that writes every branch's outputs.

    Evidence branches get a copy of `template_bam`; the statistics branch
    gets a histogram and an estimator summary.
    """
    calls = []

    def _run(cmds, descr=None, data=None, log_dir=None, checks=None, poll_interval=0.2,
             cancel=None):
        calls.append(cmds)
        for name, cmd in cmds:
            if name in ("split", "discordant"):
                shutil.copy(template_bam, _option(cmd, "-o"))
            else:
                histo_file = _option(cmd, " -o")
                stats_file = cmd.rsplit(">", 1)[-1].strip()
                with open(histo_file, "w") as out_handle:
                    out_handle.write("100\t0.5\n101\t0.5\n")
                with open(stats_file, "w") as out_handle:
                    out_handle.write("mean:%s\tstdev:%s\n" % (mean, stdev))
    _run.calls = calls
    return _run


@pytest.fixture
def data(tmp_path):
    config = config_utils.load_system_config()
    config["resources"]["tmp"] = {"dir": str(tmp_path / "tx")}
    return {"config": config, "dirs": {"work": str(tmp_path)}}


@pytest.fixture
def programs(mocker):
    """Resolve samtools, samblaster and lumpy without sambamba."""
    return mocker.patch("svprep.pipeline.config_utils.get_program",
                        side_effect=fake_get_program())


@pytest.fixture
def extraction(mocker, make_bam):
    """Patch concurrent extraction to write evidence copied from a template BAM."""
    template = make_bam("template.bam", read_groups=(("rg1", "lib1"), ("rg2", "lib1")))
    fake = fake_extraction(template)
    mocker.patch("svprep.provenance.do.run_concurrent", side_effect=fake)
    return fake
