"""Command line builders for the alignment tools used to view, sort and merge evidence.

sambamba is preferred when available and samtools used otherwise. The choice
is made once per run with `select_backend` and the resulting object handed to
every step that builds alignment commands.
"""
import subprocess

from svprep import bam
from svprep.log import logger
from svprep.pipeline import config_utils
from svprep.provenance import do


class SamtoolsBackend(object):
    """Alignment commands built on samtools.
    """
    name = "samtools"

    def __init__(self, config):
        self.samtools = config_utils.get_program("samtools", config)

    def view_library_cl(self, in_file, read_groups=None, rg_file=None, ref_file=None, header=True):
        """Stream SAM records of a library, optionally with the header.
        """
        opts = ["-h"] if header else []
        if read_groups and rg_file:
            opts += ["-R", rg_file]
        if ref_file and bam.is_cram(in_file):
            opts += ["-T", ref_file]
        return " ".join([self.samtools, "view"] + opts + [in_file])

    def view_sam_cl(self):
        """Read SAM with header on stdin and emit header-less records.
        """
        return "%s view -" % self.samtools

    def to_sorted_bam_cl(self, in_stream, out_file, tmp_dir):
        """Convert a SAM stream to a coordinate sorted BAM file.
        """
        return ("{samtools} sort -T {tmp_dir}/sorttmp -O bam -o {out_file} {in_stream}"
                .format(samtools=self.samtools, **locals()))

    def merge(self, in_files, out_file, data=None):
        cmd = [self.samtools, "merge", "-f", out_file] + list(in_files)
        do.run(cmd, "Merge %s evidence files into %s" % (len(in_files), out_file), data,
               checks=[do.file_nonempty(out_file)])
        return out_file

    def count(self, in_file):
        return int(subprocess.check_output([self.samtools, "view", "-c", in_file]).decode().strip())


class SambambaBackend(SamtoolsBackend):
    """Alignment commands built on sambamba, with samtools for CRAM decoding.
    """
    name = "sambamba"

    def __init__(self, config):
        super(SambambaBackend, self).__init__(config)
        self.sambamba = config_utils.get_program("sambamba", config)

    def view_library_cl(self, in_file, read_groups=None, rg_file=None, ref_file=None, header=True):
        if bam.is_cram(in_file):
            return super(SambambaBackend, self).view_library_cl(in_file, read_groups, rg_file,
                                                                ref_file, header)
        opts = ["-h"] if header else []
        if read_groups:
            opts += ["-F", "'%s'" % " or ".join("read_group == \"%s\"" % rg for rg in read_groups)]
        return " ".join([self.sambamba, "view"] + opts + [in_file])

    def view_sam_cl(self):
        return "%s view -S /dev/stdin" % self.sambamba

    def to_sorted_bam_cl(self, in_stream, out_file, tmp_dir):
        return ("{sambamba} view -S -f bam -l 0 {in_stream} | "
                "{sambamba} sort --tmpdir {tmp_dir} -o {out_file} /dev/stdin"
                .format(sambamba=self.sambamba, **locals()))

    def merge(self, in_files, out_file, data=None):
        cmd = [self.sambamba, "merge", out_file] + list(in_files)
        do.run(cmd, "Merge %s evidence files into %s" % (len(in_files), out_file), data,
               checks=[do.file_nonempty(out_file)])
        return out_file

    def count(self, in_file):
        return int(subprocess.check_output([self.sambamba, "view", "-c", in_file]).decode().strip())


def select_backend(config):
    """Pick the alignment backend for a run, preferring sambamba.

    Raises CmdNotFound when samtools, needed by both backends, is missing.
    """
    if config_utils.program_available("sambamba", config):
        backend = SambambaBackend(config)
    else:
        backend = SamtoolsBackend(config)
    logger.debug("Using %s for alignment viewing, sorting and merging" % backend.name)
    return backend
