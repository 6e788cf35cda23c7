"""Prepare structural variant evidence from alignment files and call with lumpy.

Usage:
  svprep_lumpy.py -B sample.bam[,other.bam] [-S split.bam -D disc.bam] [-o out.vcf]
"""
import argparse
import os
import signal
import subprocess
import sys

from svprep import utils
from svprep.log import logger, setup_local_logging
from svprep.pipeline import config_utils
from svprep.pipeline.shared import CollaboratorError, ConfigurationError, InputValidationError
from svprep.pipeline import version
from svprep.provenance import do
from svprep.structural import descriptors, lumpy

def parse_cl_args(in_args):
    """Parse input commandline arguments into a dictionary of run settings.
    """
    description = "Prepare split-read and discordant-pair evidence and call structural variants with lumpy."
    parser = argparse.ArgumentParser(description=description)
    parser.add_argument("-B", "--bams", action="append", default=[],
                        help="Full BAM or CRAM file(s), comma separated (required)")
    parser.add_argument("-S", "--splitters", action="append", default=[],
                        help="Split read BAM file(s), comma separated, same order as -B")
    parser.add_argument("-D", "--discordants", action="append", default=[],
                        help="Discordant read BAM file(s), comma separated, same order as -B")
    parser.add_argument("-d", "--depth", action="append", default=[],
                        help="Depth BEDPE file(s) as sample_id:file, comma separated")
    parser.add_argument("-o", "--output",
                        help="Output file (default: <first input basename>.vcf)")
    parser.add_argument("-x", "--exclude", help="BED file of regions to exclude")
    parser.add_argument("-P", "--probability-curves", dest="probability_curves", action="store_true",
                        default=False, help="Output probability curves for each variant")
    parser.add_argument("-m", "--min-weight", dest="min_weight", type=int,
                        help="Minimum sample weight for a call [4]")
    parser.add_argument("-r", "--trim", type=float, help="Trim threshold [0]")
    parser.add_argument("-T", "--tmpdir", help="Temporary directory (created if missing)")
    parser.add_argument("-R", "--reference", help="Reference genome, required for CRAM input")
    parser.add_argument("-k", "--keep", action="store_true", default=False,
                        help="Keep temporary files")
    parser.add_argument("-K", "--config", help="YAML system configuration with program locations")
    parser.add_argument("-n", "--numcores", type=int, default=1,
                        help="Number of library extractions to run at once [1]")
    parser.add_argument("-v", "--verbose", action="store_true", default=False,
                        help="Verbose output")
    parser.add_argument("--version", action="version", version=version.__version__)
    args = parser.parse_args(in_args)
    bams = utils.split_commas(args.bams)
    splitters = utils.split_commas(args.splitters)
    discordants = utils.split_commas(args.discordants)
    error_msg = _sanity_check_args(bams, splitters, discordants, args)
    if error_msg:
        parser.error(error_msg)
    items = []
    for i, in_file in enumerate(bams):
        item = {"align_bam": os.path.abspath(in_file)}
        if splitters:
            item["split_bam"] = os.path.abspath(splitters[i])
            item["disc_bam"] = os.path.abspath(discordants[i])
        items.append(item)
    return {"items": items,
            "depth": utils.split_commas(args.depth),
            "output": args.output,
            "tmp_dir": args.tmpdir,
            "args": args}

def _sanity_check_args(bams, splitters, discordants, args):
    """Ensure dependent arguments are correctly specified.
    """
    if not bams:
        return "At least one BAM or CRAM file is required (-B)."
    if bool(splitters) != bool(discordants):
        return "Split (-S) and discordant (-D) files must be specified together."
    if splitters and (len(splitters) != len(bams) or len(discordants) != len(bams)):
        return "Need one split (-S) and one discordant (-D) file for each input file (-B)."
    if args.numcores < 1:
        return "Number of cores (-n) must be at least 1."

def setup_data(args):
    """Build the run data dictionary from the system configuration and arguments.
    """
    config = config_utils.load_system_config(args.config)
    algorithm = config["algorithm"]
    if args.min_weight is not None:
        algorithm["min_sample_weight"] = args.min_weight
    if args.trim is not None:
        algorithm["trim_threshold"] = args.trim
    algorithm["num_cores"] = args.numcores
    algorithm["probability_curves"] = args.probability_curves
    algorithm["keep_tmp"] = args.keep
    if args.exclude:
        algorithm["exclude"] = os.path.abspath(args.exclude)
    data = {"config": config, "dirs": {"work": os.getcwd()}}
    if args.reference:
        data["reference"] = os.path.abspath(args.reference)
    return data

def _exit_on_signal(signum, frame):
    do.shutdown_requested.set()
    raise SystemExit(128 + signum)

def run_main(items, depth, output=None, tmp_dir=None, args=None):
    """Run evidence preparation and calling, returning a process exit status.
    """
    try:
        data = setup_data(args)
    except ConfigurationError as msg:
        logger.error(str(msg))
        return 1
    handler = setup_local_logging(data["config"], verbose=args.verbose)
    try:
        depths = descriptors.parse_depth_specs(depth)
        out_file = lumpy.run(items, data, depths=depths, out_file=output, tmp_dir=tmp_dir)
        logger.info("Structural variant calls written to %s" % out_file)
        return 0
    except config_utils.CmdNotFound as msg:
        logger.error("Missing required program: %s" % msg)
    except (ConfigurationError, InputValidationError) as msg:
        logger.error(str(msg))
    except subprocess.CalledProcessError as msg:
        logger.error("Pipeline command failed with exit status %s" % msg.returncode)
    except CollaboratorError as msg:
        logger.error(str(msg))
    finally:
        handler.pop_application()
        handler.close()
    return 1

def main(in_args=None):
    do.shutdown_requested.clear()
    for sig in [signal.SIGTERM, signal.SIGHUP]:
        signal.signal(sig, _exit_on_signal)
    kwargs = parse_cl_args(sys.argv[1:] if in_args is None else in_args)
    return run_main(**kwargs)
