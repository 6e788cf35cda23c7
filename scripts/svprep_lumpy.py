#!/usr/bin/env python -Es
"""Prepare structural variant evidence from BAM or CRAM files and call with lumpy.

Extracts split-read and discordant-pair evidence per library with samblaster,
estimates insert size distributions, merges evidence per sample and runs lumpy
with the assembled evidence descriptors.

Usage:
  svprep_lumpy.py -B <bam>[,<bam>] [options]
     -S/-D pre-extracted split and discordant evidence, same order as -B
     -d sample_id:file depth BEDPE evidence
     -o output VCF (default <first input basename>.vcf)
     -T scratch directory, kept with -k
"""
import sys

from svprep.pipeline.main import main

if __name__ == "__main__":
    sys.exit(main())
