"""Evidence descriptors describing each evidence source to the lumpy caller.

Three kinds, each rendered as one lumpy option and its comma separated
`key:value` parameter string:

- depth (`-bedpe`): user supplied BEDPE calls, higher confidence weight.
- discordant (`-pe`): one per (sample, library), with insert statistics.
- split (`-sr`): one per sample.
"""
import collections
import os

from svprep import bam
from svprep.pipeline import datadict as dd
from svprep.pipeline.shared import InputValidationError

DepthDescriptor = collections.namedtuple("DepthDescriptor", ["bedpe_file", "sample_id", "weight"])

DiscordantDescriptor = collections.namedtuple(
    "DiscordantDescriptor",
    ["bam_file", "histo_file", "mean", "stdev", "read_length", "min_non_overlap",
     "discordant_z", "back_distance", "weight", "sample_id", "min_mapping_threshold",
     "read_groups"])

SplitDescriptor = collections.namedtuple(
    "SplitDescriptor",
    ["bam_file", "back_distance", "min_mapping_threshold", "weight", "sample_id", "min_clip",
     "read_groups"])

def _read_group_params(read_groups):
    return ["read_group:%s" % rg for rg in read_groups]

def to_args(descriptor):
    """Render a descriptor as a lumpy option and parameter string.
    """
    if isinstance(descriptor, DepthDescriptor):
        params = ["bedpe_file:%s" % descriptor.bedpe_file, "id:%s" % descriptor.sample_id,
                  "weight:%s" % descriptor.weight]
        return ["-bedpe", ",".join(params)]
    elif isinstance(descriptor, DiscordantDescriptor):
        params = ["id:%s" % descriptor.sample_id,
                  "bam_file:%s" % descriptor.bam_file,
                  "histo_file:%s" % descriptor.histo_file,
                  "mean:%s" % descriptor.mean,
                  "stdev:%s" % descriptor.stdev,
                  "read_length:%s" % descriptor.read_length,
                  "min_non_overlap:%s" % descriptor.min_non_overlap,
                  "discordant_z:%s" % descriptor.discordant_z,
                  "back_distance:%s" % descriptor.back_distance,
                  "weight:%s" % descriptor.weight,
                  "min_mapping_threshold:%s" % descriptor.min_mapping_threshold]
        return ["-pe", ",".join(params + _read_group_params(descriptor.read_groups))]
    elif isinstance(descriptor, SplitDescriptor):
        params = ["id:%s" % descriptor.sample_id,
                  "bam_file:%s" % descriptor.bam_file,
                  "back_distance:%s" % descriptor.back_distance,
                  "weight:%s" % descriptor.weight,
                  "min_mapping_threshold:%s" % descriptor.min_mapping_threshold,
                  "min_clip:%s" % descriptor.min_clip]
        return ["-sr", ",".join(params + _read_group_params(descriptor.read_groups))]
    else:
        raise TypeError("Unexpected evidence descriptor: %s" % (descriptor,))

def parse_depth_specs(specs):
    """Parse `sample_id:bedpe_file` depth specifications.

    Every specification needs a non-empty sample id, a colon and an existing
    file; anything else is an input validation error.
    """
    out = []
    for spec in specs:
        sample_id, sep, bedpe_file = spec.partition(":")
        if not sep or not sample_id or not bedpe_file:
            raise InputValidationError("Depth specification must be sample_id:file, got: %s" % spec)
        if not os.path.isfile(bedpe_file):
            raise InputValidationError("Depth file not found: %s" % bedpe_file)
        out.append((sample_id, bedpe_file))
    return out


class DescriptorBuilder(object):
    """Ordered collections of descriptors for one caller invocation.

    Descriptors are appended in processing order and never modified.
    """

    def __init__(self, data):
        self._data = data
        self.depth = []
        self.discordant = []
        self.split = []

    def add_depth(self, sample_id, bedpe_file):
        descriptor = DepthDescriptor(bedpe_file, sample_id, dd.get_depth_weight(self._data))
        self.depth.append(descriptor)
        return descriptor

    def add_discordant(self, bam_file, read_groups, insert_stats, sample_id=None):
        data = self._data
        sample_id = sample_id or bam.sample_name(bam_file, dd.get_ref_file(data))
        descriptor = DiscordantDescriptor(
            bam_file, insert_stats.histo_file, insert_stats.mean, insert_stats.stdev,
            insert_stats.read_length, insert_stats.read_length, dd.get_discordant_z(data),
            dd.get_back_distance(data), dd.get_evidence_weight(data), sample_id,
            dd.get_min_mapping_threshold(data), tuple(read_groups))
        self.discordant.append(descriptor)
        return descriptor

    def add_split(self, bam_file, read_groups, sample_id=None):
        data = self._data
        sample_id = sample_id or bam.sample_name(bam_file, dd.get_ref_file(data))
        descriptor = SplitDescriptor(
            bam_file, dd.get_back_distance(data), dd.get_min_mapping_threshold(data),
            dd.get_evidence_weight(data), sample_id, dd.get_min_clip(data), tuple(read_groups))
        self.split.append(descriptor)
        return descriptor

    def to_args(self):
        """Caller arguments: depth, then discordant, then split descriptors.
        """
        out = []
        for descriptor in self.depth + self.discordant + self.split:
            out.extend(to_args(descriptor))
        return out
