"""Estimate the insert size distribution of a paired-end library from SAM records.

Reads header-less SAM on stdin and uses the first N records, while still
consuming the rest of the stream so upstream processes in a pipe never see a
closed reader. Writes a `size<TAB>density` histogram and prints the trimmed
mean and standard deviation as `mean:<float>\tstdev:<float>`.

    samtools view in.bam | python -m svprep.bam.pairend -r 101 -X 4 -N 1000000 -o lib.histo
"""
import argparse
import sys

import numpy

# unmapped, mate unmapped, secondary, duplicate, supplementary
EXCLUDE_FLAGS = 0x4 | 0x8 | 0x100 | 0x400 | 0x800
PAIRED_FLAG = 0x1

def sample_insert_sizes(in_handle, max_records):
    """Collect positive template lengths from the first `max_records` SAM records.

    Header lines are skipped and do not count towards the cap.
    """
    sizes = []
    n = 0
    for line in in_handle:
        if line.startswith("@"):
            continue
        n += 1
        if n > max_records:
            # keep draining so the writer never gets a broken pipe
            continue
        parts = line.split("\t", 9)
        if len(parts) < 9:
            continue
        try:
            flag = int(parts[1])
            tlen = int(parts[8])
        except ValueError:
            continue
        if flag & PAIRED_FLAG and not flag & EXCLUDE_FLAGS and tlen > 0:
            sizes.append(tlen)
    return numpy.array(sizes, dtype=numpy.int64)

def estimate(sizes, read_length, num_stdevs=4):
    """Calculate trimmed mean, standard deviation and histogram of insert sizes.

    Sizes further than `num_stdevs` standard deviations from the untrimmed
    mean are dropped before recalculating. The histogram covers integer sizes
    from the read length up to mean + num_stdevs * stdev, as densities
    summing to one. A range holding no sizes, such as a read length past
    the upper bound, raises ValueError.
    """
    if len(sizes) == 0:
        raise ValueError("No usable paired reads to estimate insert size")
    mean = numpy.mean(sizes)
    stdev = numpy.std(sizes)
    lower = mean - num_stdevs * stdev
    upper = mean + num_stdevs * stdev
    trimmed = sizes[(sizes >= lower) & (sizes <= upper)]
    if len(trimmed) > 0:
        mean = numpy.mean(trimmed)
        stdev = numpy.std(trimmed)
    else:
        trimmed = sizes
    start = max(0, int(read_length))
    end = int(numpy.ceil(mean + num_stdevs * stdev))
    in_range = trimmed[(trimmed >= start) & (trimmed <= end)]
    counts = numpy.bincount(in_range - start, minlength=max(0, end - start + 1))
    total = float(counts.sum())
    if not total:
        raise ValueError("No insert sizes between read length %s and %s" % (start, end))
    histogram = [(start + i, c / total) for i, c in enumerate(counts)]
    return float(mean), float(stdev), histogram

def write_histogram(histogram, out_file):
    with open(out_file, "w") as out_handle:
        for size, density in histogram:
            out_handle.write("%s\t%s\n" % (size, density))

def format_stats(mean, stdev):
    return "mean:%s\tstdev:%s" % (mean, stdev)

def parse_args(args):
    parser = argparse.ArgumentParser(description="Estimate library insert size distribution from SAM on stdin.")
    parser.add_argument("-r", "--read-length", dest="read_length", type=int, required=True,
                        help="Maximum read length of the library")
    parser.add_argument("-X", "--num-stdevs", dest="num_stdevs", type=float, default=4,
                        help="Standard deviations to trim the distribution at")
    parser.add_argument("-N", "--num-records", dest="num_records", type=int, default=1000000,
                        help="Number of records to sample")
    parser.add_argument("-o", "--output", required=True, help="Output histogram file")
    return parser.parse_args(args)

def main(args=None, in_handle=None, out_handle=None):
    args = parse_args(sys.argv[1:] if args is None else args)
    in_handle = in_handle or sys.stdin
    out_handle = out_handle or sys.stdout
    sizes = sample_insert_sizes(in_handle, args.num_records)
    try:
        mean, stdev, histogram = estimate(sizes, args.read_length, args.num_stdevs)
    except ValueError as msg:
        sys.stderr.write("%s\n" % msg)
        return 1
    write_histogram(histogram, args.output)
    out_handle.write(format_stats(mean, stdev) + "\n")
    return 0

if __name__ == "__main__":
    sys.exit(main())
