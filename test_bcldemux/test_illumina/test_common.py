"""
Helpers for other test modules.

These write out small BCL and filter files in the layout the instrument uses,
so tile-reading and whole-lane tests can run against real files.
"""

import gzip
import struct
from pathlib import Path
from bcldemux.illumina.layout import RunLayout
from bcldemux.illumina.util import BASES
from ..test_common import TestBase, TestBaseTmp

def bcl_byte(base, qual):
    """Encode one base call as a BCL byte (N always becomes zero)."""
    if base == "N":
        return 0
    return (qual << 2) | BASES.index(base)

def write_bcl(path, calls, gz=False):
    """Write one cycle's BCL file from a list of (base, quality) pairs."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = struct.pack("<I", len(calls)) + bytes(bcl_byte(b, q) for b, q in calls)
    if gz:
        with gzip.open(path.with_name(path.name + ".gz"), "wb") as f_out:
            f_out.write(data)
    else:
        path.write_bytes(data)

def write_filter(path, flags, versioned=True):
    """Write a filter file from a list of pass-filter booleans."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if versioned:
        header = struct.pack("<III", 0, 3, len(flags))
    else:
        header = struct.pack("<I", len(flags))
    path.write_bytes(header + bytes(1 if flag else 0 for flag in flags))

def write_tile(basecalls_dir, lane, tile, clusters, pass_filter=None, gz=False):
    """Write the filter and per-cycle BCL files for one tile.

    clusters is a list of (bases, qualities) with qualities a list of Phred
    scores the same length as bases.  Every cluster passes the filter unless
    pass_filter says otherwise."""
    basecalls_dir = Path(basecalls_dir)
    lane_dir = basecalls_dir / ("L%03d" % lane)
    if pass_filter is None:
        pass_filter = [True] * len(clusters)
    write_filter(lane_dir / ("s_%d_%d.filter" % (lane, tile)), pass_filter)
    cycles = len(clusters[0][0]) if clusters else 0
    for cycle in range(cycles):
        calls = [(bases[cycle], quals[cycle]) for bases, quals in clusters]
        write_bcl(
            lane_dir / ("C%d.1" % (cycle + 1)) / ("s_%d_%d.bcl" % (lane, tile)),
            calls, gz)

def make_layout(tiles=(1101,), segments=None, lane=1):
    """A RunLayout with a read1/index/read2 setup by default."""
    if segments is None:
        segments = [("read1", 1, 4), ("index", 5, 8), ("read2", 9, 12)]
    return RunLayout("M00123", "150101_M00123_0001_000000000-ABCDE", lane, tiles, segments)

def cluster(bases, qual=30):
    """A (bases, qualities) pair with the same quality everywhere but Ns."""
    return (bases, [0 if base == "N" else qual for base in bases])
