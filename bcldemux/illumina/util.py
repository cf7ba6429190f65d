"""
Utility functions for Illumina file formats.

These are largely just wrappers for filesystem operations, text manipulation,
and the small binary headers on BCL and filter files.
"""

import struct
import gzip
import xml.etree.ElementTree
import csv
import re
from pathlib import Path

BASES = "ACGT"
NO_CALL = "N"

# Each BCL byte holds the base in the two lowest bits and the quality in the
# upper six.  A zero byte is a no-call.  These tables translate a raw byte
# string into base letters and Phred quality values in one pass.
BCL_BASE_TABLE = bytes(
    [ord(NO_CALL)] + [ord(BASES[byte & 0b11]) for byte in range(1, 256)])
BCL_QUAL_TABLE = bytes([0] + [byte >> 2 for byte in range(1, 256)])

class BinaryFormatError(IOError):
    """A binary file is shorter than its header claims or is otherwise malformed."""

def load_xml(path):
    """Load an XML file and return the root element."""
    elem = xml.etree.ElementTree.parse(path).getroot()
    return elem

def load_csv(path, loader=csv.reader, non_unicode=None, **kwargs):
    """Load CSV data from a given file path.

    By default returns a list of lists using csv.reader, but another reader
    than can operate on a file object (e.g. csv.DictReader) can be supplied
    instead.  Extra keyword arguments (like delimiter="\\t") go to the reader.
    Supports UTF8 (with or without a byte order mark) and equivalently ASCII.

    The behavior for non-unicode characters is controlled by the non_unicode
    argument.  If None (default), no special handling is provided so a Unicode
    parsing exception would be raised.  If "replace", every instance of a
    non-unicode character is replaced with unicode's placeholder "replacement
    character" U+FFFD.  If "strip", the replacement is performed first and then
    all replacement characters are removed.
    """
    mapfunc = lambda _: _
    if non_unicode == "replace":
        errors_mode = "replace"
    elif non_unicode is None or non_unicode == "strict":
        errors_mode = "strict"
    elif non_unicode == "strip":
        errors_mode = "replace"
        mapfunc = lambda x: re.sub("\N{REPLACEMENT CHARACTER}", "", x)
    else:
        raise ValueError('non_unicode should be one of None, "replace", "strip"')
    # Explicitly setting the encoding to utf-8-sig allows the byte order mark
    # to be automatically stripped out if present.
    with open(path, 'r', newline='', encoding='utf-8-sig', errors=errors_mode) as fin:
        data = list(loader(map(mapfunc, fin), **kwargs))
    return data

def open_binary(path):
    """Open a binary file for reading, transparently handling a .gz variant.

    If the path itself doesn't exist but the same path plus ".gz" does, the
    gzipped file is opened instead.  FileNotFoundError is raised for the
    original path if neither exists."""
    path = Path(path)
    if not path.exists():
        gz_path = path.with_name(path.name + ".gz")
        if gz_path.exists():
            return gzip.open(gz_path, "rb")
    return open(path, "rb")

def read_exactly(stream, size, path="stream"):
    """Read exactly size bytes from a binary stream or raise BinaryFormatError."""
    raw = stream.read(size)
    if len(raw) != size:
        raise BinaryFormatError(
            "truncated data in %s: expected %d bytes, got %d" % (path, size, len(raw)))
    return raw

def read_bcl_header(stream, path="stream"):
    """Read the cluster count from the start of a BCL stream.

    BCL files start with a little-endian unsigned 32-bit cluster count,
    followed by one byte per cluster."""
    return struct.unpack("<I", read_exactly(stream, 4, path))[0]

def decode_bcl_bases(raw):
    """Convert raw BCL bytes into a string of base letters (N for no-calls)."""
    return raw.translate(BCL_BASE_TABLE).decode("ascii")

def decode_bcl_qualities(raw):
    """Convert raw BCL bytes into a bytes object of Phred quality values."""
    return raw.translate(BCL_QUAL_TABLE)

def load_filter(path):
    """Load a cluster filter file into a bytes object of pass-filter flags.

    Newer filter files start with a zero, a version number, and the cluster
    count, all unsigned 32-bit little-endian integers; older ones start with
    just the count.  After the header there's one byte per cluster with bit 0
    set for clusters passing the filter.  The returned bytes has one 0 or 1
    entry per cluster.
    """
    with open_binary(path) as f_in:
        first = struct.unpack("<I", read_exactly(f_in, 4, path))[0]
        if first == 0:
            _, count = struct.unpack("<II", read_exactly(f_in, 8, path))
        else:
            count = first
        raw = read_exactly(f_in, count, path)
    return bytes(byte & 1 for byte in raw)

def bcl_path(basecalls_dir, lane, tile, cycle):
    """Expected path to the BCL file for one lane, tile, and cycle."""
    return (Path(basecalls_dir) / ("L%03d" % lane) / ("C%d.1" % cycle) /
            ("s_%d_%d.bcl" % (lane, tile)))

def filter_path(basecalls_dir, lane, tile):
    """Locate the filter file for one lane and tile.

    The lane directory is checked first, then the base calls directory itself
    (as on older software).  If neither exists the lane directory path is
    returned so the error names the usual location."""
    name = "s_%d_%d.filter" % (lane, tile)
    lane_path = Path(basecalls_dir) / ("L%03d" % lane) / name
    candidates = [lane_path, Path(basecalls_dir) / name]
    for path in candidates:
        if path.exists() or path.with_name(path.name + ".gz").exists():
            return path
    return lane_path
