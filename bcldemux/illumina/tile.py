"""
Stream clusters out of the per-cycle BCL files for one tile.

See the TileReader class for usage.
"""

import logging
from collections import namedtuple
from contextlib import ExitStack
from pathlib import Path
from .util import (
    open_binary, read_bcl_header, read_exactly, load_filter, bcl_path,
    filter_path, decode_bcl_bases, decode_bcl_qualities)

LOGGER = logging.getLogger(__name__)

DEFAULT_BLOCK_SIZE = 65536

Cluster = namedtuple("Cluster", ["bases", "qualities", "pass_filter"])
Cluster.__doc__ = """One cluster's calls across every cycle of a tile.

bases is a str of A/C/G/T/N, qualities a bytes object of Phred scores (same
length), and pass_filter the instrument's chastity filter flag."""


class TileDataError(IOError):
    """Base call or filter files for a tile are missing, short, or inconsistent."""


class TileReader:
    """The clusters of a single tile, read cycle-by-cycle from BCL files.

    Use as a context manager.  On entry the filter file and one BCL stream per
    cycle (for every cycle of the layout) are opened and their headers are
    checked against each other; on exit all of them are closed, whether or not
    an exception occurred.  Iterating yields Cluster objects in file order,
    which is the only identity a cluster has.  A reader can only be iterated
    once.

    >>> with TileReader(basecalls_dir, layout, 1101) as reader:
    ...     for cluster in reader:
    ...         ...
    """

    def __init__(self, basecalls_dir, layout, tile, block_size=DEFAULT_BLOCK_SIZE):
        self.basecalls_dir = Path(basecalls_dir)
        self.layout = layout
        self.tile = int(tile)
        self.block_size = int(block_size)
        if self.block_size < 1:
            raise ValueError("block size must be positive")
        self.cluster_count = None
        self._stack = None
        self._streams = []
        self._pass_filter = None
        self._consumed = False

    @property
    def lane(self):
        """Lane number, from the layout."""
        return self.layout.lane_number

    @property
    def closed(self):
        """Are the tile's files closed?"""
        return self._stack is None

    def open(self):
        """Open the filter file and every cycle's BCL file.

        Raises TileDataError if anything is missing or the cluster counts
        disagree.  Nothing is left open if that happens."""
        if not self.closed:
            raise RuntimeError("tile %d is already open" % self.tile)
        stack = ExitStack()
        try:
            fpath = filter_path(self.basecalls_dir, self.lane, self.tile)
            try:
                self._pass_filter = load_filter(fpath)
            except (OSError, EOFError) as err:
                raise TileDataError(
                    "can't load filter file for tile %d: %s" % (self.tile, err)) from err
            count = len(self._pass_filter)
            streams = []
            for cycle in range(1, self.layout.total_cycles + 1):
                path = bcl_path(self.basecalls_dir, self.lane, self.tile, cycle)
                try:
                    stream = stack.enter_context(open_binary(path))
                    cycle_count = read_bcl_header(stream, path)
                except (OSError, EOFError) as err:
                    raise TileDataError(
                        "can't read cycle %d for tile %d: %s" % (
                            cycle, self.tile, err)) from err
                if cycle_count != count:
                    raise TileDataError(
                        "cluster count mismatch for tile %d cycle %d: "
                        "%d in BCL, %d in filter" % (
                            self.tile, cycle, cycle_count, count))
                streams.append((path, stream))
        except BaseException:
            stack.close()
            self._pass_filter = None
            raise
        self._stack = stack
        self._streams = streams
        self.cluster_count = count
        LOGGER.debug(
            "opened tile %d: %d cycles, %d clusters",
            self.tile, len(streams), count)
        return self

    def close(self):
        """Close all of the tile's files."""
        if self._stack is not None:
            self._stack.close()
            self._stack = None
        self._streams = []

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def __iter__(self):
        if self.closed:
            raise RuntimeError("tile %d is not open" % self.tile)
        if self._consumed:
            raise RuntimeError("tile %d has already been read" % self.tile)
        self._consumed = True
        return self._clusters()

    def _read_block(self, size):
        blocks = []
        for path, stream in self._streams:
            try:
                blocks.append(read_exactly(stream, size, path))
            except (OSError, EOFError) as err:
                raise TileDataError(str(err)) from err
        return blocks

    def _clusters(self):
        position = 0
        while position < self.cluster_count:
            size = min(self.block_size, self.cluster_count - position)
            blocks = self._read_block(size)
            # zip across cycles gives each cluster's bytes in cycle order
            for offset, column in enumerate(zip(*blocks)):
                raw = bytes(column)
                yield Cluster(
                    decode_bcl_bases(raw),
                    decode_bcl_qualities(raw),
                    bool(self._pass_filter[position + offset]))
            position += size
        for path, stream in self._streams:
            if stream.read(1):
                raise TileDataError("unexpected data after last cluster in %s" % path)
