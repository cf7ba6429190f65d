"""
Demultiplex a whole lane, tile by tile and cluster by cluster.

See the LaneDemultiplexer class for usage.
"""

import logging
from collections import namedtuple
from .logging import DemuxLoggerAdapter
from .illumina.tile import TileReader, DEFAULT_BLOCK_SIZE
from .illumina.reads import assemble_reads, split_index_read, phred_to_text
from .util import ContractViolation

LOGGER = logging.getLogger(__name__)

DEFAULT_READ_GROUP = "1"

DemuxRecord = namedtuple(
    "DemuxRecord", ["read_name", "reads", "match", "pass_filter", "index_read"])
DemuxRecord.__doc__ = """One processed cluster.

reads holds the non-index AssembledReads, index_read the index
AssembledRead (or None), and match the BarcodeMatch (or None when there was
nothing to decode)."""

TaggedRead = namedtuple(
    "TaggedRead",
    ["name", "segment_name", "bases", "qualities", "read_group", "pass_filter", "tags"])
TaggedRead.__doc__ = """One output read: a cluster's read segment tagged with its sample.

name is "<cluster name>#<barcode name>", read_group the barcode name, and
tags a dict of extra text fields (the index read bases and qualities)."""


def tag_records(record, barcode_tag="RT", quality_tag="QT"):
    """Turn a DemuxRecord into TaggedReads, one per non-index read.

    Each is named "<read name>#<barcode name>" with the barcode name as its
    read group.  The index read's bases and qualities go in the two tag
    fields.  Without a barcode match the plain read name and the default read
    group are used.
    """
    tags = {}
    if record.index_read is not None:
        tags[barcode_tag] = record.index_read.bases
        tags[quality_tag] = phred_to_text(record.index_read.qualities)
    if record.match is not None:
        name = "%s#%s" % (record.read_name, record.match.barcode_name)
        read_group = record.match.barcode_name
    else:
        name = record.read_name
        read_group = DEFAULT_READ_GROUP
    return [
        TaggedRead(
            name, read.segment_name, read.bases, read.qualities, read_group,
            record.pass_filter, dict(tags))
        for read in record.reads]


class LaneDemultiplexer:
    """Run every cluster of a lane through read assembly and barcode decoding.

    Tiles are processed one at a time in ascending order, and clusters within
    a tile in file order; only one tile's files are open at any point.  Both
    orders carry through to the output and the metrics.

    basecalls_dir: the run's Data/Intensities/BaseCalls directory
    layout: RunLayout for the lane
    decoder: BarcodeDecoder, or None to skip decoding
    pf_filter: skip clusters that failed the chastity filter entirely
    tiles: subset of the layout's tiles to process (default: all of them)
    """

    def __init__(
            self, basecalls_dir, layout, decoder=None, pf_filter=False,
            tiles=None, block_size=DEFAULT_BLOCK_SIZE,
            barcode_tag="RT", quality_tag="QT"):
        self.basecalls_dir = basecalls_dir
        self.layout = layout
        self.decoder = decoder
        self.pf_filter = pf_filter
        self.tiles = sorted(layout.tiles if tiles is None else tiles)
        self.block_size = block_size
        self.barcode_tag = barcode_tag
        self.quality_tag = quality_tag
        self.cluster_count = 0
        self.logger = DemuxLoggerAdapter(LOGGER, {"layout": layout})
        index = layout.index_segment
        if decoder is not None and index is not None:
            if index.length != decoder.barcode_length:
                raise ContractViolation(
                    "index read is %d cycles but barcodes are %d long" % (
                        index.length, decoder.barcode_length))
        elif decoder is not None:
            self.logger.warning("no index read in layout; barcodes won't be used")

    def cluster_name(self, tile, number):
        """Name for a cluster: run identity, lane, tile, and position in tile."""
        return "%s:%d:%d:%d" % (self.layout.identity, self.layout.lane_number, tile, number)

    def records(self):
        """Lazily generate a DemuxRecord for every cluster in the lane."""
        self.cluster_count = 0
        for tile in self.tiles:
            logger = self.logger.for_tile(tile)
            with TileReader(
                    self.basecalls_dir, self.layout, tile, self.block_size) as reader:
                logger.info("processing %d clusters", reader.cluster_count)
                skipped = 0
                for number, cluster in enumerate(reader, 1):
                    if self.pf_filter and not cluster.pass_filter:
                        skipped += 1
                        continue
                    yield self._process(tile, number, cluster)
                if skipped:
                    logger.info("skipped %d clusters failing filter", skipped)

    def _process(self, tile, number, cluster):
        reads, index_read = split_index_read(assemble_reads(cluster, self.layout))
        match = None
        if index_read is not None and self.decoder is not None:
            match = self.decoder.decode_read(index_read, cluster.pass_filter)
        self.cluster_count += 1
        return DemuxRecord(
            self.cluster_name(tile, number), reads, match, cluster.pass_filter,
            index_read)

    def run(self, sink, metrics_writer=None):
        """Send every tagged read to a sink, then finalize the metrics.

        metrics_writer, if given, is called with the finalized BarcodeMetric
        list.  The list is also returned (empty if there's no decoder).
        Errors stop processing immediately; reads already appended to the sink
        stay there.
        """
        for record in self.records():
            for read in tag_records(record, self.barcode_tag, self.quality_tag):
                sink.append(read)
        self.logger.info(
            "processed %d clusters from %d tiles", self.cluster_count, len(self.tiles))
        metrics = self.decoder.finalize() if self.decoder is not None else []
        if metrics_writer:
            metrics_writer(metrics)
        return metrics
