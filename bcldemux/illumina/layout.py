"""
The layout of one lane of an Illumina run: tiles, read segments, and software.

See RunLayout for the data and resolve_layout/load_layout for how it's built
from the run's config XML files.  Everything here is read-only once built.
"""

import logging
from collections import namedtuple
from pathlib import Path
from .util import load_xml
from ..util import ConfigError

LOGGER = logging.getLogger(__name__)

INDEX_SEGMENT = "index"

ReadSegment = namedtuple("ReadSegment", ["name", "first_cycle", "last_cycle"])
ReadSegment.length = property(lambda self: self.last_cycle - self.first_cycle + 1)
ReadSegment.is_index = property(lambda self: self.name == INDEX_SEGMENT)
ReadSegment.__doc__ = "A named, inclusive, one-indexed range of cycles."

SoftwareRecord = namedtuple(
    "SoftwareRecord", ["program_id", "name", "version", "description"])
SoftwareRecord.__doc__ = "Name and version of a piece of instrument software."


class RunLayout:
    """The tiles, read segments, and identity of a single lane.

    The tiles are stored sorted and de-duplicated.  Segments are kept in the
    order given, which is the order reads are assembled and output.  There
    must be one or two ordinary reads plus at most one index read (named
    "index"), and the segments may not overlap, though gaps between them are
    fine.
    """

    def __init__(
            self, instrument_id, run_id, lane_number, tiles, segments,
            software=None):
        if not instrument_id or not run_id:
            raise ConfigError(
                "instrument name and run ID are both required: %r / %r" % (
                    instrument_id, run_id))
        self._instrument_id = str(instrument_id)
        self._run_id = str(run_id)
        self._lane_number = int(lane_number)
        self._tiles = tuple(sorted(set(int(tile) for tile in tiles)))
        if not self._tiles:
            raise ConfigError("no tiles found for lane %d" % self._lane_number)
        self._segments = tuple(ReadSegment(*seg) for seg in segments)
        self._software = tuple(software or [])
        self._check_segments()

    def _check_segments(self):
        segs = self._segments
        if not 1 <= len(segs) <= 3:
            raise ConfigError("expected 1 to 3 read segments, found %d" % len(segs))
        names = [seg.name for seg in segs]
        if len(set(names)) != len(names):
            raise ConfigError("duplicate read segment names: %s" % names)
        if names.count(INDEX_SEGMENT) > 1:
            raise ConfigError("only one index segment is allowed")
        num_reads = len(names) - names.count(INDEX_SEGMENT)
        if not 1 <= num_reads <= 2:
            raise ConfigError(
                "expected 1 or 2 non-index read segments, found %d" % num_reads)
        for seg in segs:
            if seg.first_cycle < 1 or seg.last_cycle < seg.first_cycle:
                raise ConfigError("invalid cycle range for %s: %d-%d" % seg)
        by_start = sorted(segs, key=lambda seg: seg.first_cycle)
        for seg1, seg2 in zip(by_start, by_start[1:]):
            if seg2.first_cycle <= seg1.last_cycle:
                raise ConfigError(
                    "read segments overlap: %s and %s" % (seg1.name, seg2.name))

    @property
    def instrument_id(self):
        """Instrument name."""
        return self._instrument_id

    @property
    def run_id(self):
        """Run folder identifier."""
        return self._run_id

    @property
    def identity(self):
        """Instrument name and run ID joined with an underscore."""
        return self._instrument_id + "_" + self._run_id

    @property
    def lane_number(self):
        """Lane number (one-indexed)."""
        return self._lane_number

    @property
    def tiles(self):
        """Tuple of tile numbers in ascending order."""
        return self._tiles

    @property
    def segments(self):
        """Tuple of all ReadSegments, index segment included."""
        return self._segments

    @property
    def software(self):
        """Tuple of SoftwareRecords for provenance, instrument software first."""
        return self._software

    @property
    def read_segments(self):
        """Tuple of the non-index ReadSegments."""
        return tuple(seg for seg in self._segments if not seg.is_index)

    @property
    def index_segment(self):
        """The index ReadSegment, or None if there isn't one."""
        for seg in self._segments:
            if seg.is_index:
                return seg
        return None

    @property
    def total_cycles(self):
        """Number of cycles needed to cover every segment."""
        return max(seg.last_cycle for seg in self._segments)

    def as_dict(self):
        """Plain nested data for reporting."""
        return {
            "identity": self.identity,
            "instrument": self.instrument_id,
            "run": self.run_id,
            "lane": self.lane_number,
            "tiles": list(self.tiles),
            "segments": [
                {"name": seg.name, "first_cycle": seg.first_cycle,
                 "last_cycle": seg.last_cycle}
                for seg in self.segments],
            "software": [dict(rec._asdict()) for rec in self.software]}

    def __repr__(self):
        segs = ", ".join("%s:%d-%d" % seg for seg in self._segments)
        return "<RunLayout %s lane %d, %d tiles, %s>" % (
            self.identity, self.lane_number, len(self.tiles), segs)


def _text(doc, path, label):
    """Get the stripped text at an XML path, or raise ConfigError."""
    elem = doc.find(path)
    if elem is None or elem.text is None or not elem.text.strip():
        raise ConfigError("missing %s (%s)" % (label, path))
    return elem.text.strip()

def _int(text, label):
    try:
        return int(text)
    except (TypeError, ValueError) as err:
        raise ConfigError("%s is not an integer: %r" % (label, text)) from err

def read_software(doc, path, program_id, description):
    """Read a Software element's Name and Version attributes."""
    elem = doc.find(path)
    if elem is None:
        raise ConfigError("missing software record (%s)" % path)
    name = elem.attrib.get("Name")
    version = elem.attrib.get("Version")
    if not name or not version:
        raise ConfigError("missing software name or version (%s)" % path)
    return SoftwareRecord(program_id, name, version, description)

def read_tile_list(doc, lane_number):
    """Sorted list of tile numbers for a lane from a BaseCallAnalysis doc."""
    path = "./Run/TileSelection/Lane[@Index='%d']/Tile" % lane_number
    tiles = [_int(elem.text, "tile number") for elem in doc.findall(path)]
    if not tiles:
        raise ConfigError("no tiles found for lane %d (%s)" % (lane_number, path))
    return sorted(tiles)

def read_cycle_ranges(doc):
    """List of (first, last) cycle pairs for each Reads entry, by Index."""
    reads = doc.findall("./Run/RunParameters/Reads")
    ranges = [None] * len(reads)
    for elem in reads:
        idx = _int(elem.attrib.get("Index"), "Reads Index")
        if not 1 <= idx <= len(reads) or ranges[idx-1] is not None:
            raise ConfigError("unexpected Reads Index: %d" % idx)
        first = _int(_text(elem, "FirstCycle", "FirstCycle"), "FirstCycle")
        last = _int(_text(elem, "LastCycle", "LastCycle"), "LastCycle")
        ranges[idx-1] = (first, last)
    return ranges

def read_index_cycles(doc):
    """Sorted list of barcode cycles, or None if none are listed."""
    elems = doc.findall("./Run/RunParameters/Barcode/Cycle")
    if not elems:
        return None
    return sorted(_int(elem.text, "Barcode Cycle") for elem in elems)

def name_segments(cycle_ranges, index_cycles=None):
    """Turn cycle ranges into named ReadSegments.

    The first range starting at the first index cycle and spanning as many
    cycles as there are index cycles becomes the index segment.  The rest are
    read1, read2, ... in order.
    """
    count = len(cycle_ranges)
    if count > 3 or count < 1 or (index_cycles is None and count > 2):
        raise ConfigError("unexpected number of reads in config: %d" % count)
    segments = []
    index_found = False
    num_reads = 0
    for first, last in cycle_ranges:
        length = last - first + 1
        if (index_cycles and not index_found and first == index_cycles[0]
                and length == len(index_cycles)):
            index_found = True
            segments.append(ReadSegment(INDEX_SEGMENT, first, last))
        else:
            num_reads += 1
            segments.append(ReadSegment("read%d" % num_reads, first, last))
    if index_cycles is not None and not index_found:
        raise ConfigError("index segment not found")
    return segments

def resolve_layout(basecalls_doc, intensity_doc, lane_number):
    """Build a RunLayout from BaseCallAnalysis and ImageAnalysis config docs.

    Both arguments are XML root elements (as from load_xml).  intensity_doc
    may be None, in which case the instrument software record is skipped.
    """
    lane_number = int(lane_number)
    software = []
    if intensity_doc is not None:
        software.append(read_software(
            intensity_doc, "./Run/Software", "SCS",
            "Controlling software on instrument"))
    else:
        LOGGER.warning("no intensities config; skipping instrument software record")
    software.append(read_software(
        basecalls_doc, "./Run/Software", "basecalling", "Basecalling Package"))
    tiles = read_tile_list(basecalls_doc, lane_number)
    run_id = _text(basecalls_doc, "./Run/RunParameters/RunFolderId", "run folder ID")
    instrument = _text(basecalls_doc, "./Run/RunParameters/Instrument", "instrument name")
    segments = name_segments(
        read_cycle_ranges(basecalls_doc), read_index_cycles(basecalls_doc))
    layout = RunLayout(instrument, run_id, lane_number, tiles, segments, software)
    LOGGER.debug("resolved layout: %r", layout)
    return layout

def load_layout(basecalls_dir, intensities_dir, lane_number):
    """Load config.xml from the base calls and intensities dirs into a RunLayout.

    The intensities directory is optional; see resolve_layout."""
    try:
        basecalls_doc = load_xml(Path(basecalls_dir) / "config.xml")
    except FileNotFoundError as err:
        raise ConfigError("base calls config not found: %s" % err.filename) from err
    intensity_doc = None
    if intensities_dir:
        try:
            intensity_doc = load_xml(Path(intensities_dir) / "config.xml")
        except FileNotFoundError as err:
            raise ConfigError("intensities config not found: %s" % err.filename) from err
    return resolve_layout(basecalls_doc, intensity_doc, lane_number)

def _run_info_tiles(run_elem, lane_number):
    # Newer RunInfo.xml: FlowcellLayout/TileSet/Tiles/Tile as "<lane>_<tile>"
    # Older ones may list Run/Tiles/Tile the same way.
    elems = run_elem.findall("./FlowcellLayout/TileSet/Tiles/Tile")
    elems += run_elem.findall("./Tiles/Tile")
    tiles = []
    for elem in elems:
        lane_txt, _, tile_txt = (elem.text or "").strip().partition("_")
        if _int(lane_txt, "tile lane") == lane_number:
            tiles.append(_int(tile_txt, "tile number"))
    if not tiles:
        raise ConfigError("no tiles found for lane %d in RunInfo" % lane_number)
    return sorted(set(tiles))

def resolve_layout_from_run_info(run_info_doc, lane_number):
    """Build a RunLayout from a RunInfo.xml root element.

    Cycle ranges are accumulated in read Number order from each read's
    NumCycles.  A read flagged IsIndexedRead="Y" becomes the index segment;
    more than one (dual indexing) isn't supported.
    """
    lane_number = int(lane_number)
    run_elem = run_info_doc.find("./Run")
    if run_elem is None:
        raise ConfigError("missing Run element in RunInfo")
    run_id = run_elem.attrib.get("Id")
    instrument = _text(run_elem, "./Instrument", "instrument name")
    reads = sorted(
        run_elem.findall("./Reads/Read"),
        key=lambda elem: _int(elem.attrib.get("Number"), "Read Number"))
    segments = []
    num_reads = 0
    cycle = 1
    for elem in reads:
        length = _int(elem.attrib.get("NumCycles"), "NumCycles")
        if elem.attrib.get("IsIndexedRead", "N").upper() == "Y":
            if any(seg.name == INDEX_SEGMENT for seg in segments):
                raise ConfigError("multiple index reads are not supported")
            name = INDEX_SEGMENT
        else:
            num_reads += 1
            name = "read%d" % num_reads
        segments.append(ReadSegment(name, cycle, cycle + length - 1))
        cycle += length
    tiles = _run_info_tiles(run_elem, lane_number)
    layout = RunLayout(instrument, run_id, lane_number, tiles, segments)
    LOGGER.debug("resolved layout from RunInfo: %r", layout)
    return layout

def tile_subset(tiles, first_tile=None, tile_limit=None):
    """Select the tiles to process, for debugging partial lanes.

    first_tile: start from this tile (must be one of the given tiles)
    tile_limit: process at most this many tiles
    """
    tiles = list(tiles)
    if first_tile is not None:
        try:
            tiles = tiles[tiles.index(int(first_tile)):]
        except ValueError as err:
            raise ConfigError("first tile %s not in tile list" % first_tile) from err
    if tile_limit is not None:
        if int(tile_limit) < 0:
            raise ConfigError("tile limit is negative: %s" % tile_limit)
        tiles = tiles[:int(tile_limit)]
    return tiles
