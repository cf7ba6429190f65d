"""
Executable interface for use as a script.

See the main function for usage.
"""

import sys
import copy
import argparse
import logging
from . import config
from . import CONFIG
from . import __version__ as VERSION
from .barcodes import BarcodeDecoder, barcodes_from_sequences, load_barcode_file, NO_MATCH_NAME
from .demux import LaneDemultiplexer, DEFAULT_READ_GROUP
from .illumina.tile import DEFAULT_BLOCK_SIZE
from .illumina.layout import load_layout, resolve_layout_from_run_info, tile_subset
from .illumina.util import load_xml
from .logging import ContextFormatter
from .metrics import save_metrics, metrics_header
from .sink import FastqSink, SplitFastqSink
from .util import DemuxError, ConfigError, yaml_dump

DOCS = {}
DOCS["description"] = "Demultiplex one lane of Illumina base calls."
DOCS["epilog"] = """
The actions are:

demux:  Read every tile of the lane, match index reads against the barcodes,
        and write tagged reads as FASTQ (one file, or one per barcode with
        --output-dir) plus a per-barcode metrics table.
layout: Print the lane's resolved layout (tiles, read segments, software)
        as YAML and exit.
"""

PARSER = argparse.ArgumentParser(
    description=DOCS["description"],
    epilog=DOCS["epilog"],
    formatter_class=argparse.RawDescriptionHelpFormatter)
PARSER.add_argument("-c", "--config", help="path to configuration file")
PARSER.add_argument("-a", "--action", default="demux",
                    help="program action (default: %(default)s)",
                    choices=["demux", "layout"])
PARSER.add_argument("-B", "--basecalls-dir",
                    help="BaseCalls directory with config.xml, filter, and BCL files")
PARSER.add_argument("-I", "--intensities-dir",
                    help="Intensities directory with config.xml")
PARSER.add_argument("--run-info",
                    help="RunInfo.xml to use for the layout instead of config.xml files")
PARSER.add_argument("-L", "--lane", type=int, default=1,
                    help="lane number (default: %(default)s)")
PARSER.add_argument("--barcode", action="append", default=[],
                    help="barcode sequence (may be repeated)")
PARSER.add_argument("--barcode-file",
                    help="tab-delimited barcode file with barcode_sequence, "
                    "barcode_name, and library_name columns")
PARSER.add_argument("-o", "--output", help="output FASTQ path")
PARSER.add_argument("--output-dir", help="output directory for per-barcode FASTQ files")
PARSER.add_argument("--output-prefix", default="lane",
                    help="filename prefix for per-barcode FASTQ files (default: %(default)s)")
PARSER.add_argument("-m", "--metrics", help="per-barcode metrics output path")
PARSER.add_argument("-V", "--version", action="store_true",
                    help="Print installed version of bcldemux package")
PARSER.add_argument("-v", "--verbose", action="count", default=0,
                    help="Increment log verbosity")
PARSER.add_argument("-q", "--quiet", action="count", default=0,
                    help="Decrement log verbosity")

LOGGER = logging.getLogger()

def _setup_log(verbose, quiet):
    # Handle warnings via logging
    logging.captureWarnings(True)
    # each -v or -q decreases or increases the log level by 10, starting from
    # WARNING by default.
    lvl_current = LOGGER.getEffectiveLevel()
    lvl_subtract = (verbose - quiet) * 10
    verbosity = max(0, lvl_current - lvl_subtract)
    if not LOGGER.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(ContextFormatter("%(levelname)s:%(name)s:%(message)s"))
        LOGGER.addHandler(handler)
    LOGGER.setLevel(verbosity)

def _load_layout(args):
    if args.run_info:
        return resolve_layout_from_run_info(load_xml(args.run_info), args.lane)
    if not args.basecalls_dir:
        raise ConfigError("either --basecalls-dir or --run-info is required")
    return load_layout(args.basecalls_dir, args.intensities_dir, args.lane)

def _load_barcodes(args):
    if args.barcode and args.barcode_file:
        raise ConfigError("use either --barcode or --barcode-file, not both")
    if args.barcode_file:
        return load_barcode_file(args.barcode_file)
    if args.barcode:
        return barcodes_from_sequences(args.barcode)
    return None

def _make_sink(args, barcodes):
    if args.output and args.output_dir:
        raise ConfigError("use either --output or --output-dir, not both")
    if args.output:
        return FastqSink(args.output)
    if args.output_dir:
        if barcodes:
            names = [bc.name for bc in barcodes] + [NO_MATCH_NAME]
        else:
            names = [DEFAULT_READ_GROUP]
        return SplitFastqSink(args.output_dir, args.output_prefix, names)
    raise ConfigError("an output path is required (--output or --output-dir)")

def demux(args, conf):
    """Demultiplex a lane according to command-line arguments and config."""
    if not args.basecalls_dir:
        raise ConfigError("--basecalls-dir is required for demux")
    layout = _load_layout(args)
    barcodes = _load_barcodes(args)
    decoder = None
    if barcodes:
        decoder = BarcodeDecoder.from_config(barcodes, conf)
    lane_conf = conf.get("lane", {})
    tags = conf.get("tags", {})
    tiles = tile_subset(
        layout.tiles, lane_conf.get("first_tile"), lane_conf.get("tile_limit"))
    demuxer = LaneDemultiplexer(
        args.basecalls_dir, layout, decoder,
        pf_filter=lane_conf.get("pf_filter", False),
        tiles=tiles,
        block_size=lane_conf.get("block_size") or DEFAULT_BLOCK_SIZE,
        barcode_tag=tags.get("barcode", "RT"),
        quality_tag=tags.get("quality", "QT"))
    writer = None
    if args.metrics:
        header = metrics_header(layout)
        writer = lambda metrics: save_metrics(metrics, args.metrics, header)
    with _make_sink(args, barcodes) as sink:
        demuxer.run(sink, writer)

def main(args_raw=None):
    """Executable interface for use as a script.

    Command-line arguments are defined by PARSER.  Run with --help to see from
    the command-line."""
    try:
        if args_raw:
            args = PARSER.parse_args(args_raw)
        else:
            args = PARSER.parse_args()
        _setup_log(args.verbose, args.quiet)
        # Start from the package defaults already loaded into CONFIG, then
        # layer on the system default and command-line config path (if
        # present).  CONFIG itself is left untouched.
        cpaths = [config.SYSTEM_CONFIG, args.config]
        conf = config.update_tree(
            copy.deepcopy(CONFIG), config.layer_configs(cpaths))
        # If specific in the config, modify the log level.  Call _setup_log
        # again so that the command-line flags are applied after the new level
        # is set.
        newlevel = conf.get("loglevel")
        if not newlevel is None: # (since 0 is distinct from not set)
            LOGGER.setLevel(newlevel)
            _setup_log(args.verbose, args.quiet)
        if args.version:
            print(VERSION or "Not installed")
        elif args.action == "layout":
            layout = _load_layout(args)
            yaml_dump(layout.as_dict(), sys.stdout)
        elif args.action == "demux":
            demux(args, conf)
    except DemuxError as err:
        LOGGER.critical("%s: %s", type(err).__name__, err)
        sys.exit(1)
    except BrokenPipeError:
        pass
    except IOError as err:
        LOGGER.critical("I/O error: %s", err)
        sys.exit(1)

if __name__ == '__main__':
    main()
