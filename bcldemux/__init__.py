"""
Package to demultiplex raw Illumina base calls for a single lane.

Brief package structure overview:

The illumina sub-package reads the instrument's own files: layout.RunLayout
describes a lane (tiles, read segments, software provenance) as parsed from
the run's config XML, tile.TileReader streams clusters out of the per-cycle
BCL files and filter file for one tile, and reads.assemble_reads slices each
cluster into its logical reads.  barcodes.BarcodeDecoder matches index reads
against a registry of sample barcodes and keeps per-barcode metrics.
demux.LaneDemultiplexer ties these together for a whole lane, handing tagged
reads to a record sink (see the sink module) and finalized metrics to the
metrics module.
"""

from . import config
CONFIG = config.layer_configs([config.path_for_config()])

def __deduce_version():
    """Return version string for this package, if installed.

    This infers the version originally defined in setup.py, but only if it can
    find an installed package and the filesystem path for the loaded package
    agrees with it.
    """
    from importlib.metadata import version, files, PackageNotFoundError
    from pathlib import Path
    try:
        ver = version(__package__)
        this = [p for p in files(__package__) or [] if Path(__file__).samefile(p.locate())]
        if this:
            return ver
    except (PackageNotFoundError, FileNotFoundError):
        pass
    return ""

__version__ = __deduce_version()
