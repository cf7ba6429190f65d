"""
Utility functions used throughout the package.

These are largely just wrappers for filesystem operations, plus the exception
classes shared by the layout, decoding, and orchestration code.
"""

from pathlib import Path
import os
import warnings
import yaml

class DemuxError(Exception):
    """Any sort of demultiplexing-related exception."""

class ConfigError(DemuxError):
    """Run layout, barcode registry, or settings are missing or contradictory.

    These are raised before any base call data is read."""

class ContractViolation(DemuxError):
    """Layout and barcode registry disagree with the data being processed.

    This should never be caught and ignored; it means the lane's output
    can't be trusted."""

def mkparent(path):
    """Create the parent directory for a filesystem path."""
    parent = Path(path).parent
    os.makedirs(parent, exist_ok=True)

def yaml_load(path):
    """Load YAML from a file, assuming a dictionary if empty."""
    with open(path) as fin:
        with warnings.catch_warnings():
            warnings.filterwarnings("ignore", category=DeprecationWarning)
            data = yaml.safe_load(fin)
    # If there's no actual yaml data in the file (like, say, just a bunch of
    # comments) we get None!  That makes it tricky later on so for our purposes
    # we'll catch that and default to a dict.
    data = data or {}
    return data

def yaml_dump(data, stream=None):
    """Render a data structure as block-style YAML text."""
    return yaml.safe_dump(data, stream, default_flow_style=False, sort_keys=False)
