"""
Package to read raw Illumina base call data for a lane.

This provides RunLayout (the tiles and read segments of a lane, parsed from
the run's config XML), TileReader (clusters streamed from one tile's BCL and
filter files), and assemble_reads (clusters sliced into logical reads), plus
a utility module with the low-level file parsers.  Everything here is
read-only.
"""
