"""
Custom logging with tracking of lane processing context.
"""

import logging


class DemuxLoggerAdapter(logging.LoggerAdapter):
    """A logger adapter to automatically add contextual information to log records.

    This uses LoggerAdapter's default implementation of the "process" method to
    use the "extra" argument in the logging calls, which in turn makes these
    extra key/value pairs show up as attributes of the log records.

    Recognized keys are "layout" (a RunLayout, giving "run" and "lane"
    attributes) and "tile" (a TileReader or a plain tile number).  Anything
    else is passed through as-is.
    """

    def __init__(self, logger, extra=None):
        if extra is None:
            extra = {}
        super().__init__(logger, extra)
        self._parse(extra)

    def _parse(self, extra):
        # Explicitly given values override indirect ones, like kwargs["lane"]
        # versus kwargs["layout"].lane_number.
        self._parse_layout(extra)
        self._parse_tile(extra)

    def _parse_layout(self, extra, obj=None):
        obj = extra.pop("layout", None) or obj
        if obj:
            try:
                extra.setdefault("run", str(obj.identity))
            except AttributeError:
                extra.setdefault("run", str(obj))
            else:
                try:
                    extra.setdefault("lane", str(obj.lane_number))
                except AttributeError:
                    pass

    def _parse_tile(self, extra):
        obj = extra.get("tile")
        if obj is not None:
            try:
                extra["tile"] = str(obj.tile)
            except AttributeError:
                extra["tile"] = str(obj)
            else:
                try:
                    self._parse_layout(extra, obj.layout)
                except AttributeError:
                    pass

    def for_tile(self, tile):
        """Make a new adapter with the same context plus a tile."""
        extra = dict(self.extra)
        extra["tile"] = tile
        return DemuxLoggerAdapter(self.logger, extra)


class ContextFormatter(logging.Formatter):
    """Log formatter that prefixes messages with whatever lane context exists.

    Records without the run/lane/tile attributes are formatted as usual."""

    def format(self, record):
        text = super().format(record)
        parts = []
        for key in ("run", "lane", "tile"):
            val = getattr(record, key, None)
            if val is not None:
                parts.append("%s=%s" % (key, val))
        if parts:
            text = "[%s] %s" % (" ".join(parts), text)
        return text
