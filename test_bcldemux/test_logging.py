"""
Test bcldemux.logging

We have some special context-handling (to note the run, lane, and tile being
processed) and a formatter to show that context.
"""

import logging
from unittest.mock import Mock
from bcldemux.logging import DemuxLoggerAdapter, ContextFormatter
from bcldemux.illumina.layout import RunLayout
from bcldemux.illumina.tile import TileReader
from .test_common import TestBase, DumbLogHandler


class TestDemuxLoggerAdapter(TestBase):
    """Test the lane-specific logger adapter.

    This should optionally add context-specific information to log records,
    otherwise passing through logging calls to the standard logging functions.
    """

    def setUp(self):
        self.layout = Mock(RunLayout)
        self.layout.identity = "M00123_RUNID"
        self.layout.lane_number = 1
        self.tile = Mock(TileReader)
        self.tile.tile = 1101
        self.tile.layout = self.layout

    def test_basic(self):
        """Test that the logger adapter does all the basic logger stuff."""
        logger = Mock(logging.Logger)
        adapter = DemuxLoggerAdapter(logger)
        for lvl in ["debug", "info", "warning", "error", "critical"]:
            with self.subTest(level=lvl):
                lvlnum = getattr(logging, lvl.upper())
                adapter.log(lvlnum, f"log message {lvl}")
                logger.log.assert_called_with(lvlnum, f"log message {lvl}", extra={})
                logger.reset_mock()
                getattr(adapter, lvl)("log message")
                logger.log.assert_called_with(lvlnum, "log message", extra={})
                logger.reset_mock()

    def test_context_unrelated(self):
        """Test that unknown context values are passed through."""
        logger = Mock(logging.Logger)
        extra = {"key": "val", "key2": 5}
        adapter = DemuxLoggerAdapter(logger, extra=extra)
        adapter.info("log message")
        logger.log.assert_called_with(logging.INFO, "log message", extra=extra)

    def test_context_layout(self):
        """Test that a layout gives run and lane context."""
        logger = Mock(logging.Logger)
        adapter = DemuxLoggerAdapter(logger, extra={"layout": self.layout})
        adapter.info("log message")
        logger.log.assert_called_with(
            logging.INFO, "log message", extra={"run": "M00123_RUNID", "lane": "1"})

    def test_context_layout_explicit(self):
        """Test that explicit run and lane values win over the layout's."""
        logger = Mock(logging.Logger)
        adapter = DemuxLoggerAdapter(
            logger, extra={"layout": self.layout, "lane": "7"})
        adapter.info("log message")
        logger.log.assert_called_with(
            logging.INFO, "log message", extra={"run": "M00123_RUNID", "lane": "7"})

    def test_context_tile(self):
        """Test that a tile reader gives tile, run, and lane context."""
        logger = Mock(logging.Logger)
        adapter = DemuxLoggerAdapter(logger, extra={"tile": self.tile})
        adapter.info("log message")
        logger.log.assert_called_with(
            logging.INFO, "log message",
            extra={"tile": "1101", "run": "M00123_RUNID", "lane": "1"})

    def test_context_tile_number(self):
        """Test that a plain tile number works too."""
        logger = Mock(logging.Logger)
        adapter = DemuxLoggerAdapter(logger, extra={"tile": 1102})
        adapter.info("log message")
        logger.log.assert_called_with(logging.INFO, "log message", extra={"tile": "1102"})

    def test_for_tile(self):
        """Test making a per-tile adapter from a per-lane one."""
        logger = Mock(logging.Logger)
        adapter = DemuxLoggerAdapter(logger, extra={"layout": self.layout})
        adapter.for_tile(2101).warning("log message")
        logger.log.assert_called_with(
            logging.WARNING, "log message",
            extra={"run": "M00123_RUNID", "lane": "1", "tile": "2101"})
        # the original is unchanged
        adapter.info("log message")
        logger.log.assert_called_with(
            logging.INFO, "log message", extra={"run": "M00123_RUNID", "lane": "1"})


class TestContextFormatter(TestBase):
    """Test the formatter that shows lane context."""

    def setUp(self):
        self.formatter = ContextFormatter("%(levelname)s:%(message)s")

    def make_record(self, **extra):
        """Make an INFO log record with extra attributes."""
        record = logging.LogRecord(
            "bcldemux", logging.INFO, __file__, 1, "log message", None, None)
        for key, val in extra.items():
            setattr(record, key, val)
        return record

    def test_format(self):
        """Test that context attributes are shown in a prefix."""
        record = self.make_record(run="M00123_RUNID", lane="1", tile="1101")
        self.assertEqual(
            self.formatter.format(record),
            "[run=M00123_RUNID lane=1 tile=1101] INFO:log message")

    def test_format_partial(self):
        """Test that only the context that exists is shown."""
        record = self.make_record(tile="1101")
        self.assertEqual(self.formatter.format(record), "[tile=1101] INFO:log message")

    def test_format_plain(self):
        """Test that records without context are left alone."""
        self.assertEqual(self.formatter.format(self.make_record()), "INFO:log message")


class TestContextLogging(TestBase):
    """Test the adapter and formatter together on a real logger."""

    def setUp(self):
        self.handler = DumbLogHandler()
        self.handler.setFormatter(ContextFormatter("%(levelname)s:%(message)s"))
        self.logger = logging.getLogger(__name__ + ".context")
        self.logger.propagate = False
        self.logger.setLevel(logging.DEBUG)
        self.logger.addHandler(self.handler)
        layout = Mock(RunLayout)
        layout.identity = "M00123_RUNID"
        layout.lane_number = 2
        self.adapter = DemuxLoggerAdapter(self.logger, extra={"layout": layout})

    def tearDown(self):
        self.logger.removeHandler(self.handler)

    def test_records(self):
        """Test that context ends up on the records and in the formatted text."""
        self.adapter.for_tile(1101).info("tile done")
        self.adapter.warning("lane done")
        self.assertTrue(self.handler.has_message_text("tile done"))
        self.assertFalse(self.handler.has_message_text("something else"))
        rec1, rec2 = self.handler.records
        self.assertEqual(
            (rec1.run, rec1.lane, rec1.tile), ("M00123_RUNID", "2", "1101"))
        self.assertFalse(hasattr(rec2, "tile"))
        self.assertEqual(
            [self.handler.format(rec) for rec in self.handler.records],
            ["[run=M00123_RUNID lane=2 tile=1101] INFO:tile done",
             "[run=M00123_RUNID lane=2] WARNING:lane done"])
