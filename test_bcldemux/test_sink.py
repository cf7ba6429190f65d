"""
Tests for record sinks: where tagged reads end up.
"""

from Bio import SeqIO
from bcldemux import sink
from bcldemux.demux import TaggedRead
from .test_common import TestBase, TestBaseTmp

def make_read(name="M00123_RUN:1:1101:1", segment="read1", read_group="1",
              pass_filter=True, tags=None):
    """A TaggedRead with some default values."""
    if tags is None:
        tags = {"RT": "ACGTACGT", "QT": "????????"}
    if read_group != "1" or tags:
        name = "%s#%s" % (name, read_group)
    return TaggedRead(
        name, segment, "ACGT", bytes([30, 30, 20, 10]), read_group, pass_filter, tags)


class TestFastqDescription(TestBase):
    """Test FASTQ header comments for tagged reads."""

    def test_description(self):
        """Test the read number, filter flag, index, and tags."""
        self.assertEqual(
            sink.fastq_description(make_read()),
            "1:N:0:ACGTACGT RG:Z:1 RT:Z:ACGTACGT QT:Z:????????")

    def test_description_read2_failing(self):
        """Test a second read failing the filter."""
        read = make_read(segment="read2", pass_filter=False, read_group="0")
        self.assertEqual(
            sink.fastq_description(read),
            "2:Y:0:ACGTACGT RG:Z:0 RT:Z:ACGTACGT QT:Z:????????")

    def test_description_no_tags(self):
        """Test a read with no index read tags."""
        read = make_read(tags={})
        self.assertEqual(sink.fastq_description(read), "1:N:0: RG:Z:1")

    def test_to_seq_record(self):
        """Test conversion to a Biopython SeqRecord."""
        rec = sink.to_seq_record(make_read())
        self.assertEqual(rec.id, "M00123_RUN:1:1101:1#1")
        self.assertEqual(str(rec.seq), "ACGT")
        self.assertEqual(rec.letter_annotations["phred_quality"], [30, 30, 20, 10])


class TestListSink(TestBase):
    """Test keeping reads in memory."""

    def test_list_sink(self):
        """Test that reads are kept in order and counted per read group."""
        reads = [make_read(), make_read(read_group="2"), make_read(read_group="0"),
                 make_read(read_group="2")]
        with sink.ListSink() as lsink:
            for read in reads:
                lsink.append(read)
        self.assertEqual(lsink.reads, reads)
        self.assertEqual(lsink.read_groups(), {"1": 1, "2": 2, "0": 1})


class TestFastqSink(TestBaseTmp):
    """Test writing all reads to one FASTQ file."""

    def test_fastq_sink(self):
        """Test the FASTQ text written."""
        path = self.tmpdir / "out" / "lane1.fastq"
        with sink.FastqSink(path) as fsink:
            fsink.append(make_read())
            fsink.append(make_read(segment="read2"))
        self.assertEqual(fsink.count, 2)
        self.assertEqual(
            path.read_text(),
            "@M00123_RUN:1:1101:1#1 1:N:0:ACGTACGT RG:Z:1 RT:Z:ACGTACGT QT:Z:????????\n"
            "ACGT\n+\n??5+\n"
            "@M00123_RUN:1:1101:1#1 2:N:0:ACGTACGT RG:Z:1 RT:Z:ACGTACGT QT:Z:????????\n"
            "ACGT\n+\n??5+\n")

    def test_fastq_sink_closed_after_error(self):
        """Test that the file is closed even when an exception stops writing."""
        path = self.tmpdir / "lane1.fastq"
        with self.assertRaises(ValueError):
            with sink.FastqSink(path) as fsink:
                fsink.append(make_read())
                raise ValueError
        self.assertTrue(fsink._handle.closed)
        self.assertEqual(len(list(SeqIO.parse(str(path), "fastq"))), 1)


class TestSplitFastqSink(TestBaseTmp):
    """Test writing one FASTQ file per read group."""

    def test_split_fastq_sink(self):
        """Test that reads go to their read group's file."""
        with sink.SplitFastqSink(self.tmpdir, "lane1", ["1", "2", "0"]) as ssink:
            ssink.append(make_read())
            ssink.append(make_read(read_group="0"))
            ssink.append(make_read(read_group="0"))
        self.assertEqual(ssink.counts, {"1": 1, "2": 0, "0": 2})
        for read_group, count in ssink.counts.items():
            path = self.tmpdir / ("lane1#%s.fastq" % read_group)
            with self.subTest(read_group=read_group):
                self.assertTrue(path.exists())
                recs = list(SeqIO.parse(str(path), "fastq"))
                self.assertEqual(len(recs), count)
                for rec in recs:
                    self.assertTrue(rec.id.endswith("#" + read_group))

    def test_split_fastq_sink_new_group(self):
        """Test that read groups not given up front get files as needed."""
        with sink.SplitFastqSink(self.tmpdir / "sub", "lane1") as ssink:
            ssink.append(make_read(read_group="7"))
        self.assertEqual(ssink.path_for("7"), self.tmpdir / "sub" / "lane1#7.fastq")
        self.assertTrue(ssink.path_for("7").exists())
        self.assertEqual(ssink.counts, {"7": 1})
