from unittest import TestCase
import io

import htseek
from htseek import bai
from htseek.bgzf import Block, ChecksumError, EMPTY_BLOCK, FormatError, TruncatedError, TruncatedFileWarning
from htseek.codec import BAMCodec, TabularCodec
from htseek.query import Cursor, Query, QueryState
from htseek.reader import Reader
from htseek.util import IndexMissingError, UnknownReferenceError
from htseek.writer import Writer

from .data import BAM_HEADER, REFERENCES, bam_record

RECORDS = [
    bam_record(0, 100, '100M', name=b'r1'),
    bam_record(0, 150, '10M', name=b'r2'),
    bam_record(0, 5000, '100M', name=b'r3'),
    bam_record(1, 200, '50M', name=b'r4'),
    bam_record(1, 300, flag=4, name=b'u1'),
    bam_record(-1, -1, flag=4, name=b'u2'),
    bam_record(-1, -1, flag=4, name=b'u3'),
]


def write(records, header=BAM_HEADER, codec=None, reference_count=len(REFERENCES)):
    output = io.BytesIO()
    writer = Writer(output, codec, header, reference_count)
    chunks = [writer.append(record) for record in records]
    index = writer.finalize()
    return output.getvalue(), index, chunks


class TestQuery(TestCase):
    def setUp(self):
        self.data, self.index, self.chunks = write(RECORDS)
        self.reader = Reader(self.data, index=self.index)

    def test_header(self):
        self.assertEqual(self.reader.references, REFERENCES)
        self.assertEqual(self.reader.first_record, self.chunks[0].start)
        self.assertEqual(self.reader.first_record.within_block, 0)

    def test_records(self):
        self.assertEqual(list(self.reader.records()), RECORDS)
        self.assertEqual(list(self.reader), RECORDS)
        self.reader.verify_terminator()

    def test_chunks(self):
        for chunk, record in zip(self.chunks, RECORDS):
            self.reader.stream.seek(chunk.start)
            self.assertEqual(self.reader.stream.read(len(record)), record)
        for chunk, record in zip(self.chunks, RECORDS[1:]):
            self.reader.stream.seek(chunk.end)
            self.assertEqual(self.reader.stream.read(len(record)), record)

    def test_overlap(self):
        self.assertEqual(list(self.reader.query(0, 140, 160)), RECORDS[:2])
        self.assertEqual(list(self.reader.query('chr1', 140, 160)), RECORDS[:2])
        self.assertEqual(list(self.reader.query(0, 0, 100)), [])
        self.assertEqual(list(self.reader.query(0, 199, 5001)), [RECORDS[0], RECORDS[2]])
        self.assertEqual(list(self.reader.query(0, 0, 2 ** 29)), RECORDS[:3])
        self.assertEqual(list(self.reader.query('chr2', 0, 1000)), [RECORDS[3]])
        self.assertEqual(list(self.reader.query('chr3', 0, 1000)), [])

    def test_idempotent(self):
        self.assertEqual(list(self.reader.query(0, 140, 160)), list(self.reader.query(0, 140, 160)))

    def test_unknown_reference(self):
        with self.assertRaises(UnknownReferenceError):
            list(self.reader.query(7, 0, 100))
        with self.assertRaises(UnknownReferenceError):
            self.reader.query('chrX', 0, 100)

    def test_index_missing(self):
        reader = Reader(self.data)
        with self.assertRaises(IndexMissingError):
            reader.query(0, 140, 160)
        with self.assertRaises(IndexMissingError):
            reader.query_unmapped()
        self.assertEqual(list(reader.scan(0, 140, 160)), RECORDS[:2])
        self.assertEqual(list(reader.scan('chr2', 0, 1000)), [RECORDS[3]])

    def test_unmapped(self):
        self.assertEqual(list(self.reader.query_unmapped('chr2')), [RECORDS[4]])
        self.assertEqual(list(self.reader.query_unmapped(0)), [])
        self.assertEqual(list(self.reader.query_unmapped(2)), [])
        self.assertEqual(list(self.reader.query_unmapped()), RECORDS[5:])
        # Unmapped records are not part of coordinate queries
        self.assertEqual(list(self.reader.query(1, 300, 301)), [])

    def test_unmapped_loaded_index(self):
        stream = io.BytesIO()
        bai.write(stream, self.index)
        index = htseek.load_index(stream.getvalue())
        self.assertEqual(index.unplaced_unmapped, 2)
        reader = Reader(self.data, index=index)
        self.assertEqual(list(reader.query_unmapped()), RECORDS[5:])
        self.assertEqual(list(reader.query(0, 140, 160)), RECORDS[:2])

    def test_state(self):
        query = self.reader.query(0, 140, 160)
        self.assertEqual(query.state, QueryState.IDLE)
        self.assertEqual(query.chunks, self.index.chunks_for_region(0, 140, 160))
        self.assertEqual(query.state, QueryState.BINS_RESOLVED)
        next(query)
        self.assertEqual(query.state, QueryState.EMITTING)
        next(query)
        with self.assertRaises(StopIteration):
            next(query)
        self.assertEqual(query.state, QueryState.DONE)
        with self.assertRaises(StopIteration):
            next(query)

    def test_resume(self):
        query = self.reader.query(0, 0, 10000)
        self.assertEqual(query.cursor, Cursor(0, None))
        first = next(query)
        cursor = query.cursor
        self.assertEqual(cursor.offset, self.chunks[1].start)
        rest = list(query)
        self.assertEqual([first] + rest, RECORDS[:3])
        self.assertEqual(list(query.resume(cursor)), rest)
        self.assertEqual(list(query.resume(Cursor(0, None))), RECORDS[:3])

        # Continue on another handle
        other = Reader(io.BytesIO(self.data), index=self.index)
        self.assertEqual(list(Query(other, self.index, 0, 0, 10000, cursor=cursor)), rest)

    def test_interleaved(self):
        a = self.reader.query(0, 0, 10000)
        b = self.reader.query(1, 0, 1000)
        self.assertEqual(next(a), RECORDS[0])
        self.assertEqual(next(b), RECORDS[3])
        self.assertEqual(list(a), RECORDS[1:3])

    def test_codec_error(self):
        class FailingCodec(BAMCodec):
            def position(self, data):
                if b'bad\0' in data:
                    raise FormatError("Unreadable record")
                return super().position(data)

        data, index, _ = write(RECORDS[:3] + [bam_record(0, 6000, '10M', name=b'bad')])
        results = []
        with self.assertRaises(FormatError):
            for record in Reader(data, FailingCodec(), index).query(0, 0, 10000):
                results.append(record)
        # Records yielded before the failure remain valid
        self.assertEqual(results, RECORDS[:3])

    def test_checksum_error(self):
        chunk = self.index.chunks_for_region(1, 0, 1000)[0]
        data = bytearray(self.data)
        block, cdata = Block.from_buffer(data, chunk.start.block_start)
        data[chunk.start.block_start + block.cdata_offset + len(cdata) // 2] ^= 0xff
        reader = Reader(bytes(data), index=self.index)
        with self.assertRaises(ChecksumError):
            list(reader.query(1, 0, 1000))

    def test_truncated(self):
        data = self.data[:-len(EMPTY_BLOCK)]
        reader = Reader(data, index=self.index)
        with self.assertRaises(TruncatedError):
            reader.verify_terminator()
        with self.assertWarns(TruncatedFileWarning):
            self.assertEqual(list(reader.records()), RECORDS)

        # Cut one byte short of the terminator, inside the last data block
        data = self.data[:-len(EMPTY_BLOCK) - 1]
        for reader in (Reader(data, index=self.index), Reader(io.BytesIO(data), index=self.index)):
            with self.assertRaises(TruncatedError):
                reader.verify_terminator()
            with self.assertRaises(TruncatedError):
                list(reader.records())
            with self.assertRaises(TruncatedError):
                list(reader.query(0, 140, 160))


class TestManyRecords(TestCase):
    @classmethod
    def setUpClass(cls):
        cls.records = []
        for ref_id in range(2):
            for i in range(1500):
                cigar = '{}M'.format(50 + (i * 37) % 400)
                cls.records.append(bam_record(ref_id, i * 97, cigar, name=b'read%06d' % i, seq_len=120))
        cls.data, cls.index, cls.chunks = write(cls.records)
        cls.positions = [BAMCodec().position(record) for record in cls.records]

    def expected(self, ref_id, start, end):
        return [record for record, position in zip(self.records, self.positions) if position.overlaps(ref_id, start, end)]

    def test_blocks(self):
        self.assertGreater(len({chunk.start.block_start for chunk in self.chunks}), 5)
        for chunk in self.chunks:
            self.assertTrue(chunk.start.block_start == chunk.end.block_start or chunk.end.within_block == 0)

    def test_regions(self):
        reader = Reader(self.data, index=self.index)
        for ref_id in range(2):
            for start, end in ((0, 1), (1000, 1200), (16000, 17000), (20000, 60000), (145000, 150000), (0, 2 ** 29)):
                self.assertEqual(list(reader.query(ref_id, start, end)), self.expected(ref_id, start, end), (ref_id, start, end))

    def test_corrupt_block(self):
        corrupt_start = self.index.chunks_for_region(1, 145000, 150000)[-1].start.block_start
        intact = self.index.chunks_for_region(0, 1000, 1200)
        self.assertLess(max(chunk.end.block_start for chunk in intact), corrupt_start)

        data = bytearray(self.data)
        block, cdata = Block.from_buffer(data, corrupt_start)
        data[corrupt_start + block.cdata_offset + len(cdata) // 2] ^= 0xff
        reader = Reader(bytes(data), index=self.index)
        with self.assertRaises(ChecksumError):
            list(reader.query(1, 145000, 150000))
        # Blocks other than the damaged one still decode
        self.assertEqual(list(reader.query(0, 1000, 1200)), self.expected(0, 1000, 1200))
        self.assertEqual(list(Reader(bytes(data), index=self.index).query(0, 1000, 1200)), self.expected(0, 1000, 1200))

    def test_scan(self):
        reader = Reader(io.BytesIO(self.data))
        self.assertEqual(list(reader.scan(1, 30000, 31000)), self.expected(1, 30000, 31000))

    def test_threads(self):
        reader = htseek.open_reader(self.data, index=self.index, threads=2)
        try:
            self.assertEqual(list(reader.query(0, 20000, 60000)), self.expected(0, 20000, 60000))
            self.assertEqual(list(reader.query(1, 1000, 1200)), self.expected(1, 1000, 1200))
            self.assertEqual(list(reader.records()), self.records)
        finally:
            reader.close()


class TestTabular(TestCase):
    LINES = [
        b'chr1\t10\t20\ta\n',
        b'chr1\t15\t16\tb\n',
        b'chr1\t40000\t40010\tc\n',
        b'chr2\t5\t500\td\n',
    ]

    def test_query(self):
        data, index, _ = write(self.LINES, b'#track name=test\n', TabularCodec(['chr1', 'chr2']), 2)
        reader = Reader(data, TabularCodec(['chr1', 'chr2']), index)
        self.assertEqual(reader.header, b'#track name=test\n')
        self.assertEqual(list(reader.query('chr1', 12, 16)), self.LINES[:2])
        self.assertEqual(list(reader.query('chr1', 16, 50000)), self.LINES[0:1] + self.LINES[2:3])
        self.assertEqual(list(reader.query('chr2', 499, 500)), self.LINES[3:])
        self.assertEqual(list(reader), self.LINES)

    def test_discovered_references(self):
        lines = [b'chr1\t10\t20\n', b'chr2\t5\t50\n']
        codec = TabularCodec()
        data, index, _ = write(lines, b'', codec, 2)
        self.assertEqual(codec.references, ['chr1', 'chr2'])

        reader = Reader(data, TabularCodec(codec.references), index)
        self.assertEqual(list(reader.query(1, 0, 100)), lines[1:])
        self.assertEqual(list(reader.query('chr2', 0, 100)), lines[1:])
        self.assertEqual(list(reader.query('chr1', 0, 100)), lines[:1])

        # Without the names the data was written with, reference ids cannot be recovered
        reader = Reader(data, TabularCodec(), index)
        with self.assertRaises(UnknownReferenceError):
            list(reader.query(1, 0, 100))
        with self.assertRaises(UnknownReferenceError):
            reader.query('chr2', 0, 100)


class TestInterface(TestCase):
    def test_open(self):
        output = io.BytesIO()
        writer = htseek.open_writer(output, header=BAM_HEADER, reference_count=len(REFERENCES), level=1)
        offsets = [writer.append(record) for record in RECORDS]
        index_stream = io.BytesIO()
        index = writer.write_index(index_stream)

        self.assertEqual(offsets[0].end, offsets[1].start)
        with htseek.open_reader(io.BytesIO(output.getvalue()), index=index_stream.getvalue()) as reader:
            self.assertEqual(reader.index, index)
            self.assertEqual(list(reader.query('chr1', 140, 160)), RECORDS[:2])
        self.assertEqual(list(index.query(0, 140, 160, Reader(output.getvalue()))), RECORDS[:2])

    def test_unsorted(self):
        writer = htseek.open_writer(io.BytesIO(), header=BAM_HEADER)
        writer.append(RECORDS[1])
        with self.assertRaises(htseek.UnsortedInputError):
            writer.append(RECORDS[0])

    def test_no_index(self):
        output = io.BytesIO()
        writer = htseek.open_writer(output, index=False)
        writer.append(RECORDS[1])
        writer.append(RECORDS[0])
        self.assertIsNone(writer.finalize())
        with self.assertRaises(ValueError):
            writer.write_index(io.BytesIO())
