from unittest import TestCase
import gzip
import io
import os

from htseek.bgzf import Block, EMPTY_BLOCK, BLOCK_DATA_SIZE, MAX_BLOCK_SIZE, MAX_DATA_SIZE, ChecksumError, FormatError, \
    OversizeError, TruncatedError, compress_block, decompress_block, is_terminator

from .data import BLOCK_VALID, make_block


class TestBlock(TestCase):
    def test_from_buffer(self):
        # Empty Block
        block, cdata = Block.from_buffer(bytearray(EMPTY_BLOCK))
        self.assertEqual(len(cdata), 2, "EMPTY: CDATA expected to be length 2")
        self.assertEqual(len(block), 28, "EMPTY: Incorrect block size")
        self.assertEqual(block.inflate(cdata), b'')

        # Valid block w. data
        block, cdata = Block.from_buffer(bytearray(BLOCK_VALID))
        self.assertEqual(len(cdata), len(BLOCK_VALID) - 26, "VALID: Incorrect CDATA length")
        self.assertEqual(len(block), len(BLOCK_VALID), "VALID: Incorrect block size")
        self.assertEqual(block.uncompressed_size, 7)
        self.assertEqual(block.inflate(cdata), b'test123')

        # Read only buffer at an offset
        block, cdata = Block.from_buffer(b'xx' + BLOCK_VALID, 2)
        self.assertEqual(block.inflate(cdata), b'test123')

        # Invalid magic identifier
        with self.assertRaises(FormatError):
            Block.from_buffer(b'\x1f\x8c' + BLOCK_VALID[2:])

        # Missing BC
        with self.assertRaises(FormatError):
            Block.from_buffer(make_block(b'test123', subfields=((b'AB', b'\0\0'),)))

        # Extra subfields
        block, cdata = Block.from_buffer(make_block(b'test123', subfields=((b'AB', b'xyz'), (b'BC', None))))
        self.assertEqual(block.inflate(cdata), b'test123')

        # Truncated
        with self.assertRaises(TruncatedError):
            Block.from_buffer(BLOCK_VALID[:-1])
        with self.assertRaises(TruncatedError):
            Block.from_buffer(BLOCK_VALID[:5])

    def test_from_stream(self):
        # Empty Block
        block, cdata = Block.from_stream(io.BytesIO(EMPTY_BLOCK))
        self.assertEqual(len(cdata), 2, "EMPTY: CDATA expected to be length 2")
        self.assertEqual(len(block), 28, "EMPTY: Incorrect block size")

        # Valid block w. data
        stream = io.BytesIO(BLOCK_VALID + EMPTY_BLOCK)
        block, cdata = Block.from_stream(stream)
        self.assertEqual(len(block), len(BLOCK_VALID), "VALID: Incorrect block size")
        self.assertEqual(block.inflate(cdata), b'test123')
        self.assertEqual(stream.tell(), len(BLOCK_VALID))

        # End of stream
        self.assertIsNone(Block.from_stream(io.BytesIO()))

        # Truncated
        with self.assertRaises(TruncatedError):
            Block.from_stream(io.BytesIO(BLOCK_VALID[:-3]))

    def test_undersized(self):
        # BSIZE values smaller than the header and trailer of the block
        for bsize in (b'\x00\x00', b'\x06\x00', b'\x18\x00'):
            data = EMPTY_BLOCK[:16] + bsize + EMPTY_BLOCK[18:]
            with self.assertRaises(FormatError):
                Block.from_buffer(data)
            with self.assertRaises(FormatError):
                Block.from_stream(io.BytesIO(data))
            with self.assertRaises(FormatError):
                decompress_block(data)

    def test_inflate_corrupt(self):
        block, cdata = Block.from_buffer(make_block(b'test123', crc=0))
        with self.assertRaises(ChecksumError):
            block.inflate(cdata)

        data = bytearray(make_block(b'test123' * 10))
        data[20] ^= 0xff
        block, cdata = Block.from_buffer(data)
        with self.assertRaises(ChecksumError):
            block.inflate(cdata)


class TestCompressBlock(TestCase):
    def test_round_trip(self):
        for payload in (b'', b'test123', bytes(MAX_DATA_SIZE), os.urandom(BLOCK_DATA_SIZE)):
            data = compress_block(payload)
            self.assertLessEqual(len(data), MAX_BLOCK_SIZE)
            self.assertEqual(gzip.decompress(data), payload)
            self.assertEqual(decompress_block(data), (payload, len(data)))

    def test_levels(self):
        payload = b'ACGT' * 1000
        for level in range(10):
            self.assertEqual(decompress_block(compress_block(payload, level))[0], payload)

    def test_empty_is_terminator(self):
        self.assertTrue(is_terminator(compress_block(b'')))
        self.assertTrue(is_terminator(EMPTY_BLOCK))
        self.assertFalse(is_terminator(BLOCK_VALID))

    def test_oversize(self):
        with self.assertRaises(OversizeError):
            compress_block(bytes(MAX_DATA_SIZE + 1))

    def test_decompress_offset(self):
        data = BLOCK_VALID + EMPTY_BLOCK
        self.assertEqual(decompress_block(data, len(BLOCK_VALID)), (b'', len(EMPTY_BLOCK)))
