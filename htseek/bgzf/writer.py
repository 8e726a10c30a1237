"""
Provides convenience interface to write data to BGZF blocks.
"""

import io

from .block import compress_block
from .util import BLOCK_DATA_SIZE, EMPTY_BLOCK, SIZEOF_EMPTY_BLOCK
from .virtual_offset import VirtualOffset
from ..util import DEFAULT_COMPRESSION_LEVEL


class _Writer:
    """
    Base class for buffer and stream writers.
    Provides Callable interface to compress data into blocks.
    Data is staged until a full block is available so tell() is exact without waiting on compression.
    """

    def __init__(self, output, offset=0, level=DEFAULT_COMPRESSION_LEVEL):
        """
        Constructor.
        :param output: The buffer or stream to output compressed data.
        :param offset: The offset into output to begin writing.
        :param level: zlib compression level.
        """
        self.total_in = 0
        self.total_out = 0
        self.offset = offset
        self.level = level
        self._output = output
        self._pending = bytearray()
        self._finalized = False

    def _write_raw(self, block: bytes):
        raise NotImplementedError()

    def _compress(self, data: bytes):
        block = compress_block(data, self.level)
        self._write_raw(block)
        self.offset += len(block)
        self.total_in += len(data)
        self.total_out += len(block)

    def _flush_block(self, size):
        data = bytes(self._pending[:size])
        del self._pending[:size]
        self._compress(data)

    def tell(self) -> VirtualOffset:
        """
        Virtual offset the next written byte will occupy.
        """
        return VirtualOffset.make(self.offset, len(self._pending))

    def write(self, data) -> int:
        """
        Pass data to the compressor.
        Data larger than the space remaining in the current block is split between blocks.
        :param data: Bytes-like data to append to the decompressed stream.
        :return: Number of bytes accepted.
        """
        if self._finalized:
            raise ValueError("Write to a finalized BGZF writer.")
        self._pending += data
        while len(self._pending) >= BLOCK_DATA_SIZE:
            self._flush_block(BLOCK_DATA_SIZE)
        return len(data)

    __call__ = write

    def block_remaining(self) -> int:
        """
        Amount of data that can be written before the current block is finished.
        :return: Remaining space in bytes.
        """
        return BLOCK_DATA_SIZE - len(self._pending)

    def finish_block(self):
        """
        Finalises current BGZF block so the next write starts a new block.
        """
        if self._pending:
            self._flush_block(len(self._pending))

    def flush(self):
        self.finish_block()
        flush = getattr(self._output, 'flush', None)
        if flush:
            flush()

    def finalize(self):
        """
        Flush staged data and append the EOF marker block. Further writes are rejected.
        """
        if self._finalized:
            return
        self.finish_block()
        self._write_raw(EMPTY_BLOCK)
        self.offset += SIZEOF_EMPTY_BLOCK
        self._finalized = True

    def close(self):
        self.finalize()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, *exc):
        if exc_type is None:
            self.finalize()


def Writer(output, offset=0, level=DEFAULT_COMPRESSION_LEVEL) -> _Writer:
    """
    Factory to provide a unified writer interface.
    Resolves if output is randomly accessible and provides the appropriate _Writer implementation.
    :param output: A stream or buffer object.
    :param offset: If output is a buffer, the offset into the buffer to begin writing. Otherwise the number of bytes
    already written to the stream.
    :param level: zlib compression level.
    :return: An instance of StreamWriter or BufferWriter.
    """
    if isinstance(output, io.IOBase) or hasattr(output, 'write'):
        return StreamWriter(output, offset, level)
    else:
        return BufferWriter(output, offset, level)


class BufferWriter(_Writer):
    """
    Implements _Writer to output to a randomly accessible buffer interface.
    A bytearray output grows as needed.
    """

    def _write_raw(self, block: bytes):
        self._output[self.offset:self.offset + len(block)] = block


class StreamWriter(_Writer):
    """
    Implements _Writer to output to a stream.
    """

    def _write_raw(self, block: bytes):
        self._output.write(block)
