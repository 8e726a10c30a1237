"""
Provides a seekable, file-like view of the decompressed data in a BGZF stream or buffer.

Positions are virtual offsets, see htseek.bgzf.virtual_offset.
"""

import io
import warnings

from .block import Block
from .util import EMPTY_BLOCK, SIZEOF_EMPTY_BLOCK, RangeError, TruncatedError, TruncatedFileWarning
from .virtual_offset import VirtualOffset


class _Reader:
    """
    Base class for buffer and stream readers.
    Provides a file-like read interface over decompressed data and an Iterable interface over block payloads.
    """

    def __init__(self, input, offset=0):
        """
        Constructor.
        :param input: Block data source.
        :param offset: Compressed offset of the first block to read.
        """
        self.total_in = 0
        self.total_out = 0
        self._input = input
        self._block_start = None
        self._next_start = offset
        self._buffer = b''
        self._within = 0
        self._last_empty = False
        self._warned = False

    # --- Block access, overridden by implementations ---
    def _read_raw(self, coffset):
        """
        Read the block starting at coffset.
        :param coffset: Compressed offset of the block.
        :return: Tuple (Block, compressed data) or None if coffset is at the end of the data.
        """
        raise NotImplementedError()

    def _read_block(self, coffset):
        """
        Read and inflate the block starting at coffset.
        :param coffset: Compressed offset of the block.
        :return: Tuple (Block, payload) or None if coffset is at the end of the data.
        """
        raw = self._read_raw(coffset)
        if raw is None:
            return None
        block, cdata = raw
        return block, block.inflate(cdata)

    def _load(self, coffset) -> bool:
        result = self._read_block(coffset)
        if result is None:
            return False
        block, payload = result
        block_len = len(block)
        self.total_in += block_len
        self.total_out += len(payload)
        self._block_start = coffset
        self._next_start = coffset + block_len
        self._buffer = payload
        self._within = 0
        self._last_empty = not payload
        return True

    def _advance(self) -> bool:
        """
        Ensure unread data is available in the current block, loading following blocks as needed.
        :return: False if the end of the data was reached.
        """
        while self._within >= len(self._buffer):
            if not self._load(self._next_start):
                if not self._last_empty and not self._warned:
                    self._warned = True
                    warnings.warn("Missing EOF marker, data is possibly truncated.", TruncatedFileWarning)
                return False
        return True

    # --- File-like interface ---
    def read(self, size=-1) -> bytes:
        """
        Read up to size decompressed bytes, crossing block boundaries as needed.
        :param size: Number of bytes to read, negative to read to the end of the data.
        :return: Bytes object, shorter than size only at the end of the data.
        """
        parts = []
        while size and self._advance():
            within = self._within
            available = len(self._buffer) - within
            count = available if size < 0 else min(available, size)
            parts.append(self._buffer[within:within + count])
            self._within = within + count
            if size > 0:
                size -= count
        return b''.join(parts)

    def readinto(self, b) -> int:
        data = self.read(len(b))
        b[:len(data)] = data
        return len(data)

    def readline(self) -> bytes:
        """
        Read up to and including the next newline.
        :return: Bytes object, without a trailing newline only at the end of the data.
        """
        parts = []
        while self._advance():
            within = self._within
            end = self._buffer.find(b'\n', within)
            if end >= 0:
                parts.append(self._buffer[within:end + 1])
                self._within = end + 1
                break
            parts.append(self._buffer[within:])
            self._within = len(self._buffer)
        return b''.join(parts)

    def tell(self) -> VirtualOffset:
        """
        Virtual offset of the next unread byte.
        An exhausted block reports the start of the following block.
        """
        if self._block_start is None or self._within >= len(self._buffer):
            return VirtualOffset.make(self._next_start, 0)
        return VirtualOffset.make(self._block_start, self._within)

    def seek(self, offset) -> VirtualOffset:
        """
        Move to a virtual offset.
        The current block is reused if the offset falls inside it.
        :param offset: VirtualOffset or packed integer.
        :return: The new position.
        """
        offset = VirtualOffset(offset)
        block_start, within = offset.block_start, offset.within_block
        if block_start != self._block_start:
            if not self._load(block_start):
                if within:
                    raise RangeError("Offset {!r} is past the end of the data.".format(offset))
                self._block_start = None
                self._next_start = block_start
                self._buffer = b''
                self._within = 0
                return offset
        if within > len(self._buffer):
            raise RangeError("Offset {!r} is past the end of a {} byte block.".format(offset, len(self._buffer)))
        self._within = within
        return offset

    # --- Block iteration ---
    def __iter__(self):
        return self

    def __next__(self):
        """
        Skip to the next non-empty block.
        :return: Decompressed payload of the block.
        """
        while True:
            if not self._load(self._next_start):
                if not self._last_empty and not self._warned:
                    self._warned = True
                    warnings.warn("Missing EOF marker, data is possibly truncated.", TruncatedFileWarning)
                raise StopIteration()
            self._within = len(self._buffer)
            if self._buffer:
                return self._buffer

    def blocks(self):
        """
        Generator over the remaining blocks.
        :return: Yields tuples (VirtualOffset of the block start, payload).
        """
        for payload in self:
            yield VirtualOffset.make(self._block_start, 0), payload

    # --- EOF marker ---
    def has_terminator(self) -> bool:
        raise NotImplementedError()

    def verify_terminator(self) -> None:
        """
        Check that the data ends with the EOF marker block.
        Raises TruncatedError if it does not.
        """
        if not self.has_terminator():
            raise TruncatedError("Missing EOF marker, data is truncated.")

    def close(self):
        close = getattr(self._input, 'close', None)
        if close:
            close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


def Reader(input, offset: int = 0) -> _Reader:
    """
    Factory to provide a unified reader interface.
    Resolves if input is randomly accessible and provides the appropriate _Reader implementation.
    :param input: A stream or buffer object.
    :param offset: Compressed offset of the first block. A stream is assumed to be positioned at offset.
    :return: An instance of StreamReader or BufferReader.
    """
    if isinstance(input, io.IOBase) or hasattr(input, 'read'):
        return StreamReader(input, offset)
    else:
        return BufferReader(input, offset)


class StreamReader(_Reader):
    """
    Implements _Reader to handle input data that is not accessible through a buffer interface.
    Seeking requires a seekable stream, sequential reading does not.
    """

    def __init__(self, input, offset=0):
        """
        Constructor.
        :param input: Stream object to read from.
        :param offset: Compressed offset the stream is positioned at.
        """
        super().__init__(input, offset)
        self._position = offset

    def _read_raw(self, coffset):
        if coffset != self._position:
            self._input.seek(coffset)
        # Unknown until the block is parsed
        self._position = None
        result = Block.from_stream(self._input)
        if result is not None:
            self._position = coffset + len(result[0])
        return result

    def has_terminator(self) -> bool:
        stream = self._input
        size = stream.seek(0, io.SEEK_END)
        self._position = size
        if size < SIZEOF_EMPTY_BLOCK:
            return False
        stream.seek(size - SIZEOF_EMPTY_BLOCK)
        tail = stream.read(SIZEOF_EMPTY_BLOCK)
        self._position = size
        return tail == EMPTY_BLOCK


class BufferReader(_Reader):
    """
    Implements _Reader to handle input data that is accessible through a buffer interface.
    """

    def __init__(self, input, offset=0):
        """
        Constructor.
        :param input: Buffer object to read from.
        :param offset: The offset into the input buffer to begin reading from.
        """
        super().__init__(input, offset)
        self._len = len(input)

    def _read_raw(self, coffset):
        if coffset >= self._len:
            return None
        return Block.from_buffer(self._input, coffset)

    def has_terminator(self) -> bool:
        if self._len < SIZEOF_EMPTY_BLOCK:
            return False
        return bytes(self._input[self._len - SIZEOF_EMPTY_BLOCK:self._len]) == EMPTY_BLOCK

    def close(self):
        pass
