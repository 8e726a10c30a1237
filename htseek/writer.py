"""
Provides convenience interface for writing records to BGZF data while building its index.
"""

import logging

from . import bai, bgzf
from .bgzf.util import BLOCK_DATA_SIZE
from .codec import BAMCodec
from .index import Chunk, Index, Indexer
from .util import DEFAULT_COMPRESSION_LEVEL

log = logging.getLogger(__name__)


class Writer:
    """
    Writes records to a BGZF stream or buffer.
    Records must be appended in coordinate order, see htseek.index.Indexer.
    """

    def __init__(self, output, codec=None, header=b'', reference_count=0, offset=0, level=DEFAULT_COMPRESSION_LEVEL, index=True):
        """
        Constructor.
        :param output: Stream or buffer to write BGZF data to.
        :param codec: Record codec used to locate appended records, defaults to BAMCodec.
        :param header: Data written before the first record, ending its own block.
        :param reference_count: Number of reference sequences, references without records still receive index entries.
        :param offset: Compressed offset to begin writing at.
        :param level: zlib compression level.
        :param index: False to skip building an index.
        """
        self.codec = BAMCodec() if codec is None else codec
        self.stream = bgzf.Writer(output, offset, level)
        self.owns_output = False
        self._output = output
        self.index = None
        self._indexer = Indexer(reference_count) if index else None
        if header:
            self.stream.write(header)
            self.stream.finish_block()

    def tell(self) -> bgzf.VirtualOffset:
        return self.stream.tell()

    def append(self, data, position=None) -> Chunk:
        """
        Append a record.
        A record that fits in a block is not split across blocks.
        :param data: Complete record bytes as the codec would read them.
        :param position: RecordPosition of the record, computed with the codec if None.
        :return: Chunk of the virtual offsets the record occupies.
        """
        stream = self.stream
        size = len(data)
        if size < BLOCK_DATA_SIZE and stream.block_remaining() < size:
            stream.finish_block()
        start = stream.tell()
        stream.write(data)
        chunk = Chunk(start, stream.tell())
        if self._indexer is not None:
            if position is None:
                position = self.codec.position(data)
            self._indexer.add_record(position.reference_id, position.start, position.end, chunk, position.mapped)
        return chunk

    __call__ = append

    def finalize(self) -> Index:
        """
        Write the EOF marker and complete the index.
        :return: The Index, None if indexing was disabled.
        """
        self.stream.finalize()
        if self._indexer is not None:
            self.index = self._indexer.finish()
            self._indexer = None
            log.debug("Finalized index over %d references", len(self.index))
        return self.index

    def write_index(self, output) -> Index:
        """
        Finalize and write the index in BAI format.
        :param output: Writable stream.
        :return: The Index.
        """
        index = self.finalize()
        if index is None:
            raise ValueError("Index building was disabled for this writer.")
        bai.write(output, index)
        return index

    def close(self):
        """
        Finalize, closing the output if it was opened by htseek.open_writer().
        """
        self.finalize()
        if self.owns_output:
            self._output.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, *exc):
        if exc_type is None:
            self.close()
        elif self.owns_output:
            self._output.close()
