"""
Region queries over an indexed BGZF stream.

A Query walks the chunks an Index resolves for a region, seeking to each chunk, reading records with the source's codec
until the chunk end and emitting those overlapping the region. Its position is an explicit Cursor value which can be
captured at any point and handed to resume() to continue the traversal later or on another source.

    Idle -> BinsResolved -> Seeking -> Decoding -> Emitting -> (Seeking | Decoding | Done)

A source is any object providing:
    stream: htseek.bgzf reader over the data.
    codec: Record codec, see htseek.codec.
    first_record: VirtualOffset of the first record following the header.
"""

import copy
import logging
from collections import namedtuple
from enum import IntEnum

from .bgzf.util import TruncatedError
from .bgzf.virtual_offset import MAX_BLOCK_START, MAX_WITHIN_BLOCK, VirtualOffset
from .binning import MAX_POSITION
from .index import Chunk

log = logging.getLogger(__name__)

END_OF_DATA = VirtualOffset.make(MAX_BLOCK_START, MAX_WITHIN_BLOCK)
"""VirtualOffset: Chunk end standing in for the end of the data."""


class QueryState(IntEnum):
    IDLE = 0  # Chunks not yet resolved
    BINS_RESOLVED = 1  # Chunks resolved, nothing read
    SEEKING = 2  # Moving the stream to the cursor offset
    DECODING = 3  # Reading the next record of the active chunk
    EMITTING = 4  # A record was handed to the caller
    DONE = 5


Cursor = namedtuple('Cursor', 'chunk_index offset')
"""Position of a query: index of the active chunk and VirtualOffset of the next record to read, None for the chunk start."""


class Query:
    """
    Lazy iterator over the records of a reference overlapping [start, end).
    Records are yielded as the bytes returned by the codec, in ascending virtual offset order.
    Errors raised by the stream or codec propagate to the caller, records already yielded remain valid.
    """

    def __init__(self, source, index, ref_id: int, start: int, end: int, chunks=None, cursor: Cursor = None):
        """
        Constructor.
        :param source: Object providing stream and codec attributes.
        :param index: Index the chunks are resolved from.
        :param ref_id: Reference sequence id.
        :param start: Zero-based region start.
        :param end: Exclusive region end.
        :param chunks: Pre-resolved chunks, resolved from the index on first use if None.
        :param cursor: Position to continue from.
        """
        self.source = source
        self.index = index
        self.ref_id = ref_id
        self.start = start
        self.end = end
        self._chunks = chunks
        self._restart(cursor)

    def _restart(self, cursor):
        self.state = QueryState.IDLE if self._chunks is None else QueryState.BINS_RESOLVED
        if cursor is None:
            cursor = Cursor(0, None)
        self._chunk_index = cursor.chunk_index
        self._offset = None if cursor.offset is None else VirtualOffset(cursor.offset)

    # --- Overridden by specialised traversals ---
    def _resolve_chunks(self) -> list:
        return self.index.chunks_for_region(self.ref_id, self.start, self.end)

    def _accept(self, position):
        """
        Classify a record.
        :param position: RecordPosition of the record.
        :return: True to emit, False to skip, None to end the traversal.
        """
        if position.reference_id != self.ref_id or position.start >= self.end:
            return None
        return position.mapped and position.end > self.start

    def _end_of_data(self, chunk):
        raise TruncatedError("Data ends inside chunk {!r} of reference {}.".format(chunk, self.ref_id))

    # --- Traversal ---
    @property
    def chunks(self) -> list:
        if self._chunks is None:
            self._chunks = self._resolve_chunks()
            self.state = QueryState.BINS_RESOLVED
        return self._chunks

    @property
    def cursor(self) -> Cursor:
        """
        Capture the current position. The value stays valid after the query advances.
        """
        return Cursor(self._chunk_index, self._offset)

    def resume(self, cursor: Cursor = None) -> 'Query':
        """
        Independent traversal of the same region continuing from cursor.
        :param cursor: Cursor captured from this or an equivalent query. Defaults to the current position.
        :return: New Query instance.
        """
        query = copy.copy(self)
        query._restart(self.cursor if cursor is None else cursor)
        return query

    def _finish(self):
        self.state = QueryState.DONE
        log.debug("Query of reference %s [%s, %s) done at %r", self.ref_id, self.start, self.end, self.cursor)
        raise StopIteration()

    def __iter__(self):
        return self

    def __next__(self) -> bytes:
        if self.state == QueryState.DONE:
            raise StopIteration()
        chunks = self.chunks
        stream = self.source.stream
        codec = self.source.codec
        while True:
            if self._chunk_index >= len(chunks):
                self._finish()
            chunk = chunks[self._chunk_index]
            if self._offset is None or self._offset < chunk.start:
                self._offset = chunk.start
            if self._offset >= chunk.end:
                self._chunk_index += 1
                self._offset = None
                continue

            if stream.tell() != self._offset:
                self.state = QueryState.SEEKING
                stream.seek(self._offset)

            self.state = QueryState.DECODING
            data = codec.read_record(stream)
            if not data:
                self._end_of_data(chunk)
                self._finish()
            self._offset = stream.tell()

            accept = self._accept(codec.position(data))
            if accept is None:
                self._finish()
            if accept:
                self.state = QueryState.EMITTING
                return data


class UnmappedQuery(Query):
    """
    Unmapped records without coordinate filtering.
    Given a reference id, yields the placed unmapped records within the span recorded for that reference.
    Without one, yields the records lacking a reference that follow every placed record.
    """

    def __init__(self, source, index, ref_id: int = None, chunks=None, cursor: Cursor = None):
        super().__init__(source, index, ref_id, 0, MAX_POSITION, chunks, cursor)

    def _resolve_chunks(self) -> list:
        if self.ref_id is None:
            start = max(self.index.last_offset(), getattr(self.source, 'first_record', VirtualOffset(0)))
            return [Chunk(start, END_OF_DATA)]
        span = self.index.reference_sequence(self.ref_id).span()
        return [] if span is None else [span]

    def _accept(self, position):
        if self.ref_id is None:
            return position.reference_id < 0
        if position.reference_id != self.ref_id:
            return None
        return not position.mapped

    def _end_of_data(self, chunk):
        if chunk.end != END_OF_DATA:
            super()._end_of_data(chunk)


def scan(source, ref_id: int, start: int, end: int):
    """
    Linear scan of every record, for use without an index.
    Input order is not assumed, every record is read.
    :param source: Object providing stream, codec and first_record attributes.
    :return: Generator yielding overlapping mapped records of ref_id.
    """
    stream = source.stream
    codec = source.codec
    stream.seek(source.first_record)
    while True:
        data = codec.read_record(stream)
        if not data:
            return
        position = codec.position(data)
        if position.mapped and position.overlaps(ref_id, start, end):
            yield data
