"""
Provides convenience interface for reading records from indexed BGZF data.
"""

import logging

from . import bgzf
from .codec import BAMCodec
from .query import Query, UnmappedQuery, scan
from .util import IndexMissingError, UnknownReferenceError

log = logging.getLogger(__name__)


class Reader:
    """
    Reads records from a BGZF stream or buffer.
    The header is consumed on construction, records are read with the codec and located with the index.
    A Reader owns a single stream position: iterate one query or traversal at a time, or open another Reader on
    an independent handle. The index may be shared between readers.
    """

    def __init__(self, input, codec=None, index=None, offset=0):
        """
        Constructor.
        :param input: Stream or buffer containing BGZF data.
        :param codec: Record codec, defaults to BAMCodec.
        :param index: Index over the data, required for region queries.
        :param offset: Compressed offset of the first block.
        """
        self.codec = BAMCodec() if codec is None else codec
        self.index = index
        self.stream = self._open_stream(input, offset)
        read_header = getattr(self.codec, 'read_header', None)
        if read_header is None:
            self.header, self.references = b'', []
        else:
            self.header, self.references = read_header(self.stream)
        self.first_record = self.stream.tell()
        self._names = {reference.name: reference.index for reference in self.references}
        log.debug("Opened %s with %d references, first record at %r", type(self.codec).__name__, len(self.references), self.first_record)

    def _open_stream(self, input, offset):
        return bgzf.Reader(input, offset)

    def reference_id(self, reference) -> int:
        """
        Resolve a reference name or id.
        :param reference: Reference name or integer id.
        :return: Reference id.
        """
        if isinstance(reference, int):
            return reference
        ref_id = self._names.get(reference)
        if ref_id is None:
            raise UnknownReferenceError("Unknown reference: {}".format(reference))
        return ref_id

    def _require_index(self):
        if self.index is None:
            raise IndexMissingError("Region queries require an index, use scan() to read without one.")
        return self.index

    def records(self):
        """
        Generator over every record from the first.
        :return: Yields record bytes as returned by the codec.
        """
        stream = self.stream
        stream.seek(self.first_record)
        read_record = self.codec.read_record
        while True:
            data = read_record(stream)
            if not data:
                return
            yield data

    def __iter__(self):
        return self.records()

    def query(self, reference, start: int, end: int) -> Query:
        """
        Records overlapping [start, end) on a reference, in file order.
        :param reference: Reference name or id.
        :param start: Zero-based region start.
        :param end: Exclusive region end.
        :return: Query iterator.
        """
        return self._require_index().query(self.reference_id(reference), start, end, self)

    def query_unmapped(self, reference=None) -> UnmappedQuery:
        """
        Unmapped records, without coordinate filtering.
        :param reference: Reference name or id to list its placed unmapped records. None for records without a reference.
        :return: Query iterator.
        """
        ref_id = None if reference is None else self.reference_id(reference)
        return UnmappedQuery(self, self._require_index(), ref_id)

    def scan(self, reference, start: int, end: int):
        """
        Records overlapping [start, end) found by reading every record. Does not require an index.
        """
        return scan(self, self.reference_id(reference), start, end)

    def has_terminator(self) -> bool:
        return self.stream.has_terminator()

    def verify_terminator(self) -> None:
        self.stream.verify_terminator()

    def close(self):
        self.stream.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
