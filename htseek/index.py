"""
In-memory binning index.

An Index holds one ReferenceSequence per reference sequence id. Each ReferenceSequence maps bin numbers to sorted,
non-overlapping chunks of virtual offsets and carries a linear index of minimum offsets per 16kbp window.
Index instances are not modified after construction and may be shared between queries and threads.

Indexer builds an Index from records appended in coordinate sorted order.
"""

import logging
from collections import namedtuple

from .bgzf.util import RangeError
from .bgzf.virtual_offset import VirtualOffset
from .binning import bin_for_interval, candidate_bins, linear_window
from .util import UnknownReferenceError, UnsortedInputError

log = logging.getLogger(__name__)


class Chunk(namedtuple('Chunk', 'start end')):
    """
    Half-open range [start, end) of virtual offsets.
    """
    __slots__ = ()

    def __new__(cls, start, end):
        start, end = VirtualOffset(start), VirtualOffset(end)
        if end < start:
            raise RangeError("Chunk end {!r} precedes its start {!r}.".format(end, start))
        return super().__new__(cls, start, end)


Metadata = namedtuple('Metadata', 'start end mapped unmapped')
"""Offsets spanning all records of a reference sequence, and its mapped and placed-unmapped record counts."""


def merge_chunks(chunks) -> list:
    """
    Merge overlapping or adjacent chunks.
    :param chunks: Iterable of Chunk.
    :return: List of disjoint chunks sorted by start offset.
    """
    merged = []
    for chunk in sorted(chunks):
        if merged and chunk.start <= merged[-1].end:
            if chunk.end > merged[-1].end:
                merged[-1] = Chunk(merged[-1].start, chunk.end)
        else:
            merged.append(chunk)
    return merged


class ReferenceSequence:
    """
    Index data of a single reference sequence.
    """
    __slots__ = 'bins', 'linear_index', 'metadata'

    def __init__(self, bins: dict = None, linear_index=(), metadata: Metadata = None):
        """
        Constructor.
        :param bins: Dict of bin number to tuple of Chunk.
        :param linear_index: Sequence of minimum VirtualOffset per 16kbp window.
        :param metadata: Metadata instance or None if not recorded.
        """
        self.bins = bins or {}
        self.linear_index = tuple(VirtualOffset(offset) for offset in linear_index)
        self.metadata = metadata

    def min_offset(self, start: int) -> VirtualOffset:
        """
        Smallest offset a record overlapping a query beginning at start can have.
        """
        if not self.linear_index:
            return VirtualOffset(0)
        return self.linear_index[min(linear_window(start), len(self.linear_index) - 1)]

    def chunks_for_region(self, start: int, end: int) -> list:
        """
        Chunks that must be read to find every record overlapping [start, end).
        :return: List of disjoint chunks sorted by start offset.
        """
        if end <= start or not self.bins:
            return []
        chunks = []
        for bin_id in candidate_bins(start, end):
            chunks.extend(self.bins.get(bin_id, ()))
        min_offset = self.min_offset(start)
        return merge_chunks(chunk for chunk in chunks if chunk.end > min_offset)

    def span(self):
        """
        Chunk covering every record of this reference or None if it has none.
        """
        if self.metadata is not None:
            return Chunk(self.metadata.start, self.metadata.end)
        chunks = [chunk for chunks in self.bins.values() for chunk in chunks]
        if not chunks:
            return None
        return Chunk(min(chunk.start for chunk in chunks), max(chunk.end for chunk in chunks))

    def __eq__(self, other):
        if not isinstance(other, ReferenceSequence):
            return NotImplemented
        return self.bins == other.bins and self.linear_index == other.linear_index and self.metadata == other.metadata

    def __repr__(self):
        return "ReferenceSequence(bins={}, linear_index={})".format(len(self.bins), len(self.linear_index))


class Index:
    """
    Binning index over a coordinate sorted BGZF stream.
    """
    __slots__ = 'references', 'unplaced_unmapped', '_unplaced_start'

    def __init__(self, references=(), unplaced_unmapped: int = None, unplaced_start=None):
        """
        Constructor.
        :param references: ReferenceSequence instances indexed by reference id.
        :param unplaced_unmapped: Number of records without a reference, None if not recorded.
        :param unplaced_start: Offset of the first record without a reference, if known.
        """
        self.references = tuple(references)
        self.unplaced_unmapped = unplaced_unmapped
        self._unplaced_start = None if unplaced_start is None else VirtualOffset(unplaced_start)

    def __len__(self):
        return len(self.references)

    def __eq__(self, other):
        if not isinstance(other, Index):
            return NotImplemented
        return self.references == other.references and self.unplaced_unmapped == other.unplaced_unmapped

    def reference_sequence(self, ref_id: int) -> ReferenceSequence:
        if ref_id is None or not 0 <= ref_id < len(self.references):
            raise UnknownReferenceError("No index entry for reference id {}.".format(ref_id))
        return self.references[ref_id]

    def chunks_for_region(self, ref_id: int, start: int, end: int) -> list:
        """
        Chunks that must be read to find every record of ref_id overlapping [start, end).
        A reference without records produces an empty list, an unknown reference raises UnknownReferenceError.
        """
        chunks = self.reference_sequence(ref_id).chunks_for_region(start, end)
        log.debug("Reference %d [%d, %d) resolved to %d chunks", ref_id, start, end, len(chunks))
        return chunks

    def last_offset(self) -> VirtualOffset:
        """
        Offset following the last record placed on a reference. Unplaced unmapped records start here.
        """
        if self._unplaced_start is not None:
            return self._unplaced_start
        spans = [reference.span() for reference in self.references]
        return max((span.end for span in spans if span is not None), default=VirtualOffset(0))

    def query(self, ref_id: int, start: int, end: int, source):
        """
        Records of ref_id overlapping [start, end).
        :param source: htseek.reader.Reader supplying the data stream and record codec.
        :return: htseek.query.Query iterator.
        """
        from .query import Query
        return Query(source, self, ref_id, start, end)


class Indexer:
    """
    Builds an Index from records appended in coordinate sorted order.
    """

    def __init__(self, reference_count: int = 0):
        """
        Constructor.
        :param reference_count: Number of reference sequences. References without records still receive an entry.
        """
        self.reference_count = reference_count
        self._references = []
        self._ref_id = None
        self._last_start = 0
        self._last_offset = VirtualOffset(0)
        self._unplaced = 0
        self._unplaced_start = None
        self._reset()

    def _reset(self):
        self._bins = {}
        self._linear = []
        self._meta_start = None
        self._meta_end = None
        self._mapped = 0
        self._unmapped = 0

    def _finish_reference(self):
        if self._ref_id is None:
            return
        linear = self._linear
        previous = next((offset for offset in linear if offset is not None), VirtualOffset(0))
        for i, offset in enumerate(linear):
            if offset is None:
                linear[i] = previous
            else:
                previous = offset
        metadata = None
        if self._meta_start is not None:
            metadata = Metadata(self._meta_start, self._meta_end, self._mapped, self._unmapped)
        self._references.append(ReferenceSequence({bin_id: tuple(chunks) for bin_id, chunks in self._bins.items()}, linear, metadata))
        log.debug("Indexed reference %d: %d bins, %d windows", self._ref_id, len(self._bins), len(linear))
        self._ref_id = None
        self._reset()

    def add_record(self, ref_id, start: int, end: int, chunk, mapped: bool = True):
        """
        Register a record.
        :param ref_id: Reference sequence id, None or a negative value for unplaced records.
        :param start: Zero-based start coordinate.
        :param end: Exclusive end coordinate.
        :param chunk: (start, end) virtual offsets the record occupies.
        :param mapped: False for placed but unmapped records.
        """
        chunk = Chunk(*chunk)
        if chunk.start < self._last_offset:
            raise UnsortedInputError("Record offset {!r} precedes the previous record.".format(chunk.start))

        if ref_id is None or ref_id < 0:
            if not self._unplaced:
                self._finish_reference()
                self._unplaced_start = chunk.start
            self._unplaced += 1
            self._last_offset = chunk.end
            return
        if self._unplaced:
            raise UnsortedInputError("Record on reference {} follows unplaced records.".format(ref_id))

        if ref_id != self._ref_id:
            if ref_id < len(self._references) or (self._ref_id is not None and ref_id < self._ref_id):
                raise UnsortedInputError("Reference {} appears after reference {}.".format(ref_id, self._ref_id if self._ref_id is not None else len(self._references) - 1))
            self._finish_reference()
            while len(self._references) < ref_id:
                self._references.append(ReferenceSequence())
            self._ref_id = ref_id
        elif start < self._last_start:
            raise UnsortedInputError("Record at {} follows record at {} on reference {}.".format(start, self._last_start, ref_id))

        bin_id = bin_for_interval(start, end)
        if end <= start:
            end = start + 1
        self._last_start = start
        self._last_offset = chunk.end

        chunks = self._bins.setdefault(bin_id, [])
        if chunks and chunk.start <= chunks[-1].end:
            chunks[-1] = Chunk(chunks[-1].start, max(chunks[-1].end, chunk.end))
        else:
            chunks.append(chunk)

        linear = self._linear
        first, last = linear_window(start), linear_window(end - 1)
        if last >= len(linear):
            linear.extend([None] * (last + 1 - len(linear)))
        for window in range(first, last + 1):
            if linear[window] is None or chunk.start < linear[window]:
                linear[window] = chunk.start

        if self._meta_start is None:
            self._meta_start = chunk.start
        self._meta_end = chunk.end
        if mapped:
            self._mapped += 1
        else:
            self._unmapped += 1

    def finish(self) -> Index:
        """
        Close the current reference and produce the Index.
        :return: Index instance.
        """
        self._finish_reference()
        references = list(self._references)
        while len(references) < self.reference_count:
            references.append(ReferenceSequence())
        return Index(references, self._unplaced, self._unplaced_start)
