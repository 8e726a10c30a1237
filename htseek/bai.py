"""
Read and write the BAI index file format.

    magic                 char[4]  BAI\\1
    n_ref                 int32
    per reference:
        n_bin             int32
        per bin:
            bin           uint32
            n_chunk       int32
            chunks        (uint64 start, uint64 end)[n_chunk]
        n_intv            int32
        ioffset           uint64[n_intv]
    n_no_coor             uint64   optional

Bin 37450 is a pseudo-bin with two pseudo-chunks: (first record offset, last record end offset) and
(mapped count, unmapped count).
"""

import ctypes as C

from .bgzf.util import FormatError, TruncatedError
from .binning import METADATA_BIN
from .index import Chunk, Index, Metadata, ReferenceSequence

MAGIC = b'BAI\1'


class RawChunk(C.LittleEndianStructure):
    _pack_ = 1
    _fields_ = [
        ("begin", C.c_uint64),  # (Virtual) file offset of the start of the chunk
        ("end", C.c_uint64),  # (Virtual) file offset of the end of the chunk
    ]


class PseudoBin(C.LittleEndianStructure):
    _pack_ = 1
    _fields_ = [
        ("ref_beg", C.c_uint64),  # (Virtual) file offset of the first record of this reference
        ("ref_end", C.c_uint64),  # (Virtual) file offset of the end of the last record of this reference
        ("mapped", C.c_uint64),  # Number of mapped read-segments for this reference
        ("unmapped", C.c_uint64),  # Number of unmapped read-segments for this reference
    ]


SIZEOF_CHUNK = C.sizeof(RawChunk)
SIZEOF_PSEUDOBIN = C.sizeof(PseudoBin)
SIZEOF_INT32 = C.sizeof(C.c_int32)
SIZEOF_UINT64 = C.sizeof(C.c_uint64)


def _read(stream, size) -> bytes:
    data = stream.read(size) if size else b''
    if len(data) < size:
        raise TruncatedError("Index data ends unexpectedly, expected {} bytes got {}.".format(size, len(data)))
    return data


def _chunk(begin, end, ref) -> Chunk:
    if end < begin:
        raise FormatError("Chunk of reference {} ends at {:#x} before it begins at {:#x}.".format(ref, end, begin))
    return Chunk(begin, end)


def _read_count(stream) -> int:
    count = int.from_bytes(_read(stream, SIZEOF_INT32), byteorder='little', signed=True)  # INT32
    if count < 0:
        raise FormatError("Negative count in index data: {}".format(count))
    return count


def read(stream) -> Index:
    """
    Read in BAI index data.
    The trailing unplaced unmapped count is optional, Index.unplaced_unmapped is None if it is absent.
    :param stream: Readable stream containing BAI formatted data.
    :return: Index instance.
    """
    magic = stream.read(len(MAGIC))
    if magic != MAGIC:
        raise FormatError("Unknown or corrupt input data.")
    n_ref = _read_count(stream)
    references = []
    for ref in range(n_ref):
        # Read in bins
        bins = {}
        metadata = None
        n_bin = _read_count(stream)
        for _ in range(n_bin):
            bin = int.from_bytes(_read(stream, 4), byteorder='little', signed=False)  # UINT32
            n_chunk = _read_count(stream)
            if bin == METADATA_BIN:  # Detect pseudo-chunks
                if n_chunk != 2:
                    raise FormatError("Metadata pseudo-bin of reference {} has {} chunks.".format(ref, n_chunk))
                pseudo = PseudoBin.from_buffer_copy(_read(stream, SIZEOF_PSEUDOBIN))
                span = _chunk(pseudo.ref_beg, pseudo.ref_end, ref)
                metadata = Metadata(span.start, span.end, pseudo.mapped, pseudo.unmapped)
            else:
                raw = (RawChunk * n_chunk).from_buffer_copy(_read(stream, SIZEOF_CHUNK * n_chunk))
                bins[bin] = tuple(sorted(_chunk(chunk.begin, chunk.end, ref) for chunk in raw))

        # Read in intervals
        n_intv = _read_count(stream)
        intervals = (C.c_uint64 * n_intv).from_buffer_copy(_read(stream, SIZEOF_UINT64 * n_intv))
        references.append(ReferenceSequence(bins, intervals, metadata))

    n_no_coor = stream.read(SIZEOF_UINT64)
    if not n_no_coor:
        n_no_coor = None
    elif len(n_no_coor) < SIZEOF_UINT64:
        raise TruncatedError("Index data ends inside the unplaced unmapped count.")
    else:
        n_no_coor = int.from_bytes(n_no_coor, byteorder='little', signed=False)  # UINT64
    return Index(references, n_no_coor)


def write(stream, index: Index) -> None:
    """
    Write out an Index in BAI format.
    :param stream: Writable output stream
    :param index: Index to serialise. The unplaced unmapped count is omitted if it is None.
    :return: None
    """
    stream.write(MAGIC)
    # n_ref
    stream.write(len(index.references).to_bytes(SIZEOF_INT32, 'little', signed=True))
    for reference in index.references:
        # Write bins
        metadata = reference.metadata
        # n_bin
        stream.write((len(reference.bins) + (metadata is not None)).to_bytes(SIZEOF_INT32, 'little', signed=True))
        for bin, chunks in sorted(reference.bins.items()):
            # bin
            stream.write(bin.to_bytes(4, 'little', signed=False))
            # n_chunk
            stream.write(len(chunks).to_bytes(SIZEOF_INT32, 'little', signed=True))
            stream.write(bytes((RawChunk * len(chunks))(*(RawChunk(chunk.start, chunk.end) for chunk in chunks))))
        if metadata is not None:
            stream.write(METADATA_BIN.to_bytes(4, 'little', signed=False))
            stream.write((2).to_bytes(SIZEOF_INT32, 'little', signed=True))
            stream.write(bytes(PseudoBin(metadata.start, metadata.end, metadata.mapped, metadata.unmapped)))

        # Write intervals
        linear = reference.linear_index
        stream.write(len(linear).to_bytes(SIZEOF_INT32, 'little', signed=True))
        stream.write(bytes((C.c_uint64 * len(linear))(*linear)))

    if index.unplaced_unmapped is not None:
        stream.write(index.unplaced_unmapped.to_bytes(SIZEOF_UINT64, 'little', signed=False))
