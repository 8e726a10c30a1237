"""
Random access to block compressed (BGZF) genomic record files through a BAI style binning index.

Classes:
    Reader: Reads records and answers region queries.
    Writer: Writes records and builds their index.
    Index: Binning index over a coordinate sorted BGZF file.
    Query: Resumable iterator over the records of a region.
    BAMCodec, TabularCodec: Record codecs.
    VirtualOffset: Address of a byte in the decompressed stream.

Functions:
    open_reader: Open a Reader over a path, stream or buffer.
    open_writer: Open a Writer over a path, stream or buffer.
    load_index: Read a BAI index from a path, stream or buffer.

Example 1:
    import htseek
    with htseek.open_reader("data.bam", index="data.bam.bai") as reader:
        for record in reader.query("chr1", 10000, 20000):
            ***Your logic here***

Example 2:
    import htseek
    from htseek.codec import BAMCodec, Reference

    refs = [Reference('chr1', 248956422, 0)]
    with open("out.bam", 'wb') as out, htseek.open_writer(out, header=BAMCodec.pack_header(b'', refs), reference_count=len(refs)) as writer:
        for record in records:
            start, end = writer.append(record)
    with open("out.bam.bai", 'wb') as out:
        writer.write_index(out)

For more:
    >> help(htseek.bgzf) for more information on working with BGZF compressed data.
    >> help(htseek.index) for more information on the binning index.
    >> help(htseek.query) for more information on region queries.
    >> help(htseek.codec) for more information on record codecs.
    >> help(htseek.mt) for more information on multithreaded block compression.
"""

import io
import os

from . import bai
from .__version import __version__
from .bgzf import ChecksumError, FormatError, RangeError, TruncatedError, TruncatedFileWarning, VirtualOffset
from .codec import BAMCodec, RecordPosition, Reference, TabularCodec
from .index import Chunk, Index, Indexer
from .query import Cursor, Query, QueryState
from .reader import Reader
from .util import HTSeekError, IndexMissingError, UnknownReferenceError, UnsortedInputError
from .writer import Writer


def _is_path(obj) -> bool:
    return isinstance(obj, (str, os.PathLike))


def load_index(input) -> Index:
    """
    Read a BAI formatted index.
    :param input: Path, readable stream or bytes-like object.
    :return: Index instance.
    """
    if _is_path(input):
        with open(input, 'rb') as stream:
            return bai.read(stream)
    if not hasattr(input, 'read'):
        input = io.BytesIO(input)
    return bai.read(input)


def open_reader(input, codec=None, index=None, threads=None) -> Reader:
    """
    Open a record reader.
    :param input: Path, readable stream or bytes-like object containing BGZF data.
    :param codec: Record codec, defaults to BAMCodec.
    :param index: Index instance, or a path, stream or buffer to load one from. If input is a path and index is None,
    an index at input + '.bai' is loaded when present.
    :param threads: Inflate blocks on a pool of this many workers. Synchronous if None or 0.
    :return: Reader instance.
    """
    if index is None and _is_path(input) and os.path.exists(os.fspath(input) + '.bai'):
        index = os.fspath(input) + '.bai'
    if index is not None and not isinstance(index, Index):
        index = load_index(index)
    if _is_path(input):
        input = open(input, 'rb')
    if threads:
        from . import mt
        return mt.Reader(input, codec, index, threadpool=threads, max_queued=2 * threads)
    return Reader(input, codec, index)


def open_writer(output, codec=None, header=b'', reference_count=0, level=None, index=True) -> Writer:
    """
    Open a record writer.
    :param output: Path, writable stream or bytearray.
    :param codec: Record codec used to locate records, defaults to BAMCodec.
    :param header: Data written before the first record.
    :param reference_count: Number of reference sequences.
    :param level: zlib compression level, defaults to HTSEEK_COMPRESSION_LEVEL.
    :param index: False to skip building an index.
    :return: Writer instance. Writer.append() returns the virtual offset range of each record.
    """
    owned = _is_path(output)
    if owned:
        output = open(output, 'wb')
    kwargs = {} if level is None else {'level': level}
    writer = Writer(output, codec, header, reference_count, index=index, **kwargs)
    writer.owns_output = owned
    return writer
