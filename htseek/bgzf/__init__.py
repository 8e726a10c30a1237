"""
This subpackage contains all the code needed to work with BGZF compressed data.

Classes:
    Block: Represents a BGZF/GZIP block.
    VirtualOffset: Packed (block start, within block) address of a byte in the decompressed stream.
    Reader: Seekable, file-like view of compressed data.
    Writer: Convenience interface to write compressed data.

Functions:
    compress_block: Encode up to 64KiB of data as a single block.
    decompress_block: Decode and verify a single block.
    is_terminator: Test a block against the EOF marker.

Constants:
    EMPTY_BLOCK bytes: This is the byte data representing an empty block. This is used as an EOF marker at the end of BGZF compressed files.
    MAX_BLOCK_SIZE int: This is the maximum BGZF block size imposed by the domain of the two byte block size subfield value.

For more:
    >> help(htseek.bgzf.block) for more information on the Block object.
    >> help(htseek.bgzf.virtual_offset) for more information on virtual offsets.
    >> help(htseek.bgzf.reader) for more information on the Reader object.
    >> help(htseek.bgzf.writer) for more information on the Writer object.
    >> help(htseek.bgzf.zlib) for more information on the zlib wrapper.
"""

from .block import Block, MAX_CDATA_SIZE, compress_block, decompress_block, is_terminator
from .reader import Reader
from .util import BLOCK_DATA_SIZE, EMPTY_BLOCK, MAX_BLOCK_SIZE, MAX_DATA_SIZE, SIZEOF_EMPTY_BLOCK, ChecksumError, FormatError, OversizeError, \
    RangeError, TruncatedError, TruncatedFileWarning, is_bgzf
from .virtual_offset import VirtualOffset
from .writer import Writer
