from ..util import HTSeekError

MAGIC = b'\x1F\x8B'
"""bytes: Magic bytes identifying BGZF block"""

MAX_BLOCK_SIZE = 2 ** 16
"""int: This is the maximum BGZF block size imposed by the domain of the two byte block size subfield value."""

MAX_DATA_SIZE = 2 ** 16
"""int: Maximum number of uncompressed bytes a single block may carry."""

BLOCK_DATA_SIZE = 0xff00
"""int: Number of uncompressed bytes the writer packs into a block. Leaves room for stored (incompressible) data."""

EMPTY_BLOCK = b'\x1f\x8b\x08\x04\x00\x00\x00\x00\x00\xff\x06\x00\x42\x43\x02\x00\x1b\x00\x03\x00\x00\x00\x00\x00\x00\x00\x00\x00'
"""bytes: This is the byte data representing an empty block. This is used as an EOF marker at the end of BGZF compressed files."""

SIZEOF_EMPTY_BLOCK = len(EMPTY_BLOCK)
"""int: Number of bytes that the empty block occupies."""


def is_bgzf(buffer, offset=0):
    """
    Helper to determine if passed buffer contains a BGZF block.
    :param buffer: Buffer containing unknown data.
    :param offset: Offset into buffer to being reading.
    :return: True if offset points to beginning of a BGZF block, False otherwise.
    """
    return bytes(buffer[offset:offset + 2]) == MAGIC


class FormatError(HTSeekError, ValueError):
    """
    Exception to indicate invalid or unexpected data was read while trying to parse BGZF data.
    """
    pass


class ChecksumError(HTSeekError, ValueError):
    """
    Exception to indicate that a block payload failed to inflate or does not match its CRC32 trailer.
    """
    pass


class TruncatedError(HTSeekError, EOFError):
    """
    Exception to indicate the data ended inside a block, a record, or before the EOF marker.
    """
    pass


class OversizeError(HTSeekError, ValueError):
    """
    Exception to indicate a payload can not be encoded into a single block.
    """
    pass


class RangeError(HTSeekError, ValueError):
    """
    Exception to indicate a virtual offset or bin coordinate does not fit its field width.
    """
    pass


class TruncatedFileWarning(UserWarning):
    """
    Warning to indicate the empty BGZF block marking EOF is missing.
    """
    pass
