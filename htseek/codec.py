"""
Record codecs.

The BGZF and index layers only move byte ranges. A codec is the collaborator that knows where one record ends and the
next begins, and which genomic interval a record covers. The reader and writer accept any object providing:

    read_header(stream) -> (bytes, list)   Optional. Consumes the data preceding the first record and returns it with
                                           the list of Reference instances it declares.
    read_record(stream) -> bytes           One complete record, b'' at the end of the data.
    position(data) -> RecordPosition       Reference id and [start, end) interval of a record.

stream is a file-like object providing read(), readline(), tell() and seek(), normally a htseek.bgzf reader.

Classes:
    BAMCodec: Length prefixed binary alignment records.
    TabularCodec: Newline delimited text records with sequence name, begin and end columns.
"""

import ctypes as C
from collections import namedtuple
from enum import IntFlag

from .bgzf.util import FormatError, TruncatedError
from .util import UnknownReferenceError

SIZEOF_INT32 = C.sizeof(C.c_int32)
SIZEOF_UINT32 = C.sizeof(C.c_uint32)


class RecordPosition(namedtuple('RecordPosition', 'reference_id start end mapped')):
    """
    Location of a record. reference_id is -1 for records without a reference.
    """
    __slots__ = ()

    def __new__(cls, reference_id, start, end, mapped=True):
        return super().__new__(cls, reference_id, start, end, mapped)

    def overlaps(self, reference_id, start, end) -> bool:
        return self.reference_id == reference_id and self.start < end and self.end > start


class Reference(namedtuple('Reference', 'name length index')):
    """
    Represents a reference to which records are aligned to.
    """
    __slots__ = ()

    def pack(self):
        """
        Convert to BAM formatted bytes representation.
        :return: Bytes object instance containing data.
        """
        return ((len(self.name) + 1).to_bytes(SIZEOF_INT32, 'little', signed=True)
                + self.name.encode('ascii') + b'\00'
                + self.length.to_bytes(SIZEOF_INT32, 'little', signed=True))


def _read_exact(stream, size) -> bytes:
    data = stream.read(size) if size else b''
    if len(data) < size:
        raise TruncatedError("Data ends inside a record, expected {} bytes got {}.".format(size, len(data)))
    return data


class RecordFlags(IntFlag):
    """
    Represents flag bit values. Can be OR'd (|) together or AND (&) to determine flag setting.
    """
    MULTISEG = 1 << 0  # template having multiple segments in sequencing
    ALIGNED = 1 << 1  # each segment properly aligned according to the aligner
    UNMAPPED = 1 << 2  # segment unmapped
    MATE_UNMAPPED = 1 << 3  # next segment in the template unmapped
    REVERSE_COMPLIMENTED = 1 << 4  # SEQ being reverse complemented
    MATE_REVERSED = 1 << 5  # SEQ of the next segment in the template being reversed
    READ1 = 1 << 6  # the first segment in the template
    READ2 = 1 << 7  # the last segment in the template
    SECONDARY = 1 << 8  # secondary alignment
    QCFAIL = 1 << 9  # not passing quality controls
    DUPLICATE = 1 << 10  # PCR or optical duplicate
    SUPPLEMENTARY = 1 << 11  # supplementary alignment


class RecordHeader(C.LittleEndianStructure):
    """
    Represents a BAM record header in memory
    """
    _pack_ = 1
    _fields_ = [
        ("block_size", C.c_int32),  # block_size Length of the remainder of the alignment record int32 t
        ("reference_id", C.c_int32),  # refID Reference sequence ID, -1 <= refID < n ref; -1 for a read without a mapping position. int32 t [-1]
        ("position", C.c_int32),  # pos 0-based leftmost coordinate (= POS - 1) int32 t [-1]
        ("name_length", C.c_uint8),  # l_read_name Length of read name below (= length(QNAME) + 1). uint8 t
        ("mapping_quality", C.c_uint8),  # mapq Mapping quality uint8 t
        ("bin", C.c_uint16),  # bin BAI index bin uint16 t
        ("cigar_length", C.c_uint16),  # n_cigar_op Number of operations in CIGAR. uint16 t
        ("flag", C.c_uint16),  # flag Bitwise flags uint16 t
        ("sequence_length", C.c_int32),  # l_seq Length of SEQ int32 t
        ("next_reference_id", C.c_int32),  # next_refID Ref-ID of the next segment (-1 <= mate refID < n ref) int32 t [-1]
        ("next_position", C.c_int32),  # next_pos 0-based leftmost pos of the next segment (= PNEXT - 1) int32 t [-1]
        ("template_length", C.c_int32),  # tlen Template length (= TLEN) int32 t [0]
    ]


SIZEOF_RECORDHEADER = C.sizeof(RecordHeader)

CONSUMES_REFERENCE = (
    True,  # M
    False,  # I
    True,  # D
    True,  # N
    False,  # S
    False,  # H
    False,  # P
    True,  # =
    True,  # X
)
"""tuple: Boolean values ordered by op code indicating if op consumes a reference position."""


def alignment_length(cigar) -> int:
    """
    Count number of reference consuming positions that a packed CIGAR represents.
    :param cigar: Iterable of BAM packed CIGAR operations (op length << 4 | op).
    :return: Total alignment length of CIGAR.
    """
    total = 0
    for packed in cigar:
        op = packed & 0xf
        if op >= len(CONSUMES_REFERENCE):
            raise FormatError("Invalid CIGAR operation code: {}".format(op))
        if CONSUMES_REFERENCE[op]:
            total += packed >> 4
    return total


class BAMCodec:
    """
    Codec for BAM alignment records.
    Each record is prefixed by its int32 length. The end coordinate is derived from the reference consuming CIGAR
    operations; unmapped records and records without such operations cover a single base.
    """
    MAGIC = b'BAM\x01'

    def read_header(self, stream) -> (bytes, list):
        """
        Read in BAM header data.
        :param stream: Stream positioned at the BAM magic.
        :return: Tuple containing (SAM formatted header text, list of Reference objects)
        """
        if stream.read(len(self.MAGIC)) != self.MAGIC:
            raise FormatError("Invalid BAM header found.")
        header_length = int.from_bytes(_read_exact(stream, SIZEOF_INT32), 'little', signed=True)  # l_text
        header = _read_exact(stream, header_length)  # text Plain header text in SAM; not necessarily NUL-terminated
        ref_count = int.from_bytes(_read_exact(stream, SIZEOF_INT32), 'little', signed=True)  # n_ref

        refs = []
        for i in range(ref_count):
            length = int.from_bytes(_read_exact(stream, SIZEOF_INT32), 'little', signed=True)  # l_name (including NUL)
            name = _read_exact(stream, length).rstrip(b'\0')
            seq_length = int.from_bytes(_read_exact(stream, SIZEOF_INT32), 'little', signed=True)  # l_ref
            refs.append(Reference(name.decode('ASCII'), seq_length, i))
        return header, refs

    @staticmethod
    def pack_header(sam_header=b'', references=()) -> bytes:
        """
        Generate BAM header.
        :param sam_header: ASCII encoded SAM header to include.
        :param references: List of Reference objects. Order of list determines record reference ids.
        :return: bytes object containing BAM formatted header.
        """
        bam_header = bytearray(BAMCodec.MAGIC)
        bam_header += len(sam_header).to_bytes(SIZEOF_INT32, 'little', signed=True)
        bam_header += sam_header
        bam_header += len(references).to_bytes(SIZEOF_INT32, 'little', signed=True)
        for ref in references:
            bam_header += ref.pack()
        return bytes(bam_header)

    def read_record(self, stream) -> bytes:
        size = stream.read(SIZEOF_INT32)
        if not size:
            return b''
        if len(size) < SIZEOF_INT32:
            raise TruncatedError("Data ends inside a record length.")
        block_size = int.from_bytes(size, 'little', signed=True)
        if block_size < SIZEOF_RECORDHEADER - SIZEOF_INT32:
            raise FormatError("Invalid record length: {}".format(block_size))
        return size + _read_exact(stream, block_size)

    def position(self, data) -> RecordPosition:
        if len(data) < SIZEOF_RECORDHEADER:
            raise FormatError("Record of {} bytes is shorter than a record header.".format(len(data)))
        header = RecordHeader.from_buffer_copy(data[:SIZEOF_RECORDHEADER])
        mapped = not header.flag & RecordFlags.UNMAPPED
        start = header.position
        span = 0
        if mapped and header.cigar_length:
            offset = SIZEOF_RECORDHEADER + header.name_length
            end = offset + header.cigar_length * SIZEOF_UINT32
            if end > len(data):
                raise FormatError("CIGAR overruns record.")
            span = alignment_length((C.c_uint32 * header.cigar_length).from_buffer_copy(data[offset:end]))
        return RecordPosition(header.reference_id, start, start + (span or 1), mapped)


class TabularCodec:
    """
    Codec for newline delimited, tab separated text records such as BED, GFF or VCF bodies.
    Reference names are mapped to ids in order of first appearance unless a reference list is supplied.
    First appearance order is only meaningful while writing. Once read_header() has been called the list is fixed,
    a reader must be given the names the data was written with (see references of the writing codec).
    """

    def __init__(self, references=(), sequence_column=0, begin_column=1, end_column=2, zero_based=True, meta_char=b'#', delimiter=b'\t'):
        """
        Constructor.
        :param references: Ordered reference names, determines reference ids. Names outside a supplied list raise
            UnknownReferenceError.
        :param sequence_column: Column holding the reference name.
        :param begin_column: Column holding the start coordinate.
        :param end_column: Column holding the end coordinate, None if records cover a single position.
        :param zero_based: True for zero-based half-open coordinates (BED), False for one-based closed (GFF, VCF).
        :param meta_char: Prefix of header lines.
        :param delimiter: Column separator.
        """
        self.references = list(references)
        self._ids = {name: i for i, name in enumerate(self.references)}
        self.fixed = bool(self.references)
        self.sequence_column = sequence_column
        self.begin_column = begin_column
        self.end_column = end_column
        self.zero_based = zero_based
        self.meta_char = meta_char
        self.delimiter = delimiter

    def reference_id(self, name: str) -> int:
        ref_id = self._ids.get(name)
        if ref_id is None:
            if self.fixed:
                raise UnknownReferenceError("Reference {!r} is not in the codec reference list.".format(name))
            ref_id = self._ids[name] = len(self.references)
            self.references.append(name)
        return ref_id

    def read_header(self, stream) -> (bytes, list):
        lines = []
        while True:
            offset = stream.tell()
            line = stream.readline()
            if not line.startswith(self.meta_char) or not line:
                stream.seek(offset)
                break
            lines.append(line)
        # Decoding from arbitrary offsets, ids can no longer follow appearance order
        self.fixed = True
        return b''.join(lines), [Reference(name, 0, i) for i, name in enumerate(self.references)]

    def read_record(self, stream) -> bytes:
        line = stream.readline()
        while line and not line.strip():
            line = stream.readline()
        return line

    def position(self, data) -> RecordPosition:
        fields = bytes(data).rstrip(b'\r\n').split(self.delimiter)
        try:
            name = fields[self.sequence_column].decode()
            start = int(fields[self.begin_column])
            end = int(fields[self.end_column]) if self.end_column is not None else None
        except (IndexError, ValueError, UnicodeDecodeError) as e:
            raise FormatError("Malformed record: {!r}".format(bytes(data[:80]))) from e
        if not self.zero_based:
            start -= 1
        if end is None or end <= start:
            end = start + 1
        return RecordPosition(self.reference_id(name), start, end)
