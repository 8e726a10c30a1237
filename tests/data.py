import struct

from htseek.codec import BAMCodec, Reference

REFERENCES = [Reference('chr1', 1000000, 0), Reference('chr2', 1000000, 1), Reference('chr3', 1000, 2)]
SAM_HEADER = b'@HD\tVN:1.6\tSO:coordinate\n'
BAM_HEADER = BAMCodec.pack_header(SAM_HEADER, REFERENCES)

CIGAR_OPS = 'MIDNSHP=X'


def bam_record(ref_id, pos, cigar='', flag=0, name=b'read', seq_len=0) -> bytes:
    """
    Build a BAM record with the standard library.
    :param cigar: CIGAR string such as '5M2I3D'.
    """
    ops = []
    length = ''
    for c in cigar:
        if c.isdigit():
            length += c
        else:
            ops.append(int(length) << 4 | CIGAR_OPS.index(c))
            length = ''
    name = name + b'\0'
    body = struct.pack('<iiBBHHHiiii', ref_id, pos, len(name), 60, 0, len(ops), flag, seq_len, -1, -1, 0)
    body += name + b''.join(struct.pack('<I', op) for op in ops)
    body += bytes((seq_len + 1) // 2) + b'\xff' * seq_len
    return struct.pack('<i', len(body)) + body
