"""Nix base32 ("nix32") encoding/decoding.

Nix uses a non-standard base32. Two differences from RFC 4648:

1. Alphabet: "0123456789abcdfghijklmnpqrsvwxyz" — 32 chars,
   omitting e, o, t, u.

2. Bit order: the digest is read as one little-endian bit stream and
   5-bit groups are taken from bit 0 upwards, but written from the
   *last* character backwards. The same bytes produce a completely
   different string than RFC 4648, even ignoring the alphabet.

   See: nix/src/libutil/hash.cc — printHash32()

Output length: (n*8 - 1) // 5 + 1 characters for n input bytes.
  16 bytes (MD5)     → 26 chars
  20 bytes (SHA-1)   → 32 chars
  32 bytes (SHA-256) → 52 chars
  64 bytes (SHA-512) → 103 chars
"""

CHARS = "0123456789abcdfghijklmnpqrsvwxyz"
_DECODE_MAP = {c: i for i, c in enumerate(CHARS)}


def encoded_len(n: int) -> int:
    """Number of nix32 characters needed for n bytes."""
    if n == 0:
        return 0
    return (n * 8 - 1) // 5 + 1


def encode(data: bytes) -> str:
    """Encode bytes to nix32.

    Iterates from the highest 5-bit position down to 0. At each position i,
    extracts 5 bits starting at bit offset i*5, which may span two adjacent
    input bytes.
    """
    n = len(data)
    result = []
    for i in range(encoded_len(n) - 1, -1, -1):
        b = i * 5
        j = b // 8    # which input byte
        k = b % 8     # bit offset within that byte
        c = data[j] >> k
        if j + 1 < n:
            c |= data[j + 1] << (8 - k)  # grab remaining bits from next byte
        result.append(CHARS[c & 0x1F])
    return "".join(result)


def decode(s: str) -> bytes:
    """Decode a nix32 string to bytes. Reverses the encode process.

    Raises ValueError on characters outside the alphabet, and when the
    leading character carries bits that do not fit in the output.
    """
    out_len = len(s) * 5 // 8
    result = bytearray(out_len)
    for i, ch in enumerate(reversed(s)):
        digit = _DECODE_MAP.get(ch)
        if digit is None:
            raise ValueError(f"invalid nix base32 character: {ch!r}")
        b = i * 5
        j = b // 8
        k = b % 8
        if j >= out_len:
            if digit:
                raise ValueError(f"invalid nix base32 string: {s!r}")
            continue
        result[j] |= (digit << k) & 0xFF
        carry = digit >> (8 - k)
        if carry:
            if j + 1 >= out_len:
                raise ValueError(f"invalid nix base32 string: {s!r}")
            result[j + 1] |= carry
    return bytes(result)
