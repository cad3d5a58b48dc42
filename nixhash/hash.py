"""Hash values as Nix understands them.

A Nix hash is an algorithm tag plus a digest. It has three textual bodies,
told apart purely by length:

    base16  lowercase hex                     2*n chars
    nix32   Nix's own base32 (see base32.py)  (8*n - 1)//5 + 1 chars
    base64  RFC 4648, padded                  4*ceil(n/3) chars

and two framings:

    "sha256:<body>"        the classic Nix form, any of the three bodies
    "sha256-<base64>"      Subresource Integrity (SRI)

For SHA-256 ("abc"):
    base16  ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad
    nix32   1b8m03r63zqhnjf7l5wnldhh7c134ap5vpj0850ymkq1iyzicy5s
    sri     sha256-ungWv48Bz+pBQUDeXa4iI7ADYaOWF3qctBD/YfIAFa0=

See: nix/src/libutil/hash.cc
"""

from __future__ import annotations

import base64
import functools
import hashlib
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import structlog

from nixhash import base32

logger = structlog.get_logger()

_BASE16_CHARS = frozenset("0123456789abcdef")


class BadHash(ValueError):
    """A hash string or digest that does not describe a valid hash."""


class HashAlgorithm(Enum):
    """The four digest algorithms Nix supports, in Nix's declaration order."""

    MD5 = "md5"
    SHA1 = "sha1"
    SHA256 = "sha256"
    SHA512 = "sha512"

    @property
    def size(self) -> int:
        """Digest size in bytes."""
        return _DIGEST_SIZES[self]

    def new(self):
        """A fresh hashlib context for this algorithm."""
        return hashlib.new(self.value)

    def __str__(self) -> str:
        return self.value


_DIGEST_SIZES = {
    HashAlgorithm.MD5: 16,
    HashAlgorithm.SHA1: 20,
    HashAlgorithm.SHA256: 32,
    HashAlgorithm.SHA512: 64,
}
_ALGO_ORDER = {algo: i for i, algo in enumerate(HashAlgorithm)}


class HashFormat(Enum):
    BASE64 = "base64"
    BASE32 = "nix32"
    BASE16 = "base16"
    SRI = "sri"


@functools.total_ordering
@dataclass(frozen=True)
class Hash:
    """An algorithm plus a digest of exactly that algorithm's size.

    ``Hash(algo)`` with no digest is the zero hash — a real value, used as
    a placeholder for hashes that are not known yet.
    """

    algo: HashAlgorithm
    digest: bytes | None = None

    def __post_init__(self):
        digest = bytes(self.algo.size) if self.digest is None else bytes(self.digest)
        if len(digest) != self.algo.size:
            raise BadHash(
                f"{self.algo.value} digest must be {self.algo.size} bytes, got {len(digest)}"
            )
        object.__setattr__(self, "digest", digest)

    def __lt__(self, other: Hash) -> bool:
        if not isinstance(other, Hash):
            return NotImplemented
        return (_ALGO_ORDER[self.algo], self.digest) < (_ALGO_ORDER[other.algo], other.digest)

    def __str__(self) -> str:
        return self.to_string(HashFormat.SRI, True)

    def base16_len(self) -> int:
        return self.algo.size * 2

    def base32_len(self) -> int:
        return base32.encoded_len(self.algo.size)

    def base64_len(self) -> int:
        return (self.algo.size + 2) // 3 * 4

    def to_string(self, fmt: HashFormat, include_type: bool) -> str:
        """Render the digest in ``fmt``, optionally prefixed with "<algo>:".

        SRI always carries its own "<algo>-" prefix.
        """
        if fmt == HashFormat.SRI:
            return f"{self.algo.value}-{base64.b64encode(self.digest).decode()}"
        if fmt == HashFormat.BASE16:
            body = self.digest.hex()
        elif fmt == HashFormat.BASE32:
            body = base32.encode(self.digest)
        else:
            body = base64.b64encode(self.digest).decode()
        return f"{self.algo.value}:{body}" if include_type else body

    def git_rev(self) -> str:
        return self.to_string(HashFormat.BASE16, False)

    def git_short_rev(self) -> str:
        return self.git_rev()[:7]


DUMMY_HASH = Hash(HashAlgorithm.SHA256)


# --- Parsing ---

def _decode_body(s: str, body: str, algo: HashAlgorithm, is_sri: bool) -> Hash:
    """Decode an unprefixed body, picking the encoding from its length."""
    h = Hash(algo)
    if not is_sri and len(body) == h.base16_len():
        if not _BASE16_CHARS.issuperset(body):
            raise BadHash(f"invalid base-16 hash '{s}'")
        return Hash(algo, bytes.fromhex(body))

    if not is_sri and len(body) == h.base32_len():
        try:
            return Hash(algo, base32.decode(body))
        except ValueError as e:
            raise BadHash(f"invalid base-32 hash '{s}'") from e

    if is_sri or len(body) == h.base64_len():
        try:
            digest = base64.b64decode(body, validate=True)
        except ValueError as e:  # binascii.Error, or non-ASCII input
            raise BadHash(f"invalid base-64 hash '{s}'") from e
        # b64decode tolerates some non-canonical padding; insist on the
        # exact form we would print.
        if len(digest) != algo.size or base64.b64encode(digest).decode() != body:
            raise BadHash(f"invalid {'SRI' if is_sri else 'base-64'} hash '{s}'")
        return Hash(algo, digest)

    raise BadHash(f"hash '{s}' has wrong length for hash type '{algo.value}'")


def _split_prefix(s: str) -> tuple[HashAlgorithm, str, bool] | None:
    """Split "<algo>:<body>" or "<algo>-<base64>". None when unprefixed."""
    for sep, is_sri in ((":", False), ("-", True)):
        name, found, rest = s.partition(sep)
        if found:
            return parse_hash_type(name), rest, is_sri
    return None


def parse_any(s: str, algo: HashAlgorithm | None = None) -> Hash:
    """Parse "[<algo>:]<base16|nix32|base64>" or "<algo>-<base64>".

    Without a prefix, ``algo`` is required. With both, they must agree.
    """
    split = _split_prefix(s)
    if split is None:
        if algo is None:
            raise BadHash(f"hash '{s}' does not include a type, nor is the type otherwise known from context")
        return _decode_body(s, s, algo, False)
    prefix_algo, body, is_sri = split
    if algo is not None and prefix_algo != algo:
        raise BadHash(f"hash '{s}' should have type '{algo.value}'")
    return _decode_body(s, body, prefix_algo, is_sri)


def parse_any_prefixed(s: str) -> Hash:
    """Like parse_any, but the algorithm prefix is mandatory."""
    split = _split_prefix(s)
    if split is None:
        raise BadHash(f"hash '{s}' does not include a type")
    prefix_algo, body, is_sri = split
    return _decode_body(s, body, prefix_algo, is_sri)


def parse_non_sri_unprefixed(s: str, algo: HashAlgorithm) -> Hash:
    """Parse a bare base16/nix32/base64 body of a known algorithm."""
    return _decode_body(s, s, algo, False)


def parse_sri(s: str) -> Hash:
    """Parse "<algo>-<base64>" only."""
    name, found, body = s.partition("-")
    if not found:
        raise BadHash(f"hash '{s}' is not SRI")
    return _decode_body(s, body, parse_hash_type(name), True)


def new_hash_allow_empty(s: str, algo: HashAlgorithm | None) -> Hash:
    """parse_any, except that "" means the zero hash of ``algo``.

    Older .drv files and fetchers leave the hash empty when it is not
    known yet.
    """
    if not s:
        if algo is None:
            raise BadHash("empty hash requires explicit hash type")
        h = Hash(algo)
        logger.warning("empty_hash_assumed", hash=str(h))
        return h
    return parse_any(s, algo)


def print_hash_16_or_32(h: Hash) -> str:
    """Base16 for MD5, nix32 for everything else. Used by legacy tools."""
    fmt = HashFormat.BASE16 if h.algo == HashAlgorithm.MD5 else HashFormat.BASE32
    return h.to_string(fmt, False)


# --- Hashing ---

def hash_string(algo: HashAlgorithm, data: bytes | str) -> Hash:
    if isinstance(data, str):
        data = data.encode()
    ctx = algo.new()
    ctx.update(data)
    return Hash(algo, ctx.digest())


def hash_file(algo: HashAlgorithm, path: str | Path) -> Hash:
    """Hash the raw contents of a file.

    Only the bytes count — permissions, the executable bit and the
    file name play no part. Compare hash_path(), which hashes the NAR.
    """
    from nixhash.nar import copy_file_contents
    from nixhash.sink import HashSink

    with HashSink(algo) as sink:
        copy_file_contents(path, sink)
        result = sink.finish()
    logger.debug("hash_file_done", path=str(path), algo=str(algo), size=result.size)
    return result.hash


def hash_path(algo: HashAlgorithm, path: str | Path, filter=None):
    """Hash the NAR serialization of a path. This is what `nix hash path` computes.

    Returns a HashResult of (hash, NAR size in bytes). ``filter`` is called
    with each directory entry's path and excludes the entry when it returns
    false; by default everything is included.
    """
    from nixhash.nar import default_path_filter, dump_path
    from nixhash.sink import HashSink

    with HashSink(algo) as sink:
        dump_path(path, sink, filter or default_path_filter)
        result = sink.finish()
    logger.debug("hash_path_done", path=str(path), algo=str(algo), nar_size=result.size)
    return result


def compress_hash(h: Hash, size: int) -> bytes:
    """XOR-fold a hash to the given size.

    Nix uses this to compress SHA-256 (32 bytes) to 160 bits (20 bytes)
    for store path hashes. Unlike simple truncation, every byte of the
    input contributes to the output — bytes beyond `size` are XOR'd back
    into the earlier positions:

        result[0]  = hash[0]  ^ hash[20]
        ...
        result[11] = hash[11] ^ hash[31]
        result[12] = hash[12]
        ...
        result[19] = hash[19]

    The result is plain bytes: it no longer has the size its algorithm
    demands, so it is not a Hash.
    """
    if size <= 0:
        raise ValueError(f"compressed hash size must be positive, got {size}")
    result = bytearray(size)
    for i, b in enumerate(h.digest):
        result[i % size] ^= b
    return bytes(result)


# --- Names ---

_FORMAT_NAMES = {
    "base64": HashFormat.BASE64,
    "nix32": HashFormat.BASE32,
    "base32": HashFormat.BASE32,  # legacy alias
    "base16": HashFormat.BASE16,
    "sri": HashFormat.SRI,
}


def parse_hash_format_opt(name: str) -> HashFormat | None:
    return _FORMAT_NAMES.get(name)


def parse_hash_format(name: str) -> HashFormat:
    fmt = parse_hash_format_opt(name)
    if fmt is None:
        raise BadHash(f"unknown hash format '{name}', expect 'base16', 'base32', 'base64', or 'sri'")
    return fmt


def print_hash_format(fmt: HashFormat) -> str:
    return fmt.value


def parse_hash_type_opt(name: str) -> HashAlgorithm | None:
    try:
        return HashAlgorithm(name)
    except ValueError:
        return None


def parse_hash_type(name: str) -> HashAlgorithm:
    algo = parse_hash_type_opt(name)
    if algo is None:
        raise BadHash(f"unknown hash algorithm '{name}', expect 'md5', 'sha1', 'sha256', or 'sha512'")
    return algo


def print_hash_type(algo: HashAlgorithm) -> str:
    return algo.value
