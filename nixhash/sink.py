"""Byte sinks: things you write bytes into.

Nix moves data around as streams pushed into sinks rather than as big
strings. The NAR serializer writes into a sink, and hashing is just
another sink, so `nix hash path` never holds the whole archive in memory.

See: nix/src/libutil/serialise.hh, nix/src/libutil/hash.cc — HashSink
"""

from __future__ import annotations

from typing import NamedTuple

from nixhash.hash import Hash, HashAlgorithm

DEFAULT_BUFFER_SIZE = 32 * 1024


class HashResult(NamedTuple):
    hash: Hash
    size: int  # payload bytes consumed


class Sink:
    """Abstract byte consumer."""

    def write(self, data: bytes) -> None:
        raise NotImplementedError

    def __call__(self, data: bytes) -> None:
        self.write(data)


class BufferedSink(Sink):
    """A sink that coalesces small writes before passing them on.

    Subclasses implement write_unbuffered(). Writes at least as large as
    the buffer bypass it; callers must flush() before reading results.
    """

    def __init__(self, buffer_size: int = DEFAULT_BUFFER_SIZE):
        self.buffer_size = buffer_size
        self._buffer = bytearray()

    def write(self, data: bytes) -> None:
        if not data:
            return
        if not self._buffer and len(data) >= self.buffer_size:
            self.write_unbuffered(bytes(data))
            return
        self._buffer += data
        if len(self._buffer) >= self.buffer_size:
            self.flush()

    def flush(self) -> None:
        if self._buffer:
            data = bytes(self._buffer)
            self._buffer.clear()
            self.write_unbuffered(data)

    def write_unbuffered(self, data: bytes) -> None:
        raise NotImplementedError


class StringSink(Sink):
    """Collects everything written into memory."""

    def __init__(self):
        self._parts: list[bytes] = []

    def write(self, data: bytes) -> None:
        self._parts.append(bytes(data))

    def getvalue(self) -> bytes:
        return b"".join(self._parts)


class HashSink(BufferedSink):
    """Incrementally hash a byte stream, counting bytes as they go by.

    finish() may be called once. current_hash() peeks at the result so far
    without disturbing the sink, by hashing a copy of the context.
    """

    def __init__(self, algo: HashAlgorithm, buffer_size: int = DEFAULT_BUFFER_SIZE):
        super().__init__(buffer_size)
        self.algo = algo
        self._ctx = algo.new()
        self.bytes = 0

    def _context(self):
        if self._ctx is None:
            raise RuntimeError("hash sink already finished or closed")
        return self._ctx

    def write_unbuffered(self, data: bytes) -> None:
        self._context().update(data)
        self.bytes += len(data)

    def finish(self) -> HashResult:
        self.flush()
        ctx = self._context()
        self._ctx = None
        return HashResult(Hash(self.algo, ctx.digest()), self.bytes)

    def current_hash(self) -> HashResult:
        self.flush()
        ctx = self._context().copy()
        return HashResult(Hash(self.algo, ctx.digest()), self.bytes)

    def copy(self) -> HashSink:
        """An independent sink that has seen the same bytes as this one."""
        self.flush()
        other = HashSink(self.algo, self.buffer_size)
        other._ctx = self._context().copy()
        other.bytes = self.bytes
        return other

    __copy__ = copy

    def close(self) -> None:
        self._buffer.clear()
        self._ctx = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
