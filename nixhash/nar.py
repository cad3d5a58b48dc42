"""NAR (Nix Archive) serialization.

NAR is Nix's deterministic archive format. Unlike tar:
- No timestamps, uid/gid, or permission modes (only executable bit)
- Directory entries are sorted, so the same tree always serializes identically
- Symlinks are stored as-is (not resolved)

This makes NAR suitable as a content-addressing mechanism: identical filesystem
content always produces the identical byte stream, and thus the same hash.

Wire format: every value (keywords, names, file contents) is encoded as:
    uint64_le(length) + raw bytes + zero-padding to 8-byte boundary

Grammar (where str(x) is the wire encoding above):
    str("nix-archive-1")
    str("(") str("type")
      str("regular") [str("executable") str("")] str("contents") str(<data>)
    | str("symlink") str("target") str(<target>)
    | str("directory") { str("entry") str("(") str("name") str(<n>) str("node") <recurse> str(")") }
    str(")")

The serializer streams into a Sink, so a large file is never read into
memory at once and hash_path() can feed a HashSink directly.

See: nix/src/libutil/archive.cc — dumpPath(), dumpContents()
"""

import os
import stat
import struct
from pathlib import Path

import structlog

from nixhash.sink import Sink, StringSink

logger = structlog.get_logger()

NAR_VERSION_MAGIC = "nix-archive-1"
CHUNK_SIZE = 64 * 1024


def default_path_filter(path: str) -> bool:
    return True


def _pad8(n: int) -> int:
    """Bytes of zero-padding needed to reach 8-byte alignment."""
    r = n % 8
    return (8 - r) % 8


def _str(s: str | bytes) -> bytes:
    """Encode a value in NAR wire format: uint64_le length + data + pad."""
    if isinstance(s, str):
        s = os.fsencode(s)
    return struct.pack("<Q", len(s)) + s + b"\0" * _pad8(len(s))


def copy_file_contents(path: str | Path, sink: Sink) -> int:
    """Stream a file's bytes into sink in chunks. Returns the byte count."""
    total = 0
    with open(path, "rb") as f:
        while chunk := f.read(CHUNK_SIZE):
            sink.write(chunk)
            total += len(chunk)
    return total


def _dump_contents(path: Path, size: int, sink: Sink) -> None:
    sink.write(struct.pack("<Q", size))
    written = copy_file_contents(path, sink)
    if written != size:
        raise OSError(f"file '{path}' changed size while being archived")
    sink.write(b"\0" * _pad8(size))


def _dump_entry(path: Path, sink: Sink, filter) -> None:
    sink.write(_str("("))
    st = os.lstat(path)

    if stat.S_ISLNK(st.st_mode):
        sink.write(_str("type"))
        sink.write(_str("symlink"))
        sink.write(_str("target"))
        sink.write(_str(os.readlink(path)))

    elif stat.S_ISREG(st.st_mode):
        sink.write(_str("type"))
        sink.write(_str("regular"))
        # NAR only preserves the executable bit — all other permission
        # bits, ownership, and timestamps are discarded for reproducibility.
        if st.st_mode & stat.S_IXUSR:
            sink.write(_str("executable"))
            sink.write(_str(""))
        sink.write(_str("contents"))
        _dump_contents(path, st.st_size, sink)

    elif stat.S_ISDIR(st.st_mode):
        sink.write(_str("type"))
        sink.write(_str("directory"))
        # Entries MUST be sorted — this is what makes NAR deterministic.
        for entry_name in sorted(os.listdir(path), key=os.fsencode):
            entry = path / entry_name
            if not filter(str(entry)):
                logger.debug("nar_entry_filtered", path=str(entry))
                continue
            sink.write(_str("entry"))
            sink.write(_str("("))
            sink.write(_str("name"))
            sink.write(_str(entry_name))
            sink.write(_str("node"))
            _dump_entry(entry, sink, filter)
            sink.write(_str(")"))
    else:
        raise ValueError(f"unsupported file type: {path}")

    sink.write(_str(")"))


def dump_path(path: str | Path, sink: Sink, filter=default_path_filter) -> None:
    """Write the NAR serialization of path into sink.

    filter is called with the path of every directory entry; entries for
    which it returns false are left out. The root itself is always dumped.
    """
    sink.write(_str(NAR_VERSION_MAGIC))
    _dump_entry(Path(path), sink, filter)


def nar_serialize(path: str | Path, filter=default_path_filter) -> bytes:
    """Serialize a filesystem path to NAR bytes."""
    sink = StringSink()
    dump_path(path, sink, filter)
    return sink.getvalue()
