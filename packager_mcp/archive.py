from __future__ import annotations

"""
Single-file archive container for a directory tree.

Layout (little endian):

- Header: magic[8] | ver_major u16 | ver_minor u16 | flags u32 |
  entry_count u32 | header_crc32 u32
- Entry, repeated entry_count times:
  sync[4] | kind u8 | reserved u8 | path_len u16 | mode u32 | size u64 |
  entry_crc32 u32 (over the fixed fields before it plus the path bytes)
  path (utf-8, normalized forward-slash form)
  payload (size bytes, files only)
  blake2s_16(payload) (files only)

Directories are stored so empty ones survive a round trip. The header is
rewritten on finalize once the entry count is known.
"""

import hashlib
import os
import stat
import struct
import sys
import zlib
from dataclasses import dataclass
from typing import BinaryIO, Dict, List, Optional, Sequence, Tuple

from .constants import (
    ARCHIVE_MAGIC,
    ARCHIVE_VERSION_MAJOR,
    ARCHIVE_VERSION_MINOR,
    COPY_BUFSIZE,
    ENTRY_SYNC,
    KIND_DIR,
    KIND_FILE,
)
from .errors import ArchiveIntegrityError, InvalidArchiveFormat, PackagerError
from .pathutil import matches_any, norm_path, safe_join


_HEADER_STRUCT = struct.Struct("<8sHHIII")
_ENTRY_STRUCT = struct.Struct("<4sBBHIQI")
_DIGEST_SIZE = 16


@dataclass
class Entry:
    kind: int  # 0=file, 1=dir
    path: str
    size: int = 0
    mode: Optional[int] = None
    payload_offset: int = 0
    digest: bytes = b""


def _pack_header(entry_count: int, flags: int = 0) -> bytes:
    pre = _HEADER_STRUCT.pack(ARCHIVE_MAGIC, ARCHIVE_VERSION_MAJOR, ARCHIVE_VERSION_MINOR, flags, entry_count, 0)
    crc = zlib.crc32(pre[:-4])
    return pre[:-4] + struct.pack("<I", crc)


def _pack_entry_header(kind: int, path: str, mode: int, size: int) -> bytes:
    raw_path = path.encode("utf-8")
    if len(raw_path) > 0xFFFF:
        raise ArchiveIntegrityError(f"Path too long for archive entry: {path}")
    pre = _ENTRY_STRUCT.pack(ENTRY_SYNC, kind, 0, len(raw_path), mode, size, 0)
    crc = zlib.crc32(pre[:-4] + raw_path)
    return pre[:-4] + struct.pack("<I", crc) + raw_path


def _safe_chmod(path: str, mode: Optional[int]) -> None:
    """Best-effort chmod that never raises."""
    if mode is None:
        return
    try:
        os.chmod(path, mode)
    except OSError as exc:
        print(f"Warning: failed to set mode on {path}: {exc}", file=sys.stderr)


class ArchiveWriter:
    def __init__(self, path: str):
        self.out_path = path
        self.f: Optional[BinaryIO] = None
        self.entry_count = 0
        self.finalized = False

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        if exc_type is not None and not self.finalized:
            # Never leave a half-written archive behind
            try:
                os.remove(self.out_path)
            except FileNotFoundError:
                pass

    def open(self):
        if self.f is not None:
            return
        parent = os.path.dirname(self.out_path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        self.f = open(self.out_path, "wb")
        self.f.write(_pack_header(0))

    def close(self):
        if self.f is not None:
            self.f.close()
            self.f = None

    def add_dir(self, arc_path: str, *, mode: Optional[int] = None) -> None:
        if self.f is None:
            raise RuntimeError("Archive not open")
        self.f.write(_pack_entry_header(KIND_DIR, norm_path(arc_path), mode or 0, 0))
        self.entry_count += 1

    def add_file(self, arc_path: str, src_path: str, *, mode: Optional[int] = None) -> int:
        """Stream a file into the archive; returns the number of bytes stored."""
        if self.f is None:
            raise RuntimeError("Archive not open")
        st = os.stat(src_path)
        if mode is None:
            mode = stat.S_IMODE(st.st_mode)
        size = st.st_size
        self.f.write(_pack_entry_header(KIND_FILE, norm_path(arc_path), mode, size))
        hasher = hashlib.blake2s(digest_size=_DIGEST_SIZE)
        written = 0
        with open(src_path, "rb") as rf:
            while written < size:
                buf = rf.read(min(COPY_BUFSIZE, size - written))
                if not buf:
                    break
                hasher.update(buf)
                self.f.write(buf)
                written += len(buf)
        if written != size:
            raise ArchiveIntegrityError(f"File changed while archiving: {src_path}")
        self.f.write(hasher.digest())
        self.entry_count += 1
        return written

    def finalize(self) -> None:
        if self.f is None:
            raise RuntimeError("Archive not open")
        self.f.flush()
        self.f.seek(0)
        self.f.write(_pack_header(self.entry_count))
        self.f.seek(0, os.SEEK_END)
        self.finalized = True


def _read_exact(f: BinaryIO, n: int) -> bytes:
    b = f.read(n)
    if len(b) != n:
        raise ArchiveIntegrityError("Truncated archive")
    return b


class ArchiveReader:
    def __init__(self, path: str):
        self.path = path
        self.f: Optional[BinaryIO] = None
        self.version: Tuple[int, int] = (0, 0)
        self.entries: List[Entry] = []
        self._entry_count = 0

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def open(self):
        if self.f is not None:
            return
        self.f = open(self.path, "rb")
        try:
            self._read_header()
            self._scan_entries()
        except (PackagerError, OSError, ValueError) as exc:
            self.close()
            raise exc

    def close(self):
        if self.f is not None:
            self.f.close()
            self.f = None

    def list(self) -> List[Entry]:
        return self.entries

    def extract(self, entry: Entry, out_path: str) -> None:
        if self.f is None:
            raise RuntimeError("Archive not open")
        if entry.kind != KIND_FILE:
            return
        os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
        hasher = hashlib.blake2s(digest_size=_DIGEST_SIZE)
        self.f.seek(entry.payload_offset)
        remaining = entry.size
        with open(out_path, "wb") as wf:
            while remaining:
                buf = _read_exact(self.f, min(COPY_BUFSIZE, remaining))
                hasher.update(buf)
                wf.write(buf)
                remaining -= len(buf)
        if hasher.digest() != entry.digest:
            raise ArchiveIntegrityError(f"Content digest mismatch for {entry.path}; data corrupted")

    def verify(self) -> bool:
        """Re-hash every file payload against its stored digest."""
        if self.f is None:
            raise RuntimeError("Archive not open")
        for e in self.entries:
            if e.kind != KIND_FILE:
                continue
            hasher = hashlib.blake2s(digest_size=_DIGEST_SIZE)
            self.f.seek(e.payload_offset)
            remaining = e.size
            while remaining:
                buf = _read_exact(self.f, min(COPY_BUFSIZE, remaining))
                hasher.update(buf)
                remaining -= len(buf)
            if hasher.digest() != e.digest:
                return False
        return True

    # internals
    def _read_header(self):
        raw = self.f.read(_HEADER_STRUCT.size)
        if len(raw) != _HEADER_STRUCT.size:
            raise InvalidArchiveFormat("Invalid archive format: file too short")
        magic, vmaj, vmin, _flags, count, crc = _HEADER_STRUCT.unpack(raw)
        if magic != ARCHIVE_MAGIC:
            raise InvalidArchiveFormat("Invalid archive format: bad magic")
        if zlib.crc32(raw[:-4]) != crc:
            raise InvalidArchiveFormat("Invalid archive format: header CRC mismatch")
        if vmaj != ARCHIVE_VERSION_MAJOR:
            raise InvalidArchiveFormat(f"Invalid archive format: unsupported version {vmaj}.{vmin}")
        self.version = (vmaj, vmin)
        self._entry_count = count

    def _scan_entries(self):
        total = os.fstat(self.f.fileno()).st_size
        entries: List[Entry] = []
        for _ in range(self._entry_count):
            fixed = _read_exact(self.f, _ENTRY_STRUCT.size)
            sync, kind, _res, path_len, mode, size, crc = _ENTRY_STRUCT.unpack(fixed)
            if sync != ENTRY_SYNC:
                raise ArchiveIntegrityError("Bad entry sync")
            raw_path = _read_exact(self.f, path_len)
            if zlib.crc32(fixed[:-4] + raw_path) != crc:
                raise ArchiveIntegrityError("Entry header CRC mismatch")
            try:
                path = norm_path(raw_path.decode("utf-8"))
            except UnicodeDecodeError as exc:
                raise ArchiveIntegrityError(f"Entry path is not valid UTF-8: {exc}") from exc
            if kind == KIND_DIR:
                entries.append(Entry(kind=kind, path=path, mode=mode or None))
                continue
            if kind != KIND_FILE:
                raise ArchiveIntegrityError(f"Unknown entry kind {kind} for {path}")
            payload_offset = self.f.tell()
            if payload_offset + size + _DIGEST_SIZE > total:
                raise ArchiveIntegrityError("Truncated archive")
            self.f.seek(payload_offset + size)
            digest = _read_exact(self.f, _DIGEST_SIZE)
            entries.append(
                Entry(kind=kind, path=path, size=size, mode=mode, payload_offset=payload_offset, digest=digest)
            )
        self.entries = entries


def _collect_tree(
    source: str,
    include: Optional[Sequence[str]],
    exclude: Optional[Sequence[str]],
    skip: Sequence[str] = (),
) -> Tuple[List[str], List[Tuple[str, str]]]:
    """Walk source and return (directories, [(arc_path, fs_path)]) after filtering."""
    skip_abs = {os.path.abspath(p) for p in skip}
    dirs: List[str] = []
    files: List[Tuple[str, str]] = []
    for root, dirnames, filenames in os.walk(source):
        dirnames.sort()
        rel_root = os.path.relpath(root, source)
        rel_root = "" if rel_root == "." else rel_root.replace(os.sep, "/")
        kept = []
        for d in dirnames:
            full = os.path.join(root, d)
            arc = f"{rel_root}/{d}" if rel_root else d
            if os.path.islink(full):
                print(f"Warning: skipping symlinked directory {full}", file=sys.stderr)
                continue
            if exclude and matches_any(arc, exclude):
                continue
            kept.append(d)
            if not include:
                dirs.append(arc)
        # prune excluded and symlinked directories
        dirnames[:] = kept
        for fn in sorted(filenames):
            full = os.path.join(root, fn)
            arc = f"{rel_root}/{fn}" if rel_root else fn
            if os.path.abspath(full) in skip_abs:
                continue
            if os.path.islink(full):
                print(f"Warning: skipping symlink {full}", file=sys.stderr)
                continue
            if include and not matches_any(arc, include):
                continue
            if exclude and matches_any(arc, exclude):
                continue
            files.append((arc, full))
    if include:
        wanted = set()
        for arc, _full in files:
            parts = arc.split("/")[:-1]
            for i in range(1, len(parts) + 1):
                wanted.add("/".join(parts[:i]))
        dirs = sorted(wanted, key=lambda p: (p.count("/"), p))
    return dirs, files


def archive_directory(source: str, output: str, options: Optional[Dict[str, List[str]]] = None) -> int:
    """Archive the contents of a directory into a single file.

    Args:
        source: Directory to archive; entries are stored relative to it.
        output: Archive path to write (parents are created).
        options: Optional mapping with ``include`` and/or ``exclude`` glob lists.
            Missing keys mean "no filter".

    Returns:
        Number of files stored.
    """
    options = options or {}
    if not os.path.isdir(source):
        if not os.path.exists(source):
            raise FileNotFoundError(f"Source directory not found: {source}")
        raise NotADirectoryError(f"Source is not a directory: {source}")
    dirs, files = _collect_tree(source, options.get("include"), options.get("exclude"), skip=(output,))
    with ArchiveWriter(output) as w:
        for arc in dirs:
            full = os.path.join(source, *arc.split("/"))
            try:
                mode = stat.S_IMODE(os.stat(full).st_mode)
            except OSError:
                mode = None
            w.add_dir(arc, mode=mode)
        for arc, full in files:
            w.add_file(arc, full)
        w.finalize()
    return len(files)


def list_archive(path: str) -> List[Entry]:
    with ArchiveReader(path) as r:
        return list(r.list())


def unarchive_file(archive: str, outdir: str) -> int:
    """Extract every entry of an archive under outdir.

    The archive header is validated before anything is created on disk, so a
    non-archive input raises InvalidArchiveFormat without side effects.

    Returns:
        Number of files extracted.
    """
    count = 0
    dir_modes: List[Tuple[str, Optional[int]]] = []
    with ArchiveReader(archive) as r:
        entries = r.list()
        os.makedirs(outdir, exist_ok=True)
        for e in entries:
            dst = safe_join(outdir, e.path)
            if e.kind == KIND_DIR:
                os.makedirs(dst, exist_ok=True)
                dir_modes.append((dst, e.mode))
                continue
            if os.path.isdir(dst):
                raise PackagerError(f"Cannot overwrite directory with file: {dst}")
            r.extract(e, dst)
            _safe_chmod(dst, e.mode)
            count += 1
    # Directory modes last so read-only directories can still be filled
    for dst, mode in reversed(dir_modes):
        _safe_chmod(dst, mode)
    return count
