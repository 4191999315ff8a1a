from __future__ import annotations

"""Tool orchestration: validate, stage, delegate, summarize, clean up.

Each public method takes the raw argument mapping of one tool call and returns
a ToolResult. Nothing raised below this layer crosses it: failures come back
as error-flagged results carrying the tool's failure prefix.
"""

import functools
import os
import shutil
import sys
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Mapping, Optional

from .backend import LocalPackager, PackagerBackend
from .constants import ARCHIVE_TMP_SUFFIX, DECOMPRESSED_TMP_SUFFIX, UNKNOWN_ERROR
from .errors import InvalidArchiveFormat
from .params import REQUEST_TYPES
from .pathutil import split_patterns
from .sizes import reduction_ratio


@dataclass(frozen=True)
class ToolResult:
    text: str
    is_error: bool = False


def _error_message(exc: BaseException) -> str:
    msg = str(exc)
    return msg if msg else UNKNOWN_ERROR


def _is_invalid_archive(exc: BaseException) -> bool:
    return isinstance(exc, InvalidArchiveFormat) or "Invalid archive format" in str(exc)


def _safe_unlink(path: str) -> None:
    """Best-effort removal that never raises."""
    try:
        if os.path.lexists(path):
            os.remove(path)
    except OSError as exc:
        print(f"Warning: failed to remove temporary file {path}: {exc}", file=sys.stderr)


@contextmanager
def staged_artifact(path: Optional[str]) -> Iterator[Optional[str]]:
    """Own a temporary path for the duration of the block.

    Whatever happens inside, the path is removed on exit if it exists. A None
    path means "nothing staged" and is passed through.
    """
    try:
        yield path
    finally:
        if path:
            _safe_unlink(path)


class PathLocks:
    """One lock per absolute output path.

    Calls that derive temp paths from the same output are serialized; calls on
    different outputs never wait on each other. An entry lives only while some
    call holds or waits on it.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._users: Dict[str, int] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def __contains__(self, path: str) -> bool:
        with self._guard:
            return os.path.abspath(path) in self._locks

    @contextmanager
    def holding(self, path: str) -> Iterator[None]:
        key = os.path.abspath(path)
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            self._users[key] = self._users.get(key, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._users[key] -= 1
                if not self._users[key]:
                    del self._users[key]
                    del self._locks[key]


def _archive_options(include: Optional[str], exclude: Optional[str]) -> Dict[str, List[str]]:
    # Only supplied keys, so the backend keeps its own defaults for the rest
    options: Dict[str, List[str]] = {}
    include_list = split_patterns(include)
    exclude_list = split_patterns(exclude)
    if include_list:
        options["include"] = include_list
    if exclude_list:
        options["exclude"] = exclude_list
    return options


def tool(name: str, failure_prefix: str) -> Callable:
    """Turn ``method(self, request)`` into a tool boundary taking raw arguments."""

    def decorate(fn):
        @functools.wraps(fn)
        def boundary(self, arguments: Optional[Mapping] = None) -> ToolResult:
            try:
                request = REQUEST_TYPES[name].from_arguments(arguments)
                return fn(self, request)
            except Exception as exc:  # tool boundary
                return ToolResult(f"{failure_prefix}: {_error_message(exc)}", is_error=True)

        boundary.tool_name = name
        return boundary

    return decorate


class ToolOrchestrator:
    def __init__(self, backend: Optional[PackagerBackend] = None):
        self.backend: PackagerBackend = backend if backend is not None else LocalPackager()
        self.locks = PathLocks()
        self._tools: Dict[str, Callable[[Optional[Mapping]], ToolResult]] = {}
        for attr in dir(type(self)):
            member = getattr(self, attr)
            name = getattr(member, "tool_name", None)
            if name:
                self._tools[name] = member

    @property
    def tool_names(self) -> List[str]:
        return sorted(self._tools)

    def call(self, name: str, arguments: Optional[Mapping] = None) -> ToolResult:
        handler = self._tools.get(name)
        if handler is None:
            return ToolResult(f"Unknown tool: {name}", is_error=True)
        return handler(arguments)

    def _size(self, path: str) -> str:
        return self.backend.format_file_size(os.path.getsize(path))

    @tool("archive", "Failed to create archive")
    def archive(self, req):
        self.backend.archive_directory(req.source, req.output, _archive_options(req.include, req.exclude))
        return ToolResult(f"Archive created: {req.output} ({self._size(req.output)})")

    @tool("compress", "Failed to compress")
    def compress(self, req):
        with self.locks.holding(req.output):
            should_archive = req.archive and os.path.isdir(req.source)
            temp_path = req.output + ARCHIVE_TMP_SUFFIX if should_archive else None
            with staged_artifact(temp_path):
                file_to_compress = req.source
                if temp_path:
                    self.backend.archive_directory(
                        req.source, temp_path, _archive_options(req.include, req.exclude)
                    )
                    file_to_compress = temp_path

                options = {"algorithm": self.backend.get_compression_algorithm(req.algorithm)}
                if req.level is not None:
                    options["level"] = req.level
                self.backend.compress_file(file_to_compress, req.output, options)

                source_size = os.path.getsize(file_to_compress)
                output_size = os.path.getsize(req.output)

        ratio = reduction_ratio(source_size, output_size)
        summary = f"{req.output} ({self.backend.format_file_size(output_size)}, {ratio}% reduction)"
        if should_archive:
            return ToolResult(f"Directory archived and compressed: {summary}")
        return ToolResult(f"File compressed: {summary}")

    @tool("decompress", "Failed to process file")
    def decompress(self, req):
        algorithm = self.backend.get_compression_algorithm(req.algorithm) if req.algorithm else None
        with self.locks.holding(req.output):
            if not req.unarchive:
                self.backend.decompress_file(req.source, req.output, algorithm)
                return ToolResult(f"File decompressed: {req.output} ({self._size(req.output)})")

            with staged_artifact(req.output + DECOMPRESSED_TMP_SUFFIX) as temp_path:
                self.backend.decompress_file(req.source, temp_path, algorithm)
                out_dir = os.path.dirname(req.output)
                if out_dir:
                    os.makedirs(out_dir, exist_ok=True)
                try:
                    self.backend.unarchive_file(temp_path, req.output)
                except Exception as exc:
                    if not _is_invalid_archive(exc):
                        raise
                    # Not an archive: keep the raw bytes instead of failing
                    shutil.copyfile(temp_path, req.output)
                    return ToolResult(
                        "Warning: The decompressed file is not a valid archive. "
                        f"Saved as regular file to: {req.output}"
                    )
                return ToolResult(f"File decompressed and extracted to: {req.output}")

    @tool("sign", "Failed to create signature")
    def sign(self, req):
        self.backend.sign_file(req.source, req.output, {"privateKeyPath": req.privkey})
        return ToolResult(f"Signature created: {req.output}")

    @tool("verify", "Failed to verify signature")
    def verify(self, req):
        if self.backend.verify_file(req.file, req.signature, {"publicKeyPath": req.pubkey}):
            return ToolResult("Signature is valid")
        return ToolResult("Signature is invalid", is_error=True)

    @tool("generate-keys", "Failed to generate key pair")
    def generate_keys(self, req):
        self.backend.generate_and_save_key_pair(
            {"privateKeyPath": req.private_key_path, "publicKeyPath": req.public_key_path}
        )
        message = "\n".join(
            [
                "Key pair generated:",
                f"  Private key: {req.private_key_path}",
                f"  Public key: {req.public_key_path}",
                "",
                "Keep your private key secure and do not share it with anyone!",
            ]
        )
        return ToolResult(message)

    @tool("derive-public-key", "Failed to derive public key")
    def derive_public_key(self, req):
        self.backend.derive_and_save_public_key(req.private_key_path, req.public_key_path)
        return ToolResult(f"Public key derived: {req.public_key_path}")

    @tool("package", "Failed to create package")
    def package(self, req):
        algorithm = self.backend.get_compression_algorithm(req.algorithm)
        sign_options = {"privateKeyPath": req.privkey} if req.privkey else None
        with self.locks.holding(req.output):
            result = self.backend.create_package(req.source, req.output, algorithm, sign_options)

            archive_size = os.path.getsize(result.archive_path)
            package_size = os.path.getsize(result.compressed_path)
            fmt = self.backend.format_file_size
            lines = [
                "Package created successfully",
                "",
                f"Archive: {result.archive_path} ({fmt(archive_size)})",
                f"Package: {result.compressed_path} ({fmt(package_size)})",
            ]
            if result.signature_path:
                lines.append(f"Signature: {result.signature_path}")
            lines.append(f"Compression ratio: {reduction_ratio(archive_size, package_size)}%")

            if os.path.exists(result.archive_path):
                os.remove(result.archive_path)
                lines.append(f"Temporary archive file removed: {result.archive_path}")
        return ToolResult("\n".join(lines))

    @tool("unarchive", "Failed to extract archive")
    def unarchive(self, req):
        self.backend.unarchive_file(req.archive_file, req.output_directory)
        return ToolResult(f"Archive extracted to: {req.output_directory}")
