from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Dict, Optional, Union

from .archive import archive_directory
from .codec import CompressionAlgorithm, compress_file
from .constants import PACKAGE_ARCHIVE_SUFFIX, SIGNATURE_SUFFIX
from .signing import sign_file


@dataclass(frozen=True)
class PackageResult:
    archive_path: str
    compressed_path: str
    signature_path: Optional[str] = None


def create_package(
    source: str,
    output: str,
    algorithm: Union[str, CompressionAlgorithm] = CompressionAlgorithm.GZIP,
    sign_options: Optional[Dict] = None,
) -> PackageResult:
    """Archive a directory, compress the archive and optionally sign the result.

    The intermediate archive (``<output>.archive``) is left in place on success
    and handed back to the caller; if compression or signing fails it is
    removed before the error propagates.

    Args:
        source: Directory to package.
        output: Path of the compressed package.
        algorithm: Compression algorithm.
        sign_options: ``{"privateKeyPath": ...}`` to sign, or None to skip.
    """
    archive_path = output + PACKAGE_ARCHIVE_SUFFIX
    archive_directory(source, archive_path)
    signature_path: Optional[str] = None
    try:
        compress_file(archive_path, output, {"algorithm": algorithm})
        if sign_options is not None:
            signature_path = output + SIGNATURE_SUFFIX
            sign_file(output, signature_path, sign_options)
    except BaseException:
        if os.path.exists(archive_path):
            os.remove(archive_path)
        raise
    return PackageResult(archive_path=archive_path, compressed_path=output, signature_path=signature_path)
