from __future__ import annotations

from typing import Dict, List, Optional, Protocol, Union

from . import archive, codec, package, signing, sizes
from .codec import CompressionAlgorithm
from .package import PackageResult


class PackagerBackend(Protocol):
    """Packaging operations the tool orchestrator delegates to.

    Paths are plain strings. Failures are raised; unarchiving something that
    is not an archive raises errors.InvalidArchiveFormat.
    """

    def archive_directory(self, source: str, output: str, options: Optional[Dict[str, List[str]]] = None) -> object: ...

    def unarchive_file(self, archive_path: str, output_dir: str) -> object: ...

    def compress_file(self, source: str, output: str, options: Dict) -> object: ...

    def decompress_file(
        self, source: str, output: str, algorithm: Optional[CompressionAlgorithm] = None
    ) -> object: ...

    def sign_file(self, source: str, output: str, options: Dict) -> object: ...

    def verify_file(self, path: str, signature_path: str, options: Dict) -> bool: ...

    def generate_and_save_key_pair(self, options: Dict) -> object: ...

    def derive_and_save_public_key(self, private_key_path: str, public_key_path: str) -> object: ...

    def create_package(
        self,
        source: str,
        output: str,
        algorithm: CompressionAlgorithm,
        sign_options: Optional[Dict],
    ) -> PackageResult: ...

    def get_compression_algorithm(self, name: Union[str, CompressionAlgorithm]) -> CompressionAlgorithm: ...

    def format_file_size(self, size: int) -> str: ...


class LocalPackager:
    """In-process implementation backed by this package's modules."""

    def archive_directory(self, source, output, options=None):
        return archive.archive_directory(source, output, options)

    def unarchive_file(self, archive_path, output_dir):
        return archive.unarchive_file(archive_path, output_dir)

    def compress_file(self, source, output, options):
        return codec.compress_file(source, output, options)

    def decompress_file(self, source, output, algorithm=None):
        return codec.decompress_file(source, output, algorithm)

    def sign_file(self, source, output, options):
        return signing.sign_file(source, output, options)

    def verify_file(self, path, signature_path, options):
        return signing.verify_file(path, signature_path, options)

    def generate_and_save_key_pair(self, options):
        return signing.generate_and_save_key_pair(options)

    def derive_and_save_public_key(self, private_key_path, public_key_path):
        return signing.derive_and_save_public_key(private_key_path, public_key_path)

    def create_package(self, source, output, algorithm, sign_options):
        return package.create_package(source, output, algorithm, sign_options)

    def get_compression_algorithm(self, name):
        return codec.get_compression_algorithm(name)

    def format_file_size(self, size):
        return sizes.format_file_size(size)
