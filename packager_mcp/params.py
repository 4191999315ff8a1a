from __future__ import annotations

"""Typed, validated parameters for each tool.

Every tool call is turned into a frozen request object before anything touches
the filesystem; bad input raises ParameterError.
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from .constants import ALGORITHMS, DEFAULT_ALGORITHM, MAX_LEVEL, MIN_LEVEL
from .errors import ParameterError


class _ArgReader:
    def __init__(self, arguments: Optional[Mapping[str, Any]], allowed):
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, Mapping):
            raise ParameterError("Tool arguments must be an object")
        unknown = sorted(set(arguments) - set(allowed))
        if unknown:
            raise ParameterError(f"Unknown parameter(s): {', '.join(unknown)}")
        self.args = arguments

    def required_str(self, name: str) -> str:
        value = self.args.get(name)
        if not isinstance(value, str) or not value:
            raise ParameterError(f"'{name}' is required and must be a non-empty string")
        return value

    def optional_str(self, name: str) -> Optional[str]:
        value = self.args.get(name)
        if value is None:
            return None
        if not isinstance(value, str):
            raise ParameterError(f"'{name}' must be a string")
        return value or None

    def optional_bool(self, name: str) -> Optional[bool]:
        value = self.args.get(name)
        if value is None:
            return None
        if not isinstance(value, bool):
            raise ParameterError(f"'{name}' must be a boolean")
        return value

    def optional_level(self, name: str) -> Optional[int]:
        value = self.args.get(name)
        if value is None:
            return None
        # bool is an int subclass; integral floats come from JSON numbers
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ParameterError(f"'{name}' must be an integer")
        if isinstance(value, float):
            if not value.is_integer():
                raise ParameterError(f"'{name}' must be an integer")
            value = int(value)
        if not (MIN_LEVEL <= value <= MAX_LEVEL):
            raise ParameterError(f"'{name}' must be between {MIN_LEVEL} and {MAX_LEVEL}")
        return value

    def algorithm(self, name: str, default: Optional[str]) -> Optional[str]:
        value = self.args.get(name)
        if value is None:
            return default
        if value not in ALGORITHMS:
            raise ParameterError(f"'{name}' must be one of: {', '.join(ALGORITHMS)}")
        return value


@dataclass(frozen=True)
class ArchiveRequest:
    source: str
    output: str
    include: Optional[str] = None
    exclude: Optional[str] = None

    @classmethod
    def from_arguments(cls, arguments):
        r = _ArgReader(arguments, ("source", "output", "include", "exclude"))
        return cls(
            source=r.required_str("source"),
            output=r.required_str("output"),
            include=r.optional_str("include"),
            exclude=r.optional_str("exclude"),
        )


@dataclass(frozen=True)
class CompressRequest:
    source: str
    output: str
    algorithm: str = DEFAULT_ALGORITHM
    level: Optional[int] = None
    archive: bool = False
    include: Optional[str] = None
    exclude: Optional[str] = None

    @classmethod
    def from_arguments(cls, arguments):
        r = _ArgReader(arguments, ("source", "output", "algorithm", "level", "archive", "include", "exclude"))
        return cls(
            source=r.required_str("source"),
            output=r.required_str("output"),
            algorithm=r.algorithm("algorithm", DEFAULT_ALGORITHM),
            level=r.optional_level("level"),
            archive=bool(r.optional_bool("archive")),
            include=r.optional_str("include"),
            exclude=r.optional_str("exclude"),
        )


@dataclass(frozen=True)
class DecompressRequest:
    source: str
    output: str
    algorithm: Optional[str] = None
    unarchive: bool = False

    @classmethod
    def from_arguments(cls, arguments):
        r = _ArgReader(arguments, ("source", "output", "algorithm", "unarchive"))
        return cls(
            source=r.required_str("source"),
            output=r.required_str("output"),
            algorithm=r.algorithm("algorithm", None),
            unarchive=r.optional_bool("unarchive") is True,
        )


@dataclass(frozen=True)
class SignRequest:
    source: str
    output: str
    privkey: str

    @classmethod
    def from_arguments(cls, arguments):
        r = _ArgReader(arguments, ("source", "output", "privkey"))
        return cls(
            source=r.required_str("source"),
            output=r.required_str("output"),
            privkey=r.required_str("privkey"),
        )


@dataclass(frozen=True)
class VerifyRequest:
    file: str
    signature: str
    pubkey: str

    @classmethod
    def from_arguments(cls, arguments):
        r = _ArgReader(arguments, ("file", "signature", "pubkey"))
        return cls(
            file=r.required_str("file"),
            signature=r.required_str("signature"),
            pubkey=r.required_str("pubkey"),
        )


@dataclass(frozen=True)
class KeyPairRequest:
    """Shared by generate-keys and derive-public-key."""

    private_key_path: str
    public_key_path: str

    @classmethod
    def from_arguments(cls, arguments):
        r = _ArgReader(arguments, ("privateKeyPath", "publicKeyPath"))
        return cls(
            private_key_path=r.required_str("privateKeyPath"),
            public_key_path=r.required_str("publicKeyPath"),
        )


@dataclass(frozen=True)
class PackageRequest:
    source: str
    output: str
    algorithm: str = DEFAULT_ALGORITHM
    privkey: Optional[str] = None

    @classmethod
    def from_arguments(cls, arguments):
        r = _ArgReader(arguments, ("source", "output", "algorithm", "privkey"))
        return cls(
            source=r.required_str("source"),
            output=r.required_str("output"),
            algorithm=r.algorithm("algorithm", DEFAULT_ALGORITHM),
            privkey=r.optional_str("privkey"),
        )


@dataclass(frozen=True)
class UnarchiveRequest:
    archive_file: str
    output_directory: str

    @classmethod
    def from_arguments(cls, arguments):
        r = _ArgReader(arguments, ("archiveFile", "outputDirectory"))
        return cls(
            archive_file=r.required_str("archiveFile"),
            output_directory=r.required_str("outputDirectory"),
        )


REQUEST_TYPES: Dict[str, type] = {
    "archive": ArchiveRequest,
    "compress": CompressRequest,
    "decompress": DecompressRequest,
    "sign": SignRequest,
    "verify": VerifyRequest,
    "generate-keys": KeyPairRequest,
    "derive-public-key": KeyPairRequest,
    "package": PackageRequest,
    "unarchive": UnarchiveRequest,
}
