from __future__ import annotations

from typing import Dict, List

import mcp.types as types

from .constants import ALGORITHMS, MAX_LEVEL, MIN_LEVEL


def _string(description: str) -> Dict:
    return {"type": "string", "description": description}


def _algorithm(description: str) -> Dict:
    return {"type": "string", "enum": list(ALGORITHMS), "description": description}


def _schema(properties: Dict[str, Dict], required: List[str]) -> Dict:
    return {
        "type": "object",
        "properties": properties,
        "required": required,
        "additionalProperties": False,
    }


TOOLS: List[types.Tool] = [
    types.Tool(
        name="archive",
        description="Archive a directory into a single file",
        inputSchema=_schema(
            {
                "source": _string("Source directory to archive"),
                "output": _string("Output archive file path"),
                "include": _string("Include file pattern (glob), comma-separated"),
                "exclude": _string("Exclude file pattern (glob), comma-separated"),
            },
            ["source", "output"],
        ),
    ),
    types.Tool(
        name="compress",
        description="Compress a file, or archive and compress a directory",
        inputSchema=_schema(
            {
                "source": _string("Source file or directory to compress"),
                "output": _string("Output compressed file path"),
                "algorithm": {**_algorithm("Compression algorithm"), "default": "gzip"},
                "level": {
                    "type": "number",
                    "minimum": MIN_LEVEL,
                    "maximum": MAX_LEVEL,
                    "description": f"Compression level ({MIN_LEVEL}-{MAX_LEVEL})",
                },
                "archive": {
                    "type": "boolean",
                    "description": "Archive the directory before compression if source is a directory",
                },
                "include": _string("Include file pattern for archiving (glob), comma-separated"),
                "exclude": _string("Exclude file pattern for archiving (glob), comma-separated"),
            },
            ["source", "output"],
        ),
    ),
    types.Tool(
        name="decompress",
        description="Decompress a file, optionally extracting the archive inside it",
        inputSchema=_schema(
            {
                "source": _string("Source compressed file"),
                "output": _string("Output decompressed file path or directory"),
                "algorithm": _algorithm("Compression algorithm (auto-detected if not specified)"),
                "unarchive": {
                    "type": "boolean",
                    "description": "Unarchive the decompressed file if it is an archive",
                },
            },
            ["source", "output"],
        ),
    ),
    types.Tool(
        name="sign",
        description="Create an Ed25519 signature for a file",
        inputSchema=_schema(
            {
                "source": _string("Source file to sign"),
                "output": _string("Output signature file path"),
                "privkey": _string("Path to the private key file"),
            },
            ["source", "output", "privkey"],
        ),
    ),
    types.Tool(
        name="verify",
        description="Verify a file signature",
        inputSchema=_schema(
            {
                "file": _string("File to verify"),
                "signature": _string("Signature file path"),
                "pubkey": _string("Path to the public key file"),
            },
            ["file", "signature", "pubkey"],
        ),
    ),
    types.Tool(
        name="generate-keys",
        description="Generate an Ed25519 key pair",
        inputSchema=_schema(
            {
                "privateKeyPath": _string("Path where the private key file will be saved"),
                "publicKeyPath": _string("Path where the public key file will be saved"),
            },
            ["privateKeyPath", "publicKeyPath"],
        ),
    ),
    types.Tool(
        name="derive-public-key",
        description="Derive the public key from a private key file",
        inputSchema=_schema(
            {
                "privateKeyPath": _string("Private key file path"),
                "publicKeyPath": _string("Output public key file path"),
            },
            ["privateKeyPath", "publicKeyPath"],
        ),
    ),
    types.Tool(
        name="package",
        description="Archive, compress and optionally sign a directory in one step",
        inputSchema=_schema(
            {
                "source": _string("Source directory to package"),
                "output": _string("Output file path for the compressed file"),
                "algorithm": _algorithm("Compression algorithm"),
                "privkey": _string("Path to the private key file for signing"),
            },
            ["source", "output"],
        ),
    ),
    types.Tool(
        name="unarchive",
        description="Extract an archive into a directory",
        inputSchema=_schema(
            {
                "archiveFile": _string("Archive file to extract"),
                "outputDirectory": _string("Output directory path"),
            },
            ["archiveFile", "outputDirectory"],
        ),
    ),
]
