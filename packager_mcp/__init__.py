"""
packager-mcp — file packaging tools over the Model Context Protocol.

Tools exposed to the assistant:

- archive / unarchive: single-file container for a directory tree, with
  include/exclude glob filters and per-entry BLAKE2s digests.
- compress / decompress: streaming gzip, deflate and brotli, optionally
  archiving a directory first or extracting after decompression.
- sign / verify / generate-keys / derive-public-key: Ed25519 via PyCryptodomex.
- package: archive, compress and optionally sign in one step.

The orchestration layer (packager_mcp.tools) talks to the packaging engine only
through packager_mcp.backend.PackagerBackend; LocalPackager is the default.
"""

__version__ = "0.1.9"

__all__ = [
    "constants",
    "archive",
    "codec",
    "signing",
    "package",
    "backend",
    "tools",
    "server",
]
