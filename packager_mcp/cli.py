from __future__ import annotations

import argparse
import sys
from typing import Any, Dict, List, Optional

from packager_mcp import __version__
from packager_mcp.archive import list_archive
from packager_mcp.constants import ALGORITHMS, KIND_FILE
from packager_mcp.errors import PackagerError
from packager_mcp.tools import ToolOrchestrator


# CLI dest -> tool parameter name, per tool
_TOOL_ARGS: Dict[str, Dict[str, str]] = {
    "archive": {"source": "source", "output": "output", "include": "include", "exclude": "exclude"},
    "compress": {
        "source": "source",
        "output": "output",
        "algorithm": "algorithm",
        "level": "level",
        "archive": "archive",
        "include": "include",
        "exclude": "exclude",
    },
    "decompress": {"source": "source", "output": "output", "algorithm": "algorithm", "unarchive": "unarchive"},
    "sign": {"source": "source", "output": "output", "privkey": "privkey"},
    "verify": {"file": "file", "signature": "signature", "pubkey": "pubkey"},
    "generate-keys": {"private_key": "privateKeyPath", "public_key": "publicKeyPath"},
    "derive-public-key": {"private_key": "privateKeyPath", "public_key": "publicKeyPath"},
    "package": {"source": "source", "output": "output", "algorithm": "algorithm", "privkey": "privkey"},
    "unarchive": {"archive_file": "archiveFile", "output_directory": "outputDirectory"},
}


def cmd_tool(name: str, arguments: Dict[str, Any], *, orchestrator: Optional[ToolOrchestrator] = None) -> bool:
    """Run one tool and print its message.

    Returns:
        True on success, False when the tool reported an error.
    """
    orchestrator = orchestrator or ToolOrchestrator()
    result = orchestrator.call(name, arguments)
    if result.is_error:
        print(f"Error: {result.text}", file=sys.stderr)
        return False
    print(result.text)
    return True


def cmd_list(archive: str) -> bool:
    """List archive entries."""
    for e in list_archive(archive):
        if e.kind == KIND_FILE:
            print(f"file\t{e.size}\t{e.path}")
        else:
            print(f"dir\t{e.path}")
    return True


def _tool_arguments(name: str, args: argparse.Namespace) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for dest, param in _TOOL_ARGS[name].items():
        value = getattr(args, dest, None)
        # Unset flags are omitted so tool defaults apply
        if value is None or value is False:
            continue
        out[param] = value
    return out


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="packager-mcp",
        description="File packaging tools (archive, compress, sign) as an MCP server",
        epilog="Without a command, the MCP server runs on stdio.",
    )
    ap.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = ap.add_subparsers(dest="cmd")

    sub.add_parser("serve", help="Run the MCP server on stdio (default)")

    ap_archive = sub.add_parser("archive", help="Archive a directory")
    ap_archive.add_argument("source", help="Source directory")
    ap_archive.add_argument("output", help="Output archive path")
    ap_archive.add_argument("--include", help="Include globs, comma-separated")
    ap_archive.add_argument("--exclude", help="Exclude globs, comma-separated")

    ap_compress = sub.add_parser("compress", help="Compress a file (or archive+compress a directory)")
    ap_compress.add_argument("source", help="Source file or directory")
    ap_compress.add_argument("output", help="Output compressed path")
    ap_compress.add_argument("--algorithm", choices=ALGORITHMS, help="Compression algorithm (default gzip)")
    ap_compress.add_argument("--level", type=int, help="Compression level (1-9)")
    ap_compress.add_argument("--archive", action="store_true", help="Archive a directory source first")
    ap_compress.add_argument("--include", help="Include globs for archiving, comma-separated")
    ap_compress.add_argument("--exclude", help="Exclude globs for archiving, comma-separated")

    ap_decompress = sub.add_parser("decompress", help="Decompress a file")
    ap_decompress.add_argument("source", help="Compressed file")
    ap_decompress.add_argument("output", help="Output file path or directory")
    ap_decompress.add_argument("--algorithm", choices=ALGORITHMS, help="Algorithm (auto-detected if omitted)")
    ap_decompress.add_argument("--unarchive", action="store_true", help="Extract the decompressed archive")

    ap_sign = sub.add_parser("sign", help="Sign a file")
    ap_sign.add_argument("source", help="File to sign")
    ap_sign.add_argument("output", help="Signature output path")
    ap_sign.add_argument("--privkey", required=True, help="Private key path")

    ap_verify = sub.add_parser("verify", help="Verify a signature")
    ap_verify.add_argument("file", help="Signed file")
    ap_verify.add_argument("signature", help="Signature path")
    ap_verify.add_argument("--pubkey", required=True, help="Public key path")

    ap_keys = sub.add_parser("generate-keys", help="Generate an Ed25519 key pair")
    ap_keys.add_argument("private_key", help="Private key output path")
    ap_keys.add_argument("public_key", help="Public key output path")

    ap_derive = sub.add_parser("derive-public-key", help="Derive a public key from a private key")
    ap_derive.add_argument("private_key", help="Private key path")
    ap_derive.add_argument("public_key", help="Public key output path")

    ap_package = sub.add_parser("package", help="Archive, compress and optionally sign a directory")
    ap_package.add_argument("source", help="Source directory")
    ap_package.add_argument("output", help="Package output path")
    ap_package.add_argument("--algorithm", choices=ALGORITHMS, help="Compression algorithm (default gzip)")
    ap_package.add_argument("--privkey", help="Private key path; signs the package when given")

    ap_unarchive = sub.add_parser("unarchive", help="Extract an archive")
    ap_unarchive.add_argument("archive_file", help="Archive path")
    ap_unarchive.add_argument("output_directory", help="Output directory")

    ap_list = sub.add_parser("list", help="List archive contents")
    ap_list.add_argument("archive", help="Archive path")

    return ap


def main(argv: List[str] | None = None):
    ap = build_parser()
    args = ap.parse_args(argv)
    try:
        if args.cmd in (None, "serve"):
            from packager_mcp.server import run

            run()
        elif args.cmd == "list":
            cmd_list(args.archive)
        elif args.cmd in _TOOL_ARGS:
            ok = cmd_tool(args.cmd, _tool_arguments(args.cmd, args))
            sys.exit(0 if ok else 1)
        else:
            raise RuntimeError("Unknown command")
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except (PackagerError, OSError, RuntimeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
