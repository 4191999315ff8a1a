from __future__ import annotations

import os
import shutil
import tempfile
import threading
import unittest
from pathlib import Path

from packager_mcp.codec import CompressionAlgorithm, get_compression_algorithm
from packager_mcp.errors import InvalidArchiveFormat
from packager_mcp.package import PackageResult
from packager_mcp.tools import PathLocks, ToolOrchestrator, staged_artifact


class FakeBackend:
    """Records calls and writes fixed-size outputs; failures are scripted per method."""

    def __init__(self):
        self.calls = []
        self.fail = {}
        self.verify_result = True

    def _record(self, name, *args):
        self.calls.append((name,) + args)
        exc = self.fail.get(name)
        if exc is not None:
            raise exc

    def names(self):
        return [c[0] for c in self.calls]

    def archive_directory(self, source, output, options=None):
        self._record("archive_directory", source, output, options)
        Path(output).write_bytes(b"A" * 100)

    def unarchive_file(self, archive_path, output_dir):
        self._record("unarchive_file", archive_path, output_dir)
        os.makedirs(output_dir, exist_ok=True)

    def compress_file(self, source, output, options):
        self._record("compress_file", source, output, options)
        Path(output).write_bytes(b"C" * 40)

    def decompress_file(self, source, output, algorithm=None):
        self._record("decompress_file", source, output, algorithm)
        Path(output).parent.mkdir(parents=True, exist_ok=True)
        Path(output).write_bytes(b"D" * 10)

    def sign_file(self, source, output, options):
        self._record("sign_file", source, output, options)
        Path(output).write_bytes(b"S" * 64)

    def verify_file(self, path, signature_path, options):
        self._record("verify_file", path, signature_path, options)
        return self.verify_result

    def generate_and_save_key_pair(self, options):
        self._record("generate_and_save_key_pair", options)

    def derive_and_save_public_key(self, private_key_path, public_key_path):
        self._record("derive_and_save_public_key", private_key_path, public_key_path)

    def create_package(self, source, output, algorithm, sign_options):
        self._record("create_package", source, output, algorithm, sign_options)
        archive_path = output + ".archive"
        Path(archive_path).write_bytes(b"A" * 100)
        Path(output).write_bytes(b"C" * 25)
        sig = None
        if sign_options is not None:
            sig = output + ".sig"
            Path(sig).write_bytes(b"S" * 64)
        return PackageResult(archive_path=archive_path, compressed_path=output, signature_path=sig)

    def get_compression_algorithm(self, name):
        return get_compression_algorithm(name)

    def format_file_size(self, size):
        return f"{size} bytes"


class _Base(unittest.TestCase):
    def setUp(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.root = Path(tmp.name)
        self.backend = FakeBackend()
        self.tools = ToolOrchestrator(self.backend)

    def leftovers(self):
        return sorted(p.name for p in self.root.rglob("*.tmp"))


class ArchiveToolTests(_Base):
    def test_options_omit_unset_keys(self):
        out = str(self.root / "a.pkg")
        res = self.tools.archive({"source": str(self.root), "output": out})
        self.assertFalse(res.is_error, res.text)
        self.assertEqual(self.backend.calls[0][3], {})
        self.assertEqual(res.text, f"Archive created: {out} (100 bytes)")

    def test_globs_split_on_commas_in_order(self):
        out = str(self.root / "a.pkg")
        self.tools.archive({"source": str(self.root), "output": out, "include": "*.txt,docs/*"})
        self.assertEqual(self.backend.calls[0][3], {"include": ["*.txt", "docs/*"]})
        self.tools.archive({"source": str(self.root), "output": out, "include": "", "exclude": "*.log"})
        self.assertEqual(self.backend.calls[1][3], {"exclude": ["*.log"]})

    def test_backend_failure_is_reported(self):
        self.backend.fail["archive_directory"] = FileNotFoundError("Source directory not found: nope")
        res = self.tools.archive({"source": "nope", "output": str(self.root / "a.pkg")})
        self.assertTrue(res.is_error)
        self.assertEqual(res.text, "Failed to create archive: Source directory not found: nope")


class CompressToolTests(_Base):
    def test_file_ratio_and_options(self):
        src = self.root / "f.txt"
        src.write_bytes(b"x" * 80)
        out = str(self.root / "f.gz")
        res = self.tools.compress({"source": str(src), "output": out})
        self.assertFalse(res.is_error, res.text)
        name, source, output, options = self.backend.calls[0]
        self.assertEqual(name, "compress_file")
        self.assertEqual(source, str(src))
        self.assertEqual(options, {"algorithm": CompressionAlgorithm.GZIP})
        self.assertEqual(res.text, f"File compressed: {out} (40 bytes, 50.00% reduction)")

    def test_level_passed_only_when_supplied(self):
        src = self.root / "f.txt"
        src.write_bytes(b"x" * 80)
        self.tools.compress({"source": str(src), "output": str(self.root / "f.br"), "algorithm": "brotli", "level": 5})
        self.assertEqual(self.backend.calls[0][3], {"algorithm": CompressionAlgorithm.BROTLI, "level": 5})

    def test_empty_source_reports_zero_ratio(self):
        src = self.root / "empty"
        src.write_bytes(b"")
        res = self.tools.compress({"source": str(src), "output": str(self.root / "e.gz")})
        self.assertIn("0.00% reduction", res.text)

    def test_directory_archive_first_stages_and_cleans(self):
        src = self.root / "tree"
        src.mkdir()
        out = str(self.root / "tree.gz")
        res = self.tools.compress(
            {"source": str(src), "output": out, "archive": True, "exclude": "*.log"}
        )
        self.assertFalse(res.is_error, res.text)
        self.assertEqual(self.backend.names(), ["archive_directory", "compress_file"])
        self.assertEqual(self.backend.calls[0][2], out + ".archive.tmp")
        self.assertEqual(self.backend.calls[0][3], {"exclude": ["*.log"]})
        self.assertEqual(self.backend.calls[1][1], out + ".archive.tmp")
        self.assertEqual(res.text, f"Directory archived and compressed: {out} (40 bytes, 60.00% reduction)")
        self.assertEqual(self.leftovers(), [])

    def test_staged_archive_removed_on_failure(self):
        src = self.root / "tree"
        src.mkdir()
        self.backend.fail["compress_file"] = RuntimeError("disk full")
        res = self.tools.compress({"source": str(src), "output": str(self.root / "t.gz"), "archive": True})
        self.assertTrue(res.is_error)
        self.assertEqual(res.text, "Failed to compress: disk full")
        self.assertEqual(self.leftovers(), [])

    def test_archive_flag_ignored_for_files(self):
        src = self.root / "f.txt"
        src.write_bytes(b"x" * 10)
        self.tools.compress({"source": str(src), "output": str(self.root / "f.gz"), "archive": True})
        self.assertEqual(self.backend.names(), ["compress_file"])


class DecompressToolTests(_Base):
    def test_plain_decompress(self):
        out = str(self.root / "f.txt")
        res = self.tools.decompress({"source": str(self.root / "f.gz"), "output": out})
        self.assertFalse(res.is_error, res.text)
        self.assertEqual(self.backend.calls[0][3], None)
        self.assertEqual(res.text, f"File decompressed: {out} (10 bytes)")

    def test_algorithm_resolved_when_given(self):
        self.tools.decompress({"source": "x.bin", "output": str(self.root / "o"), "algorithm": "deflate"})
        self.assertEqual(self.backend.calls[0][3], CompressionAlgorithm.DEFLATE)

    def test_unarchive_into_nested_output(self):
        out = self.root / "deep" / "er" / "out"
        res = self.tools.decompress({"source": "in.gz", "output": str(out), "unarchive": True})
        self.assertFalse(res.is_error, res.text)
        self.assertEqual(self.backend.calls[0][2], str(out) + ".decompressed.tmp")
        self.assertEqual(self.backend.calls[1], ("unarchive_file", str(out) + ".decompressed.tmp", str(out)))
        self.assertEqual(res.text, f"File decompressed and extracted to: {out}")
        self.assertEqual(self.leftovers(), [])

    def test_not_an_archive_falls_back_to_copy(self):
        self.backend.fail["unarchive_file"] = InvalidArchiveFormat("Invalid archive format: bad magic")
        out = self.root / "out.bin"
        res = self.tools.decompress({"source": "in.gz", "output": str(out), "unarchive": True})
        self.assertFalse(res.is_error)
        self.assertTrue(res.text.startswith("Warning: The decompressed file is not a valid archive."))
        self.assertEqual(out.read_bytes(), b"D" * 10)
        self.assertEqual(self.leftovers(), [])

    def test_message_signal_also_triggers_fallback(self):
        self.backend.fail["unarchive_file"] = ValueError("Invalid archive format")
        res = self.tools.decompress({"source": "in.gz", "output": str(self.root / "o"), "unarchive": True})
        self.assertFalse(res.is_error)

    def test_other_unarchive_errors_propagate(self):
        self.backend.fail["unarchive_file"] = PermissionError("denied")
        res = self.tools.decompress({"source": "in.gz", "output": str(self.root / "o"), "unarchive": True})
        self.assertTrue(res.is_error)
        self.assertEqual(res.text, "Failed to process file: denied")
        self.assertEqual(self.leftovers(), [])


class SignatureToolTests(_Base):
    def test_sign_passes_key_path(self):
        res = self.tools.sign({"source": "f", "output": str(self.root / "f.sig"), "privkey": "k.pem"})
        self.assertEqual(self.backend.calls[0][3], {"privateKeyPath": "k.pem"})
        self.assertEqual(res.text, f"Signature created: {self.root / 'f.sig'}")

    def test_verify_valid_invalid_and_failure(self):
        args = {"file": "f", "signature": "f.sig", "pubkey": "pub.pem"}
        res = self.tools.verify(args)
        self.assertEqual((res.text, res.is_error), ("Signature is valid", False))
        self.assertEqual(self.backend.calls[0][3], {"publicKeyPath": "pub.pem"})

        self.backend.verify_result = False
        res = self.tools.verify(args)
        self.assertEqual((res.text, res.is_error), ("Signature is invalid", True))

        self.backend.fail["verify_file"] = FileNotFoundError("pub.pem")
        res = self.tools.verify(args)
        self.assertTrue(res.is_error)
        self.assertEqual(res.text, "Failed to verify signature: pub.pem")

    def test_generate_keys_message(self):
        res = self.tools.generate_keys({"privateKeyPath": "priv.pem", "publicKeyPath": "pub.pem"})
        self.assertEqual(
            res.text.splitlines(),
            [
                "Key pair generated:",
                "  Private key: priv.pem",
                "  Public key: pub.pem",
                "",
                "Keep your private key secure and do not share it with anyone!",
            ],
        )
        self.assertEqual(
            self.backend.calls[0][1], {"privateKeyPath": "priv.pem", "publicKeyPath": "pub.pem"}
        )

    def test_derive_public_key(self):
        res = self.tools.call("derive-public-key", {"privateKeyPath": "priv.pem", "publicKeyPath": "pub.pem"})
        self.assertEqual(res.text, "Public key derived: pub.pem")


class PackageToolTests(_Base):
    def test_unsigned_package_report(self):
        out = str(self.root / "app.pkg")
        res = self.tools.package({"source": str(self.root), "output": out})
        self.assertFalse(res.is_error, res.text)
        self.assertEqual(self.backend.calls[0][3:], (CompressionAlgorithm.GZIP, None))
        lines = res.text.splitlines()
        self.assertEqual(lines[0], "Package created successfully")
        self.assertIn(f"Archive: {out}.archive (100 bytes)", lines)
        self.assertIn(f"Package: {out} (25 bytes)", lines)
        self.assertFalse(any(l.startswith("Signature:") for l in lines))
        self.assertIn("Compression ratio: 75.00%", lines)
        self.assertEqual(lines[-1], f"Temporary archive file removed: {out}.archive")
        self.assertFalse(os.path.exists(out + ".archive"))

    def test_signed_package_report(self):
        out = str(self.root / "app.pkg")
        res = self.tools.package({"source": str(self.root), "output": out, "algorithm": "brotli", "privkey": "k.pem"})
        self.assertEqual(self.backend.calls[0][3:], (CompressionAlgorithm.BROTLI, {"privateKeyPath": "k.pem"}))
        self.assertIn(f"Signature: {out}.sig", res.text.splitlines())


class BoundaryTests(_Base):
    def test_empty_message_becomes_unknown_error(self):
        self.backend.fail["unarchive_file"] = RuntimeError()
        res = self.tools.unarchive({"archiveFile": "a", "outputDirectory": "o"})
        self.assertEqual(res.text, "Failed to extract archive: Unknown error")

    def test_validation_rejects_before_side_effects(self):
        src = str(self.root / "f")
        bad = [
            ("compress", {"source": src, "output": "o", "level": 0}),
            ("compress", {"source": src, "output": "o", "level": 10}),
            ("compress", {"source": src, "output": "o", "level": 2.5}),
            ("compress", {"source": src, "output": "o", "level": True}),
            ("compress", {"source": src, "output": "o", "algorithm": "zstd"}),
            ("compress", {"source": src, "output": "o", "archive": "yes"}),
            ("archive", {"source": src}),
            ("archive", {"source": "", "output": "o"}),
            ("sign", {"source": src, "output": "o", "privkey": "k", "extra": 1}),
            ("unarchive", None),
        ]
        for name, args in bad:
            res = self.tools.call(name, args)
            self.assertTrue(res.is_error, (name, args))
            self.assertTrue(res.text.startswith("Failed to"), res.text)
        self.assertEqual(self.backend.calls, [])

    def test_integral_float_level_accepted(self):
        src = self.root / "f"
        src.write_bytes(b"abc")
        res = self.tools.compress({"source": str(src), "output": str(self.root / "f.gz"), "level": 9.0})
        self.assertFalse(res.is_error, res.text)
        self.assertEqual(self.backend.calls[0][3]["level"], 9)

    def test_unknown_tool(self):
        res = self.tools.call("explode", {})
        self.assertTrue(res.is_error)
        self.assertEqual(res.text, "Unknown tool: explode")

    def test_tool_names(self):
        self.assertEqual(
            self.tools.tool_names,
            sorted(
                [
                    "archive",
                    "compress",
                    "decompress",
                    "sign",
                    "verify",
                    "generate-keys",
                    "derive-public-key",
                    "package",
                    "unarchive",
                ]
            ),
        )


class StagingTests(unittest.TestCase):
    def test_staged_artifact_removed_on_exception(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "x.tmp")
            with self.assertRaises(ValueError):
                with staged_artifact(path) as p:
                    Path(p).write_bytes(b"1")
                    raise ValueError("boom")
            self.assertFalse(os.path.exists(path))

    def test_none_path_is_noop(self):
        with staged_artifact(None) as p:
            self.assertIsNone(p)

    def test_path_locks_keyed_by_absolute_path(self):
        locks = PathLocks()
        with locks.holding("out/file.gz"):
            self.assertIn(os.path.abspath("out/file.gz"), locks)
            self.assertNotIn("out/other.gz", locks)
            self.assertEqual(len(locks), 1)
        self.assertEqual(len(locks), 0)

    def test_path_locks_serialize_same_output(self):
        locks = PathLocks()
        entered = threading.Event()

        def worker():
            with locks.holding(os.path.abspath("out/file.gz")):
                entered.set()

        with locks.holding("out/file.gz"):
            t = threading.Thread(target=worker)
            t.start()
            self.assertFalse(entered.wait(0.2))
            with locks.holding("out/other.gz"):
                self.assertEqual(len(locks), 2)
        t.join(5)
        self.assertTrue(entered.is_set())
        self.assertEqual(len(locks), 0)

    def test_path_locks_released_after_calls(self):
        tools = ToolOrchestrator(FakeBackend())
        base = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, base, True)
        for i in range(50):
            res = tools.call("decompress", {"source": os.path.join(base, "in.gz"), "output": os.path.join(base, f"out{i}")})
            self.assertFalse(res.is_error, res.text)
        self.assertEqual(len(tools.locks), 0)


if __name__ == "__main__":
    unittest.main()
