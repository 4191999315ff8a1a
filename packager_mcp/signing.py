from __future__ import annotations

"""Ed25519 file signatures backed by PyCryptodomex.

Keys are PEM files (PKCS#8 private key, SubjectPublicKeyInfo public key).
A signature file holds the raw 64-byte Ed25519ph signature computed over the
SHA-512 digest of the signed file, so large files are hashed in a stream.
"""

import os
from typing import Dict, Optional

from Cryptodome.Hash import SHA512
from Cryptodome.PublicKey import ECC
from Cryptodome.Signature import eddsa

from .constants import COPY_BUFSIZE, KEY_CURVE, PRIVATE_KEY_MODE, SIGNATURE_SIZE
from .errors import KeyFormatError


def _hash_file(path: str):
    h = SHA512.new()
    with open(path, "rb") as f:
        while True:
            buf = f.read(COPY_BUFSIZE)
            if not buf:
                break
            h.update(buf)
    return h


def _write_file(path: str, data: bytes, mode: Optional[int] = None) -> None:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    if mode is None:
        with open(path, "wb") as f:
            f.write(data)
        return
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
    with os.fdopen(fd, "wb") as f:
        f.write(data)
    # O_CREAT only applies the mode to new files
    os.chmod(path, mode)


def load_key(path: str, *, private: bool):
    with open(path, "rb") as f:
        raw = f.read()
    try:
        key = ECC.import_key(raw)
    except (ValueError, IndexError, TypeError) as exc:
        raise KeyFormatError(f"Unable to read key from {path}: {exc}") from exc
    if key.curve != KEY_CURVE:
        raise KeyFormatError(f"Key in {path} is not an {KEY_CURVE} key (curve {key.curve})")
    if private and not key.has_private():
        raise KeyFormatError(f"Key in {path} is not a private key")
    return key


def sign_file(source: str, output: str, options: Dict) -> None:
    """Sign a file and write the signature to output.

    Args:
        source: File to sign.
        output: Signature file path.
        options: Mapping with ``privateKeyPath``.
    """
    key_path = options.get("privateKeyPath")
    if not key_path:
        raise KeyFormatError("privateKeyPath is required for signing")
    key = load_key(key_path, private=True)
    signer = eddsa.new(key, "rfc8032")
    signature = signer.sign(_hash_file(source))
    _write_file(output, signature)


def verify_file(path: str, signature_path: str, options: Dict) -> bool:
    """Check a detached signature.

    Returns False on a mismatched or malformed signature. Missing files and
    unreadable keys raise.
    """
    key_path = options.get("publicKeyPath")
    if not key_path:
        raise KeyFormatError("publicKeyPath is required for verification")
    key = load_key(key_path, private=False)
    with open(signature_path, "rb") as f:
        signature = f.read()
    digest = _hash_file(path)
    if len(signature) != SIGNATURE_SIZE:
        return False
    verifier = eddsa.new(key.public_key(), "rfc8032")
    try:
        verifier.verify(digest, signature)
    except ValueError:
        return False
    return True


def generate_and_save_key_pair(options: Dict) -> None:
    """Generate an Ed25519 key pair; the private key file is created 0600."""
    private_path = options.get("privateKeyPath")
    public_path = options.get("publicKeyPath")
    if not private_path or not public_path:
        raise KeyFormatError("privateKeyPath and publicKeyPath are required")
    key = ECC.generate(curve=KEY_CURVE)
    _write_file(private_path, key.export_key(format="PEM").encode("ascii"), mode=PRIVATE_KEY_MODE)
    _write_file(public_path, key.public_key().export_key(format="PEM").encode("ascii"))


def derive_and_save_public_key(private_key_path: str, public_key_path: str) -> None:
    key = load_key(private_key_path, private=True)
    _write_file(public_key_path, key.public_key().export_key(format="PEM").encode("ascii"))
