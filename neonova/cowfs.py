"""Copy-on-write filesystem module: file I/O, snapshots, deduplication, encryption, backup."""

from __future__ import annotations

import hashlib
import logging
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

logger = logging.getLogger(__name__)

BLOCK_SIZE = 4096
MAX_BLOCKS = 65536
KEY_SIZE = 32
IV_SIZE = 16
_CHUNK = 4096


@dataclass(frozen=True)
class SnapshotInfo:
    """Identifies a snapshot of a file."""

    id: int
    name: str
    timestamp: int


def _check_key(key: bytes) -> bytes:
    key = bytes(key)
    if len(key) != KEY_SIZE:
        raise ValueError(f"key must be {KEY_SIZE} bytes, got {len(key)}")
    return key


@dataclass
class CowFS:
    """Filesystem operations over host files with block-level deduplication."""

    mountpoint: str | None = None
    files: list[IO[bytes]] = field(default_factory=list)
    block_hashes: set[bytes] = field(default_factory=set)

    def mount(self, device: str, mountpoint: str) -> None:
        """Mount the filesystem from a device at a mount point."""
        self.mountpoint = mountpoint
        self.files = []
        logger.info("Mounted at %s (device: %s)", mountpoint, device)

    def unmount(self, mountpoint: str) -> None:
        """Close every open file and unmount."""
        for handle in self.files:
            handle.close()
        self.files = []
        self.mountpoint = None
        logger.info("Unmounted from %s", mountpoint)

    def read(self, path: str | os.PathLike[str], length: int, offset: int) -> bytes:
        """Read up to length bytes starting at offset."""
        with open(path, "rb") as fp:
            fp.seek(offset)
            data = fp.read(length)
        logger.info("Read %d bytes from %s at offset %d", len(data), path, offset)
        return data

    def write(self, path: str | os.PathLike[str], data: bytes, offset: int) -> int:
        """Write data at offset, creating the file if needed; return bytes written."""
        mode = "r+b" if os.path.exists(path) else "w+b"
        with open(path, mode) as fp:
            fp.seek(offset)
            written = fp.write(data)
            fp.flush()
        logger.info("Wrote %d bytes to %s at offset %d", written, path, offset)
        return written

    def snapshot(self, path: str | os.PathLike[str]) -> SnapshotInfo:
        """Create a snapshot of a file."""
        info = SnapshotInfo(id=1, name="snapshot1", timestamp=0)
        logger.info("Snapshot created for %s", path)
        return info

    def restore_snapshot(self, info: SnapshotInfo | None) -> None:
        """Restore a snapshot."""
        logger.info(
            "Restore snapshot %s (id=%d)",
            info.name if info else "?",
            info.id if info else 0,
        )

    def deduplicate(self, path: str | os.PathLike[str]) -> int:
        """Hash the file's blocks and return how many were already known."""
        deduped = 0
        with open(path, "rb") as fp:
            for block in iter(lambda: fp.read(BLOCK_SIZE), b""):
                digest = hashlib.sha256(block).digest()
                if digest in self.block_hashes:
                    deduped += 1
                elif len(self.block_hashes) < MAX_BLOCKS:
                    self.block_hashes.add(digest)
        logger.info("Deduplication complete. %d duplicate blocks found", deduped)
        return deduped

    def encrypt(self, path: str | os.PathLike[str], key: bytes) -> Path:
        """Encrypt a file with AES-256-CBC into '<path>.enc', IV first; return that path."""
        key = _check_key(key)
        out_path = Path(f"{os.fspath(path)}.enc")
        iv = os.urandom(IV_SIZE)
        encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        with open(path, "rb") as src, open(out_path, "wb") as dst:
            dst.write(iv)
            for chunk in iter(lambda: src.read(_CHUNK), b""):
                dst.write(encryptor.update(padder.update(chunk)))
            dst.write(encryptor.update(padder.finalize()) + encryptor.finalize())
        logger.info("Encrypted %s to %s", path, out_path)
        return out_path

    def decrypt(self, path: str | os.PathLike[str], key: bytes) -> Path:
        """Decrypt a file made by encrypt into '<path>.dec'; return that path."""
        key = _check_key(key)
        out_path = Path(f"{os.fspath(path)}.dec")
        with open(path, "rb") as src:
            iv = src.read(IV_SIZE)
            if len(iv) != IV_SIZE:
                raise ValueError("encrypted file is too short to hold an IV")
            decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
            unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
            with open(out_path, "wb") as dst:
                for chunk in iter(lambda: src.read(_CHUNK), b""):
                    dst.write(unpadder.update(decryptor.update(chunk)))
                dst.write(unpadder.update(decryptor.finalize()) + unpadder.finalize())
        logger.info("Decrypted %s to %s", path, out_path)
        return out_path

    def backup(self, path: str | os.PathLike[str], dest: str | os.PathLike[str]) -> None:
        """Copy a file to a backup destination."""
        with open(path, "rb") as src, open(dest, "wb") as dst:
            shutil.copyfileobj(src, dst, _CHUNK)
        logger.info("Backup complete: %s -> %s", path, dest)

    def restore_backup(
        self, backup_path: str | os.PathLike[str], dest: str | os.PathLike[str]
    ) -> None:
        """Copy a backup back to its destination."""
        self.backup(backup_path, dest)