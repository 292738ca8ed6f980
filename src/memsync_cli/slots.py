"""Local persistence slots.

A slot holds one opaque blob: the whole serialized Local Store. It is read
once at start-up and rewritten wholesale after every local mutation.
"""

import os
import tempfile
import threading
from pathlib import Path
from typing import Optional, Protocol

from .errors import PersistenceError


class PersistenceSlot(Protocol):
    def write_blob(self, blob: bytes) -> None:
        """Replace the stored blob. Raises PersistenceError on failure."""
        ...

    def read_blob(self) -> Optional[bytes]:
        """Return the stored blob, or None if nothing was written yet."""
        ...


class MemorySlot:
    """Slot kept in process memory. Nothing survives the process."""

    def __init__(self, initial: Optional[bytes] = None) -> None:
        self._blob = initial
        self._lock = threading.Lock()

    def write_blob(self, blob: bytes) -> None:
        with self._lock:
            self._blob = bytes(blob)

    def read_blob(self) -> Optional[bytes]:
        with self._lock:
            return self._blob


class FileSlot:
    """Slot backed by a single file, replaced atomically on every write.

    Args:
        path: File to hold the blob
        max_bytes: Optional quota; larger blobs are rejected
    """

    def __init__(self, path: Path, max_bytes: Optional[int] = None) -> None:
        self.path = Path(path)
        self.max_bytes = max_bytes

    def write_blob(self, blob: bytes) -> None:
        if self.max_bytes is not None and len(blob) > self.max_bytes:
            raise PersistenceError(
                f"quota exceeded: {len(blob)} bytes > {self.max_bytes} allowed for {self.path}"
            )
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
            try:
                with os.fdopen(fd, "wb") as fh:
                    fh.write(blob)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise PersistenceError(f"cannot write {self.path}: {e}") from e

    def read_blob(self) -> Optional[bytes]:
        try:
            return self.path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise PersistenceError(f"cannot read {self.path}: {e}") from e
