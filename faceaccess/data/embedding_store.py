# faceaccess/data/embedding_store.py
"""
Enrolled identity storage.

Format on disk (face_embeddings.json):
    {"Alice": [[0.12, -0.53, ...], [...]], "Bob": [[...]]}

Names are unique case-insensitively; the display name of the first
enrollment is kept. All embeddings in a store share one length.

Thread-safe: writes build a new mapping under a lock and swap it in, so
readers always see a complete snapshot (old or new).
"""
import os
import json
import logging
import tempfile
import threading
from typing import Dict, List, Optional, Tuple

import numpy as np

from ..core.errors import DecodeFailure, DimensionMismatch, FaceAccessError
from ..core.types import as_embedding

logger = logging.getLogger(__name__)

DEFAULT_EMBEDDINGS_PATH = "face_embeddings.json"


def normalize_name(name) -> str:
    """Strip a display name; empty names are rejected."""
    if not isinstance(name, str) or not name.strip():
        raise ValueError("Identity name must be a non-empty string")
    return name.strip()


class EmbeddingStore:
    """In-memory identity store. Subclasses persist through `_persist`."""

    def __init__(self):
        self._lock = threading.Lock()
        self._data: Dict[str, Tuple[np.ndarray, ...]] = {}

    # === SNAPSHOT ===
    def load(self) -> Dict[str, Tuple[np.ndarray, ...]]:
        """Current identities: {display name: (embedding, ...)}."""
        return dict(self._data)

    def _lookup(self, data, name) -> Optional[str]:
        key = name.casefold()
        for existing in data:
            if existing.casefold() == key:
                return existing
        return None

    @property
    def embedding_dim(self) -> Optional[int]:
        """Length shared by all stored embeddings, None when empty."""
        for embeddings in self._data.values():
            if embeddings:
                return int(embeddings[0].size)
        return None

    # === WRITES ===
    def save(self, name, embedding) -> str:
        """
        Append an embedding to an identity, creating it if needed.

        Returns:
            The display name the embedding was stored under

        Raises:
            ValueError: empty name
            DimensionMismatch: embedding length differs from the store
        """
        name = normalize_name(name)
        emb = as_embedding(embedding)
        if emb.size == 0:
            raise ValueError("Embedding must not be empty")
        if not np.all(np.isfinite(emb)):
            raise ValueError("Embedding must contain only finite values")

        with self._lock:
            dim = self.embedding_dim
            if dim is not None and emb.size != dim:
                raise DimensionMismatch(dim, emb.size)

            data = dict(self._data)
            display_name = self._lookup(data, name) or name
            data[display_name] = data.get(display_name, ()) + (emb,)
            self._persist(data)
            self._data = data

        logger.info(f"[Store] Saved embedding for {display_name} "
                    f"({len(data[display_name])} total)")
        return display_name

    def delete(self, name) -> bool:
        """Remove an identity. Returns False if it did not exist."""
        if not isinstance(name, str) or not name.strip():
            return False

        with self._lock:
            existing = self._lookup(self._data, name.strip())
            if existing is None:
                return False
            data = dict(self._data)
            del data[existing]
            self._persist(data)
            self._data = data

        logger.info(f"[Store] Deleted {existing}")
        return True

    def clear(self):
        with self._lock:
            self._persist({})
            self._data = {}
        logger.info("[Store] Cleared all identities")

    def _persist(self, data):
        """Write `data` before it becomes visible. No-op in memory."""

    def reload_if_changed(self) -> bool:
        """Pick up external modifications. Nothing to reload in memory."""
        return False

    # === QUERIES ===
    def identity_names(self) -> List[str]:
        return list(self._data)

    def count(self) -> int:
        return len(self._data)

    def exists(self, name) -> bool:
        if not isinstance(name, str) or not name.strip():
            return False
        return self._lookup(self._data, name.strip()) is not None

    def embedding_count(self, name) -> int:
        if not isinstance(name, str):
            return 0
        existing = self._lookup(self._data, name.strip())
        return len(self._data[existing]) if existing is not None else 0

    def info(self) -> Tuple[int, int]:
        """(identities, total embeddings)."""
        data = self._data
        return len(data), sum(len(embs) for embs in data.values())


class MemoryEmbeddingStore(EmbeddingStore):
    """Store without persistence, mostly for tests and one-shot runs."""


class JsonEmbeddingStore(EmbeddingStore):
    """
    Store persisted as JSON.

    A missing file is an empty store. A file that exists but cannot be
    used raises instead, so a later write never replaces it with less data.

    Args:
        path: JSON file; created on first write

    Raises:
        DecodeFailure: unreadable file, invalid JSON or bad identity entries
        DimensionMismatch: identities with different embedding lengths
    """

    def __init__(self, path=DEFAULT_EMBEDDINGS_PATH):
        super().__init__()
        self.path = path
        self._mtime = 0
        self._stale = False
        self._data = self._read()

    def _file_mtime(self) -> int:
        return os.stat(self.path).st_mtime_ns

    def _read(self) -> Dict[str, Tuple[np.ndarray, ...]]:
        """Parse the whole file. Any unusable entry fails the read."""
        if not os.path.exists(self.path):
            self._mtime = 0
            return {}

        try:
            self._mtime = self._file_mtime()
            with open(self.path, 'r', encoding='utf-8') as f:
                raw = json.load(f)
        except (OSError, ValueError) as e:
            raise DecodeFailure(f"Cannot load {self.path}: {e}", details={"path": self.path})

        if not isinstance(raw, dict):
            raise DecodeFailure(
                f"Expected a JSON object in {self.path}, got {type(raw).__name__}",
                details={"path": self.path},
            )

        data = {}
        dim = None
        for name, vectors in raw.items():
            try:
                arr = np.asarray(vectors, dtype=np.float32)
            except (TypeError, ValueError):
                raise DecodeFailure(f"{self.path}: invalid embeddings for {name!r}",
                                    details={"path": self.path, "name": name})
            if arr.ndim == 1:
                arr = arr[np.newaxis, :]
            if arr.ndim != 2 or arr.shape[0] == 0 or arr.shape[1] == 0:
                raise DecodeFailure(
                    f"{self.path}: invalid embeddings shape {arr.shape} for {name!r}",
                    details={"path": self.path, "name": name},
                )
            if not np.all(np.isfinite(arr)):
                raise DecodeFailure(f"{self.path}: non-finite embedding values for {name!r}",
                                    details={"path": self.path, "name": name})
            if dim is None:
                dim = arr.shape[1]
            elif arr.shape[1] != dim:
                raise DimensionMismatch(dim, arr.shape[1])

            display_name = name.strip()
            if not display_name or self._lookup(data, display_name) is not None:
                raise DecodeFailure(f"{self.path}: duplicate or empty identity name {name!r}",
                                    details={"path": self.path, "name": name})
            data[display_name] = tuple(as_embedding(row) for row in arr)

        return data

    def _persist(self, data):
        if self._stale:
            raise DecodeFailure(
                f"{self.path} changed on disk and could not be reloaded; refusing to overwrite it",
                details={"path": self.path},
            )

        payload = {
            name: [emb.tolist() for emb in embeddings]
            for name, embeddings in data.items()
        }
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(prefix='.embeddings-', suffix='.tmp', dir=directory)
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(payload, f)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

        # Own writes must not trigger a reload
        self._mtime = self._file_mtime()

    def reload_if_changed(self) -> bool:
        """
        Reload the file if another process modified it.

        If the new content cannot be read, the previous snapshot stays in
        use and writes are refused until a later reload succeeds.

        Returns:
            True if the store was reloaded
        """
        if not os.path.exists(self.path):
            return False

        try:
            if self._file_mtime() == self._mtime:
                return False
        except OSError as e:
            logger.warning(f"[Store] Cannot stat {self.path}: {e}")
            return False

        with self._lock:
            old_count = len(self._data)
            try:
                data = self._read()
            except FaceAccessError as e:
                self._stale = True
                logger.warning(f"[Store] Keeping {old_count} identities, reload failed: {e.message}")
                return False
            self._data = data
            self._stale = False

        logger.info(f"[Store] Reloaded {self.path}: {old_count} -> {len(data)} identities")
        return True
