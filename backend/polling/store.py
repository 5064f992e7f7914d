"""
Checkpoint storage for polling jobs.

Each job owns exactly one checkpoint blob. Stores keep the serialized JSON
form, so ``load`` always hands back an independent copy and a failed cycle
(which never calls ``save``) leaves the stored bytes untouched.
"""

from __future__ import annotations

import hashlib
import os
import re
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

import structlog

from polling.models import Checkpoint

logger = structlog.get_logger()

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class CheckpointStore(ABC):
    """Get/set storage for per-job checkpoints (single writer per cycle)."""

    @abstractmethod
    def load_raw(self, job_key: str) -> str | None:
        """Return the stored blob for ``job_key``, or None if never saved."""
        ...

    @abstractmethod
    def save_raw(self, job_key: str, blob: str) -> None:
        """Atomically replace the stored blob for ``job_key``."""
        ...

    def load(self, job_key: str) -> Checkpoint:
        blob = self.load_raw(job_key)
        if blob is None:
            return Checkpoint()
        return Checkpoint.model_validate_json(blob)

    def save(self, job_key: str, checkpoint: Checkpoint) -> None:
        self.save_raw(job_key, checkpoint.model_dump_json())


class InMemoryCheckpointStore(CheckpointStore):
    """Process-scoped store; checkpoints vanish with the process."""

    def __init__(self) -> None:
        self._blobs: dict[str, str] = {}

    def load_raw(self, job_key: str) -> str | None:
        return self._blobs.get(job_key)

    def save_raw(self, job_key: str, blob: str) -> None:
        self._blobs[job_key] = blob


class FileCheckpointStore(CheckpointStore):
    """One JSON file per job under ``directory``."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def path_for(self, job_key: str) -> Path:
        slug = _UNSAFE_CHARS.sub("_", job_key).strip("_") or "job"
        digest = hashlib.sha256(job_key.encode("utf-8")).hexdigest()[:8]
        return self.directory / f"{slug}-{digest}.json"

    def load_raw(self, job_key: str) -> str | None:
        path = self.path_for(job_key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def save_raw(self, job_key: str, blob: str) -> None:
        path = self.path_for(job_key)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(blob)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug("poll.checkpoint.saved", job_key=job_key, path=str(path))
