"""
Generator state file — durable single-writer state for one chain.

Layout:
    ~/.provmark/<name>.json   {"resolution", "seed", "chain_id", "next_seq", "rng_state"}

All writes are atomic (temp file + os.replace) and fsynced, mode 0600
since the file holds the chain's seed.

``advance()`` is the only safe way to emit a mark from a state file:
read state, call next(), persist the new state, and only then hand the
mark back. If the write fails the mark is never released, and the next
call resumes from the last durable state, re-deriving the same key at
the same sequence number. Resuming from an older copy of the file while
a newer state was already published forks the chain.
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any

from provmark import STATE_DIR, STATE_FILE_MODE
from provmark.generator import ProvenanceMarkGenerator
from provmark.mark import ProvenanceMark

log = logging.getLogger(__name__)

_NAME_RE = re.compile(r"^[A-Za-z0-9_.-]{1,64}$")


class StateError(Exception):
    """Error reading or writing generator state."""


def default_state_path(name: str) -> Path:
    """Path of the state file for chain ``name`` under ~/.provmark/."""
    if not isinstance(name, str) or not _NAME_RE.match(name) or name.startswith("."):
        raise ValueError(f"Invalid chain name: {name!r}")
    return STATE_DIR / f"{name}.json"


class GeneratorStateFile:
    """File-backed generator state.

    Usage:
        state = GeneratorStateFile("chain.json")
        state.create(ProvenanceMarkGenerator.from_passphrase(res, "secret"))
        mark = state.advance(date)   # state is durable before this returns
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> ProvenanceMarkGenerator:
        """Read the persisted generator."""
        try:
            data = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise StateError(f"Cannot read state file {self.path}: {e}") from e
        try:
            raw = json.loads(data)
            if not isinstance(raw, dict):
                raise StateError(f"State file {self.path} is not a JSON object")
            gen = ProvenanceMarkGenerator.from_dict(raw)
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise StateError(f"Corrupt state file {self.path}: {e}") from e
        log.debug("Loaded %r from %s", gen, self.path)
        return gen

    def save(self, generator: ProvenanceMarkGenerator) -> None:
        """Atomically write the generator state (temp + rename)."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = json.dumps(generator.to_dict(), indent=2, sort_keys=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self.path.parent), suffix=".tmp", prefix=".state_"
        )
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data.encode("utf-8"))
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, STATE_FILE_MODE)
            os.replace(tmp_path, str(self.path))
        except Exception:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
        log.debug("Saved %r to %s", generator, self.path)

    def create(
        self, generator: ProvenanceMarkGenerator, overwrite: bool = False
    ) -> None:
        """Persist a new chain. Refuses to replace existing state by default."""
        if self.exists() and not overwrite:
            raise StateError(
                f"State file {self.path} already exists; "
                f"replacing it would fork or abandon that chain"
            )
        self.save(generator)

    def advance(self, date: datetime | None = None, info: Any = None) -> ProvenanceMark:
        """Read, emit the next mark, persist, then return the mark."""
        generator = self.load()
        mark = generator.next(date, info)
        self.save(generator)
        return mark
