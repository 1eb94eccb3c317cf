"""Input-fingerprint cache for stages.

Caching is an optimisation, never a correctness requirement: a stage is
reused only when its input fingerprint matches the previous run *and* its
outputs still hash to what that run produced. Anything else reruns it.
"""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Any

from docship.core.hashing import compute_hash, paths_digest
from docship.core.logging import get_logger
from docship.models import BuildContext
from docship.orchestration.stage import Stage

logger = get_logger(__name__)

CACHE_FILE_NAME = ".docship-cache.json"


class StageCache:
    """JSON-backed record of ``stage -> {fingerprint, outputs}``."""

    def __init__(self, path: Path):
        self.path = path
        self._lock = threading.Lock()
        self._entries: dict[str, dict[str, str]] = self._load()

    def _load(self) -> dict[str, dict[str, str]]:
        if not self.path.is_file():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("stage_cache.unreadable", path=str(self.path), error=str(exc))
            return {}
        return data if isinstance(data, dict) else {}

    def fingerprint(self, stage: Stage, context: BuildContext) -> str:
        assert stage.inputs is not None
        salt = stage.cache_salt(context) if stage.cache_salt else ""
        return compute_hash(stage.name, salt, paths_digest(stage.inputs(context)), length=64)

    @staticmethod
    def outputs_digest(stage: Stage, context: BuildContext) -> str:
        assert stage.outputs is not None
        return paths_digest(stage.outputs(context))

    def is_fresh(self, stage: Stage, context: BuildContext) -> bool:
        """True when inputs and outputs both match the recorded run."""
        if not stage.cacheable:
            return False
        with self._lock:
            entry = self._entries.get(stage.name)
        if not entry:
            return False
        if entry.get("fingerprint") != self.fingerprint(stage, context):
            return False
        outputs = list(stage.outputs(context))  # type: ignore[misc]
        if not outputs or not all(p.exists() for p in outputs):
            return False
        return entry.get("outputs") == self.outputs_digest(stage, context)

    def record(self, stage: Stage, context: BuildContext) -> None:
        if not stage.cacheable:
            return
        entry = {
            "fingerprint": self.fingerprint(stage, context),
            "outputs": self.outputs_digest(stage, context),
        }
        with self._lock:
            self._entries[stage.name] = entry
            self._save()

    def invalidate(self, stage_name: str) -> None:
        with self._lock:
            if self._entries.pop(stage_name, None) is not None:
                self._save()

    def _save(self) -> None:
        # Caller holds the lock
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload: dict[str, Any] = dict(sorted(self._entries.items()))
        tmp = self.path.with_suffix(".tmp")
        tmp.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        tmp.replace(self.path)
