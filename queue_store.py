# -*- coding: utf-8 -*-

"""
Flat JSON document holding the remaining candidate queue per seed:

  {
    "<seed>": ["<candidate>", ...],
    ...
  }

Every store() reloads the document, replaces one key and rewrites the whole
file atomically (tmp file + replace). Single writer per file is assumed.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union


class PersistenceError(RuntimeError):
    pass


def atomic_write_json(path: Path, data: dict) -> None:
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2) + "\n", encoding="utf-8")
    tmp.replace(path)


class QueueStore:
    def __init__(self, path: Union[str, Path], logger: Optional[logging.Logger] = None):
        self.path = Path(path)
        self.log = logger or logging.getLogger(__name__)

    def load(self) -> Optional[Dict[str, List[str]]]:
        """Whole document, or None if the file does not exist yet."""
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise PersistenceError(f"cannot read {self.path}: {type(e).__name__}: {e}") from e
        if not isinstance(data, dict):
            raise PersistenceError(f"{self.path} does not hold a JSON object (got {type(data).__name__})")
        return data

    def get(self, key: str) -> Optional[List[str]]:
        data = self.load() or {}
        value = data.get(key)
        if value is None:
            return None
        if not isinstance(value, list):
            raise PersistenceError(f"entry '{key}' in {self.path} is not a list")
        return list(value)

    def store(self, key: str, value: Sequence[str]) -> None:
        data = self.load() or {}
        data[key] = list(value)
        try:
            atomic_write_json(self.path, data)
        except OSError as e:
            raise PersistenceError(f"cannot write {self.path}: {type(e).__name__}: {e}") from e
        self.log.debug("Stored key=%s entries=%s path=%s", key, len(data[key]), self.path)

    def remaining(self) -> Dict[str, int]:
        return {k: len(v) for k, v in (self.load() or {}).items() if isinstance(v, list)}
