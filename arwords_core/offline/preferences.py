# =============================================================================
# arwords_core/offline/preferences.py
# Lightweight Key-Value Preferences
# =============================================================================
"""
PreferenceStore - small JSON file for flags that must be readable instantly.

Values are held in memory and persisted on every write via a temp file and
an atomic rename, so a crash mid-write never leaves a truncated file.
"""

from __future__ import annotations
import asyncio
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from arwords_core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_PREFERENCES_PATH = Path("local_data") / "preferences.json"


class PreferenceStore:
    """Async facade over a JSON preferences file."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else DEFAULT_PREFERENCES_PATH
        self._values: Optional[Dict[str, Any]] = None
        self._lock = asyncio.Lock()

    def _load(self) -> Dict[str, Any]:
        """Load preferences from disk."""
        if self.path.exists():
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    data = json.load(f)
                if isinstance(data, dict):
                    return data
                logger.warning(f"Ignoring malformed preferences file: {self.path}")
            except (json.JSONDecodeError, IOError) as e:
                logger.warning(f"Could not read preferences, starting empty: {e}")
        return {}

    def _save(self, values: Dict[str, Any]) -> None:
        """Save preferences to disk."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(values, f, indent=2, default=str)
        os.replace(tmp_path, self.path)

    async def _values_loaded(self) -> Dict[str, Any]:
        if self._values is None:
            self._values = await asyncio.to_thread(self._load)
        return self._values

    async def _persist(self) -> None:
        await asyncio.to_thread(self._save, dict(self._values or {}))

    async def get(self, key: str, default: Any = None) -> Any:
        values = await self._values_loaded()
        return values.get(key, default)

    async def get_bool(self, key: str) -> Optional[bool]:
        """Stored bool, or None when unset or not a bool."""
        value = await self.get(key)
        return value if isinstance(value, bool) else None

    async def set(self, key: str, value: Any) -> None:
        async with self._lock:
            values = await self._values_loaded()
            values[key] = value
            await self._persist()

    async def set_bool(self, key: str, value: bool) -> None:
        await self.set(key, bool(value))

    async def remove_prefix(self, prefix: str) -> int:
        """Remove every key starting with `prefix`; returns the count removed."""
        async with self._lock:
            values = await self._values_loaded()
            doomed = [key for key in values if key.startswith(prefix)]
            for key in doomed:
                del values[key]
            if doomed:
                await self._persist()
            return len(doomed)
