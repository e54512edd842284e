"""
Per-enterprise JSON cache.

Each enterprise gets its own directory under the cache root holding the raw
sheet rows as ``{"global_timestamp": "MM-DD-YY at H:MM AM", "data": [...]}``.
"""

import json
import shutil
from datetime import datetime
from pathlib import Path
from typing import Any

from ..core.dates import (
    DEFAULT_TIMEZONE,
    format_cache_timestamp,
    now_in,
    parse_cache_timestamp,
)
from ..utils.exceptions import CacheError
from ..utils.logging import get_logger

logger = get_logger(__name__)

REGISTRANTS_CACHE = "all-registrants-data.json"
SUBMISSIONS_CACHE = "all-submissions-data.json"

CACHE_FILES = {
    "registrants": REGISTRANTS_CACHE,
    "submissions": SUBMISSIONS_CACHE,
}


class EnterpriseCache:
    """Cache files for one enterprise under ``<cache_dir>/<code>/``."""

    def __init__(self, cache_dir: Path | str, enterprise_code: str):
        self.enterprise_code = enterprise_code
        self.directory = Path(cache_dir) / enterprise_code

    def __repr__(self) -> str:
        return f"EnterpriseCache({str(self.directory)!r})"

    def path(self, name: str) -> Path:
        """Path of a cache file; ``registrants``/``submissions`` are aliases."""
        return self.directory / CACHE_FILES.get(name, name)

    def read(self, name: str) -> dict[str, Any] | None:
        """Decoded cache payload, or ``None`` when missing or unreadable."""
        target = self.path(name)
        if not target.exists():
            return None

        try:
            payload = json.loads(target.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable cache file", path=str(target), error=str(e))
            return None

        if not isinstance(payload, dict):
            logger.warning("Ignoring cache file without a JSON object", path=str(target))
            return None

        return payload

    def write(self, name: str, payload: dict[str, Any]) -> Path:
        """Write ``payload`` atomically (temp file then rename)."""
        target = self.path(name)
        tmp_path = target.with_suffix(target.suffix + ".tmp")

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(payload), encoding="utf-8")
            tmp_path.replace(target)
        except (OSError, TypeError, ValueError) as e:
            tmp_path.unlink(missing_ok=True)
            raise CacheError(f"Failed to write cache file {target}: {e}", path=str(target)) from e

        logger.debug("Wrote cache file", path=str(target))
        return target

    def delete(self, name: str) -> bool:
        target = self.path(name)
        if not target.exists():
            return False
        target.unlink()
        return True

    def clear(self) -> int:
        """Remove every cache file of this enterprise; returns the count."""
        if not self.directory.exists():
            return 0

        removed = sum(1 for entry in self.directory.iterdir() if entry.is_file())
        shutil.rmtree(self.directory)
        logger.audit("cache_cleared", enterprise=self.enterprise_code, files=removed)
        return removed

    def file_info(self, name: str) -> dict[str, Any]:
        target = self.path(name)
        payload = self.read(name)
        data = payload.get("data") if payload else None
        return {
            "name": target.name,
            "path": str(target),
            "exists": target.exists(),
            "size": target.stat().st_size if target.exists() else 0,
            "global_timestamp": payload.get("global_timestamp") if payload else None,
            "rows": len(data) if isinstance(data, list) else 0,
        }

    def write_rows(
        self,
        name: str,
        rows: list[list[str]],
        tz: str = DEFAULT_TIMEZONE,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """Stamp ``rows`` with the current time in ``tz`` and cache them."""
        payload = {
            "global_timestamp": format_cache_timestamp(now or now_in(tz)),
            "data": rows,
        }
        self.write(name, payload)
        return payload

    def read_rows(self, name: str) -> list[list[str]] | None:
        payload = self.read(name)
        if payload is None:
            return None
        data = payload.get("data")
        return data if isinstance(data, list) else []

    def is_fresh(
        self,
        name: str,
        ttl: int,
        tz: str = DEFAULT_TIMEZONE,
        now: datetime | None = None,
    ) -> bool:
        """True when the cache stamp is younger than ``ttl`` seconds and not in the future."""
        payload = self.read(name)
        if payload is None:
            return False

        stamp = parse_cache_timestamp(payload.get("global_timestamp"), tz)
        if stamp is None:
            return False

        age = ((now or now_in(tz)) - stamp).total_seconds()
        # Stamps from the future (clock skew, DST fall-back) are not trusted
        return 0 <= age < ttl
