"""Durable last-known-good snapshot of the dashboard result."""

import asyncio
import contextlib
import json
import os
import tempfile
from datetime import UTC, datetime
from pathlib import Path

from cryptodash.models.market_data import EnrichedRecord, Snapshot
from cryptodash.utils.config import SnapshotConfig, config
from cryptodash.utils.logger import StructuredLogger


def utc_timestamp() -> str:
    """Current time as ISO8601 with millisecond precision and a Z suffix."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class SnapshotStore:
    """
    Reads and replaces the snapshot file ``{"lastUpdate": ..., "data": [...]}``.

    A missing or malformed file reads as an empty snapshot. Writes replace the
    whole file and never raise.
    """

    def __init__(self, settings: SnapshotConfig | None = None):
        settings = settings or config.snapshot
        self.path = Path(settings.path)
        self.stale_after_minutes = settings.stale_after_minutes
        self.logger = StructuredLogger("SnapshotStore")

    async def load(self) -> Snapshot:
        return await asyncio.to_thread(self._load)

    async def save(self, records: list[EnrichedRecord]) -> bool:
        """
        Persist records as the new snapshot.

        Returns:
            True if the file was written. An empty record list is never written.
        """
        if not records:
            self.logger.warning("Refusing to overwrite snapshot with an empty result")
            return False
        return await asyncio.to_thread(self._save, records)

    def _load(self) -> Snapshot:
        try:
            with open(self.path, encoding="utf-8") as fh:
                parsed = json.load(fh)
        except FileNotFoundError:
            self.logger.info("No snapshot on disk yet", context={"path": str(self.path)})
            return Snapshot()
        except (OSError, ValueError) as e:
            self.logger.warning(
                "Could not read snapshot file", context={"path": str(self.path), "error": str(e)}
            )
            return Snapshot()

        if not isinstance(parsed, dict) or not isinstance(parsed.get("data"), list):
            self.logger.warning("Invalid snapshot format", context={"path": str(self.path)})
            return Snapshot()

        try:
            records = [EnrichedRecord.from_dict(item) for item in parsed["data"]]
        except (TypeError, ValueError) as e:
            self.logger.warning(
                "Snapshot contains malformed records", context={"path": str(self.path), "error": str(e)}
            )
            return Snapshot()

        last_update = parsed.get("lastUpdate") if isinstance(parsed.get("lastUpdate"), str) else ""
        self._warn_if_stale(last_update)
        return Snapshot(last_update=last_update, records=records)

    def _warn_if_stale(self, last_update: str) -> None:
        try:
            updated_at = datetime.fromisoformat(last_update.replace("Z", "+00:00"))
        except ValueError:
            return
        if updated_at.tzinfo is None:
            updated_at = updated_at.replace(tzinfo=UTC)
        age_minutes = (datetime.now(UTC) - updated_at).total_seconds() / 60
        if age_minutes > self.stale_after_minutes:
            self.logger.warning(
                "Snapshot on disk is old", context={"age_minutes": round(age_minutes)}
            )

    def _save(self, records: list[EnrichedRecord]) -> bool:
        snapshot = Snapshot(last_update=utc_timestamp(), records=list(records))
        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=self.path.parent, prefix=self.path.name, suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(snapshot.to_dict(), fh, indent=2)
            os.replace(tmp_path, self.path)
        except (OSError, TypeError, ValueError) as e:
            self.logger.error(
                "Error saving snapshot to disk", context={"path": str(self.path)}, exception=e
            )
            if tmp_path:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_path)
            return False

        self.logger.info(
            "Snapshot saved to disk", context={"path": str(self.path), "records": len(records)}
        )
        return True
