"""JSON file retry record store with atomic rewrites for crash recovery."""

import json
import logging
from datetime import UTC, datetime
from pathlib import Path

from pydantic import ValidationError

from retryflow.core.clock import Clock
from retryflow.core.errors import RetryStoreError
from retryflow.core.utils import json_serializer
from retryflow.retry.models import RetryRecord
from retryflow.retry.store.base import RetryRecordStore

logger = logging.getLogger(__name__)

STORE_FORMAT_VERSION = 1


class JsonFileRetryRecordStore(RetryRecordStore):
    """Durable store that keeps every record in one JSON document.

    The document is loaded on construction and rewritten after each mutation
    (write to a temp file, then rename), so a crash leaves either the old or
    the new state on disk, never a partial file.

    Document layout:
        {"version": 1, "last_persisted": "...", "records": [{...}, ...]}
    """

    def __init__(self, path: str | Path, clock: Clock | None = None):
        super().__init__(clock)
        self._path = Path(path)
        self._records: dict[str, RetryRecord] = {}
        self._load()

    @property
    def path(self) -> Path:
        return self._path

    def __len__(self) -> int:
        return len(self._records)

    def _load(self) -> None:
        if not self._path.exists():
            logger.debug(
                "No retry store file found, starting empty",
                extra={"store_path": str(self._path)},
            )
            return

        try:
            with open(self._path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise RetryStoreError(f"Cannot read retry store {self._path}", cause=e) from e

        if not isinstance(data, dict) or data.get("version") != STORE_FORMAT_VERSION:
            version = data.get("version") if isinstance(data, dict) else None
            raise RetryStoreError(
                f"Unsupported retry store format in {self._path}",
                context={"version": version},
            )

        try:
            records = [RetryRecord.model_validate(item) for item in data.get("records", [])]
        except ValidationError as e:
            raise RetryStoreError(f"Corrupt retry record in {self._path}", cause=e) from e

        self._records = {record.event_id: record for record in records}

        logger.info(
            "Restored retry records from disk",
            extra={
                "store_path": str(self._path),
                "record_count": len(self._records),
            },
        )

    async def _read(self, event_id: str) -> RetryRecord | None:
        return self._records.get(event_id)

    async def _write(self, record: RetryRecord) -> None:
        self._records[record.event_id] = record

    async def _remove(self, event_id: str) -> bool:
        return self._records.pop(event_id, None) is not None

    async def _read_all(self) -> list[RetryRecord]:
        return list(self._records.values())

    async def _flush(self) -> None:
        data = {
            "version": STORE_FORMAT_VERSION,
            "last_persisted": datetime.now(UTC).isoformat(),
            "records": [r.model_dump(mode="json") for r in self._records.values()],
        }

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            temp_file = self._path.with_suffix(self._path.suffix + ".tmp")
            with open(temp_file, "w") as f:
                json.dump(data, f, indent=2, default=json_serializer)
            temp_file.replace(self._path)
        except OSError as e:
            logger.error(
                "Failed to persist retry store",
                extra={"store_path": str(self._path), "error": str(e)},
            )
            raise RetryStoreError(f"Cannot write retry store {self._path}", cause=e) from e

        logger.debug(
            "Persisted retry store",
            extra={"store_path": str(self._path), "record_count": len(self._records)},
        )


__all__ = ["JsonFileRetryRecordStore", "STORE_FORMAT_VERSION"]
