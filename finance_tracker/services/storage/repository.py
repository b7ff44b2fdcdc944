"""
Collection Repository

Typed access to the JSON collections kept in a KeyValueStorage.

LIFECYCLE RULES:
- A collection is always read whole and written whole
- Records change only through explicit add / update / remove calls;
  `update` replaces the entire record with the given id
- Archive-and-reset first writes the SavedReport at the HEAD of the
  history list, then empties the live collections. If the history write
  fails nothing is cleared.
- Archived reports are never modified, only deleted
"""

import json
from datetime import datetime
from typing import Iterable, Optional, Sequence, TypeVar

import structlog
from pydantic import ValidationError

from finance_tracker.models.records import LedgerRecord, SavedReport
from finance_tracker.services.storage.interface import (
    CorruptDataError,
    KeyValueStorage,
    NotFoundError,
)


logger = structlog.get_logger(__name__)

RecordT = TypeVar("RecordT", bound=LedgerRecord)


class StorageKeys:
    """Bare collection keys (before per-user partitioning)."""

    INCOMES = "incomes"
    EXPENSES = "expenses"
    MONTHLY_EXPENSES = "monthlyExpenses"
    PERSONAL_HISTORY = "personal_finance_history"

    BUSINESS_INCOMES = "businessIncomes"
    BUSINESS_EXPENSES = "businessExpenses"
    BUSINESS_MONTHLY_EXPENSES = "businessMonthlyExpenses"
    BUSINESS_HISTORY = "business_finance_history"

    DEBTS = "debts"
    REMITTANCES = "remessas"
    GOALS = "metas"

    @staticmethod
    def goal_steps(goal_id: str) -> str:
        return f"meta-steps-{goal_id}"


class CollectionRepository:
    """Load, save and mutate record collections by key."""

    def __init__(self, storage: KeyValueStorage):
        self._storage = storage

    @property
    def storage(self) -> KeyValueStorage:
        return self._storage

    async def _load_raw(self, key: str) -> list:
        raw = await self._storage.get(key)
        if raw is None or not raw.strip():
            return []
        try:
            items = json.loads(raw)
        except json.JSONDecodeError as e:
            raise CorruptDataError(f"{key} does not hold valid JSON: {e}")
        if not isinstance(items, list):
            raise CorruptDataError(f"{key} does not hold a list")
        return items

    async def _save_raw(self, key: str, items: list) -> None:
        await self._storage.set(key, json.dumps(items, ensure_ascii=False))

    async def load(self, key: str, model: type[RecordT]) -> list[RecordT]:
        """
        Every valid record under `key`.

        Records that fail validation are skipped and logged, so one bad
        entry does not hide the rest of the collection.
        """
        records = []
        for item in await self._load_raw(key):
            try:
                records.append(model.model_validate(item))
            except ValidationError as e:
                logger.warning(
                    "record_skipped",
                    key=key,
                    model=model.__name__,
                    errors=e.error_count(),
                )
        return records

    async def save(self, key: str, records: Iterable[LedgerRecord]) -> None:
        """Replace the whole collection."""
        await self._save_raw(key, [record.to_storage() for record in records])

    async def get(self, key: str, model: type[RecordT], record_id: str) -> Optional[RecordT]:
        for record in await self.load(key, model):
            if record.id == record_id:
                return record
        return None

    async def add(self, key: str, model: type[RecordT], record: RecordT) -> RecordT:
        records = await self.load(key, model)
        records.append(record)
        await self.save(key, records)
        return record

    async def update(self, key: str, model: type[RecordT], record: RecordT) -> RecordT:
        """
        Replace the record carrying `record.id`.

        Raises:
            NotFoundError: If no record has that id
        """
        records = await self.load(key, model)
        for idx, existing in enumerate(records):
            if existing.id == record.id:
                records[idx] = record
                await self.save(key, records)
                return record
        raise NotFoundError(f"No record {record.id} in {key}")

    async def remove(self, key: str, model: type[RecordT], record_id: str) -> bool:
        """Delete by id. Returns False if the id was not present."""
        records = await self.load(key, model)
        remaining = [record for record in records if record.id != record_id]
        if len(remaining) == len(records):
            return False
        await self.save(key, remaining)
        return True

    async def clear(self, key: str) -> None:
        await self._save_raw(key, [])

    # -------------------------------------------------------------------------
    # Archive
    # -------------------------------------------------------------------------

    async def list_history(self, history_key: str) -> list[SavedReport]:
        """Archived reports, newest first."""
        reports = []
        for item in await self._load_raw(history_key):
            try:
                reports.append(SavedReport.model_validate(item))
            except ValidationError as e:
                logger.warning(
                    "report_skipped",
                    key=history_key,
                    errors=e.error_count(),
                )
        return reports

    async def archive_and_reset(
        self,
        history_key: str,
        payload: dict,
        file_prefix: str,
        clear_keys: Sequence[str] = (),
        moment: Optional[datetime] = None,
        monthly: bool = True,
    ) -> SavedReport:
        """Snapshot `payload` at the head of the history, then empty `clear_keys`."""
        report = SavedReport.snapshot(payload, file_prefix, moment=moment, monthly=monthly)

        history = await self._load_raw(history_key)
        await self._save_raw(history_key, [report.to_storage(), *history])

        for key in clear_keys:
            await self.clear(key)

        return report

    async def delete_report(self, history_key: str, report_id: str) -> bool:
        history = await self._load_raw(history_key)
        remaining = [item for item in history if item.get("id") != report_id]
        if len(remaining) == len(history):
            return False
        await self._save_raw(history_key, remaining)
        return True
