"""Secondary orderings over committed rows.

The store replays each committed transaction's change journal here while it
still holds its lock, so an index is never observably behind a completed
mutation.
"""
import logging
from bisect import bisect_left, insort
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from sqlalchemy import select

from .models import Appointment, Doctor, Medication, Patient, PatientPhone
from .unit_of_work import Change, Key, primary_key_columns, row_key

logger = logging.getLogger(__name__)

IndexKey = Tuple[Any, ...]


def _all_or_none(*values) -> Optional[IndexKey]:
    if any(value is None for value in values):
        return None
    return tuple(values)


def _name_key(row) -> Optional[IndexKey]:
    if row.get("last_name") is None or row.get("first_name") is None:
        return None
    return (row["last_name"].casefold(), row["first_name"].casefold())


@dataclass(frozen=True)
class IndexSpec:
    name: str
    entity: Any
    key: Callable[[Dict[str, Any]], Optional[IndexKey]]


class SortedIndex:
    """Sorted list of ``(index_key, primary_key)`` entries."""

    def __init__(self, spec: IndexSpec):
        self.spec = spec
        self._entries: List[Tuple[IndexKey, Key]] = []

    def __len__(self):
        return len(self._entries)

    def clear(self):
        self._entries.clear()

    def add(self, key: Key, row: Dict[str, Any]):
        index_key = self.spec.key(row)
        if index_key is not None:
            insort(self._entries, (index_key, key))

    def remove(self, key: Key, row: Dict[str, Any]):
        index_key = self.spec.key(row)
        if index_key is None:
            return
        entry = (index_key, key)
        position = bisect_left(self._entries, entry)
        if position < len(self._entries) and self._entries[position] == entry:
            del self._entries[position]
        else:
            logger.warning(f"Index {self.spec.name} had no entry for {key!r}")

    def scan(self, prefix: IndexKey = (), lower: IndexKey = ()) -> Iterator[Tuple[IndexKey, Key]]:
        """Entries whose key starts with ``prefix`` and continues at or after ``lower``."""
        position = bisect_left(self._entries, (prefix + lower,))
        width = len(prefix)
        for entry in self._entries[position:]:
            if entry[0][:width] != prefix:
                break
            yield entry

    def scan_below(self, upper: IndexKey) -> Iterator[Tuple[IndexKey, Key]]:
        for entry in self._entries:
            if entry[0] >= upper:
                break
            yield entry

    def scan_text_prefix(self, text: str) -> Iterator[Tuple[IndexKey, Key]]:
        """Entries whose first key component starts with ``text`` (case-insensitive)."""
        text = text.casefold()
        position = bisect_left(self._entries, ((text,),))
        for entry in self._entries[position:]:
            if not entry[0][0].startswith(text):
                break
            yield entry


DEFAULT_INDEXES = (
    IndexSpec("patient_name", Patient, _name_key),
    IndexSpec("doctor_name", Doctor, _name_key),
    IndexSpec("patient_phone_number", PatientPhone, lambda row: _all_or_none(row.get("phone_number"))),
    IndexSpec(
        "appointment_doctor_date", Appointment,
        lambda row: _all_or_none(row.get("doctor_id"), row.get("appointment_date"), row.get("appointment_time")),
    ),
    IndexSpec(
        "appointment_patient_date", Appointment,
        lambda row: _all_or_none(row.get("patient_id"), row.get("appointment_date"), row.get("appointment_time")),
    ),
    IndexSpec("medication_stock", Medication, lambda row: _all_or_none(row.get("stock_quantity"))),
)


class IndexManager:

    def __init__(self, specs=DEFAULT_INDEXES):
        self._indexes: Dict[str, SortedIndex] = {}
        self._by_entity: Dict[Any, List[SortedIndex]] = {}
        for spec in specs:
            index = SortedIndex(spec)
            self._indexes[spec.name] = index
            self._by_entity.setdefault(spec.entity, []).append(index)

    def __getitem__(self, name: str) -> SortedIndex:
        return self._indexes[name]

    def names(self) -> List[str]:
        return list(self._indexes)

    def for_entity(self, entity) -> List[SortedIndex]:
        return self._by_entity.get(entity, [])

    def apply(self, changes: List[Change]):
        for change in changes:
            for index in self.for_entity(change.entity):
                if change.before is not None:
                    index.remove(change.key, change.before)
                if change.after is not None:
                    index.add(change.key, change.after)

    def rebuild(self, session):
        """Repopulate every index from the rows currently in the database."""
        for entity, indexes in self._by_entity.items():
            for index in indexes:
                index.clear()
            stmt = select(entity.__table__).order_by(*primary_key_columns(entity))
            for row in session.execute(stmt).mappings():
                row = dict(row)
                for index in indexes:
                    index.add(row_key(entity, row), row)
        logger.info(f"Rebuilt {len(self._indexes)} indexes")
