# hms/unit_of_work.py
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import and_, delete, insert, select, update
from sqlalchemy.orm import Session

Key = Tuple[Any, ...]


def primary_key_columns(model):
    return tuple(model.__table__.primary_key.columns)


def has_surrogate_key(model) -> bool:
    """True when the store assigns the identity (single integer primary key)."""
    return len(primary_key_columns(model)) == 1


def normalize_key(model, key) -> Key:
    if not isinstance(key, tuple):
        key = (key,)
    expected = len(primary_key_columns(model))
    if len(key) != expected:
        raise ValueError(f"{model.__tablename__} is keyed by {expected} value(s), got {key!r}")
    return key


def public_key(model, key: Key):
    return key[0] if len(key) == 1 else key


def row_key(model, row: Dict[str, Any]) -> Key:
    return tuple(row[column.key] for column in primary_key_columns(model))


@dataclass
class Change:
    """One committed row mutation; ``before``/``after`` are None for insert/delete."""
    entity: Any
    key: Key
    before: Optional[Dict[str, Any]]
    after: Optional[Dict[str, Any]]


class UnitOfWork:
    """Raw row access inside one session transaction.

    Writes made here are not validated; callers go through the constraint
    engine first. Every write is journaled in ``changes`` so the index
    manager can replay it once the transaction commits.
    """

    def __init__(self, session: Session):
        self.session = session
        self.changes: List[Change] = []

    def _match_key(self, model, key: Key):
        return and_(*(column == value for column, value in zip(primary_key_columns(model), key)))

    def fetch(self, model, key: Key) -> Optional[Dict[str, Any]]:
        stmt = select(model.__table__).where(self._match_key(model, key))
        row = self.session.execute(stmt).mappings().first()
        return dict(row) if row is not None else None

    def exists(self, model, key: Key) -> bool:
        stmt = select(*primary_key_columns(model)).where(self._match_key(model, key))
        return self.session.execute(stmt).first() is not None

    def find_keys(self, model, criteria: Dict[str, Any], exclude: Optional[Key] = None) -> List[Key]:
        table = model.__table__
        stmt = select(*primary_key_columns(model)).where(
            *(table.c[field] == value for field, value in criteria.items())
        ).order_by(*primary_key_columns(model))
        keys = [tuple(row) for row in self.session.execute(stmt)]
        if exclude is not None:
            keys = [key for key in keys if key != exclude]
        return keys

    def find_rows(self, model, criteria: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        table = model.__table__
        stmt = select(table).where(
            *(table.c[field] == value for field, value in (criteria or {}).items())
        ).order_by(*primary_key_columns(model))
        return [dict(row) for row in self.session.execute(stmt).mappings()]

    def insert(self, model, values: Dict[str, Any]) -> Key:
        result = self.session.execute(insert(model.__table__).values(**values))
        key = tuple(result.inserted_primary_key)
        self.changes.append(Change(model, key, None, self.fetch(model, key)))
        return key

    def update(self, model, key: Key, before: Dict[str, Any], values: Dict[str, Any]) -> Dict[str, Any]:
        self.session.execute(
            update(model.__table__).where(self._match_key(model, key)).values(**values)
        )
        after = self.fetch(model, key)
        self.changes.append(Change(model, key, before, after))
        return after

    def delete(self, model, key: Key, before: Dict[str, Any]) -> None:
        self.session.execute(delete(model.__table__).where(self._match_key(model, key)))
        self.changes.append(Change(model, key, before, None))
