"""Validation of proposed row mutations.

Checks run in a fixed order and the first failure is raised:

0. shape: unknown or missing fields, wrong value types
1. domain: enumerated fields hold a declared value
2. range: numeric bounds declared in ``Column.info["check"]``
3. uniqueness: single and composite unique keys across live rows
4. reference: every foreign key resolves to a live row
"""
import enum
import logging
import operator
from dataclasses import dataclass
from datetime import date, time
from typing import Any, Dict, List, Optional, Tuple, Type

from sqlalchemy import Date, Enum as SQLAlchemyEnum, Integer, String, Time, UniqueConstraint

from .errors import (
    DomainViolation, RangeViolation, ReferenceViolation, SchemaViolation, UniquenessViolation,
)
from .models import ENTITY_MODELS
from .relationships import RelationshipGraph, entity_name
from .unit_of_work import Key, has_surrogate_key, primary_key_columns

logger = logging.getLogger(__name__)


class Operation(str, enum.Enum):
    insert = "insert"
    update = "update"


@dataclass(frozen=True)
class DomainRule:
    field: str
    enum_cls: Type[enum.Enum]

    @property
    def allowed_values(self) -> Tuple[str, ...]:
        return tuple(member.value for member in self.enum_cls)

    def check(self, value):
        if isinstance(value, self.enum_cls):
            return value
        if isinstance(value, str) and not isinstance(value, enum.Enum) and value in self.allowed_values:
            return self.enum_cls(value)
        raise DomainViolation(self.field, self.allowed_values)


_COMPARATORS = {
    ">=": operator.ge,
    ">": operator.gt,
    "<=": operator.le,
    "<": operator.lt,
}


@dataclass(frozen=True)
class RangeRule:
    field: str
    op: str
    limit: int

    @property
    def constraint(self) -> str:
        return f"{self.field} {self.op} {self.limit}"

    def check(self, value):
        if not _COMPARATORS[self.op](value, self.limit):
            raise RangeViolation(self.field, self.constraint)
        return value


def build_rules(models=ENTITY_MODELS) -> Dict[Any, Dict[str, List[Any]]]:
    """Validator table keyed by entity type, then field name."""
    rules: Dict[Any, Dict[str, List[Any]]] = {}
    for model in models:
        for column in model.__table__.columns:
            field_rules = []
            if isinstance(column.type, SQLAlchemyEnum) and column.type.enum_class is not None:
                field_rules.append(DomainRule(column.key, column.type.enum_class))
            check = column.info.get("check")
            if check is not None:
                op, limit = check
                if op not in _COMPARATORS:
                    raise ValueError(f"Unsupported check {op!r} on {model.__tablename__}.{column.key}")
                field_rules.append(RangeRule(column.key, op, limit))
            if field_rules:
                rules.setdefault(model, {})[column.key] = field_rules
    return rules


def unique_keys(model) -> List[Tuple[str, ...]]:
    """Every unique column set of ``model``, in column declaration order."""
    table = model.__table__
    keys = []
    if not has_surrogate_key(model):
        keys.append(tuple(column.key for column in primary_key_columns(model)))
    for constraint in table.constraints:
        if isinstance(constraint, UniqueConstraint):
            keys.append(tuple(column.key for column in constraint.columns))
    for column in table.columns:
        if column.unique:
            keys.append((column.key,))

    position = {column.key: index for index, column in enumerate(table.columns)}
    deduped = []
    for key in sorted(keys, key=lambda fields: [position[field] for field in fields]):
        if key not in deduped:
            deduped.append(key)
    return deduped


class ConstraintEngine:

    def __init__(self, graph: RelationshipGraph, models=ENTITY_MODELS):
        self.graph = graph
        self.rules = build_rules(models)
        self._unique_keys = {model: unique_keys(model) for model in models}

    def rules_for(self, model) -> Dict[str, List[Any]]:
        return self.rules.get(model, {})

    def validate(
        self,
        work,
        model,
        row: Dict[str, Any],
        operation: Operation,
        key: Optional[Key] = None,
        current: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Return the admitted row, or raise the first violation found.

        For updates ``row`` holds only the changed fields; it is merged into
        ``current`` and the merged row is what gets checked.
        """
        proposed = self._check_shape(model, row, operation, current)
        self._check_domains(model, proposed)
        self._check_ranges(model, proposed)
        self._check_uniqueness(work, model, proposed, key)
        self._check_references(work, model, proposed)
        return proposed

    # --- shape ---

    def _check_shape(self, model, row, operation, current):
        columns = {column.key: column for column in model.__table__.columns}
        pk_fields = {column.key for column in primary_key_columns(model)}

        for field in row:
            if field not in columns:
                raise SchemaViolation(field, "unknown field")

        if operation is Operation.insert:
            if has_surrogate_key(model):
                for field in pk_fields:
                    if row.get(field) is not None:
                        raise SchemaViolation(field, "assigned by the store")
            proposed = {
                column.key: column.default.arg
                for column in columns.values()
                if column.default is not None and column.default.is_scalar
            }
        else:
            for field in pk_fields & set(row):
                if row[field] != current[field]:
                    raise SchemaViolation(field, "primary key is immutable")
            proposed = dict(current)
        proposed.update(row)

        for field, value in list(proposed.items()):
            proposed[field] = self._coerce(columns[field], value)

        for column in columns.values():
            if column.nullable or column.server_default is not None:
                continue
            if operation is Operation.insert and column.key in pk_fields and has_surrogate_key(model):
                continue
            if proposed.get(column.key) is None:
                raise SchemaViolation(column.key, "required")
        return proposed

    def _coerce(self, column, value):
        if value is None:
            return None
        column_type = column.type
        if isinstance(column_type, SQLAlchemyEnum):
            # domain check owns enumerated values
            return value
        if isinstance(column_type, Integer):
            if isinstance(value, bool) or not isinstance(value, int):
                raise SchemaViolation(column.key, "expected an integer")
            return value
        if isinstance(column_type, Date):
            if isinstance(value, str):
                try:
                    return date.fromisoformat(value)
                except ValueError:
                    raise SchemaViolation(column.key, "expected an ISO date")
            if not isinstance(value, date):
                raise SchemaViolation(column.key, "expected a date")
            return value
        if isinstance(column_type, Time):
            if isinstance(value, str):
                try:
                    return time.fromisoformat(value)
                except ValueError:
                    raise SchemaViolation(column.key, "expected an ISO time")
            if not isinstance(value, time):
                raise SchemaViolation(column.key, "expected a time")
            return value
        if isinstance(column_type, String):
            if not isinstance(value, str):
                raise SchemaViolation(column.key, "expected a string")
            # Optional unique text: blank means absent
            if column.unique and column.nullable and not value.strip():
                return None
            if column_type.length is not None and len(value) > column_type.length:
                raise SchemaViolation(column.key, f"longer than {column_type.length} characters")
            return value
        return value

    # --- domain / range ---

    def _check_domains(self, model, proposed):
        for field, field_rules in self.rules_for(model).items():
            for rule in field_rules:
                if isinstance(rule, DomainRule) and proposed.get(field) is not None:
                    proposed[field] = rule.check(proposed[field])

    def _check_ranges(self, model, proposed):
        for field, field_rules in self.rules_for(model).items():
            for rule in field_rules:
                if isinstance(rule, RangeRule) and proposed.get(field) is not None:
                    rule.check(proposed[field])

    # --- uniqueness ---

    def _check_uniqueness(self, work, model, proposed, key):
        for fields in self._unique_keys.get(model, ()):
            values = [proposed.get(field) for field in fields]
            # NULLs never collide
            if any(value is None for value in values):
                continue
            if work.find_keys(model, dict(zip(fields, values)), exclude=key):
                logger.debug(f"Unique key {fields} collides on {model.__tablename__}")
                raise UniquenessViolation(fields)

    # --- reference ---

    def _check_references(self, work, model, proposed):
        for edge in self.graph.edges_from(model):
            target_id = proposed.get(edge.field)
            if target_id is None:
                continue
            if not work.exists(edge.target, (target_id,)):
                raise ReferenceViolation(edge.field, entity_name(edge.target), target_id)
