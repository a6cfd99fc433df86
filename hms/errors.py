"""Errors raised by the store.

Every error here is recoverable: a rejected mutation leaves the database and
the indexes exactly as they were before the call.
"""
from typing import Any, Iterable, Sequence, Tuple


class StoreError(Exception):
    pass


class NotFound(StoreError):
    def __init__(self, entity_type: str, id: Any):
        self.entity_type = entity_type
        self.id = id
        super().__init__(f"{entity_type} {id!r} does not exist")


class IntegrityViolation(StoreError):
    """Base class for every rejected mutation."""
    kind = "integrity"


class SchemaViolation(IntegrityViolation):
    kind = "schema"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"{field}: {reason}")


class DomainViolation(IntegrityViolation):
    kind = "domain"

    def __init__(self, field: str, allowed_values: Sequence[str]):
        self.field = field
        self.allowed_values = tuple(allowed_values)
        super().__init__(f"{field} must be one of {', '.join(self.allowed_values)}")


class RangeViolation(IntegrityViolation):
    kind = "range"

    def __init__(self, field: str, constraint: str):
        self.field = field
        self.constraint = constraint
        super().__init__(f"{field} violates {constraint}")


class UniquenessViolation(IntegrityViolation):
    kind = "uniqueness"

    def __init__(self, fields: Iterable[str]):
        self.fields: Tuple[str, ...] = tuple(fields)
        super().__init__(f"duplicate value for ({', '.join(self.fields)})")


class ReferenceViolation(IntegrityViolation):
    kind = "reference"

    def __init__(self, field: str, target_type: str, target_id: Any):
        self.field = field
        self.target_type = target_type
        self.target_id = target_id
        super().__init__(f"{field} references missing {target_type} {target_id!r}")


class RestrictedDeleteViolation(IntegrityViolation):
    kind = "restricted_delete"

    def __init__(self, entity_type: str, id: Any, blocking_dependents: Sequence[Tuple[str, Any]]):
        self.entity_type = entity_type
        self.id = id
        self.blocking_dependents = tuple(blocking_dependents)
        super().__init__(
            f"{entity_type} {id!r} is still referenced by {len(self.blocking_dependents)} row(s)"
        )
