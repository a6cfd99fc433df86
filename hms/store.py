# hms/store.py
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .cascade import CascadeExecutor, DeleteReport
from .config import Settings, get_settings
from .constraints import ConstraintEngine, Operation
from .database import create_tables, make_engine, make_session_factory
from .errors import IntegrityViolation, NotFound, SchemaViolation, StoreError
from .indexes import IndexManager
from .models import ENTITY_MODELS
from .queries import QueryFacade
from .relationships import RelationshipGraph, entity_name
from .unit_of_work import Key, UnitOfWork, normalize_key, public_key

logger = structlog.get_logger(__name__)


class EntityStore:
    """Keyed tables for every entity type, guarded by the constraint engine.

    One instance owns its engine, graph, constraint engine, cascade executor
    and indexes; independent instances never share state. A re-entrant lock
    serializes mutations and gives readers a consistent snapshot.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        engine: Optional[Engine] = None,
        graph: Optional[RelationshipGraph] = None,
        create_schema: bool = True,
    ):
        self.settings = settings or get_settings()
        self.engine = engine or make_engine(self.settings)
        if create_schema:
            create_tables(self.engine)
        self._session_factory = make_session_factory(self.engine)
        self._lock = threading.RLock()

        self.entities = {entity_name(model): model for model in ENTITY_MODELS}
        self.graph = graph or RelationshipGraph.from_models(ENTITY_MODELS)
        self.constraints = ConstraintEngine(self.graph, ENTITY_MODELS)
        self.cascade = CascadeExecutor(self)
        self.indexes = IndexManager()
        with self.read() as session:
            self.indexes.rebuild(session)
        self.queries = QueryFacade(self)

    def resolve(self, entity):
        """Accept a model class or its table name."""
        if isinstance(entity, str):
            try:
                return self.entities[entity]
            except KeyError:
                raise ValueError(f"Unknown entity type: {entity}")
        if entity not in ENTITY_MODELS:
            raise ValueError(f"Unknown entity type: {entity!r}")
        return entity

    # --- sessions ---

    @contextmanager
    def transaction(self) -> Iterator[UnitOfWork]:
        """One atomic unit of work; indexes catch up right after commit."""
        with self._lock:
            session = self._session_factory()
            work = UnitOfWork(session)
            try:
                yield work
                session.commit()
            except IntegrityViolation as e:
                session.rollback()
                logger.info("mutation_rejected", kind=e.kind, reason=str(e))
                raise
            except IntegrityError as e:
                session.rollback()
                logger.error("database_integrity_error", error=str(e.orig))
                raise StoreError(f"Database rejected the mutation: {e.orig}") from e
            except SQLAlchemyError as e:
                session.rollback()
                logger.error("database_error", error=str(e))
                raise StoreError(f"Database error: {e}") from e
            except BaseException:
                session.rollback()
                raise
            finally:
                session.close()
            self.indexes.apply(work.changes)

    @contextmanager
    def read(self) -> Iterator[Session]:
        with self._lock:
            session = self._session_factory()
            try:
                yield session
            finally:
                session.close()

    # --- public operations ---

    def insert(self, entity, row: Dict[str, Any]):
        """Validate and insert ``row``; returns its id (the key pair for the junction)."""
        model = self.resolve(entity)
        with self.transaction() as work:
            key = self.apply_insert(work, model, row)
        logger.debug("row_inserted", entity=entity_name(model), id=public_key(model, key))
        return public_key(model, key)

    def get(self, entity, key) -> Dict[str, Any]:
        model = self.resolve(entity)
        key = normalize_key(model, key)
        with self.read() as session:
            row = UnitOfWork(session).fetch(model, key)
        if row is None:
            raise NotFound(entity_name(model), public_key(model, key))
        return row

    def find(self, entity, **criteria) -> List[Dict[str, Any]]:
        """Rows matching every ``field=value`` pair, in key order."""
        model = self.resolve(entity)
        for field in criteria:
            if field not in model.__table__.c:
                raise SchemaViolation(field, "unknown field")
        with self.read() as session:
            return UnitOfWork(session).find_rows(model, criteria)

    def count(self, entity) -> int:
        model = self.resolve(entity)
        with self.read() as session:
            return session.execute(select(func.count()).select_from(model.__table__)).scalar_one()

    def update(self, entity, key, changes: Dict[str, Any]) -> Dict[str, Any]:
        """Partial update; returns the row as committed."""
        model = self.resolve(entity)
        key = normalize_key(model, key)
        with self.transaction() as work:
            row = self.apply_update(work, model, key, changes)
        logger.debug("row_updated", entity=entity_name(model), id=public_key(model, key), fields=sorted(changes))
        return row

    def delete(self, entity, key) -> DeleteReport:
        """Delete a live row and propagate to its dependents; NotFound if absent."""
        model = self.resolve(entity)
        key = normalize_key(model, key)
        with self.transaction() as work:
            if not work.exists(model, key):
                raise NotFound(entity_name(model), public_key(model, key))
            return self.cascade.on_delete(work, model, key)

    def cascade_delete(self, entity, key) -> DeleteReport:
        """Same as ``delete`` but a row that is already gone is a no-op."""
        model = self.resolve(entity)
        with self.transaction() as work:
            return self.cascade.on_delete(work, model, key)

    # --- inside an open unit of work ---

    def apply_insert(self, work: UnitOfWork, model, row: Dict[str, Any]) -> Key:
        proposed = self.constraints.validate(work, model, row, Operation.insert)
        return work.insert(model, proposed)

    def apply_update(self, work: UnitOfWork, model, key: Key, changes: Dict[str, Any]) -> Dict[str, Any]:
        before = work.fetch(model, key)
        if before is None:
            raise NotFound(entity_name(model), public_key(model, key))
        proposed = self.constraints.validate(
            work, model, changes, Operation.update, key=key, current=before
        )
        values = {field: proposed[field] for field in changes if proposed[field] != before[field]}
        if not values:
            return before
        return work.update(model, key, before, values)
