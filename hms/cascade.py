"""Delete propagation across the relationship graph."""
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Set, Tuple

import structlog

from .errors import RestrictedDeleteViolation
from .relationships import Edge, Policy, entity_name
from .unit_of_work import Key, normalize_key, public_key

logger = structlog.get_logger(__name__)


@dataclass
class DeleteReport:
    """What one root delete removed and nullified, counted per entity type."""
    entity: str
    id: Any
    deleted: Dict[str, int] = field(default_factory=dict)
    nullified: Dict[str, int] = field(default_factory=dict)

    @property
    def total_deleted(self) -> int:
        return sum(self.deleted.values())

    @property
    def is_noop(self) -> bool:
        return not self.deleted and not self.nullified


@dataclass
class _PlannedDelete:
    entity: Any
    key: Key
    nullify: List[Tuple[Edge, Key]]


class CascadeExecutor:
    """Applies CASCADE / NULLIFY / RESTRICT for a root delete.

    The walk is an explicit worklist keyed by ``(entity, key)``. Planning
    finishes before any row is touched, so a RESTRICT edge anywhere in the
    affected subgraph aborts the delete cleanly. Rows are then removed
    dependents-first.
    """

    def __init__(self, store):
        self.store = store

    @property
    def graph(self):
        return self.store.graph

    def on_delete(self, work, entity, key) -> DeleteReport:
        key = normalize_key(entity, key)
        report = DeleteReport(entity_name(entity), public_key(entity, key))
        if not work.exists(entity, key):
            logger.debug("cascade_noop", entity=report.entity, id=report.id)
            return report

        plan = self._plan(work, entity, key)
        self._apply(work, plan, report)
        logger.info(
            "cascade_delete",
            entity=report.entity,
            id=report.id,
            deleted=report.deleted,
            nullified=report.nullified,
        )
        return report

    def _plan(self, work, entity, key) -> List[_PlannedDelete]:
        order: List[_PlannedDelete] = []
        expanded: Set[Tuple[Any, Key]] = set()
        # (entity, key, exit_marker); exit markers carry the node's nullify list
        stack: List[Tuple[Any, Key, Any]] = [(entity, key, None)]

        while stack:
            model, row_key, exit_marker = stack.pop()
            if exit_marker is not None:
                order.append(exit_marker)
                continue
            if (model, row_key) in expanded:
                continue
            expanded.add((model, row_key))

            planned = _PlannedDelete(model, row_key, [])
            children = []
            for edge in self.graph.edges_to(model):
                dependents = work.find_keys(edge.source, {edge.field: row_key[0]})
                if not dependents:
                    continue
                if edge.policy is Policy.restrict:
                    raise RestrictedDeleteViolation(
                        entity_name(model),
                        public_key(model, row_key),
                        [(entity_name(edge.source), public_key(edge.source, k)) for k in dependents],
                    )
                if edge.policy is Policy.nullify:
                    planned.nullify.extend((edge, dependent) for dependent in dependents)
                else:
                    children.extend((edge.source, dependent) for dependent in dependents)

            stack.append((model, row_key, planned))
            for child_entity, child_key in reversed(children):
                if (child_entity, child_key) not in expanded:
                    stack.append((child_entity, child_key, None))
        return order

    def _apply(self, work, plan: List[_PlannedDelete], report: DeleteReport):
        deleted: Counter = Counter()
        nullified: Counter = Counter()
        for planned in plan:
            for edge, dependent_key in planned.nullify:
                if not work.exists(edge.source, dependent_key):
                    continue
                self.store.apply_update(work, edge.source, dependent_key, {edge.field: None})
                nullified[entity_name(edge.source)] += 1

            before = work.fetch(planned.entity, planned.key)
            if before is None:
                continue
            work.delete(planned.entity, planned.key, before)
            deleted[entity_name(planned.entity)] += 1
        report.deleted = dict(deleted)
        report.nullified = dict(nullified)
