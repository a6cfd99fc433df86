"""Foreign-key edges between entity types and their delete policies."""
import enum
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple, Type

from .models import ENTITY_MODELS


class Policy(str, enum.Enum):
    cascade = "CASCADE"
    nullify = "SET NULL"
    restrict = "RESTRICT"

    @classmethod
    def from_ondelete(cls, ondelete: Optional[str]) -> "Policy":
        if ondelete is None:
            return cls.restrict
        normalized = ondelete.strip().upper()
        if normalized == "CASCADE":
            return cls.cascade
        if normalized == "SET NULL":
            return cls.nullify
        if normalized in ("RESTRICT", "NO ACTION"):
            return cls.restrict
        raise ValueError(f"Unsupported ON DELETE action: {ondelete}")


def entity_name(model) -> str:
    return model.__tablename__


@dataclass(frozen=True)
class Edge:
    """``source.field`` references the primary key of ``target``."""
    source: Type
    field: str
    target: Type
    policy: Policy

    @property
    def column(self):
        return self.source.__table__.c[self.field]

    def __str__(self):
        return f"{entity_name(self.source)}.{self.field} -> {entity_name(self.target)} ({self.policy.value})"


class RelationshipGraph:
    """Static, read-only set of edges; rejects cycles at construction."""

    def __init__(self, edges: Iterable[Edge]):
        self._edges: Tuple[Edge, ...] = tuple(edges)
        self._by_target: Dict[Type, List[Edge]] = {}
        self._by_source: Dict[Type, List[Edge]] = {}
        for edge in self._edges:
            self._by_target.setdefault(edge.target, []).append(edge)
            self._by_source.setdefault(edge.source, []).append(edge)
        self._check_acyclic()

    @classmethod
    def from_models(cls, models: Iterable[Type] = ENTITY_MODELS) -> "RelationshipGraph":
        models = tuple(models)
        by_table = {model.__table__: model for model in models}
        edges = []
        for model in models:
            for fk in sorted(model.__table__.foreign_keys, key=lambda fk: fk.parent.key):
                target = by_table.get(fk.column.table)
                if target is None:
                    raise ValueError(f"{fk.target_fullname} is not a declared entity")
                pk_columns = list(target.__table__.primary_key.columns)
                if len(pk_columns) != 1 or pk_columns[0] is not fk.column:
                    raise ValueError(f"{fk.target_fullname} is not the primary key of {entity_name(target)}")
                edges.append(Edge(model, fk.parent.key, target, Policy.from_ondelete(fk.ondelete)))
        return cls(edges)

    @property
    def edges(self) -> Tuple[Edge, ...]:
        return self._edges

    def edges_to(self, target) -> Tuple[Edge, ...]:
        return tuple(self._by_target.get(target, ()))

    def edges_from(self, source) -> Tuple[Edge, ...]:
        return tuple(self._by_source.get(source, ()))

    def edge(self, source, field: str) -> Optional[Edge]:
        for candidate in self._by_source.get(source, ()):
            if candidate.field == field:
                return candidate
        return None

    def with_policy(self, source, field: str, policy: Policy) -> "RelationshipGraph":
        """Copy of this graph with one edge's policy replaced."""
        if self.edge(source, field) is None:
            raise KeyError(f"No edge {entity_name(source)}.{field}")
        return RelationshipGraph(
            Edge(e.source, e.field, e.target, policy) if (e.source, e.field) == (source, field) else e
            for e in self._edges
        )

    def _check_acyclic(self):
        # Iterative three-colour DFS over target -> dependent
        white, grey, black = 0, 1, 2
        colour = {}
        for edge in self._edges:
            colour[edge.source] = white
            colour[edge.target] = white
        for start in list(colour):
            if colour[start] != white:
                continue
            stack = [(start, iter(self._by_target.get(start, ())))]
            colour[start] = grey
            while stack:
                node, children = stack[-1]
                edge = next(children, None)
                if edge is None:
                    colour[node] = black
                    stack.pop()
                    continue
                child = edge.source
                if colour[child] == grey:
                    raise ValueError(f"Relationship graph has a cycle through {edge}")
                if colour[child] == white:
                    colour[child] = grey
                    stack.append((child, iter(self._by_target.get(child, ()))))
