# hms/health.py
import logging
from datetime import datetime, timezone

from sqlalchemy import func, select

from .constraints import RangeRule
from .relationships import entity_name
from .schemas import ConsistencyIssue, ConsistencyReport
from .unit_of_work import primary_key_columns

logger = logging.getLogger(__name__)

_VIOLATES = {
    ">=": lambda column, limit: column < limit,
    ">": lambda column, limit: column <= limit,
    "<=": lambda column, limit: column > limit,
    "<": lambda column, limit: column >= limit,
}


def run_consistency_checks(store) -> ConsistencyReport:
    """Scans the database for rows that slipped past the constraint engine."""
    report = ConsistencyReport(checked_at=datetime.now(timezone.utc))

    with store.read() as session:
        # Check 1: foreign keys pointing at rows that no longer exist
        for edge in store.graph.edges:
            source = edge.source.__table__
            target = edge.target.__table__
            target_pk = primary_key_columns(edge.target)[0]
            stmt = (
                select(*primary_key_columns(edge.source), source.c[edge.field])
                .select_from(source.outerjoin(target, source.c[edge.field] == target_pk))
                .where(source.c[edge.field].isnot(None), target_pk.is_(None))
            )
            for row in session.execute(stmt):
                *key, target_id = tuple(row)
                report.dangling_references.append(ConsistencyIssue(
                    entity=entity_name(edge.source),
                    id=key[0] if len(key) == 1 else tuple(key),
                    field=edge.field,
                    issue=f"references missing {entity_name(edge.target)} {target_id}",
                ))

        # Check 2: numeric bounds
        for model, field_rules in store.constraints.rules.items():
            table = model.__table__
            for field, rules in field_rules.items():
                for rule in rules:
                    if not isinstance(rule, RangeRule):
                        continue
                    stmt = select(*primary_key_columns(model), table.c[field]).where(
                        _VIOLATES[rule.op](table.c[field], rule.limit)
                    )
                    for row in session.execute(stmt):
                        *key, value = tuple(row)
                        report.range_violations.append(ConsistencyIssue(
                            entity=entity_name(model),
                            id=key[0] if len(key) == 1 else tuple(key),
                            field=field,
                            issue=f"value {value} violates {rule.constraint}",
                        ))

        # Check 3: every index holds exactly one entry per indexed row
        for name in store.indexes.names():
            index = store.indexes[name]
            table = index.spec.entity.__table__
            row_count = session.execute(select(func.count()).select_from(table)).scalar_one()
            if len(index) != row_count:
                report.index_mismatches.append(
                    f"Index {name} holds {len(index)} entries for {row_count} {table.name} rows"
                )

    if not report.is_consistent:
        logger.warning(
            f"Consistency check found {len(report.dangling_references)} dangling reference(s), "
            f"{len(report.range_violations)} range violation(s), "
            f"{len(report.index_mismatches)} index mismatch(es)"
        )
    return report
