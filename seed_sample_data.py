#!/usr/bin/env python3
"""
Loads the sample clinic data into the configured database and logs the
three reference reports.
"""
import sys
from datetime import date

from hms.config import get_settings
from hms.core.logging import setup_logging
from hms.errors import StoreError
from hms.health import run_consistency_checks
from hms.seed import create_initial_data
from hms.store import EntityStore


def main() -> int:
    settings = get_settings()
    logger = setup_logging(settings)

    store = EntityStore(settings=settings)
    try:
        ids = create_initial_data(store)
    except StoreError as e:
        logger.error("seed_failed", error=str(e))
        return 1

    # Sample appointments are in 2023, so report from that point on
    since = date(2023, 1, 1)
    for doctor in ("dr_williams", "dr_chen"):
        for appointment in store.queries.upcoming_appointments(ids[doctor], today=since):
            logger.info("upcoming_appointment", doctor=doctor, **appointment.model_dump(mode="json"))

    for prescription in store.queries.prescriptions_for_patient(ids["john_doe"]):
        logger.info("patient_prescription", **prescription.model_dump(mode="json"))

    for medication in store.queries.low_stock_medications():
        logger.info("low_stock", **medication.model_dump(mode="json"))

    report = run_consistency_checks(store)
    logger.info(
        "consistency_check",
        consistent=report.is_consistent,
        dangling_references=len(report.dangling_references),
        range_violations=len(report.range_violations),
        index_mismatches=len(report.index_mismatches),
    )
    return 0 if report.is_consistent else 1


if __name__ == "__main__":
    sys.exit(main())
