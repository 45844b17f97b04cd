"""
Seed script for CivicEye sample reports.

Usage:
  - Dry run (default): python scripts/seed_db.py
  - Apply to configured Firestore: python scripts/seed_db.py --apply
  - Seed from a JSON file instead of the built-in samples:
    python scripts/seed_db.py --apply --file ./db_seed.json

Behavior:
  - Each sample goes through the normal submission flow (priority
    classification, duplicate check, notifications), so samples that land
    within 100 m of an open report of the same category are reported as
    duplicates and not written.
  - The JSON file, when given, is a list of report payloads.

NOTE: Applying writes to the Firestore project configured by
FIREBASE_CREDENTIALS_PATH in `.env`.
"""

import argparse
import asyncio
import json
import logging
import os
from typing import List

from pydantic import ValidationError

from app.config.firebase import initialize_firestore
from app.models.report import ReportCreate
from app.services.priority_scoring import get_priority_classifier
from app.services.report_service import create_report

logger = logging.getLogger("seed_db")

SAMPLE_REPORTS = [
    {
        "title": "Water main burst on MG Road",
        "description": "Urgent: water gushing onto the road near the hospital gate.",
        "category": "water",
        "location": {"latitude": 12.9716, "longitude": 77.5946, "ward": "Ward 12"},
        "reported_by": "asha@example.com",
        "severity": "high",
    },
    {
        "title": "Broken traffic signal",
        "description": "Signal at the Residency Road junction has been dark since morning.",
        "category": "traffic",
        "location": {"latitude": 12.9698, "longitude": 77.6005, "ward": "Ward 14"},
        "reported_by": "ravi@example.com",
    },
    {
        "title": "Garbage pile near park",
        "description": "Uncollected garbage has been piling up by the park entrance.",
        "category": "garbage",
        "location": {"latitude": 12.9352, "longitude": 77.6245, "ward": "Ward 3"},
        "reported_by": "meena@example.com",
        "severity": "low",
    },
    {
        "title": "Deep pothole at bus stop",
        "description": "Large pothole at the bus stop, two-wheelers swerving around it.",
        "category": "pothole",
        "location": {"latitude": 12.9279, "longitude": 77.6271, "ward": "Ward 3"},
        "reported_by": "kiran@example.com",
    },
]


def load_seed(path: str) -> List[dict]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


async def seed(samples: List[dict], apply: bool = False) -> None:
    classifier = get_priority_classifier()

    for sample in samples:
        try:
            report = ReportCreate(**sample)
        except ValidationError as e:
            logger.error(f"Skipping invalid sample {sample.get('title')!r}: {e}")
            continue

        if not apply:
            classification = classifier.classify(report.model_dump(mode="json"))
            logger.info(
                f"Preparing: {report.category.value} - {report.title!r} "
                f"(priority={classification['priority']}, score={classification['score']})"
            )
            continue

        result = await create_report(report)
        if result["is_duplicate"]:
            logger.info(f"Duplicate of {result['existing_report'].get('id')}: {report.title!r}")
        else:
            logger.info(f"Wrote: reports/{result['report']['id']} ({result['report']['ticket_number']})")


def main():
    logging.basicConfig(level=logging.INFO, format="%(message)s")

    parser = argparse.ArgumentParser()
    parser.add_argument("--apply", action="store_true", help="Write samples to Firestore instead of dry-run")
    parser.add_argument("--file", help="JSON file with a list of report payloads")
    args = parser.parse_args()

    samples = SAMPLE_REPORTS
    if args.file:
        if not os.path.exists(args.file):
            logger.error(f"Seed file not found: {args.file}")
            return
        samples = load_seed(args.file)

    if args.apply:
        initialize_firestore()

    asyncio.run(seed(samples, apply=args.apply))


if __name__ == "__main__":
    main()
