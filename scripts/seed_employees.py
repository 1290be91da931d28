#!/usr/bin/env python3
"""
Seed the employee document store and the Milvus summary index.

Reads a JSON array of employee records, validates each one, stores the full
records in the SQLite document store, then embeds a text summary per employee
and upserts it into the Milvus collection.

Run from project root:

    python scripts/seed_employees.py --file data/employees.sample.json
    python scripts/seed_employees.py --file data/employees.json --reset

--reset drops the Milvus collection first so stale vectors do not linger.
The document store is always replaced in full.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Project root on path so "app" resolves
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from pydantic import ValidationError

from app.core.config import LOG_LEVEL
from app.schemas.employee import EmployeeRecord, build_employee_summary
from app.services.employee_store import EmployeeStore
from app.services.vector_store import HFEmbeddingClient, MilvusEmployeeIndex

logger = logging.getLogger("seed_employees")


def load_records(path: Path) -> list[EmployeeRecord]:
    """Parse and validate the records file. Raises ValueError on any bad record."""
    raw = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(raw, list):
        raise ValueError(f"{path} must contain a JSON array of employee records")
    records: list[EmployeeRecord] = []
    for i, item in enumerate(raw):
        try:
            records.append(EmployeeRecord.model_validate(item))
        except ValidationError as e:
            raise ValueError(f"Record {i} is invalid: {e}") from e
    ids = [r.employee_id for r in records]
    if len(set(ids)) != len(ids):
        raise ValueError("employee_id values must be unique")
    return records


def build_rows(records: list[EmployeeRecord], vectors: list[list[float]]) -> list[dict]:
    """Milvus rows: numeric primary key, vector, employee_id and the summary text."""
    return [
        {"id": i + 1, "vector": vector, "employee_id": record.employee_id, "summary": build_employee_summary(record)}
        for i, (record, vector) in enumerate(zip(records, vectors))
    ]


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed employee records and summary vectors.")
    parser.add_argument(
        "--file",
        type=Path,
        default=_ROOT / "data" / "employees.sample.json",
        help="JSON array of employee records.",
    )
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Drop the Milvus collection before upserting.",
    )
    args = parser.parse_args()
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s %(message)s")

    records = load_records(args.file)
    print(f"Loaded {len(records)} records from {args.file}")

    store = EmployeeStore()
    stored = store.replace_all(records)
    print(f"  stored: {stored} records in {store.path}")

    index = MilvusEmployeeIndex()
    if args.reset:
        index.drop()
        print("Dropped existing summary collection.")

    summaries = [build_employee_summary(r) for r in records]
    vectors = asyncio.run(HFEmbeddingClient().embed_texts(summaries))
    if len(vectors) != len(records):
        raise RuntimeError(f"Expected {len(records)} embeddings, got {len(vectors)}")
    upserted = index.upsert_summaries(build_rows(records, vectors))
    print(f"Done. Seeded {upserted} employee summaries.")


if __name__ == "__main__":
    main()
