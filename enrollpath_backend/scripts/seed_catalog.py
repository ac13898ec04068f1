"""
Load a course catalog from CSV files.

    python scripts/seed_catalog.py courses.csv [sections.csv]

courses.csv columns: code, title, credits, prerequisites, requirement_note
sections.csv columns: crn, course_code, label, days, start_time, end_time,
                      location, instructor, capacity, roster
"""
import sys
from pathlib import Path

from app.core.database import SessionLocal, engine
from app.core.logging import configure_logging
from app.models.base import Base
from app.services.catalog_import import import_catalog_csv
import app.models  # noqa: F401


def main(argv: list[str]) -> int:
    if not argv:
        print(__doc__)
        return 2
    configure_logging()
    Base.metadata.create_all(bind=engine)
    courses_csv = Path(argv[0]).read_text(encoding="utf-8")
    sections_csv = Path(argv[1]).read_text(encoding="utf-8") if len(argv) > 1 else None
    db = SessionLocal()
    try:
        counts = import_catalog_csv(db, courses_csv, sections_csv)
    finally:
        db.close()
    print(f"Imported {counts['courses']} courses, {counts['sections']} sections.")
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
