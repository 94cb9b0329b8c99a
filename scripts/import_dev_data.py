"""Load or wipe development tour data.

Usage:
    python -m scripts.import_dev_data --import [--file dev-data/tours.json]
    python -m scripts.import_dev_data --delete
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from app.database import session_scope
from app.errors import AppError
from app.models.tour import Tour
from app.schemas.tour import TourWrite
from app.services.tour import get_tour_service

logger = logging.getLogger("tourbook")

DEFAULT_FILE = Path(__file__).resolve().parent.parent / "dev-data" / "tours.json"


def import_tours(path: Path) -> int:
    """Create every tour in the JSON file. Returns the number created."""
    raw = json.loads(path.read_text(encoding="utf-8"))
    service = get_tour_service()
    with session_scope() as db:
        for item in raw:
            data = TourWrite.model_validate(item).model_dump(exclude_unset=True)
            service.create_tour(db, data)
    return len(raw)


def delete_tours() -> int:
    """Delete all tours. Reviews and start dates go with them."""
    with session_scope() as db:
        tours = db.query(Tour).all()
        for tour in tours:
            db.delete(tour)
    return len(tours)


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    action = parser.add_mutually_exclusive_group(required=True)
    action.add_argument("--import", dest="do_import", action="store_true", help="load tours into the database")
    action.add_argument("--delete", action="store_true", help="delete all tours from the database")
    parser.add_argument("--file", type=Path, default=DEFAULT_FILE, help="tours JSON file")
    args = parser.parse_args(argv)

    try:
        if args.do_import:
            logger.info("Data successfully loaded: %d tours", import_tours(args.file))
        else:
            logger.info("Data successfully deleted: %d tours", delete_tours())
    except (AppError, OSError, ValueError) as e:
        logger.error("Dev data %s failed: %s", "import" if args.do_import else "delete", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
