"""Import terms into the game database's terms table.

Usage: python bin/seed-terms.py [terms_file]

terms_file is a YAML file shaped like backend/game/data/sample_terms.yaml or a
CSV file with an id,text,category,score header row. Without an argument the
built-in sample pool is imported. Terms whose id already exists are skipped.
"""

import csv
import sys
from pathlib import Path

# Add backend to path for imports
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "backend"))

from pydantic import ValidationError

from game.logic.sample_terms import load_sample_terms
from game.server.settings import GameServerSettings
from shared.dal.models import Term
from shared.db import Database


def read_csv_terms(path: Path) -> list[Term]:
    with path.open(encoding="utf-8", newline="") as f:
        return [Term.model_validate(row) for row in csv.DictReader(f)]


def main() -> None:
    if len(sys.argv) > 2:
        print(f"Usage: {sys.argv[0]} [terms_file]")
        sys.exit(1)

    try:
        if len(sys.argv) == 1:
            terms = list(load_sample_terms())
        else:
            path = Path(sys.argv[1])
            terms = read_csv_terms(path) if path.suffix.lower() == ".csv" else list(load_sample_terms(path))
    except (OSError, ValidationError) as e:
        print(f"Error: {e}")
        sys.exit(1)

    settings = GameServerSettings()
    db = Database(settings.database_path)
    db.connect()
    try:
        inserted = db.import_terms(terms)
        print(f"Imported {inserted} of {len(terms)} terms into {settings.database_path}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
