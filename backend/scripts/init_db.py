"""CLI script to create the registration tables and seed the catalogue.
Usage: python scripts/init_db.py [--no-seed]
"""
import sys
import argparse
import pathlib
# Ensure `backend/` is on sys.path so package imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from student_registration.bootstrap import init_db
from student_registration.config import settings


def main(seed: bool = True):
    """Run the idempotent initialisation against `DATABASE_URL`.

    Existing rows are never dropped; the catalogue is only seeded into
    an empty professor table. Results are printed to stdout.
    """
    print('Using database:', settings.DATABASE_URL)
    summary = init_db(seed=seed)
    print(f"Courses seeded: {summary['courses_seeded']}")
    print(f"Admin account created: {summary['admin_created']}")


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('--no-seed', action='store_true', help='Do not seed the default professors and courses')
    args = parser.parse_args()
    main(seed=not args.no_seed)
