"""CLI script to seed demo data or update partner branding.

Usage:
    python scripts/seed_portal.py seed [--hash-passwords]
    python scripts/seed_portal.py branding [--name NAME --website SITE --color HEX]
"""
import sys
import argparse
import pathlib
# Ensure the repository root is on sys.path so `csr_portal` imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session
from csr_portal.database import engine, create_db_and_tables
from csr_portal.seed import DEFAULT_BRANDING, apply_branding, seed_demo


def run_seed(hash_passwords: bool) -> int:
    """Create tables and insert the demo partners and projects."""
    create_db_and_tables()
    with Session(engine) as session:
        try:
            counts = seed_demo(session, hash_passwords=hash_passwords)
        except ValueError as e:
            print(f'Skipped: {e}')
            return 1
    for table, n in sorted(counts.items()):
        print(f'{table}: {n}')
    return 0


def run_branding(name=None, website=None, color=None) -> int:
    """Apply one branding update from the arguments, or the default set."""
    if name:
        updates = [{'name': name, 'website': website, 'primary_color': color}]
    else:
        updates = DEFAULT_BRANDING
    create_db_and_tables()
    with Session(engine) as session:
        missing = apply_branding(session, updates)
    for update in updates:
        status = 'not found' if update['name'] in missing else 'updated'
        print(f"{update['name']}: {status}")
    return 1 if missing else 0


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    sub = parser.add_subparsers(dest='command', required=True)
    seed_cmd = sub.add_parser('seed', help='Insert demo partners, tolls and projects')
    seed_cmd.add_argument('--hash-passwords', action='store_true', help='Store passlib hashes instead of plain passwords')
    branding_cmd = sub.add_parser('branding', help='Update partner website and brand colour')
    branding_cmd.add_argument('--name', help='Partner name (exact match)')
    branding_cmd.add_argument('--website')
    branding_cmd.add_argument('--color', help='Hex colour, e.g. #2563eb')
    args = parser.parse_args()
    if args.command == 'seed':
        sys.exit(run_seed(args.hash_passwords))
    sys.exit(run_branding(args.name, args.website, args.color))
