"""
setup_floodguard_table.py
=========================
Script to create the floodguard_records table in Supabase and, optionally,
upload the demonstration records.

Usage:
    python scripts/setup_floodguard_table.py --schema-only
    python scripts/setup_floodguard_table.py --seed
    python scripts/setup_floodguard_table.py --check
"""

import argparse
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from floodguard_core.config import load_settings
from floodguard_core.errors import FloodGuardError
from floodguard_core.logging import setup_logging
from floodguard_core.models import COLLECTIONS, now_ms
from floodguard_core.offline.local_store import SEEDS
from floodguard_core.offline.remote_mirror import RemoteMirrorClient


def print_sql_schema(table: str = "floodguard_records") -> str:
    """Print SQL schema for the records table."""
    sql = f"""
-- ============================================================================
-- FLOODGUARD RECORDS TABLE SCHEMA FOR SUPABASE
-- ============================================================================
-- Run this SQL in your Supabase SQL Editor to create the table

CREATE TABLE IF NOT EXISTS {table} (
    id TEXT PRIMARY KEY,                -- "<collection>_<recordId>"
    collection TEXT NOT NULL,           -- "sos" | "rescuers"
    value JSONB NOT NULL,
    updated_at TIMESTAMP WITH TIME ZONE DEFAULT TIMEZONE('utc', NOW())
);

-- Collection-scoped fetches
CREATE INDEX IF NOT EXISTS idx_{table}_collection ON {table}(collection);

-- Enable Row Level Security
ALTER TABLE {table} ENABLE ROW LEVEL SECURITY;

-- Every device reads and writes with the anon key
CREATE POLICY "Allow anonymous access" ON {table}
    FOR ALL USING (true) WITH CHECK (true);

GRANT ALL ON {table} TO anon;
"""
    print(sql)
    return sql


def get_mirror() -> RemoteMirrorClient:
    settings = load_settings()
    return RemoteMirrorClient.from_config(settings.remote)


def seed_remote() -> bool:
    """Insert the demonstration SOS requests and rescuers where absent."""
    try:
        mirror = get_mirror()
        now = now_ms()
        for collection in COLLECTIONS:
            records = SEEDS[collection](now)
            for record in records:
                mirror.insert_if_absent(collection, record.id, record.to_dict())
            print(f"SUCCESS: {collection}: {len(records)} demonstration records ensured")
        return True
    except FloodGuardError as e:
        print(f"ERROR: {e}")
        return False


def check_remote() -> bool:
    """Print how many records each collection holds."""
    try:
        mirror = get_mirror()
        for collection in COLLECTIONS:
            print(f"  - {collection}: {len(mirror.fetch_collection(collection))} records")
        return True
    except FloodGuardError as e:
        print(f"ERROR: {e}")
        return False


def main():
    parser = argparse.ArgumentParser(
        description="Setup floodguard_records table in Supabase"
    )
    parser.add_argument("--schema-only", action="store_true", help="Only print SQL schema")
    parser.add_argument("--seed", action="store_true", help="Upload demonstration records")
    parser.add_argument("--check", action="store_true", help="Count remote records")
    parser.add_argument("--table", default="floodguard_records", help="Table name for the SQL schema")

    args = parser.parse_args()
    setup_logging(log_to_file=False)

    print("=" * 70)
    print("FLOODGUARD RECORDS TABLE SETUP FOR SUPABASE")
    print("=" * 70)

    ok = True
    if args.schema_only or not (args.seed or args.check):
        print("\nSQL Schema (copy and run in Supabase SQL Editor):\n")
        print_sql_schema(args.table)

    if args.seed:
        ok = seed_remote() and ok

    if args.check:
        ok = check_remote() and ok

    print("\nDone!")
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
