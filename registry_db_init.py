import argparse
import sys
from pathlib import Path

from registry_config import setup_logging
from registry_errors import RegistryError
from record_store import build_record_store


def main(argv=None):
    ap = argparse.ArgumentParser(description="Initialize, back up or restore the employee registry database")
    ap.add_argument("--storage", default=None, help="Local store file (defaults to REGISTRY_STORAGE_PATH)")
    sub = ap.add_subparsers(dest="command", required=True)
    sub.add_parser("init", help="Create the schema and save a snapshot")
    sub.add_parser("info", help="Print employee count and storage usage")
    p_export = sub.add_parser("export", help="Write the database to a .sqlite file")
    p_export.add_argument("path", nargs="?", default=None, help="Output file (defaults to REGISTRY_EXPORT_FILENAME)")
    p_import = sub.add_parser("import", help="Replace the database with a .sqlite file")
    p_import.add_argument("path", help="Input .sqlite file")
    args = ap.parse_args(argv)

    store = build_record_store(args.storage)
    local = store.codec.store

    try:
        if args.command == "init":
            store.manager.connection()
            store.policy.after_write("init", force=True)
            print(f"Initialized registry at {local.path}")
        elif args.command == "info":
            print(f"Storage: {local.path}")
            print(f"Employees: {store.count_employees()}")
            print(f"Used: {local.used_bytes()} of {local.quota_bytes} bytes")
        elif args.command == "export":
            exported = store.export_database()
            out = Path(args.path or exported.filename)
            out.write_bytes(exported.data)
            print(f"Exported {len(exported.data)} bytes to {out}")
        elif args.command == "import":
            count = store.import_database(Path(args.path).read_bytes())
            print(f"Imported {count} employees from {args.path}")
    except (RegistryError, OSError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    setup_logging()
    sys.exit(main())
