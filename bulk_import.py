
# bulk_import.py
import argparse
import logging

import pandas as pd

from registry_config import setup_logging
from registry_models import Employee, Shift
from record_store import RecordStore, build_record_store

REQUIRED_COLUMNS = ["name", "registration", "role"]


def employees_from_frame(df: pd.DataFrame) -> list:
    df = df.copy()
    df.columns = [str(c).strip().lower() for c in df.columns]
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Missing required columns: {missing}")

    # normalize
    for col in REQUIRED_COLUMNS:
        df[col] = df[col].where(df[col].notna(), "").astype(str).str.strip()
    empty = df[(df[REQUIRED_COLUMNS] == "").any(axis=1)]
    if not empty.empty:
        raise ValueError(f"Empty name/registration/role in rows: {empty.index.tolist()}")

    if "shift" not in df.columns:
        df["shift"] = Shift.FULL_DAY.value
    df["shift"] = df["shift"].where(df["shift"].notna(), Shift.FULL_DAY.value)

    employees, bad = [], []
    for idx, r in df.iterrows():
        try:
            shift = Shift.parse(r["shift"])
        except ValueError:
            bad.append(idx)
            continue
        employees.append(Employee(name=r["name"], registration=r["registration"], role=r["role"], shift=shift))
    if bad:
        raise ValueError(f"Unknown shift in rows: {bad}")
    return employees


def import_frame(df: pd.DataFrame, store: RecordStore):
    employees = employees_from_frame(df)
    return store.add_employees(employees)


def import_excel(path: str, store: RecordStore):
    df = pd.read_excel(path)
    return import_frame(df, store)


def main():
    ap = argparse.ArgumentParser(description="Bulk import employees from Excel")
    ap.add_argument("excel_path", help="Path to Excel file (columns: name, registration, role, shift)")
    ap.add_argument("--storage", default=None, help="Local store file (defaults to REGISTRY_STORAGE_PATH)")
    args = ap.parse_args()

    store = build_record_store(args.storage)
    added, skipped = import_excel(args.excel_path, store)
    print(f"Imported {added} employees into {store.codec.store.path}")
    if skipped:
        logging.warning(f"Skipped duplicate registrations: {', '.join(skipped)}")


if __name__ == "__main__":
    setup_logging()
    main()
