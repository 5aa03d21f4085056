"""
Import customer opening balances from a CSV file.

Usage (from project root, with venv active):
    python scripts/import_opening_balances.py opening-balances.csv

Expected columns: billing_name, opening_balance (customer_name, notes optional).
Customers are matched by billing name, case-insensitive. Re-running the
import with the same file leaves the database unchanged.
"""
import csv
import sys
from pathlib import Path

# Add project root to path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from run import app  # noqa: E402 – loads Flask app


def load_rows(path: Path) -> tuple[list, list]:
    rows, errors = [], []
    with open(path, encoding="utf-8", newline="") as f:
        for raw in csv.DictReader(f):
            billing_name = (raw.get("billing_name") or "").strip()
            try:
                balance = float(raw.get("opening_balance") or 0)
            except ValueError:
                balance = None
            if not billing_name or balance is None:
                errors.append(f"Invalid row: {dict(raw)}")
                continue
            rows.append({"billing_name": billing_name, "opening_balance": round(balance, 2)})
    return rows, errors


def import_opening_balances(session, rows: list) -> dict:
    from sqlalchemy import func
    from sqlalchemy.exc import SQLAlchemyError
    from dairyflow.extensions import db
    from dairyflow.models.customer import Customer

    result = {"total": len(rows), "updated": 0, "unchanged": 0, "not_found": 0, "failed": 0, "errors": []}

    for index, row in enumerate(rows, start=1):
        name = row["billing_name"]
        customer = session.execute(
            db.select(Customer).where(func.lower(Customer.billing_name) == name.lower())
        ).scalars().first()
        if customer is None:
            print(f"  [WARN] [{index}/{len(rows)}] Customer not found: {name}")
            result["not_found"] += 1
            result["errors"].append(f"Customer not found: {name}")
            continue

        if round(customer.opening_balance or 0, 2) == row["opening_balance"]:
            result["unchanged"] += 1
            continue

        previous = customer.opening_balance
        try:
            customer.opening_balance = row["opening_balance"]
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            result["failed"] += 1
            result["errors"].append(f"Update failed for {name}: {exc}")
            continue
        print(f"  [{index}/{len(rows)}] {name}: {row['opening_balance']:.2f} (was {previous or 0:.2f})")
        result["updated"] += 1

    return result


def main():
    if len(sys.argv) != 2:
        print(__doc__)
        sys.exit(1)

    path = Path(sys.argv[1])
    if not path.exists():
        print(f"CSV file not found: {path}")
        sys.exit(1)

    with app.app_context():
        from dairyflow.extensions import db

        print("=== DairyFlow Opening Balance Import ===\n")
        rows, errors = load_rows(path)
        print(f"Processing {len(rows)} records from {path.name}…")
        result = import_opening_balances(db.session, rows)
        result["errors"] = errors + result["errors"]

        print("\nSummary:")
        print(f"  Total records:        {result['total']}")
        print(f"  Updated:              {result['updated']}")
        print(f"  Already up to date:   {result['unchanged']}")
        print(f"  Customers not found:  {result['not_found']}")
        print(f"  Failed:               {result['failed']}")
        for error in result["errors"]:
            print(f"  - {error}")


if __name__ == "__main__":
    main()
