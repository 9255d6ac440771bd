"""
Check that every user's cached credit balance equals the sum of their ledger.

Usage:
  cd backend
  python -m creditengine.scripts.audit_ledger            # all users
  python -m creditengine.scripts.audit_ledger --user-id user_123
  DATABASE_URL="postgresql://..." python -m creditengine.scripts.audit_ledger --json
"""
import argparse
import json
from typing import Optional, Sequence

from ..models.user import User
from ..platform.database import SessionLocal
from ..services.credit_ledger_service import audit_user_ledger
from ..services.errors import NotFoundError


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Audit credit balances against the transaction ledger")
    parser.add_argument("--user-id", action="append", default=[], help="Audit only this user (repeatable)")
    parser.add_argument("--json", action="store_true", help="Print one JSON object per user")
    args = parser.parse_args(argv)

    db = SessionLocal()
    try:
        user_ids = args.user_id or [row[0] for row in db.query(User.id).order_by(User.id).all()]
        drifted = 0
        for user_id in user_ids:
            try:
                audit = audit_user_ledger(db, user_id)
            except NotFoundError:
                print(f"- {user_id}: not found")
                drifted += 1
                continue
            if not audit.is_consistent:
                drifted += 1
            if args.json:
                print(
                    json.dumps(
                        {
                            "user_id": audit.user_id,
                            "balance": audit.balance,
                            "ledger_sum": audit.ledger_sum,
                            "drift": audit.drift,
                            "transactions": audit.transaction_count,
                            "consistent": audit.is_consistent,
                        }
                    )
                )
            else:
                marker = "ok" if audit.is_consistent else "DRIFT"
                print(
                    f"- {audit.user_id}: {marker} balance={audit.balance} "
                    f"ledger_sum={audit.ledger_sum} transactions={audit.transaction_count}"
                )
    finally:
        db.close()

    print(f"audited {len(user_ids)} user(s) | drifted={drifted}")
    return 1 if drifted else 0


if __name__ == "__main__":
    raise SystemExit(main())
