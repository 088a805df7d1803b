#!/usr/bin/env python3
"""
Restore entitlements for verified transactions that have none.
Run from the project root: python -m scripts.reconcile_entitlements [--batch-size N]
"""
import argparse
import json
import os
import sys

# project root on PYTHONPATH
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.core.config import settings
from app.core.logging import configure_logging
from app.db.session import SessionLocal
from app.services.entitlements.service import EntitlementService


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Restore entitlements for verified transactions.")
    parser.add_argument("--batch-size", type=int, default=settings.reconcile_batch_size)
    args = parser.parse_args(argv)

    configure_logging()
    db = SessionLocal()
    try:
        result = EntitlementService(db).reconcile(batch_size=args.batch_size)
    finally:
        db.close()
    print(json.dumps(result))
    return 0


if __name__ == "__main__":
    sys.exit(main())
