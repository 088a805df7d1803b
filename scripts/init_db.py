#!/usr/bin/env python3
"""
Create tables for orders, transactions, entitlements and audit logs.
Run from the project root: python -m scripts.init_db
"""
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.db.base import Base
from app.db.session import engine
from app.models import audit_log, entitlement, order, transaction  # noqa: F401  (register tables)


def main() -> None:
    Base.metadata.create_all(bind=engine)
    print("tables:", ", ".join(sorted(Base.metadata.tables)))


if __name__ == "__main__":
    main()
