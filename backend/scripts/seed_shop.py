#!/usr/bin/env python3
"""
Shop Seed Script
Creates (or updates) a shop for local development and prints a session
token for calling the API.

Usage:
    python -m scripts.seed_shop <shop_domain> <access_token> [plan] [--dev-store]

Example:
    python -m scripts.seed_shop demo.myshopify.com shpat_xxx pro --dev-store
"""
import sys

from sqlalchemy.orm import Session

from launchcheck.auth import create_session_token
from launchcheck.database import SessionLocal, init_db
from launchcheck.services.billing.plans import Plan
from launchcheck.services.shop_service import get_or_create_shop


def seed_shop(shop_domain: str, access_token: str, plan: str, dev_store: bool) -> bool:
    """Create the shop with its default checklist and set plan and token."""
    # Ensure tables exist
    init_db()

    db: Session = SessionLocal()
    try:
        shop = get_or_create_shop(db, shop_domain)
        shop.access_token = access_token
        shop.plan = plan
        shop.is_dev_store = dev_store
        db.commit()

        print("Shop ready!")
        print(f"  Domain: {shop.shop_domain}")
        print(f"  Plan: {shop.plan}")
        print(f"  Dev store: {shop.is_dev_store}")
        print(f"  Checklist items: {len(shop.checklist_items)}")
        print(f"  Session token (1 min): {create_session_token(shop_domain)}")
        return True

    except Exception as e:
        print(f"Error seeding shop: {e}")
        db.rollback()
        return False
    finally:
        db.close()


def main():
    args = [a for a in sys.argv[1:] if a != "--dev-store"]
    dev_store = "--dev-store" in sys.argv[1:]
    if len(args) not in (2, 3):
        print(__doc__)
        sys.exit(1)

    shop_domain = args[0]
    access_token = args[1]
    plan = args[2] if len(args) == 3 else Plan.FREE.value

    if plan not in {p.value for p in Plan}:
        print(f"Error: plan must be one of {', '.join(p.value for p in Plan)}.")
        sys.exit(1)

    if not shop_domain.endswith(".myshopify.com"):
        print("Error: Invalid shop domain (expected *.myshopify.com).")
        sys.exit(1)

    success = seed_shop(shop_domain, access_token, plan, dev_store)
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
