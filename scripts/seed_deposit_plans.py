#!/usr/bin/env python3
"""Seed deposit plans.

Creates:
- deposit-30-3: 30% deposit, rest in two equal instalments (default)
- deposit-50-2: 50% deposit, 50% balance
- deposit-fixed-500: fixed 500 deposit, single balance payment
- pay-in-full: one payment of the whole total

The script is idempotent: existing plan ids are updated in place.

Usage:
    python -m scripts.seed_deposit_plans
    python -m scripts.seed_deposit_plans --create-tables
"""

import argparse
import asyncio
import os
import sys
from decimal import Decimal

# Add parent to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv
from sqlalchemy import select

from stonebridge.models import DepositPlan, PlanType
from stonebridge.stores.postgres import close_db, create_tables, get_session, init_db

load_dotenv()

# ============================================================
# Plan definitions
# ============================================================

DEPOSIT_PLANS = [
    {
        "id": "deposit-30-3",
        "name": "30% deposit, 3 payments",
        "description": "30% today, the rest split evenly over two payments",
        "type": PlanType.PERCENTAGE,
        "percentage": Decimal("30"),
        "total_installments": 3,
        "is_default": True,
    },
    {
        "id": "deposit-50-2",
        "name": "50% deposit",
        "description": "Half today, half before shipping",
        "type": PlanType.PERCENTAGE,
        "percentage": Decimal("50"),
        "total_installments": 2,
    },
    {
        "id": "deposit-fixed-500",
        "name": "Fixed 500 deposit",
        "description": "Reserve the stone with 500, pay the balance later",
        "type": PlanType.FIXED,
        "fixed_amount": Decimal("500"),
        "total_installments": 2,
        "min_deposit": Decimal("500"),
    },
    {
        "id": "pay-in-full",
        "name": "Pay in full",
        "description": "Single payment",
        "type": PlanType.PERCENTAGE,
        "percentage": Decimal("100"),
        "total_installments": 1,
    },
]


async def seed_deposit_plans() -> None:
    """Insert or update DEPOSIT_PLANS."""
    async with get_session() as session:
        for plan_def in DEPOSIT_PLANS:
            result = await session.execute(select(DepositPlan).where(DepositPlan.id == plan_def["id"]))
            plan = result.scalar_one_or_none()
            values = {**plan_def, "type": plan_def["type"].value}

            if plan is None:
                session.add(DepositPlan(**{"active": True, "is_default": False, **values}))
                print(f"  + {plan_def['id']}")
            else:
                for key, value in values.items():
                    setattr(plan, key, value)
                print(f"  ~ {plan_def['id']} (updated)")


async def main() -> None:
    parser = argparse.ArgumentParser(description="Seed deposit plans")
    parser.add_argument("--create-tables", action="store_true", help="Create tables first (dev databases)")
    args = parser.parse_args()

    await init_db()
    try:
        if args.create_tables:
            await create_tables()
        print("Seeding deposit plans...")
        await seed_deposit_plans()
        print("Done.")
    finally:
        await close_db()


if __name__ == "__main__":
    asyncio.run(main())
