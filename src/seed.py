"""
Demo Data Seeding

Replaces the whole ledger with a fixed set of demo transactions.

CRITICAL: This deletes every stored transaction first. It goes through
the MutationCoordinator like any other change, so each demo record is
validated, stored and audited.

Usage:
    python -m src.seed
"""

import asyncio
from datetime import datetime
from decimal import Decimal

import structlog

from src.models.transaction import Category, TransactionDraft
from src.orchestrator import MutationCoordinator, create_app_components


logger = structlog.get_logger()

SEED_TRANSACTIONS = [
    TransactionDraft(
        amount=Decimal("75.50"),
        category=Category.FOOD_AND_DINING,
        date=datetime(2024, 7, 1),
        note="Groceries from Walmart",
    ),
    TransactionDraft(
        amount=Decimal("45.00"),
        category=Category.TRANSPORTATION,
        date=datetime(2024, 7, 2),
        note="Gasoline for the car",
    ),
    TransactionDraft(
        amount=Decimal("120.00"),
        category=Category.FOOD_AND_DINING,
        date=datetime(2024, 7, 3),
        note="Dinner at Italian restaurant",
    ),
    TransactionDraft(
        amount=Decimal("30.00"),
        category=Category.ENTERTAINMENT,
        date=datetime(2024, 7, 4),
        note="Movie tickets for two",
    ),
    TransactionDraft(
        amount=Decimal("50.00"),
        category=Category.HEALTHCARE,
        date=datetime(2024, 7, 5),
        note="Monthly gym membership",
    ),
    TransactionDraft(
        amount=Decimal("150.00"),
        category=Category.SHOPPING,
        date=datetime(2024, 7, 6),
        note="New running shoes",
    ),
    TransactionDraft(
        amount=Decimal("12.75"),
        category=Category.OTHER,
        date=datetime(2024, 7, 7),
        note="Coffee with a friend",
    ),
    TransactionDraft(
        amount=Decimal("85.00"),
        category=Category.BILLS_AND_UTILITIES,
        date=datetime(2024, 7, 8),
        note="Electricity bill",
    ),
    TransactionDraft(
        amount=Decimal("60.00"),
        category=Category.BILLS_AND_UTILITIES,
        date=datetime(2024, 7, 9),
        note="Internet bill",
    ),
    TransactionDraft(
        amount=Decimal("25.50"),
        category=Category.FOOD_AND_DINING,
        date=datetime(2024, 7, 10),
        note="Lunch at a cafe",
    ),
]


async def seed_ledger(coordinator: MutationCoordinator) -> int:
    """
    Clear the ledger and insert the demo transactions.

    Returns:
        Number of transactions created
    """
    cleared = await coordinator.clear_all(confirm=lambda: True)
    logger.info("seed_ledger_cleared", deleted_count=cleared)

    for draft in SEED_TRANSACTIONS:
        await coordinator.create(draft)

    logger.info("seed_ledger_done", created_count=len(SEED_TRANSACTIONS))
    return len(SEED_TRANSACTIONS)


async def main() -> None:
    coordinator, _, _ = create_app_components(use_storage=True)
    created = await seed_ledger(coordinator)
    print(f"Seeded {created} transactions.")


if __name__ == "__main__":
    asyncio.run(main())
