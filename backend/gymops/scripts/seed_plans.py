"""Create tables and seed the default plan catalog.

Run once inside the backend container:
    python -m gymops.scripts.seed_plans
"""

import asyncio
from decimal import Decimal

from gymops.database import Base, async_session_factory, engine
from gymops.membership.storage import SqlAlchemyStorage
from gymops.models import Payment, Plan, User  # noqa: F401  (register tables)

DEFAULT_PLANS = [
    {"plan_type": "basic", "amount": Decimal("999"), "duration": 1},
    {"plan_type": "standard", "amount": Decimal("1999"), "duration": 3},
    {"plan_type": "premium", "amount": Decimal("2998"), "duration": 6},
]


async def seed_plans(storage: SqlAlchemyStorage) -> None:
    for data in DEFAULT_PLANS:
        plan = await storage.upsert_plan(**data)
        print(f"Seeded plan: {plan.plan_type} ({plan.amount}/mo x {plan.duration} months)")


async def main() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        await seed_plans(SqlAlchemyStorage(async_session_factory))
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
