"""
Seed the menu with a starter catalog.
Run from project root: python -m scripts.seed
"""

import asyncio
import sys
from decimal import Decimal

sys.path.insert(0, '.')

from hotel_billing.database import async_session_maker, engine, init_db
from hotel_billing.models import MenuCategory
from hotel_billing.services.storage import SqlAlchemyMenuStore

# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

STARTER_MENU = [
    ("Masala Dosa", "Crisp rice crepe with spiced potato", "120.00", MenuCategory.BREAKFAST),
    ("Idli Sambar", "Steamed rice cakes, lentil stew", "80.00", MenuCategory.BREAKFAST),
    ("Aloo Paratha", "Stuffed flatbread with curd", "90.00", MenuCategory.BREAKFAST),
    ("Paneer Butter Masala", None, "240.00", MenuCategory.MAIN_COURSE),
    ("Dal Makhani", None, "190.00", MenuCategory.MAIN_COURSE),
    ("Chicken Biryani", "Served with raita", "320.00", MenuCategory.MAIN_COURSE),
    ("Butter Naan", None, "50.00", MenuCategory.BREADS),
    ("Tandoori Roti", None, "30.00", MenuCategory.BREADS),
    ("Jeera Rice", None, "120.00", MenuCategory.SIDES),
    ("Green Salad", None, "70.00", MenuCategory.SIDES),
    ("Gulab Jamun", "Two pieces", "60.00", MenuCategory.DESSERTS),
    ("Filter Coffee", None, "50.00", MenuCategory.BEVERAGES),
    ("Masala Chai", None, "40.00", MenuCategory.BEVERAGES),
    ("Fresh Lime Soda", None, "60.00", MenuCategory.BEVERAGES),
]


async def seed() -> None:
    await init_db()

    async with async_session_maker() as db:
        store = SqlAlchemyMenuStore(db)

        if await store.list_items():
            print("⚠️ Menu already has items, skipping seed")
            return

        for name, description, price, category in STARTER_MENU:
            await store.create({
                "name": name,
                "description": description,
                "price": Decimal(price),
                "category": category.value,
                "available": True,
            })

        print(f"✅ Created {len(STARTER_MENU)} menu items")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed())
