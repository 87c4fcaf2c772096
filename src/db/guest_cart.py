# src/db/guest_cart.py
# Local-only cart of an anonymous visitor, moved to the server cart at login.
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from api import models
from db.database import connect


async def list_items() -> List[models.GuestCartItem]:
    """Remembered products, oldest first."""
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT product_id, quantity, added_at FROM guest_cart ORDER BY added_at, product_id;"
        )
        rows = await cur.fetchall()
        await cur.close()
    return [
        models.GuestCartItem(
            product_id=int(row[0]),
            quantity=int(row[1]),
            added_at=_parse_ts(row[2]),
        )
        for row in rows
    ]


async def add_item(product_id: int, quantity: int = 1, when: Optional[datetime] = None) -> int:
    """
    Remember a product; if already present, increment its quantity.
    Returns the new total quantity for the product.
    """
    if quantity <= 0:
        raise ValueError("Quantity must be positive.")
    when = when or datetime.now()
    async with connect() as conn:
        await conn.execute(
            """
            INSERT INTO guest_cart(product_id, quantity, added_at) VALUES(?, ?, ?)
            ON CONFLICT(product_id) DO UPDATE SET quantity = quantity + excluded.quantity;
            """,
            (product_id, quantity, when.isoformat()),
        )
        cur = await conn.execute(
            "SELECT quantity FROM guest_cart WHERE product_id = ?;", (product_id,)
        )
        row = await cur.fetchone()
        await cur.close()
        await conn.commit()
    return int(row[0])


async def remove_item(product_id: int) -> None:
    async with connect() as conn:
        await conn.execute("DELETE FROM guest_cart WHERE product_id = ?;", (product_id,))
        await conn.commit()


async def clear() -> None:
    async with connect() as conn:
        await conn.execute("DELETE FROM guest_cart;")
        await conn.commit()


async def count() -> int:
    async with connect() as conn:
        cur = await conn.execute("SELECT COUNT(*) FROM guest_cart;")
        row = await cur.fetchone()
        await cur.close()
    return int(row[0]) if row else 0


def _parse_ts(val) -> datetime:
    if isinstance(val, datetime):
        return val
    try:
        return datetime.fromisoformat(str(val))
    except ValueError:
        return datetime.now()
