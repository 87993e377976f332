"""
In-memory tables repository.

Availability for a date is derived from the bookings store, so a table
with an active booking on that date is not offered again.
"""

import logging
from datetime import date
from typing import Optional

from booking_bot.schemas.entities import TableInfo
from booking_bot.tools.bookings import InMemoryBookingsRepo

logger = logging.getLogger(__name__)

DEMO_TABLES: list[TableInfo] = [
    TableInfo(id=41, venue_id=7, number=1, seats=2),
    TableInfo(id=42, venue_id=7, number=2, seats=4),
    TableInfo(id=43, venue_id=7, number=3, seats=8, label="VIP"),
    TableInfo(id=51, venue_id=8, number=1, seats=6),
    TableInfo(id=52, venue_id=8, number=2, seats=4, is_active=False),
]


class InMemoryTablesRepo:
    def __init__(
        self,
        bookings: InMemoryBookingsRepo,
        tables: Optional[list[TableInfo]] = None,
    ) -> None:
        self._bookings = bookings
        self._tables: dict[int, TableInfo] = {
            table.id: table for table in (DEMO_TABLES if tables is None else tables)
        }

    async def find_by_id(self, table_id: int) -> Optional[TableInfo]:
        return self._tables.get(table_id)

    async def list_available(self, venue_id: int, on_date: date) -> list[TableInfo]:
        """Active tables of the venue without an active booking on ``on_date``."""
        available = []
        for table in sorted(self._tables.values(), key=lambda t: t.number):
            if table.venue_id != venue_id or not table.is_active:
                continue
            if await self._bookings.is_table_available(table.id, on_date):
                available.append(table)
        logger.debug(
            "Venue %d has %d available tables on %s", venue_id, len(available), on_date
        )
        return available
