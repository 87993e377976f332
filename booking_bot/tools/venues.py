"""
In-memory venues repository.

In production, this would read the clubs table. The demo data mirrors a
small chain of clubs in one city.
"""

import logging
from typing import Optional

from booking_bot.schemas.entities import Venue

logger = logging.getLogger(__name__)

DEMO_VENUES: list[Venue] = [
    Venue(
        id=7,
        name="Mix Lounge",
        address="Tverskaya 7, Moscow",
        description="Hookah lounge with live DJ sets on weekends.",
        working_hours="18:00-02:00",
        phone="+74950000007",
    ),
    Venue(
        id=8,
        name="Orbita",
        address="Arbat 12, Moscow",
        working_hours="16:00-00:00",
    ),
    Venue(id=9, name="Closed Club", is_active=False),
]


class InMemoryVenuesRepo:
    def __init__(self, venues: Optional[list[Venue]] = None) -> None:
        self._venues: dict[int, Venue] = {
            venue.id: venue for venue in (DEMO_VENUES if venues is None else venues)
        }

    async def list_active(self) -> list[Venue]:
        return [venue for venue in self._venues.values() if venue.is_active]

    async def find_by_id(self, venue_id: int) -> Optional[Venue]:
        venue = self._venues.get(venue_id)
        if venue is None:
            logger.debug("Venue %d not found", venue_id)
        return venue
