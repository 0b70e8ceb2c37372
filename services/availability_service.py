"""
Availability Service for time slots and featured experiences.
Slots come from the session's slot list unless a featured experience is selected,
in which case the experience's own times are used.
"""
import logging
from datetime import date
from typing import List, Optional, Tuple

from domain.enums import DayOfWeek
from domain.models import FeaturedExperience, Restaurant, TimeSlot
from services.catalog_service import CatalogService


logger = logging.getLogger(__name__)


class AvailabilityService:
    """Read-only lookups of bookable times and experiences."""

    def __init__(self, catalog: CatalogService):
        self.catalog = catalog

    def is_session_closed(self, restaurant: Restaurant, on_date: date, session_id: str) -> bool:
        """Check whether the restaurant takes no bookings for a session on this weekday."""
        weekday = DayOfWeek.from_weekday(on_date.weekday()).value
        return session_id in restaurant.closed_sessions.get(weekday, ())

    def get_available_slots(self, restaurant_id: str, on_date: date, session_id: str) -> List[TimeSlot]:
        """
        Get the session's time slots at a restaurant on a date.

        Args:
            restaurant_id: Restaurant identifier
            on_date: Booking date
            session_id: Session identifier

        Returns:
            Slots in session order, cut to the weekday's slot limit, with fully
            booked times marked unavailable; empty for unknown ids or a closed session
        """
        restaurant = self.catalog.get_restaurant(restaurant_id)
        session = self.catalog.get_session(session_id)
        if restaurant is None or session is None:
            return []

        if self.is_session_closed(restaurant, on_date, session_id):
            logger.debug(f"{restaurant_id} has no {session_id} availability on {on_date}")
            return []

        times = list(session.time_slots)
        limit = restaurant.slot_limits.get(DayOfWeek.from_weekday(on_date.weekday()).value)
        if limit is not None:
            times = times[:limit]
        booked = restaurant.unavailable_times.get(session_id, ())
        return [TimeSlot(time=slot, available=slot not in booked) for slot in times]

    def get_time_slots(
        self,
        restaurant_id: str,
        on_date: date,
        session_id: str,
        experience_id: Optional[str] = None
    ) -> List[TimeSlot]:
        """
        Get bookable times for a booking context.

        A selected experience replaces the session's slots with its own times.
        """
        if experience_id:
            experience = self.catalog.get_experience(experience_id)
            if experience is None:
                return []
            return [TimeSlot(time=t) for t in experience.available_times]
        return self.get_available_slots(restaurant_id, on_date, session_id)

    def is_time_available(
        self,
        restaurant_id: str,
        on_date: date,
        session_id: str,
        time_label: str,
        experience_id: Optional[str] = None
    ) -> bool:
        """Check whether a specific time can be booked."""
        return any(
            slot.time == time_label and slot.available
            for slot in self.get_time_slots(restaurant_id, on_date, session_id, experience_id)
        )

    def get_sister_alternative(
        self,
        restaurant_id: str,
        on_date: date,
        session_id: str
    ) -> Tuple[Optional[Restaurant], List[TimeSlot]]:
        """
        Suggest the sister restaurant when the chosen one has nothing left.

        Returns:
            (sister restaurant, its slots) or (None, []) if the chosen restaurant
            still has availability or has no sister
        """
        if any(s.available for s in self.get_available_slots(restaurant_id, on_date, session_id)):
            return None, []
        sister = self.catalog.get_sister_restaurant(restaurant_id)
        if sister is None:
            return None, []
        return sister, self.get_available_slots(sister.id, on_date, session_id)

    # Featured experiences

    def get_experiences_for_date(self, restaurant_id: str, on_date: date) -> List[FeaturedExperience]:
        return [
            exp for exp in self.catalog.experiences
            if exp.restaurant_id == restaurant_id and exp.date == on_date
        ]

    def get_experiences_for_session(
        self,
        restaurant_id: str,
        on_date: date,
        session_id: str
    ) -> List[FeaturedExperience]:
        return [
            exp for exp in self.get_experiences_for_date(restaurant_id, on_date)
            if exp.session_id == session_id
        ]

    def has_experiences_on_date(self, restaurant_id: str, on_date: date) -> bool:
        return bool(self.get_experiences_for_date(restaurant_id, on_date))

    def get_upcoming_experiences(self, restaurant_id: str, from_date: date) -> List[FeaturedExperience]:
        """Experiences at a restaurant on or after a date, soonest first."""
        upcoming = [
            exp for exp in self.catalog.experiences
            if exp.restaurant_id == restaurant_id and exp.date >= from_date
        ]
        return sorted(upcoming, key=lambda exp: exp.date)
