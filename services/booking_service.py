"""
Booking wizard service.
Drives a booking through restaurant, date & time, add-ons, guest details and confirmation.
"""
import logging
from datetime import date
from typing import Dict, List, Optional, Tuple

from core.config import settings
from core.logging import BookingLogContext
from core.utils_datetime import format_slot_time, is_past_date, parse_slot_time
from domain.enums import BookingStep, UsagePolicy
from domain.models import Addon, Booking, BookingSummary, GuestInfo, SummaryLine
from services import pricing
from services.addon_selection import AddonSelectionEngine
from services.availability_service import AvailabilityService
from services.catalog_service import CatalogService
from services.eligibility import get_menu_policy


logger = logging.getLogger(__name__)


class BookingStateError(Exception):
    """Raised when a wizard operation is not possible in the current booking state."""
    pass


class AddonsIncompleteError(BookingStateError):
    """Raised when the add-ons step is left with an incomplete guest assignment."""
    pass


STEP_NAMES: Dict[BookingStep, str] = {
    BookingStep.RESTAURANT: "Restaurant",
    BookingStep.DATE_TIME: "Date & Time",
    BookingStep.ADDONS: "Add-ons",
    BookingStep.DETAILS: "Details",
    BookingStep.CONFIRM: "Confirm",
}


class BookingWizard:
    """Single-user booking wizard holding the booking aggregate."""

    def __init__(
        self,
        catalog: CatalogService,
        availability: Optional[AvailabilityService] = None,
        party_size: Optional[int] = None
    ):
        """
        Initialize the wizard.

        Args:
            catalog: Reference data
            availability: Slot lookups, built from the catalog when omitted
            party_size: Starting party size, defaults to settings.default_party_size
        """
        self.catalog = catalog
        self.availability = availability or AvailabilityService(catalog)
        self.booking = Booking(party_size=party_size or settings.default_party_size)
        self.current_step = BookingStep.RESTAURANT

    @property
    def log(self) -> BookingLogContext:
        booking = self.booking
        return BookingLogContext(
            logger,
            restaurant_id=booking.restaurant.id if booking.restaurant else None,
            session_id=booking.session.id if booking.session else None,
            experience_id=booking.selected_experience.id if booking.selected_experience else None,
            party_size=booking.party_size,
        )

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def steps(self) -> List[Tuple[int, str]]:
        """Step numbers and labels; the last step reads "Confirm & Pay" when payment is due."""
        labels = dict(STEP_NAMES)
        if self.requires_payment():
            labels[BookingStep.CONFIRM] = "Confirm & Pay"
        return [(step.value, labels[step]) for step in BookingStep]

    def _check_step_done(self, step: BookingStep) -> None:
        booking = self.booking
        if step == BookingStep.RESTAURANT and booking.restaurant is None:
            raise BookingStateError("Select a restaurant first")
        if step == BookingStep.DATE_TIME and (
            booking.booking_date is None or booking.session is None or booking.booking_time is None
        ):
            raise BookingStateError("Select a date, session and time first")
        if step == BookingStep.DETAILS and booking.guest is None:
            raise BookingStateError("Enter guest details first")

    def next_step(self) -> BookingStep:
        """Advance one step once the current one is filled in."""
        self._check_step_done(self.current_step)
        if self.current_step < BookingStep.CONFIRM:
            self.current_step = BookingStep(self.current_step + 1)
        return self.current_step

    def previous_step(self) -> BookingStep:
        if self.current_step > BookingStep.RESTAURANT:
            self.current_step = BookingStep(self.current_step - 1)
        return self.current_step

    def go_to_step(self, step: BookingStep) -> BookingStep:
        """Jump back to an earlier step; forward jumps are ignored."""
        step = BookingStep(step)
        if step < self.current_step:
            self.current_step = step
        return self.current_step

    # ------------------------------------------------------------------
    # Restaurant, party size, date & time
    # ------------------------------------------------------------------

    def _clear_addons(self) -> None:
        if self.booking.addon_selections:
            self.log.info("Context changed, clearing committed add-ons")
        self.booking.addons = []
        self.booking.addon_selections = []

    def select_restaurant(self, restaurant_id: str) -> None:
        restaurant = self.catalog.get_restaurant(restaurant_id)
        if restaurant is None:
            raise BookingStateError(f"Unknown restaurant: {restaurant_id}")

        if self.booking.restaurant is None or self.booking.restaurant.id != restaurant.id:
            self.booking.booking_date = None
            self.booking.session = None
            self.booking.booking_time = None
            self.booking.selected_experience = None
            self._clear_addons()

        self.booking.restaurant = restaurant
        self.booking.is_sister_restaurant = restaurant.is_sister

    def set_party_size(self, party_size: int) -> None:
        """
        Change the party size.

        Raises:
            BookingStateError: If outside ``[1, settings.max_party_size]``
        """
        if party_size < 1 or party_size > settings.max_party_size:
            raise BookingStateError(
                f"Party size must be between 1 and {settings.max_party_size} (got {party_size})"
            )
        if party_size != self.booking.party_size:
            self._clear_addons()
        self.booking.party_size = party_size

    def select_date_time(
        self,
        on_date: date,
        session_id: str,
        time_label: str,
        experience_id: Optional[str] = None
    ) -> None:
        """
        Choose date, session and time, optionally for a featured experience.

        Raises:
            BookingStateError: If no restaurant is chosen, the date is past, the
                time label is malformed, the session or experience does not match,
                or the time is not bookable
        """
        restaurant = self.booking.restaurant
        if restaurant is None:
            raise BookingStateError("Select a restaurant first")
        if is_past_date(on_date):
            raise BookingStateError(f"Cannot book a past date: {on_date}")

        slot_time = parse_slot_time(time_label)
        if slot_time is None:
            raise BookingStateError(f"Invalid time: {time_label!r}")
        time_label = format_slot_time(slot_time)

        session = self.catalog.get_session(session_id)
        if session is None:
            raise BookingStateError(f"Unknown session: {session_id}")

        experience = None
        if experience_id:
            experience = self.catalog.get_experience(experience_id)
            if experience is None:
                raise BookingStateError(f"Unknown experience: {experience_id}")
            if (
                experience.restaurant_id != restaurant.id
                or experience.date != on_date
                or experience.session_id != session_id
            ):
                raise BookingStateError(
                    f"{experience.name} is not held at {restaurant.name} on {on_date} for {session.name}"
                )

        if not self.availability.is_time_available(
            restaurant.id, on_date, session_id, time_label, experience_id
        ):
            raise BookingStateError(f"{time_label} is not available")

        old_context = self.booking.context()
        self.booking.booking_date = on_date
        self.booking.session = session
        self.booking.booking_time = time_label
        self.booking.selected_experience = experience
        if self.booking.context() != old_context:
            self._clear_addons()

    # ------------------------------------------------------------------
    # Add-ons
    # ------------------------------------------------------------------

    def menu_policy(self) -> UsagePolicy:
        return get_menu_policy(self.catalog, self.booking.context())

    def start_addons_step(self) -> Optional[AddonSelectionEngine]:
        """
        Enter the add-ons step.

        Returns:
            A fresh engine seeded with any previously committed selections, or
            None when the policy has no menu step
        """
        if self.booking.session is None and self.booking.selected_experience is None:
            raise BookingStateError("Select a session or experience first")
        if self.menu_policy() == UsagePolicy.NO_MENU:
            self.log.debug("No menu step for this booking")
            return None
        return AddonSelectionEngine.for_context(
            self.catalog,
            self.booking.context(),
            selections=self.booking.addon_selections,
        )

    def complete_addons_step(self, engine: Optional[AddonSelectionEngine]) -> None:
        """
        Copy the engine's selections into the booking.

        Raises:
            AddonsIncompleteError: If the engine's guest assignment blocks advancing
        """
        if engine is None:
            self._clear_addons()
            return
        if not engine.can_advance():
            raise AddonsIncompleteError(
                engine.assignment_status() or "Add-on selection is incomplete"
            )
        committed = engine.commit()
        self.booking.addons = list(committed.addons)
        self.booking.addon_selections = list(committed.addon_selections)

    def abandon_addons_step(self, engine: Optional[AddonSelectionEngine]) -> None:
        """Leave the add-ons step without keeping the engine's changes."""
        if engine is not None:
            self.log.debug(f"Discarded {len(engine.selections)} uncommitted add-on selections")
            engine.clear()

    # ------------------------------------------------------------------
    # Details and confirmation
    # ------------------------------------------------------------------

    def set_guest_details(self, guest: GuestInfo) -> None:
        self.booking.guest = guest

    def _committed_addon_map(self) -> Dict[int, Addon]:
        return {line.addon.uid: line.addon for line in self.booking.addons}

    def addons_total(self) -> int:
        """Total of the committed add-ons in cents."""
        return pricing.price_total(
            self.booking.addon_selections, self._committed_addon_map(), self.booking.party_size
        )

    def requires_payment(self) -> bool:
        return self.addons_total() > 0

    def summary(self) -> BookingSummary:
        booking = self.booking
        addon_map = self._committed_addon_map()
        lines = []
        for selection in booking.addon_selections:
            addon = addon_map.get(selection.addon_uid)
            if addon is None:
                continue
            lines.append(SummaryLine(
                uid=addon.uid,
                name=addon.name,
                quantity=selection.quantity,
                price_label=pricing.price_label(addon),
                total=pricing.line_total(addon, selection, booking.party_size),
            ))

        total = self.addons_total()
        experience = booking.selected_experience
        guest = booking.guest
        return BookingSummary(
            restaurant_name=booking.restaurant.name if booking.restaurant else None,
            booking_date=booking.booking_date,
            session_name=booking.session.name if booking.session else None,
            booking_time=booking.booking_time,
            party_size=booking.party_size,
            experience_name=experience.name if experience else None,
            experience_price_per_person=experience.price if experience else None,
            guest_name=f"{guest.first_name} {guest.last_name}" if guest else None,
            occasion=guest.occasion if guest else None,
            dietary=list(guest.dietary) if guest else [],
            lines=lines,
            addons_total=total,
            requires_payment=total > 0,
            confirm_label=f"Pay {pricing.format_price(total)} & Confirm" if total > 0 else "Confirm",
        )

    def confirm(self) -> Booking:
        """
        Confirm the booking.

        Returns:
            A copy of the confirmed booking

        Raises:
            BookingStateError: If any earlier step is unfinished or it is already confirmed
        """
        if self.booking.confirmed:
            raise BookingStateError("Booking is already confirmed")
        for step in (BookingStep.RESTAURANT, BookingStep.DATE_TIME, BookingStep.DETAILS):
            self._check_step_done(step)

        self.booking.confirmed = True
        self.log.info(
            f"Confirmed booking at {self.booking.restaurant.name} on {self.booking.booking_date} "
            f"{self.booking.booking_time} for {self.booking.party_size}, "
            f"add-ons total {self.addons_total()} cents"
        )
        return self.booking.model_copy(deep=True)
