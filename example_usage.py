"""
Example usage of the booking wizard and add-on selection engine.

Walks two bookings through the wizard: a shared set menu dinner and a
per-guest menu assignment.
"""
from datetime import timedelta

from core.logging import setup_logging
from core.utils_datetime import get_current_date
from domain.models import GuestInfo
from services.booking_service import AddonsIncompleteError, BookingWizard
from services.catalog_service import get_catalog
from services.pricing import format_price


def next_monday():
    today = get_current_date()
    return today + timedelta(days=(0 - today.weekday()) % 7 or 7)


def run_dinner_booking():
    """Four guests share the 4 course set menu with wine pairing, then switch menus."""
    catalog = get_catalog()
    wizard = BookingWizard(catalog, party_size=4)
    wizard.select_restaurant("bellini")
    wizard.select_date_time(next_monday(), "dinner", "7:00 PM")

    engine = wizard.start_addons_step()
    print(engine.policy_description())

    engine.select_menu(catalog.get_addon(1000))
    engine.select_option(catalog.get_addon(1003))
    print(f"4 course + pairing: {format_price(engine.price_total())}")

    engine.select_menu(catalog.get_addon(1001))
    print(f"Switched to 6 course: {format_price(engine.price_total())}")

    wizard.complete_addons_step(engine)
    wizard.set_guest_details(GuestInfo(
        first_name="John",
        last_name="Smith",
        email="john@example.com",
        phone="+6421555123",
    ))

    summary = wizard.summary()
    for line in summary.lines:
        print(f"  {line.name} x{line.quantity}: {format_price(line.total)}")
    print(summary.confirm_label)
    return wizard.confirm()


def run_per_guest_assignment():
    """Three guests at the seafood feast must each be given a menu before the step can be left."""
    catalog = get_catalog()
    feast = catalog.get_experience("seafood-feast")
    wizard = BookingWizard(catalog, party_size=3)
    wizard.select_restaurant(feast.restaurant_id)
    wizard.select_date_time(feast.date, feast.session_id, feast.available_times[0], experience_id=feast.id)

    engine = wizard.start_addons_step()
    print(engine.policy_description())

    platter = catalog.get_addon(6000)
    catch = catalog.get_addon(6001)
    engine.select_menu(platter)
    engine.select_menu(catch)
    print(engine.assignment_status())

    try:
        wizard.complete_addons_step(engine)
    except AddonsIncompleteError as e:
        print(f"Blocked: {e}")

    engine.adjust_menu_guest_count(catch, 2)
    print(engine.assignment_status())
    wizard.complete_addons_step(engine)
    print(f"Add-ons total: {format_price(wizard.addons_total())}")


if __name__ == "__main__":
    setup_logging()

    print("\n### EXAMPLE 1: Shared set menu ###")
    run_dinner_booking()

    print("\n\n### EXAMPLE 2: Per-guest menus ###")
    run_per_guest_assignment()
