"""
Pricing and validation of add-on selections.
Pure functions of the selection set, the add-on lookup, the policy and the party size.
"""
from typing import Iterable, Mapping

from core.config import settings
from domain.enums import UsagePolicy
from domain.models import Addon, AddonSelection


def line_total(addon: Addon, selection: AddonSelection, party_size: int) -> int:
    """
    Price of one selection in cents.

    Guest-basis add-ons are multiplied by the assigned guest count (falling
    back to the party size), party-basis add-ons by the quantity.
    """
    if addon.is_guest_basis:
        return addon.price * (selection.guest_count or party_size)
    return addon.price * selection.quantity


def price_total(
    selections: Iterable[AddonSelection],
    addons: Mapping[int, Addon],
    party_size: int
) -> int:
    """
    Total price of a selection set in cents.

    Args:
        selections: Current add-on selections
        addons: uid -> Addon lookup
        party_size: Number of guests

    Returns:
        Sum of every selection's line total; unknown uids contribute nothing
    """
    total = 0
    for selection in selections:
        addon = addons.get(selection.addon_uid)
        if addon is None:
            continue
        total += line_total(addon, selection, party_size)
    return total


def assigned_guest_count(selections: Iterable[AddonSelection], addons: Mapping[int, Addon]) -> int:
    """Sum of guest counts across the selected menus."""
    total = 0
    for selection in selections:
        addon = addons.get(selection.addon_uid)
        if addon is not None and addon.is_menu:
            total += selection.guest_count or 0
    return total


def is_complete(
    policy: UsagePolicy,
    selections: Iterable[AddonSelection],
    addons: Mapping[int, Addon],
    party_size: int
) -> bool:
    """
    Check whether a selection set satisfies its menu policy.

    PER_GUEST: the menus' guest counts must cover the whole party exactly, or
    nothing may be assigned at all (the step is skipped).
    PARTIAL_PER_GUEST: the guest counts may not exceed the party size. Every
    new menu starts with the whole party, so a second menu needs counts lowered.
    Other policies are always complete.
    """
    if policy == UsagePolicy.PER_GUEST:
        assigned = assigned_guest_count(selections, addons)
        return assigned == 0 or assigned == party_size
    if policy == UsagePolicy.PARTIAL_PER_GUEST:
        return assigned_guest_count(selections, addons) <= party_size
    return True


def can_advance(
    policy: UsagePolicy,
    selections: Iterable[AddonSelection],
    addons: Mapping[int, Addon],
    party_size: int
) -> bool:
    """Whether the wizard may leave the add-ons step."""
    return is_complete(policy, selections, addons, party_size)


def format_price(cents: int) -> str:
    """
    Format a price in cents for display.

    Returns:
        "Included" for zero, otherwise e.g. "$85.00"
    """
    if cents == 0:
        return "Included"
    sign = "-" if cents < 0 else ""
    dollars, remainder = divmod(abs(cents), 100)
    return f"{sign}{settings.currency_symbol}{dollars}.{remainder:02d}"


def price_label(addon: Addon) -> str:
    """Price with a per-guest indicator, e.g. "$85.00/guest"."""
    price = format_price(addon.price)
    if addon.price == 0:
        return price
    return f"{price}/guest" if addon.is_guest_basis else price
