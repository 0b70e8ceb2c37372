"""
Eligibility resolution for add-ons.
Filters the catalog down to what may be offered for a session or experience and party size.
"""
import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Set

from core.config import settings
from domain.enums import UsagePolicy
from domain.models import Addon, AddonSelection, BookingContext
from services.catalog_service import CatalogService


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OfferableAddons:
    """Add-ons legally offerable in a context, split into menus and options."""
    menus: List[Addon] = field(default_factory=list)
    options: List[Addon] = field(default_factory=list)

    @property
    def all(self) -> List[Addon]:
        return self.menus + self.options

    @property
    def is_empty(self) -> bool:
        return not self.menus and not self.options


def _matches_context(addon: Addon, context: BookingContext) -> bool:
    # Experience tags and session tags are never mixed
    if context.experience_id:
        return context.experience_id in addon.experience_ids
    if context.session_id:
        return context.session_id in addon.session_ids and not addon.experience_ids
    return False


def resolve_offerable(catalog: CatalogService, context: BookingContext) -> OfferableAddons:
    """
    Resolve the add-ons that may be offered for a booking context.

    An experience in context takes precedence over the session: only add-ons
    tagged with that experience are considered. Without an experience only
    session-tagged add-ons that carry no experience tags are considered.
    Add-ons whose party-size window excludes ``context.party_size`` are dropped.

    Args:
        catalog: Catalog to resolve against
        context: Session/experience and party size

    Returns:
        OfferableAddons partitioned by kind, in catalog order
    """
    menus: List[Addon] = []
    options: List[Addon] = []

    for addon in catalog.addons:
        if not _matches_context(addon, context):
            continue
        if not addon.accepts_party_size(context.party_size):
            continue
        if addon.is_menu:
            menus.append(addon)
        else:
            options.append(addon)

    logger.debug(
        f"Resolved {len(menus)} menus and {len(options)} options for "
        f"session={context.session_id} experience={context.experience_id} party={context.party_size}"
    )
    return OfferableAddons(menus=menus, options=options)


def available_options(options: Iterable[Addon], selections: Iterable[AddonSelection]) -> List[Addon]:
    """
    Filter options down to those whose parent dependency is satisfied.

    Args:
        options: Candidate options
        selections: Current add-on selections

    Returns:
        Options without a parent, or whose parent is currently selected
    """
    selected: Set[int] = {s.addon_uid for s in selections}
    return [
        option for option in options
        if option.parent_uid is None or option.parent_uid in selected
    ]


def get_menu_policy(catalog: CatalogService, context: BookingContext) -> UsagePolicy:
    """
    Get the menu usage policy for a booking context.

    The experience's policy wins over the session's. Unknown or missing
    ids fall back to ``settings.default_menu_policy``.
    """
    if context.experience_id:
        experience = catalog.get_experience(context.experience_id)
        return experience.menu_policy if experience else settings.default_menu_policy

    if context.session_id:
        session = catalog.get_session(context.session_id)
        return session.menu_policy if session else settings.default_menu_policy

    return settings.default_menu_policy
