"""
Add-on selection engine.
Holds the add-on selections of one booking step and applies the menu usage
policy of the session or experience to every select/deselect/adjust event.
"""
import logging
from typing import Dict, Iterable, List, Optional

from core.config import settings
from core.logging import BookingLogContext
from domain.enums import UsagePolicy
from domain.models import Addon, AddonLine, AddonSelection, BookingContext, CommittedAddons
from services import pricing
from services.catalog_service import CatalogService
from services.eligibility import (
    OfferableAddons,
    available_options,
    get_menu_policy,
    resolve_offerable,
)


logger = logging.getLogger(__name__)


class AddonSelectionError(ValueError):
    """Raised when a selection event is rejected. State is left unchanged."""
    pass


class AddonNotOfferableError(AddonSelectionError):
    """Raised when the add-on is not offerable in the current context."""
    pass


class ParentNotSelectedError(AddonSelectionError):
    """Raised when an option is selected before the menu it depends on."""
    pass


class PolicyViolationError(AddonSelectionError):
    """Raised when an event is not allowed under the active menu policy."""
    pass


# ============================================================================
# Menu policy rules
# ============================================================================

class MenuPolicyRules:
    """Menu selection behaviour for one UsagePolicy."""

    policy: UsagePolicy
    description: str = ""

    def select_menu(self, engine: "AddonSelectionEngine", menu: Addon) -> Optional[AddonSelection]:
        raise NotImplementedError

    def describe(self, party_size: int) -> str:
        return self.description.format(party_size=party_size)


class NoMenuRules(MenuPolicyRules):
    """Policy 0: there is no menu step."""

    policy = UsagePolicy.NO_MENU

    def select_menu(self, engine, menu):
        engine.logger.debug(f"Ignoring menu {menu.uid}: no menu selection for this booking")
        return None


class SharedMenuRules(MenuPolicyRules):
    """Policy 1: one menu for the whole party."""

    policy = UsagePolicy.SHARED_MENU
    description = "All guests will have the same menu selection"

    def select_menu(self, engine, menu):
        for uid in engine.selected_menu_uids():
            if uid != menu.uid:
                engine._remove_with_dependents(uid)
        selection = AddonSelection(
            addon_uid=menu.uid,
            quantity=engine.party_size,
            guest_count=engine.party_size,
        )
        engine._put(selection)
        return selection


class PerGuestRules(MenuPolicyRules):
    """Policy 2: every guest is assigned a menu; menus coexist."""

    policy = UsagePolicy.PER_GUEST
    description = "Assign a menu to each of your {party_size} guests"

    def select_menu(self, engine, menu):
        selection = AddonSelection(addon_uid=menu.uid, quantity=1, guest_count=1)
        engine._put(selection)
        return selection


class OptionalMenuRules(MenuPolicyRules):
    """Policy 3: menus are optional and toggled independently."""

    policy = UsagePolicy.OPTIONAL
    description = "Optionally pre-order items for your visit"

    def select_menu(self, engine, menu):
        selection = AddonSelection(
            addon_uid=menu.uid,
            quantity=1,
            guest_count=engine.party_size if menu.is_guest_basis else None,
        )
        engine._put(selection)
        return selection


class PartialPerGuestRules(OptionalMenuRules):
    """Policy 4: menus are inserted as under policy 3, then guest counts may be lowered."""

    policy = UsagePolicy.PARTIAL_PER_GUEST
    description = "Select menus for some or all guests"


POLICY_RULES: Dict[UsagePolicy, MenuPolicyRules] = {
    rules.policy: rules
    for rules in (
        NoMenuRules(),
        SharedMenuRules(),
        PerGuestRules(),
        OptionalMenuRules(),
        PartialPerGuestRules(),
    )
}


# ============================================================================
# Engine
# ============================================================================

class AddonSelectionEngine:
    """Mutable add-on selection state for one add-ons step."""

    def __init__(
        self,
        offerable: OfferableAddons,
        policy: UsagePolicy,
        party_size: int,
        selections: Iterable[AddonSelection] = (),
        max_option_quantity: Optional[int] = None,
        context: Optional[BookingContext] = None,
    ):
        """
        Initialize the engine.

        Args:
            offerable: Add-ons resolved for the context
            policy: Menu usage policy of the context
            party_size: Number of guests
            selections: Previously committed selections to resume from; entries
                that are no longer offerable or whose parent is missing are dropped
            max_option_quantity: Upper bound for party-basis option quantity
            context: Booking context, added to every log record
        """
        if party_size < 1:
            raise ValueError(f"party_size must be at least 1 (got {party_size})")

        self.offerable = offerable
        self.policy = UsagePolicy(policy)
        self.rules = POLICY_RULES[self.policy]
        self.party_size = party_size
        self.max_option_quantity = max_option_quantity or settings.max_option_quantity
        self._addons: Dict[int, Addon] = {addon.uid: addon for addon in offerable.all}
        self._selections: Dict[int, AddonSelection] = {}
        self.logger = BookingLogContext(
            logger,
            session_id=context.session_id if context else None,
            experience_id=context.experience_id if context else None,
            party_size=party_size,
            menu_policy=self.policy.name,
        )

        self._restore(selections)

    @classmethod
    def for_context(
        cls,
        catalog: CatalogService,
        context: BookingContext,
        selections: Iterable[AddonSelection] = (),
    ) -> "AddonSelectionEngine":
        """Build an engine for a booking context using the catalog's add-ons and policy."""
        return cls(
            offerable=resolve_offerable(catalog, context),
            policy=get_menu_policy(catalog, context),
            party_size=context.party_size,
            selections=selections,
            context=context,
        )

    def _restore(self, selections: Iterable[AddonSelection]) -> None:
        selections = list(selections)
        for selection in selections:
            if selection.addon_uid not in self._addons:
                continue
            self._selections[selection.addon_uid] = selection
        # Drop options whose parent did not survive
        for selection in list(self._selections.values()):
            addon = self._addons[selection.addon_uid]
            if addon.parent_uid is not None and addon.parent_uid not in self._selections:
                del self._selections[selection.addon_uid]
        if len(self._selections) != len(selections):
            self.logger.info(
                f"Restored {len(self._selections)} add-on selections, dropped the rest as no longer offerable"
            )

    # ------------------------------------------------------------------
    # Internal mutation helpers
    # ------------------------------------------------------------------

    def _put(self, selection: AddonSelection) -> None:
        self._selections[selection.addon_uid] = selection

    def _remove_with_dependents(self, uid: int) -> List[int]:
        """Remove a selection and every option depending on it. Returns removed uids."""
        removed: List[int] = []
        if self._selections.pop(uid, None) is not None:
            removed.append(uid)
        for dependent_uid in [
            s.addon_uid for s in self._selections.values()
            if self._addons[s.addon_uid].parent_uid == uid
        ]:
            del self._selections[dependent_uid]
            removed.append(dependent_uid)
        if len(removed) > 1:
            self.logger.debug(f"Removed dependent options {removed[1:]} of menu {uid}")
        return removed

    def _require_offerable(self, addon: Addon, expect_menu: bool) -> Addon:
        known = self._addons.get(addon.uid)
        if known is None:
            self.logger.warning(f"Rejected add-on {addon.uid}: not offerable in this context")
            raise AddonNotOfferableError(f"{addon.name} is not available for this booking")
        if known.is_menu != expect_menu:
            expected = "a menu" if expect_menu else "an option"
            self.logger.warning(f"Rejected add-on {addon.uid}: expected {expected}")
            raise AddonSelectionError(f"{addon.name} is not {expected}")
        return known

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def select_menu(self, addon: Addon) -> Optional[AddonSelection]:
        """
        Select a menu according to the active policy.

        Returns:
            The menu's selection, or None under NO_MENU

        Raises:
            AddonNotOfferableError: If the menu is not offerable
            AddonSelectionError: If the add-on is an option
        """
        menu = self._require_offerable(addon, expect_menu=True)
        if menu.uid in self._selections and self.policy != UsagePolicy.SHARED_MENU:
            return self._selections[menu.uid]
        selection = self.rules.select_menu(self, menu)
        self.logger.debug(f"Selected menu {menu.uid} under {self.policy.name}: {selection}")
        return selection

    def deselect_menu(self, addon: Addon) -> List[int]:
        """
        Deselect a menu and every option that depends on it.

        Returns:
            uids of the removed selections
        """
        menu = self._require_offerable(addon, expect_menu=True)
        removed = self._remove_with_dependents(menu.uid)
        self.logger.debug(f"Deselected menu {menu.uid}, removed {removed}")
        return removed

    def adjust_menu_guest_count(self, addon: Addon, delta: int) -> Optional[AddonSelection]:
        """
        Change the number of guests assigned to a selected menu.

        The new count is clamped to ``[1, party_size - guests on other menus]``.

        Returns:
            The updated selection, or None if the menu is not selected

        Raises:
            PolicyViolationError: If the policy has no per-guest assignment
        """
        menu = self._require_offerable(addon, expect_menu=True)
        if not self.policy.assigns_guests:
            raise PolicyViolationError(
                f"Guest counts cannot be assigned under policy {self.policy.name}"
            )
        current = self._selections.get(menu.uid)
        if current is None:
            return None

        current_count = current.guest_count or 1
        other_total = self.assigned_guest_count() - (current.guest_count or 0)
        max_allowed = self.party_size - other_total
        new_count = max(1, min(max_allowed, current_count + delta))

        selection = current.model_copy(update={"quantity": new_count, "guest_count": new_count})
        self._put(selection)
        self.logger.debug(f"Menu {menu.uid} guest count {current_count} -> {new_count}")
        return selection

    def select_option(self, addon: Addon) -> AddonSelection:
        """
        Select an option.

        Guest-basis options are charged for the whole party, party-basis
        options start at quantity 1.

        Raises:
            AddonNotOfferableError: If the option is not offerable
            ParentNotSelectedError: If the option's parent menu is not selected
        """
        option = self._require_offerable(addon, expect_menu=False)
        if option.uid in self._selections:
            return self._selections[option.uid]
        if option.parent_uid is not None and option.parent_uid not in self._selections:
            self.logger.warning(f"Rejected option {option.uid}: parent {option.parent_uid} not selected")
            parent = self._addons.get(option.parent_uid)
            parent_name = parent.name if parent else str(option.parent_uid)
            raise ParentNotSelectedError(f"{option.name} is only available with {parent_name}")

        selection = AddonSelection(
            addon_uid=option.uid,
            quantity=1,
            guest_count=self.party_size if option.is_guest_basis else None,
        )
        self._put(selection)
        self.logger.debug(f"Selected option {option.uid}: {selection}")
        return selection

    def deselect_option(self, addon: Addon) -> bool:
        """Deselect an option. Returns whether anything was removed."""
        option = self._require_offerable(addon, expect_menu=False)
        removed = self._selections.pop(option.uid, None) is not None
        if removed:
            self.logger.debug(f"Deselected option {option.uid}")
        return removed

    def adjust_option_quantity(self, addon: Addon, delta: int) -> Optional[AddonSelection]:
        """
        Change the quantity of a selected party-basis option, clamped to ``[1, max_option_quantity]``.

        Returns:
            The updated selection, or None if the option is not selected

        Raises:
            PolicyViolationError: If the option is charged per guest
        """
        option = self._require_offerable(addon, expect_menu=False)
        if option.is_guest_basis:
            raise PolicyViolationError(f"{option.name} is charged per guest and has no quantity")
        current = self._selections.get(option.uid)
        if current is None:
            return None

        new_quantity = max(1, min(self.max_option_quantity, current.quantity + delta))
        selection = current.model_copy(update={"quantity": new_quantity})
        self._put(selection)
        return selection

    def clear(self) -> None:
        """Remove every selection."""
        self._selections.clear()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def selections(self) -> List[AddonSelection]:
        """Current selections in selection order."""
        return list(self._selections.values())

    def is_selected(self, addon_uid: int) -> bool:
        return addon_uid in self._selections

    def selection_for(self, addon_uid: int) -> Optional[AddonSelection]:
        return self._selections.get(addon_uid)

    def selected_menu_uids(self) -> List[int]:
        return [uid for uid in self._selections if self._addons[uid].is_menu]

    def available_options(self) -> List[Addon]:
        """Options whose parent dependency is satisfied right now."""
        return available_options(self.offerable.options, self._selections.values())

    def assigned_guest_count(self) -> int:
        return pricing.assigned_guest_count(self._selections.values(), self._addons)

    def unassigned_guest_count(self) -> int:
        return max(0, self.party_size - self.assigned_guest_count())

    def price_total(self) -> int:
        """Total of the current selections in cents."""
        return pricing.price_total(self._selections.values(), self._addons, self.party_size)

    def is_complete(self) -> bool:
        return pricing.is_complete(self.policy, self._selections.values(), self._addons, self.party_size)

    def can_advance(self) -> bool:
        return pricing.can_advance(self.policy, self._selections.values(), self._addons, self.party_size)

    def policy_description(self) -> str:
        return self.rules.describe(self.party_size)

    def assignment_status(self) -> Optional[str]:
        """
        Guest assignment message for per-guest policies.

        Returns:
            "All N guests assigned", "X of N guests assigned", "X guests assigned
            to a party of N" when over-assigned, or None when the
            policy has no guest assignment or no menu is selected yet
        """
        if not self.policy.assigns_guests or not self.selected_menu_uids():
            return None
        assigned = self.assigned_guest_count()
        if assigned > self.party_size:
            return f"{assigned} guests assigned to a party of {self.party_size}"
        if assigned == self.party_size:
            return f"All {self.party_size} guests assigned"
        return f"{assigned} of {self.party_size} guests assigned"

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    def commit(self) -> CommittedAddons:
        """
        Produce the step result handed to the booking.

        Returns:
            Copies of the selected add-ons with their quantities and of the selections
        """
        lines = [
            AddonLine(addon=self._addons[s.addon_uid], quantity=s.quantity)
            for s in self._selections.values()
        ]
        committed = CommittedAddons(
            addons=lines,
            addon_selections=[s.model_copy() for s in self._selections.values()],
        )
        self.logger.info(
            f"Committed {len(lines)} add-on selections under {self.policy.name}, "
            f"total {self.price_total()} cents"
        )
        return committed
