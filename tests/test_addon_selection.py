"""
Tests for the add-on selection engine.
Covers every menu policy, dependent option cascades, clamping and commit.
"""
import random

import pytest

from domain.enums import UsagePolicy
from domain.models import Addon, AddonSelection, BookingContext
from services.addon_selection import (
    AddonNotOfferableError,
    AddonSelectionEngine,
    AddonSelectionError,
    ParentNotSelectedError,
    PolicyViolationError,
)
from services.eligibility import OfferableAddons, resolve_offerable


SET_MENU_4 = 1000
SET_MENU_6 = 1001
WINE_PAIRING = 1003
PREMIUM_WINE = 1004
CHAMPAGNE = 1005
CAKE = 1006
ROSES = 1007


def menu_total(engine):
    return sum(
        s.guest_count or 0 for s in engine.selections
        if s.addon_uid in engine.selected_menu_uids()
    )


# ============================================================================
# Policy 1: shared menu
# ============================================================================

@pytest.mark.unit
class TestSharedMenuPolicy:
    """Tests for policy 1, one menu for the whole party."""

    def test_dinner_uses_shared_menu(self, make_engine):
        """Test the dinner session engine runs policy 1."""
        engine = make_engine(4, session_id="dinner")
        assert engine.policy == UsagePolicy.SHARED_MENU

    def test_select_assigns_whole_party(self, make_engine, addon):
        """Test selecting a menu assigns every guest."""
        engine = make_engine(4, session_id="dinner")
        selection = engine.select_menu(addon(SET_MENU_4))
        assert selection == AddonSelection(addon_uid=SET_MENU_4, quantity=4, guest_count=4)

    def test_set_menu_scenario(self, make_engine, addon):
        """Test menu, pairing, then switching menus drops the pairing."""
        engine = make_engine(4, session_id="dinner")

        engine.select_menu(addon(SET_MENU_4))
        assert engine.price_total() == 34000

        engine.select_option(addon(WINE_PAIRING))
        assert engine.price_total() == 60000

        engine.select_menu(addon(SET_MENU_6))
        assert not engine.is_selected(WINE_PAIRING)
        assert not engine.is_selected(SET_MENU_4)
        assert engine.price_total() == 50000

    def test_switch_keeps_independent_options(self, make_engine, addon):
        """Test switching menus keeps options without a parent."""
        engine = make_engine(4, session_id="dinner")
        engine.select_menu(addon(SET_MENU_4))
        engine.select_option(addon(CAKE))
        engine.select_menu(addon(SET_MENU_6))
        assert engine.is_selected(CAKE)

    def test_reselect_same_menu_keeps_its_options(self, make_engine, addon):
        """Test selecting the active menu again leaves its dependents alone."""
        engine = make_engine(2, session_id="dinner")
        engine.select_menu(addon(SET_MENU_4))
        engine.select_option(addon(WINE_PAIRING))
        engine.select_menu(addon(SET_MENU_4))
        assert engine.is_selected(WINE_PAIRING)
        assert engine.selected_menu_uids() == [SET_MENU_4]

    def test_exactly_one_menu_after_any_sequence(self, make_engine, addon):
        """Test any sequence of menu selections leaves exactly one menu."""
        engine = make_engine(7, session_id="dinner")
        menus = [addon(SET_MENU_4), addon(SET_MENU_6), addon(1002)]
        rng = random.Random(7)
        for _ in range(25):
            menu = rng.choice(menus)
            engine.select_menu(menu)
            assert engine.selected_menu_uids() == [menu.uid]
            assert engine.selection_for(menu.uid).guest_count == 7
            if menu.uid == SET_MENU_4:
                engine.select_option(addon(WINE_PAIRING))
            else:
                assert not engine.is_selected(WINE_PAIRING)

    def test_shared_menu_cannot_assign_guests(self, make_engine, addon):
        """Test guest counts cannot be adjusted under policy 1."""
        engine = make_engine(4, session_id="dinner")
        engine.select_menu(addon(SET_MENU_4))
        with pytest.raises(PolicyViolationError):
            engine.adjust_menu_guest_count(addon(SET_MENU_4), -1)
        assert engine.selection_for(SET_MENU_4).guest_count == 4

    def test_always_complete(self, make_engine, addon):
        """Test policy 1 never blocks advancing."""
        engine = make_engine(4, session_id="dinner")
        assert engine.is_complete()
        engine.select_menu(addon(SET_MENU_4))
        assert engine.can_advance()


# ============================================================================
# Policy 2: per guest
# ============================================================================

@pytest.mark.unit
class TestPerGuestPolicy:
    """Tests for policy 2, every guest assigned a menu."""

    def test_select_adds_one_guest(self, make_engine, addon):
        """Test each menu starts with a single guest and menus coexist."""
        engine = make_engine(3, session_id="dinner", policy=2)
        engine.select_menu(addon(SET_MENU_4))
        engine.select_menu(addon(SET_MENU_6))
        assert engine.selection_for(SET_MENU_4) == AddonSelection(addon_uid=SET_MENU_4, quantity=1, guest_count=1)
        assert engine.selected_menu_uids() == [SET_MENU_4, SET_MENU_6]

    def test_adjust_clamps_to_remaining_guests(self, make_engine, addon):
        """Test a menu cannot take guests already assigned elsewhere."""
        engine = make_engine(4, session_id="dinner", policy=2)
        engine.select_menu(addon(SET_MENU_4))
        engine.select_menu(addon(SET_MENU_6))
        selection = engine.adjust_menu_guest_count(addon(SET_MENU_4), 10)
        assert selection.guest_count == 3
        assert selection.quantity == 3
        assert engine.assigned_guest_count() == 4

    def test_adjust_clamps_to_one(self, make_engine, addon):
        """Test a menu never drops below one guest."""
        engine = make_engine(4, session_id="dinner", policy=2)
        engine.select_menu(addon(SET_MENU_4))
        assert engine.adjust_menu_guest_count(addon(SET_MENU_4), -5).guest_count == 1

    def test_adjust_unselected_menu(self, make_engine, addon):
        """Test adjusting an unselected menu changes nothing."""
        engine = make_engine(4, session_id="dinner", policy=2)
        assert engine.adjust_menu_guest_count(addon(SET_MENU_4), 1) is None
        assert engine.selections == []

    def test_random_adjustments_respect_bounds(self, make_engine, addon):
        """Test sums never exceed the party and no menu drops below one."""
        engine = make_engine(5, session_id="dinner", policy=2)
        menus = [addon(SET_MENU_4), addon(SET_MENU_6)]
        for menu in menus:
            engine.select_menu(menu)
        rng = random.Random(2)
        for _ in range(100):
            engine.adjust_menu_guest_count(rng.choice(menus), rng.randint(-4, 4))
            assert menu_total(engine) <= 5
            for menu in menus:
                assert engine.selection_for(menu.uid).guest_count >= 1

    def test_menus_coexist_past_party_size(self, make_engine, addon):
        """Test a further menu is added even when every guest already has one."""
        engine = make_engine(2, session_id="dinner", policy=2)
        engine.select_menu(addon(SET_MENU_4))
        engine.adjust_menu_guest_count(addon(SET_MENU_4), 1)
        selection = engine.select_menu(addon(SET_MENU_6))
        assert selection == AddonSelection(addon_uid=SET_MENU_6, quantity=1, guest_count=1)
        assert engine.assigned_guest_count() == 3
        assert not engine.can_advance()
        assert engine.assignment_status() == "3 guests assigned to a party of 2"

        engine.adjust_menu_guest_count(addon(SET_MENU_4), -1)
        assert engine.can_advance()

    def test_completion_scenario(self, make_engine, addon):
        """Test 2 + 1 guests of 3 is complete, and dropping the 2 is not."""
        engine = make_engine(3, session_id="dinner", policy=2)
        engine.select_menu(addon(SET_MENU_4))
        engine.select_menu(addon(SET_MENU_6))
        engine.adjust_menu_guest_count(addon(SET_MENU_4), 1)
        assert engine.is_complete()
        assert engine.assignment_status() == "All 3 guests assigned"

        engine.deselect_menu(addon(SET_MENU_4))
        assert engine.selection_for(SET_MENU_6).guest_count == 1
        assert not engine.is_complete()
        assert not engine.can_advance()
        assert engine.assignment_status() == "1 of 3 guests assigned"

    def test_nothing_assigned_is_complete(self, make_engine):
        """Test an untouched per-guest step counts as skipped."""
        engine = make_engine(3, session_id="dinner", policy=2)
        assert engine.is_complete()
        assert engine.assignment_status() is None

    def test_partial_totals_incomplete(self, make_engine, addon):
        """Test every total strictly between 0 and the party is incomplete."""
        engine = make_engine(4, session_id="dinner", policy=2)
        engine.select_menu(addon(SET_MENU_4))
        for _ in range(3):
            assert not engine.is_complete()
            engine.adjust_menu_guest_count(addon(SET_MENU_4), 1)
        assert engine.assigned_guest_count() == 4
        assert engine.is_complete()

    def test_price_uses_guest_counts(self, make_engine, addon):
        """Test per-guest menus are charged per assigned guest."""
        engine = make_engine(3, session_id="dinner", policy=2)
        engine.select_menu(addon(SET_MENU_4))
        engine.select_menu(addon(SET_MENU_6))
        engine.adjust_menu_guest_count(addon(SET_MENU_4), 1)
        assert engine.price_total() == 8500 * 2 + 12500 * 1

    def test_policy_description(self, make_engine):
        """Test the policy description names the party size."""
        engine = make_engine(3, session_id="dinner", policy=2)
        assert engine.policy_description() == "Assign a menu to each of your 3 guests"


# ============================================================================
# Policy 3: optional
# ============================================================================

@pytest.mark.unit
class TestOptionalPolicy:
    """Tests for policy 3, free pre-order."""

    def test_lunch_uses_optional(self, make_engine):
        """Test lunch runs policy 3."""
        assert make_engine(2, session_id="lunch").policy == UsagePolicy.OPTIONAL

    def test_guest_menu_charged_for_party(self, make_engine, addon):
        """Test a guest-basis menu defaults to the whole party."""
        engine = make_engine(3, session_id="lunch")
        selection = engine.select_menu(addon(3000))
        assert selection.quantity == 1
        assert selection.guest_count == 3
        assert engine.price_total() == 4500 * 3

    def test_menus_toggle_independently(self, make_engine, addon):
        """Test multiple menus coexist and deselect independently."""
        engine = make_engine(2, session_id="lunch")
        engine.select_menu(addon(3000))
        engine.select_menu(addon(3001))
        engine.deselect_menu(addon(3000))
        assert engine.selected_menu_uids() == [3001]

    def test_always_complete(self, make_engine, addon):
        """Test policy 3 never blocks advancing."""
        engine = make_engine(2, session_id="lunch")
        engine.select_menu(addon(3000))
        assert engine.is_complete()
        assert engine.assignment_status() is None

    def test_guest_counts_not_adjustable(self, make_engine, addon):
        """Test guest counts are fixed under policy 3."""
        engine = make_engine(2, session_id="lunch")
        engine.select_menu(addon(3000))
        with pytest.raises(PolicyViolationError):
            engine.adjust_menu_guest_count(addon(3000), 1)


# ============================================================================
# Policy 4: partial per guest
# ============================================================================

@pytest.mark.unit
class TestPartialPerGuestPolicy:
    """Tests for policy 4, some guests assigned a menu."""

    def test_select_inserts_like_optional(self, make_engine, addon):
        """Test a guest-basis menu starts with quantity 1 and the whole party."""
        engine = make_engine(4, session_id="dinner", policy=4)
        selection = engine.select_menu(addon(SET_MENU_4))
        assert selection == AddonSelection(addon_uid=SET_MENU_4, quantity=1, guest_count=4)
        assert engine.price_total() == 8500 * 4

    def test_two_guest_menus_coexist(self, make_engine, addon):
        """Test a second menu is added alongside the first, not refused."""
        engine = make_engine(4, session_id="dinner", policy=4)
        engine.select_menu(addon(SET_MENU_4))
        engine.select_menu(addon(SET_MENU_6))
        assert engine.selected_menu_uids() == [SET_MENU_4, SET_MENU_6]
        assert engine.selection_for(SET_MENU_6).guest_count == 4
        assert engine.assigned_guest_count() == 8
        assert not engine.can_advance()

        engine.adjust_menu_guest_count(addon(SET_MENU_4), -3)
        engine.adjust_menu_guest_count(addon(SET_MENU_6), -1)
        assert engine.assigned_guest_count() == 4
        assert engine.can_advance()
        assert engine.price_total() == 8500 * 1 + 12500 * 3

    def test_partial_assignment_is_complete(self, make_engine, addon):
        """Test leaving guests unassigned still allows advancing."""
        engine = make_engine(4, session_id="dinner", policy=4)
        engine.select_menu(addon(SET_MENU_4))
        engine.adjust_menu_guest_count(addon(SET_MENU_4), -2)
        assert engine.assigned_guest_count() == 2
        assert engine.is_complete()
        assert engine.assignment_status() == "2 of 4 guests assigned"

    def test_committed_quantity(self, make_engine, addon):
        """Test the committed line carries the selection's quantity."""
        engine = make_engine(4, session_id="dinner", policy=4)
        engine.select_menu(addon(SET_MENU_4))
        committed = engine.commit()
        assert [(line.addon.uid, line.quantity) for line in committed.addons] == [(SET_MENU_4, 1)]


@pytest.mark.unit
class TestPartyBasisMenus:
    """Tests for menus charged once per party."""

    @pytest.fixture
    def platter(self):
        return Addon(uid=9000, name="Sharing Platter", price=5000, per="Party", kind="Menu")

    @pytest.mark.parametrize("policy", [UsagePolicy.OPTIONAL, UsagePolicy.PARTIAL_PER_GUEST])
    def test_charged_once(self, platter, policy):
        """Test a party-basis menu is one unit at its own price under policies 3 and 4."""
        engine = AddonSelectionEngine(OfferableAddons(menus=[platter]), policy, party_size=4)

        selection = engine.select_menu(platter)

        assert selection == AddonSelection(addon_uid=9000, quantity=1, guest_count=None)
        assert engine.price_total() == 5000
        assert engine.assigned_guest_count() == 0
        assert engine.commit().addons[0].quantity == 1


# ============================================================================
# Policy 0: no menu
# ============================================================================

@pytest.mark.unit
class TestNoMenuPolicy:
    """Tests for policy 0, no menu step."""

    def test_select_menu_is_noop(self, make_engine, addon):
        """Test selecting a menu under policy 0 changes nothing."""
        engine = make_engine(2, session_id="dinner", policy=0)
        assert engine.select_menu(addon(SET_MENU_4)) is None
        assert engine.selections == []
        assert engine.is_complete()
        assert engine.policy_description() == ""


# ============================================================================
# Options, cascades and rejection
# ============================================================================

@pytest.mark.unit
class TestOptions:
    """Tests for option selection and dependency handling."""

    def test_option_requires_parent(self, make_engine, addon):
        """Test a dependent option is refused without its menu."""
        engine = make_engine(2, session_id="dinner")
        with pytest.raises(ParentNotSelectedError, match="only available with Set Menu - 4 Course"):
            engine.select_option(addon(WINE_PAIRING))
        assert engine.selections == []

    def test_guest_option_charged_for_party(self, make_engine, addon):
        """Test a guest-basis option is charged for the whole party."""
        engine = make_engine(3, session_id="lunch")
        selection = engine.select_option(addon(3002))
        assert selection.guest_count == 3
        assert engine.price_total() == 1800 * 3

    def test_party_option_quantity_scenario(self, make_engine, addon):
        """Test quantity steps up by one and clamps at ten."""
        engine = make_engine(2, session_id="dinner")
        engine.select_option(addon(ROSES))
        engine.adjust_option_quantity(addon(ROSES), 1)
        engine.adjust_option_quantity(addon(ROSES), 1)
        assert engine.selection_for(ROSES).quantity == 3
        assert engine.price_total() == 13500

        for _ in range(10):
            engine.adjust_option_quantity(addon(ROSES), 1)
        assert engine.selection_for(ROSES).quantity == 10
        assert engine.price_total() == 45000

    def test_quantity_never_below_one(self, make_engine, addon):
        """Test quantity clamps at one."""
        engine = make_engine(2, session_id="dinner")
        engine.select_option(addon(CHAMPAGNE))
        assert engine.adjust_option_quantity(addon(CHAMPAGNE), -3).quantity == 1

    def test_guest_option_has_no_quantity(self, make_engine, addon):
        """Test quantity adjustments are refused for guest-basis options."""
        engine = make_engine(2, session_id="dinner")
        engine.select_menu(addon(SET_MENU_4))
        engine.select_option(addon(WINE_PAIRING))
        with pytest.raises(PolicyViolationError):
            engine.adjust_option_quantity(addon(WINE_PAIRING), 1)

    def test_deselect_option(self, make_engine, addon):
        """Test deselecting an option removes only that option."""
        engine = make_engine(2, session_id="dinner")
        engine.select_option(addon(CAKE))
        engine.select_option(addon(ROSES))
        assert engine.deselect_option(addon(CAKE)) is True
        assert engine.deselect_option(addon(CAKE)) is False
        assert [s.addon_uid for s in engine.selections] == [ROSES]

    def test_reselect_option_keeps_quantity(self, make_engine, addon):
        """Test selecting an already selected option is a no-op."""
        engine = make_engine(2, session_id="dinner")
        engine.select_option(addon(CAKE))
        engine.adjust_option_quantity(addon(CAKE), 2)
        assert engine.select_option(addon(CAKE)).quantity == 3

    def test_available_options_follow_menu(self, make_engine, addon):
        """Test dependent options appear and disappear with their menu."""
        engine = make_engine(2, session_id="dinner")
        assert WINE_PAIRING not in [o.uid for o in engine.available_options()]
        engine.select_menu(addon(SET_MENU_4))
        assert WINE_PAIRING in [o.uid for o in engine.available_options()]
        engine.select_menu(addon(SET_MENU_6))
        available = [o.uid for o in engine.available_options()]
        assert WINE_PAIRING not in available
        assert PREMIUM_WINE in available

    def test_price_is_linear(self, make_engine, addon):
        """Test two independent options cost the sum of each alone."""
        only_cake = make_engine(4, session_id="dinner")
        only_cake.select_option(addon(CAKE))
        only_roses = make_engine(4, session_id="dinner")
        only_roses.select_option(addon(ROSES))
        both = make_engine(4, session_id="dinner")
        both.select_option(addon(CAKE))
        both.select_option(addon(ROSES))
        assert both.price_total() == only_cake.price_total() + only_roses.price_total()


@pytest.mark.unit
class TestCascadeAndRejection:
    """Tests for dependent removal and invalid targets."""

    @pytest.mark.parametrize("policy", [1, 2, 3, 4])
    def test_deselect_menu_removes_dependents(self, make_engine, addon, policy):
        """Test no dependent option survives its menu, under any policy."""
        engine = make_engine(2, session_id="dinner", policy=policy)
        engine.select_menu(addon(SET_MENU_4))
        engine.select_option(addon(WINE_PAIRING))
        engine.select_option(addon(CAKE))

        removed = engine.deselect_menu(addon(SET_MENU_4))

        assert removed == [SET_MENU_4, WINE_PAIRING]
        assert [s.addon_uid for s in engine.selections] == [CAKE]

    def test_experience_cascade(self, make_engine, addon):
        """Test experience options depend on the experience menu."""
        engine = make_engine(2, experience_id="chef-table-1")
        engine.select_menu(addon(4000))
        engine.select_option(addon(4001))
        engine.deselect_menu(addon(4000))
        assert engine.selections == []

    def test_not_offerable_rejected(self, make_engine, addon):
        """Test add-ons outside the context are refused without state change."""
        engine = make_engine(2, session_id="lunch")
        engine.select_option(addon(CAKE))
        with pytest.raises(AddonNotOfferableError):
            engine.select_menu(addon(SET_MENU_4))
        with pytest.raises(AddonNotOfferableError):
            engine.select_option(addon(4002))
        assert [s.addon_uid for s in engine.selections] == [CAKE]

    def test_out_of_bounds_party_rejected(self, make_engine, addon):
        """Test an add-on whose party window excludes the party is refused."""
        engine = make_engine(4, session_id="dinner")
        with pytest.raises(AddonNotOfferableError):
            engine.select_menu(addon(1002))

    def test_wrong_kind_rejected(self, make_engine, addon):
        """Test menus and options go through their own handlers."""
        engine = make_engine(2, session_id="dinner")
        with pytest.raises(AddonSelectionError, match="is not a menu"):
            engine.select_menu(addon(CAKE))
        with pytest.raises(AddonSelectionError, match="is not an option"):
            engine.select_option(addon(SET_MENU_4))
        assert engine.selections == []

    def test_rejections_are_value_errors(self):
        """Test the rejection hierarchy."""
        assert issubclass(AddonNotOfferableError, AddonSelectionError)
        assert issubclass(ParentNotSelectedError, AddonSelectionError)
        assert issubclass(PolicyViolationError, ValueError)


@pytest.mark.unit
class TestEngineLifecycle:
    """Tests for construction, restoring and commit."""

    def test_invalid_party_size(self, catalog):
        """Test an engine needs at least one guest."""
        offerable = resolve_offerable(catalog, BookingContext(session_id="dinner", party_size=1))
        with pytest.raises(ValueError):
            AddonSelectionEngine(offerable, UsagePolicy.OPTIONAL, 0)

    def test_restore_drops_stale_selections(self, catalog):
        """Test restoring keeps offerable selections and drops orphans."""
        context = BookingContext(session_id="dinner", party_size=2)
        engine = AddonSelectionEngine.for_context(
            catalog,
            context,
            selections=[
                AddonSelection(addon_uid=CAKE, quantity=2),
                AddonSelection(addon_uid=WINE_PAIRING, quantity=1, guest_count=2),
                AddonSelection(addon_uid=3000, quantity=1, guest_count=2),
            ],
        )
        assert [s.addon_uid for s in engine.selections] == [CAKE]
        assert engine.selection_for(CAKE).quantity == 2

    def test_commit_returns_copies(self, make_engine, addon):
        """Test commit hands over lines and selections detached from the engine."""
        engine = make_engine(4, session_id="dinner")
        engine.select_menu(addon(SET_MENU_4))
        engine.select_option(addon(CHAMPAGNE))
        engine.adjust_option_quantity(addon(CHAMPAGNE), 1)

        committed = engine.commit()
        engine.clear()

        assert [(line.addon.uid, line.quantity) for line in committed.addons] == [
            (SET_MENU_4, 4),
            (CHAMPAGNE, 2),
        ]
        assert committed.addon_selections[0] == AddonSelection(addon_uid=SET_MENU_4, quantity=4, guest_count=4)
        assert engine.selections == []

    def test_queries(self, make_engine, addon):
        """Test selection lookups."""
        engine = make_engine(2, session_id="dinner")
        engine.select_option(addon(CAKE))
        assert engine.is_selected(CAKE)
        assert not engine.is_selected(ROSES)
        assert engine.selection_for(ROSES) is None
        assert engine.selection_for(CAKE).quantity == 1
