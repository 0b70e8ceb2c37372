"""Pytest configuration and fixtures for booking wizard tests."""
import pytest
from datetime import timedelta

from core.utils_datetime import get_current_date
from domain.enums import UsagePolicy
from domain.models import BookingContext
from services.addon_selection import AddonSelectionEngine
from services.availability_service import AvailabilityService
from services.booking_service import BookingWizard
from services.catalog_service import CatalogService
from services.eligibility import resolve_offerable


@pytest.fixture(scope="function")
def today():
    """Today in the restaurant timezone."""
    return get_current_date()


@pytest.fixture(scope="function")
def catalog(today):
    """The bundled catalog with experience dates relative to today."""
    return CatalogService.from_file(reference_date=today)


@pytest.fixture(scope="function")
def sample_catalog_data():
    """Small hand-written catalog for focused tests."""
    return {
        "restaurants": [
            {"id": "main", "name": "Main Room", "closed_sessions": {"monday": ["dinner"]}},
            {"id": "annex", "name": "Annex", "is_sister": True},
        ],
        "sessions": [
            {"id": "dinner", "name": "Dinner", "menu_policy": 2, "time_slots": ["6:00 PM", "7:00 PM"]},
            {"id": "brunch", "name": "Brunch", "menu_policy": 0, "time_slots": ["10:00 AM"]},
        ],
        "experiences": [
            {
                "id": "feast",
                "restaurant_id": "main",
                "day_offset": 2,
                "session_id": "dinner",
                "name": "Feast",
                "price": 15000,
                "available_times": ["8:00 PM"],
                "menu_policy": 4,
            },
        ],
        "addons": [
            {"uid": 1, "name": "Menu A", "price": 5000, "per": "Guest", "kind": "Menu", "session_ids": ["dinner"]},
            {"uid": 2, "name": "Menu B", "price": 4000, "per": "Guest", "kind": "Menu", "session_ids": ["dinner"]},
            {"uid": 3, "name": "Menu C", "price": 3000, "per": "Guest", "kind": "Menu",
             "min_party": 4, "max_party": 10, "session_ids": ["dinner"]},
            {"uid": 4, "name": "Matching Wine", "price": 2000, "per": "Guest", "kind": "Option",
             "parent_uid": 1, "session_ids": ["dinner"]},
            {"uid": 5, "name": "Flowers", "price": 4500, "per": "Party", "kind": "Option", "session_ids": ["dinner"]},
            {"uid": 6, "name": "Feast Menu", "price": 9000, "per": "Guest", "kind": "Menu",
             "session_ids": ["dinner"], "experience_ids": ["feast"]},
            {"uid": 7, "name": "Feast Oysters", "price": 1500, "per": "Party", "kind": "Option",
             "experience_ids": ["feast"]},
        ],
    }


@pytest.fixture(scope="function")
def sample_catalog(sample_catalog_data, today):
    """Catalog built from sample_catalog_data."""
    return CatalogService(sample_catalog_data, reference_date=today)


@pytest.fixture(scope="function")
def make_engine(catalog):
    """Factory fixture building an engine over the bundled catalog."""
    def _make(party_size, session_id=None, experience_id=None, policy=None):
        context = BookingContext(
            session_id=session_id,
            experience_id=experience_id,
            party_size=party_size,
        )
        if policy is None:
            return AddonSelectionEngine.for_context(catalog, context)
        return AddonSelectionEngine(resolve_offerable(catalog, context), UsagePolicy(policy), party_size)
    return _make


@pytest.fixture(scope="function")
def addon(catalog):
    """Lookup helper: addon(uid) -> Addon from the bundled catalog."""
    def _addon(uid):
        found = catalog.get_addon(uid)
        assert found is not None, f"add-on {uid} missing from catalog"
        return found
    return _addon


@pytest.fixture(scope="function")
def availability(catalog):
    return AvailabilityService(catalog)


@pytest.fixture(scope="function")
def wizard(catalog):
    return BookingWizard(catalog)


@pytest.fixture(scope="function")
def next_weekday(today):
    """Factory fixture: first date after today falling on the given weekday (Monday == 0)."""
    def _next(weekday):
        days_ahead = (weekday - today.weekday()) % 7 or 7
        return today + timedelta(days=days_ahead)
    return _next
