"""
Catalog Service for loading restaurant reference data.
Holds restaurants, sessions, featured experiences and add-ons; read-only after load.
"""
import json
import logging
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from core.config import settings
from core.utils_datetime import resolve_day_offset
from domain.models import Addon, FeaturedExperience, Restaurant, Session


logger = logging.getLogger(__name__)


class CatalogError(ValueError):
    """Raised when catalog data is internally inconsistent."""
    pass


class CatalogService:
    """Immutable registry of restaurants, sessions, experiences and add-ons."""

    def __init__(self, data: Dict[str, Any], reference_date: Optional[date] = None):
        """
        Build the catalog from raw data.

        Args:
            data: Dict with ``restaurants``, ``sessions``, ``experiences`` and ``addons`` lists
            reference_date: Date experience ``day_offset`` values are relative to.
                Defaults to today in the restaurant timezone.
        """
        self.reference_date = reference_date
        self._restaurants: Dict[str, Restaurant] = {}
        self._sessions: Dict[str, Session] = {}
        self._experiences: Dict[str, FeaturedExperience] = {}
        self._addons: Dict[int, Addon] = {}

        for raw in data.get('restaurants', []):
            restaurant = Restaurant.model_validate(raw)
            self._register(self._restaurants, restaurant.id, restaurant, 'restaurant')

        for raw in data.get('sessions', []):
            session = Session.model_validate(raw)
            self._register(self._sessions, session.id, session, 'session')

        for raw in data.get('experiences', []):
            experience = self._build_experience(raw)
            self._register(self._experiences, experience.id, experience, 'experience')

        for raw in data.get('addons', []):
            addon = Addon.model_validate(raw)
            self._register(self._addons, addon.uid, addon, 'add-on')

        self._check_parents()

    @classmethod
    def from_file(
        cls,
        catalog_file_path: Optional[Union[str, Path]] = None,
        reference_date: Optional[date] = None
    ) -> "CatalogService":
        """
        Load the catalog from a JSON file.

        Args:
            catalog_file_path: Path to catalog JSON. Defaults to settings.catalog_file_path
            reference_date: See ``__init__``

        Returns:
            Loaded CatalogService
        """
        if catalog_file_path is None:
            catalog_file_path = settings.catalog_file_path

        try:
            with open(catalog_file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except FileNotFoundError:
            raise FileNotFoundError(f"Catalog file not found: {catalog_file_path}")
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in catalog file: {e}")

        catalog = cls(data, reference_date=reference_date)
        logger.info(
            f"Loaded catalog from {catalog_file_path}: "
            f"{len(catalog._restaurants)} restaurants, {len(catalog._sessions)} sessions, "
            f"{len(catalog._experiences)} experiences, {len(catalog._addons)} add-ons"
        )
        return catalog

    def _build_experience(self, raw: Dict[str, Any]) -> FeaturedExperience:
        """Resolve ``day_offset`` into a concrete date before validation."""
        raw = dict(raw)
        if 'date' not in raw:
            raw['date'] = resolve_day_offset(raw.pop('day_offset', 0), self.reference_date)
        else:
            raw.pop('day_offset', None)
        return FeaturedExperience.model_validate(raw)

    @staticmethod
    def _register(registry: Dict[Any, Any], key: Any, value: Any, label: str) -> None:
        if key in registry:
            raise CatalogError(f"Duplicate {label} id: {key}")
        registry[key] = value

    def _check_parents(self) -> None:
        """Every parent reference must name a menu in this catalog."""
        for addon in self._addons.values():
            if addon.parent_uid is None:
                continue
            parent = self._addons.get(addon.parent_uid)
            if parent is None:
                raise CatalogError(
                    f"Add-on {addon.uid} references unknown parent {addon.parent_uid}"
                )
            if not parent.is_menu:
                raise CatalogError(
                    f"Add-on {addon.uid} parent {parent.uid} is not a menu"
                )

    # Restaurants

    @property
    def restaurants(self) -> List[Restaurant]:
        return list(self._restaurants.values())

    def get_restaurant(self, restaurant_id: str) -> Optional[Restaurant]:
        return self._restaurants.get(restaurant_id)

    def get_sister_restaurant(self, restaurant_id: str) -> Optional[Restaurant]:
        """
        Get the alternative restaurant offered when the chosen one is full.

        A primary restaurant's sister is the first restaurant flagged ``is_sister``;
        a sister restaurant has no sister of its own.
        """
        restaurant = self.get_restaurant(restaurant_id)
        if restaurant is None or restaurant.is_sister:
            return None
        for candidate in self._restaurants.values():
            if candidate.is_sister and candidate.id != restaurant_id:
                return candidate
        return None

    # Sessions and experiences

    @property
    def sessions(self) -> List[Session]:
        return list(self._sessions.values())

    def get_session(self, session_id: Optional[str]) -> Optional[Session]:
        if session_id is None:
            return None
        return self._sessions.get(session_id)

    @property
    def experiences(self) -> List[FeaturedExperience]:
        return list(self._experiences.values())

    def get_experience(self, experience_id: Optional[str]) -> Optional[FeaturedExperience]:
        if experience_id is None:
            return None
        return self._experiences.get(experience_id)

    # Add-ons

    @property
    def addons(self) -> Tuple[Addon, ...]:
        """All add-ons in catalog order."""
        return tuple(self._addons.values())

    @property
    def addon_map(self) -> Dict[int, Addon]:
        """Copy of the uid -> Addon index."""
        return dict(self._addons)

    def get_addon(self, uid: int) -> Optional[Addon]:
        return self._addons.get(uid)

    def get_parent(self, addon: Addon) -> Optional[Addon]:
        """Get the add-on that must be selected before ``addon``."""
        if addon.parent_uid is None:
            return None
        return self._addons.get(addon.parent_uid)


# Singleton instance for easy access
_catalog_instance: Optional[CatalogService] = None


def get_catalog(catalog_file_path: Optional[Union[str, Path]] = None) -> CatalogService:
    """
    Get or create CatalogService singleton instance.

    Args:
        catalog_file_path: Optional path to catalog file

    Returns:
        CatalogService instance
    """
    global _catalog_instance

    if _catalog_instance is None:
        _catalog_instance = CatalogService.from_file(catalog_file_path)

    return _catalog_instance
