"""Domain enums for the restaurant booking wizard."""

from enum import Enum


class UsagePolicy(int, Enum):
    """Menu usage policy attached to a session or featured experience."""

    NO_MENU = 0            # add-ons step is skipped
    SHARED_MENU = 1        # one menu for the whole party
    PER_GUEST = 2          # every guest assigned a menu
    OPTIONAL = 3           # free pre-order
    PARTIAL_PER_GUEST = 4  # some guests assigned a menu

    @property
    def assigns_guests(self) -> bool:
        """Whether menus under this policy carry a per-menu guest count."""
        return self in (UsagePolicy.PER_GUEST, UsagePolicy.PARTIAL_PER_GUEST)


class ChargeBasis(str, Enum):
    """How an add-on price is multiplied."""

    GUEST = "Guest"
    PARTY = "Party"


class AddonKind(str, Enum):
    """Add-on category."""

    MENU = "Menu"
    OPTION = "Option"


class BookingStep(int, Enum):
    """Steps of the booking wizard, in order."""

    RESTAURANT = 1
    DATE_TIME = 2
    ADDONS = 3
    DETAILS = 4
    CONFIRM = 5


class DayOfWeek(str, Enum):
    """Days of the week."""

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @classmethod
    def from_weekday(cls, weekday: int) -> "DayOfWeek":
        """Map ``date.weekday()`` (Monday == 0) to a DayOfWeek."""
        return list(cls)[weekday]


class DietaryRequirement(str, Enum):
    """Dietary requirements a guest can flag."""

    VEGETARIAN = "Vegetarian"
    VEGAN = "Vegan"
    GLUTEN_FREE = "Gluten-Free"
    DAIRY_FREE = "Dairy-Free"
    NUT_ALLERGY = "Nut Allergy"
    SHELLFISH_ALLERGY = "Shellfish Allergy"
    HALAL = "Halal"
    KOSHER = "Kosher"


class Occasion(str, Enum):
    """Occasions a booking can be made for."""

    BIRTHDAY = "Birthday"
    ANNIVERSARY = "Anniversary"
    DATE_NIGHT = "Date Night"
    BUSINESS_DINNER = "Business Dinner"
    ENGAGEMENT = "Engagement"
    GRADUATION = "Graduation"
    OTHER_CELEBRATION = "Other Celebration"
