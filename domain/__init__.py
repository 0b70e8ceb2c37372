"""Domain layer for the restaurant booking wizard."""

from .enums import (
    UsagePolicy,
    ChargeBasis,
    AddonKind,
    BookingStep,
    DayOfWeek,
    DietaryRequirement,
    Occasion,
)
from .models import (
    Addon,
    Session,
    FeaturedExperience,
    Restaurant,
    TimeSlot,
    BookingContext,
    AddonSelection,
    AddonLine,
    CommittedAddons,
    GuestInfo,
    Booking,
    SummaryLine,
    BookingSummary,
)

__all__ = [
    # Enums
    "UsagePolicy",
    "ChargeBasis",
    "AddonKind",
    "BookingStep",
    "DayOfWeek",
    "DietaryRequirement",
    "Occasion",
    # Models
    "Addon",
    "Session",
    "FeaturedExperience",
    "Restaurant",
    "TimeSlot",
    "BookingContext",
    "AddonSelection",
    "AddonLine",
    "CommittedAddons",
    "GuestInfo",
    "Booking",
    "SummaryLine",
    "BookingSummary",
]
