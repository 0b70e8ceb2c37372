"""Domain models using Pydantic v2 for the restaurant booking wizard."""

from datetime import date
from typing import Optional, Dict, List, Tuple

from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator

from .enums import UsagePolicy, ChargeBasis, AddonKind, DietaryRequirement, Occasion


class Addon(BaseModel):
    """Catalog add-on: a menu or an option that can be pre-ordered."""

    uid: int = Field(..., description="Stable add-on identifier")
    name: str = Field(..., min_length=1, max_length=100)
    desc: str = Field(default="", max_length=500)
    price: int = Field(..., ge=0, strict=True, description="Price in cents")
    per: ChargeBasis
    kind: AddonKind
    min_party: int = Field(default=1, ge=1)
    max_party: int = Field(default=20, ge=1)
    parent_uid: Optional[int] = Field(None, description="Add-on that must be selected first")
    session_ids: Tuple[str, ...] = ()
    experience_ids: Tuple[str, ...] = ()

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    @model_validator(mode="after")
    def check_party_bounds(self) -> "Addon":
        """Ensure the party-size window is not empty."""
        if self.min_party > self.max_party:
            raise ValueError(
                f"min_party ({self.min_party}) exceeds max_party ({self.max_party}) for add-on {self.uid}"
            )
        if self.parent_uid == self.uid:
            raise ValueError(f"Add-on {self.uid} cannot be its own parent")
        return self

    @property
    def is_menu(self) -> bool:
        return self.kind == AddonKind.MENU

    @property
    def is_guest_basis(self) -> bool:
        return self.per == ChargeBasis.GUEST

    def accepts_party_size(self, party_size: int) -> bool:
        """Check whether this add-on may be offered to a party of this size."""
        return self.min_party <= party_size <= self.max_party


class Session(BaseModel):
    """Named dining window with its menu policy."""

    id: str = Field(..., min_length=1)
    name: str
    time_range: str = ""
    icon: str = ""
    menu_policy: UsagePolicy = UsagePolicy.OPTIONAL
    time_slots: Tuple[str, ...] = ()

    model_config = ConfigDict(frozen=True)


class FeaturedExperience(BaseModel):
    """Date and session bound special event."""

    id: str = Field(..., min_length=1)
    addon_id: str = ""
    restaurant_id: str
    date: date
    session_id: str
    name: str
    description: str = ""
    price: int = Field(..., ge=0, strict=True, description="Price per person in cents")
    image: str = ""
    available_times: Tuple[str, ...] = ()
    menu_policy: UsagePolicy = UsagePolicy.OPTIONAL

    model_config = ConfigDict(frozen=True)


class Restaurant(BaseModel):
    """Restaurant taking bookings."""

    id: str = Field(..., min_length=1)
    name: str
    location: str = ""
    description: str = ""
    cuisine: str = ""
    price_range: str = ""
    rating: float = Field(default=0.0, ge=0.0, le=5.0)
    image: str = ""
    is_sister: bool = False
    closed_sessions: Dict[str, Tuple[str, ...]] = Field(
        default_factory=dict,
        description="Weekday name -> session ids with no availability",
    )
    slot_limits: Dict[str, int] = Field(
        default_factory=dict,
        description="Weekday name -> number of leading session slots offered",
    )
    unavailable_times: Dict[str, Tuple[str, ...]] = Field(
        default_factory=dict,
        description="Session id -> slot labels already fully booked",
    )

    model_config = ConfigDict(frozen=True)


class TimeSlot(BaseModel):
    """Bookable time within a session."""

    time: str
    available: bool = True

    model_config = ConfigDict(frozen=True)


class BookingContext(BaseModel):
    """Context add-ons are resolved against."""

    session_id: Optional[str] = None
    experience_id: Optional[str] = None
    party_size: int = Field(..., ge=1)

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)


class AddonSelection(BaseModel):
    """One selected add-on with its quantity and, where relevant, guest count."""

    addon_uid: int
    quantity: int = Field(default=1, ge=1)
    guest_count: Optional[int] = Field(None, ge=1)

    model_config = ConfigDict(frozen=True)


class AddonLine(BaseModel):
    """Committed add-on together with the quantity that was chosen."""

    addon: Addon
    quantity: int = Field(..., ge=1)

    model_config = ConfigDict(frozen=True)


class CommittedAddons(BaseModel):
    """Result of the add-ons step handed to the booking."""

    addons: List[AddonLine] = Field(default_factory=list)
    addon_selections: List[AddonSelection] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class GuestInfo(BaseModel):
    """Guest contact details and preferences."""

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    phone: str = Field(..., pattern=r"^\+?[1-9]\d{1,14}$", description="Phone number in E.164 format")
    dietary: List[DietaryRequirement] = Field(default_factory=list)
    occasion: Optional[Occasion] = None
    special_requests: str = Field(default="", max_length=500)

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("phone", mode="before")
    @classmethod
    def strip_phone_separators(cls, v: str) -> str:
        """Drop spaces, dashes and parentheses before pattern matching."""
        if isinstance(v, str):
            for ch in " -()":
                v = v.replace(ch, "")
        return v


class Booking(BaseModel):
    """Booking aggregate built up by the wizard."""

    restaurant: Optional[Restaurant] = None
    booking_date: Optional[date] = None
    session: Optional[Session] = None
    booking_time: Optional[str] = None
    party_size: int = Field(default=2, ge=1)
    addons: List[AddonLine] = Field(default_factory=list)
    addon_selections: List[AddonSelection] = Field(default_factory=list)
    guest: Optional[GuestInfo] = None
    is_sister_restaurant: bool = False
    selected_experience: Optional[FeaturedExperience] = None
    confirmed: bool = False

    model_config = ConfigDict(validate_assignment=True)

    def context(self) -> BookingContext:
        """Add-on resolution context for the current booking."""
        return BookingContext(
            session_id=self.session.id if self.session else None,
            experience_id=self.selected_experience.id if self.selected_experience else None,
            party_size=self.party_size,
        )


class SummaryLine(BaseModel):
    """Priced add-on line on the booking summary."""

    uid: int
    name: str
    quantity: int
    price_label: str
    total: int


class BookingSummary(BaseModel):
    """Read-only view of a booking ready for confirmation."""

    restaurant_name: Optional[str] = None
    booking_date: Optional[date] = None
    session_name: Optional[str] = None
    booking_time: Optional[str] = None
    party_size: int
    experience_name: Optional[str] = None
    experience_price_per_person: Optional[int] = None
    guest_name: Optional[str] = None
    occasion: Optional[Occasion] = None
    dietary: List[DietaryRequirement] = Field(default_factory=list)
    lines: List[SummaryLine] = Field(default_factory=list)
    addons_total: int = 0
    requires_payment: bool = False
    confirm_label: str = "Confirm"
