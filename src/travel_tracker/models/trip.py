"""Trip models.

A trip candidate is a tagged variant keyed by ``kind``. Flight candidates carry
the flight leg fields, hotel and vacation rental candidates carry the lodging
fields, and every variant carries the common booking fields.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


MAX_GUESTS = 10_000


class TripKind(str, Enum):
    """Kinds of travel booking a candidate can describe."""

    FLIGHT = "flight"
    HOTEL = "hotel"
    CAR_RENTAL = "car_rental"
    VACATION_RENTAL = "vacation_rental"
    OTHER = "other"


class _CommonTripFields(BaseModel):
    model_config = ConfigDict(frozen=True)

    origin_city: str | None = None
    destination_city: str | None = None
    origin_country: str | None = None
    destination_country: str | None = None
    booking_reference: str | None = None
    confirmation_number: str | None = None
    passenger_name: str | None = None
    cost: float | None = None
    currency: str | None = None
    booking_date: str | None = Field(default=None, description="Booking date as YYYY-MM-DD")

    confidence_score: float = Field(ge=0.0, le=1.0, description="Model-reported certainty")
    extracted_data: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional details the model returned outside the fixed schema",
    )

    def has_required_details(self) -> bool:
        """Whether the kind-specific minimum set of details is present."""
        return True


class _FlightFields(BaseModel):
    model_config = ConfigDict(frozen=True)

    airline: str | None = None
    flight_number: str | None = None
    aircraft_type: str | None = None
    departure_airport: str | None = None
    departure_airport_code: str | None = None
    arrival_airport: str | None = None
    arrival_airport_code: str | None = None
    departure_date: str | None = Field(default=None, description="YYYY-MM-DD")
    departure_time: str | None = Field(default=None, description="HH:MM (24h)")
    arrival_date: str | None = Field(default=None, description="YYYY-MM-DD")
    arrival_time: str | None = Field(default=None, description="HH:MM (24h)")
    duration: str | None = None
    seat_number: str | None = None
    seat_class: str | None = None


class _LodgingFields(BaseModel):
    model_config = ConfigDict(frozen=True)

    hotel_name: str | None = None
    hotel_address: str | None = None
    check_in_date: str | None = Field(default=None, description="YYYY-MM-DD")
    check_out_date: str | None = Field(default=None, description="YYYY-MM-DD")
    room_type: str | None = None
    guests: int | None = Field(default=None, ge=0, le=MAX_GUESTS)


class FlightCandidate(_FlightFields, _CommonTripFields):
    """A flight booking."""

    kind: Literal["flight"] = "flight"

    def has_required_details(self) -> bool:
        return bool(self.departure_date or self.flight_number or self.airline)


class HotelCandidate(_LodgingFields, _CommonTripFields):
    """A hotel stay."""

    kind: Literal["hotel"] = "hotel"

    def has_required_details(self) -> bool:
        return bool(self.check_in_date or self.hotel_name)


class VacationRentalCandidate(_LodgingFields, _CommonTripFields):
    """A vacation rental stay (Airbnb and similar)."""

    kind: Literal["vacation_rental"] = "vacation_rental"


class CarRentalCandidate(_CommonTripFields):
    """A car rental booking."""

    kind: Literal["car_rental"] = "car_rental"


class OtherCandidate(_CommonTripFields):
    """Any other travel booking."""

    kind: Literal["other"] = "other"


TripCandidate = Annotated[
    Union[
        FlightCandidate,
        HotelCandidate,
        VacationRentalCandidate,
        CarRentalCandidate,
        OtherCandidate,
    ],
    Field(discriminator="kind"),
]

trip_candidate_adapter: TypeAdapter[TripCandidate] = TypeAdapter(TripCandidate)

FLIGHT_FIELDS: tuple[str, ...] = tuple(_FlightFields.model_fields)
LODGING_FIELDS: tuple[str, ...] = tuple(_LodgingFields.model_fields)
COMMON_FIELDS: tuple[str, ...] = tuple(
    name for name in _CommonTripFields.model_fields if name != "extracted_data"
)


class TripSummary(BaseModel):
    """Compact trip view sent with progress events and scan summaries."""

    id: int
    type: TripKind
    airline: str | None = None
    flight_number: str | None = None
    origin: str | None = None
    destination: str | None = None
    departure_date: str | None = None
    hotel_name: str | None = None
    cost: float | None = None
    currency: str | None = None
    confidence: float


class Trip(BaseModel):
    """A persisted, deduplicated travel record."""

    id: int = Field(description="Store-assigned trip ID")
    user_id: int = Field(description="Owner of the trip")
    source_message_id: str = Field(description="Provider message ID the trip was extracted from")
    candidate: TripCandidate
    created_at: datetime
    updated_at: datetime

    @property
    def kind(self) -> TripKind:
        return TripKind(self.candidate.kind)

    @property
    def booking_reference(self) -> str | None:
        return self.candidate.booking_reference

    def summary(self) -> TripSummary:
        c = self.candidate
        return TripSummary(
            id=self.id,
            type=self.kind,
            airline=getattr(c, "airline", None),
            flight_number=getattr(c, "flight_number", None),
            origin=c.origin_city,
            destination=c.destination_city,
            departure_date=getattr(c, "departure_date", None),
            hotel_name=getattr(c, "hotel_name", None),
            cost=c.cost,
            currency=c.currency,
            confidence=c.confidence_score,
        )


class User(BaseModel):
    """Mailbox owner."""

    id: int
    email: str
    name: str | None = None
    created_at: datetime
