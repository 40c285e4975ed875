from datetime import date, datetime, time
from typing import Annotated, List, Literal, Optional, Union
from zoneinfo import ZoneInfo

from pydantic import BaseModel, EmailStr, Field, field_serializer

from .domain.catalog import DEFAULT_MAX_PLAYERS, AddOn, ResourceType
from .domain.services import TimeSlot
from .models import Reservation, ReservationStatus
from .utils.time import utc_naive_to_local


class ResourceTypeRead(BaseModel):
    id: str
    name: str
    hourly_price: int
    unit_count: int

    @classmethod
    def from_domain(cls, resource: ResourceType) -> "ResourceTypeRead":
        return cls(
            id=resource.id,
            name=resource.name,
            hourly_price=resource.hourly_price,
            unit_count=resource.unit_count,
        )


class AddOnRead(BaseModel):
    id: str
    label: str
    price: int

    @classmethod
    def from_domain(cls, addon: AddOn) -> "AddOnRead":
        return cls(id=addon.id, label=addon.label, price=addon.price)


class CatalogRead(BaseModel):
    resource_types: List[ResourceTypeRead]
    addons: List[AddOnRead]
    durations: List[int]
    max_players: int


class SlotRead(BaseModel):
    time: str
    starts_at: datetime
    available: bool
    remaining: int

    @field_serializer("starts_at")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.isoformat()

    @classmethod
    def from_domain(cls, slot: TimeSlot, *, tz: ZoneInfo) -> "SlotRead":
        return cls(
            time=slot.label,
            starts_at=utc_naive_to_local(slot.starts_at, tz),
            available=slot.available,
            remaining=slot.remaining,
        )


class DaySlotsRead(BaseModel):
    resource_type_id: str
    date: date
    slots: List[SlotRead]


class QuoteRequest(BaseModel):
    resource_type_id: str = Field(min_length=1)
    duration_minutes: int
    player_count: int = Field(default=1, le=DEFAULT_MAX_PLAYERS)
    extras: List[str] = Field(default_factory=list)


class QuoteRead(BaseModel):
    resource_type_id: str
    duration_minutes: int
    player_count: int
    extras: List[str]
    total_price: int


class ContactInfo(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: EmailStr
    phone: Optional[str] = None


class ReservationCreate(BaseModel):
    resource_type_id: str = Field(min_length=1)
    date: date
    time: time
    duration_minutes: int = Field(default=60)
    player_count: int = Field(default=1, le=DEFAULT_MAX_PLAYERS)
    extras: List[str] = Field(default_factory=list)
    contact: Optional[ContactInfo] = None


class ReservationRead(BaseModel):
    reservation_id: int
    resource_type_id: str
    owner_id: str
    unit_number: int
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    player_count: int
    extras: List[str]
    total_price: int
    status: ReservationStatus
    created_at: datetime
    updated_at: Optional[datetime]

    @field_serializer("start_time", "end_time", "created_at", "updated_at")
    def _ser_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        return dt.isoformat() if dt is not None else None

    @classmethod
    def from_db(cls, *, reservation: Reservation, tz: ZoneInfo) -> "ReservationRead":
        return cls(
            reservation_id=reservation.id,
            resource_type_id=reservation.resource_type_id,
            owner_id=reservation.owner_id,
            unit_number=reservation.unit_number,
            start_time=utc_naive_to_local(reservation.start_time, tz),
            end_time=utc_naive_to_local(reservation.end_time, tz),
            duration_minutes=reservation.duration_minutes,
            player_count=reservation.player_count,
            extras=list(reservation.extras or []),
            total_price=reservation.total_price,
            status=reservation.status,
            created_at=utc_naive_to_local(reservation.created_at, tz),
            updated_at=(
                utc_naive_to_local(reservation.updated_at, tz) if reservation.updated_at is not None else None
            ),
        )


class ErrorDetail(BaseModel):
    code: str
    message: str
    field: Optional[str] = None


# Registration notices handed to the outbound email collaborator. Each category
# carries its own named fields instead of a free-form details map.


class BookingDetails(BaseModel):
    type: Literal["booking"] = "booking"
    reservation_id: int
    platform: str
    date: date
    time: time
    duration_minutes: int
    players: int = Field(ge=1)
    extras: List[str] = Field(default_factory=list)
    total_price: int = Field(ge=0)


class TournamentDetails(BaseModel):
    type: Literal["tournament"] = "tournament"
    gaming_name: str = Field(min_length=1)
    tournament: str = Field(min_length=1)
    platform: str
    experience: Optional[str] = None


class SubscriptionDetails(BaseModel):
    type: Literal["subscription"] = "subscription"
    subscription_type: str = Field(min_length=1)
    start_date: date
    payment_method: str


RegistrationDetails = Annotated[
    Union[BookingDetails, TournamentDetails, SubscriptionDetails],
    Field(discriminator="type"),
]


class RegistrationNotice(BaseModel):
    contact: ContactInfo
    details: RegistrationDetails

    @classmethod
    def for_reservation(
        cls,
        *,
        contact: ContactInfo,
        reservation: Reservation,
        tz: ZoneInfo,
    ) -> "RegistrationNotice":
        local_start = utc_naive_to_local(reservation.start_time, tz)
        return cls(
            contact=contact,
            details=BookingDetails(
                reservation_id=reservation.id,
                platform=reservation.resource_type_id,
                date=local_start.date(),
                time=local_start.time().replace(tzinfo=None),
                duration_minutes=reservation.duration_minutes,
                players=reservation.player_count,
                extras=list(reservation.extras or []),
                total_price=reservation.total_price,
            ),
        )

