"""
Request and response schemas.

Incoming payloads use camelCase keys (``firstName``), attributes are
snake_case. Every user-facing rule raises ``ValueError`` with the exact
message shown in the UI; ``format_validation_error`` turns the first
failure into ``"<field>: <message>"``.
"""

from __future__ import annotations

import re
import uuid
from datetime import date, datetime, time
from typing import Any, Literal, Optional
from urllib.parse import urlparse

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
)
from pydantic.alias_generators import to_camel

from app.calendar_window import parse_day, parse_instant, weekday_index
from app.session_utils import validate_duration

NAME_PATTERN = re.compile(r"^[a-zA-Z\s'-]+$")
MEMBER_PHONE_PATTERN = re.compile(r"^[\d\s\-\+\(\)]+$")
CONTACT_PHONE_PATTERN = re.compile(r"^[\+]?[(]?[\d\s\-\(\)]{10,}$")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
TIME_PATTERN = re.compile(r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")
PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")

MembershipStatus = Literal["active", "inactive", "frozen", "cancelled"]
SessionType = Literal["personal", "group", "class", "assessment", "consultation", "rehabilitation"]
SessionStatusValue = Literal[
    "scheduled", "confirmed", "in_progress", "completed", "cancelled", "no_show", "rescheduled"
]
CommentType = Literal["note", "progress", "issue", "goal", "equipment", "feedback", "reminder"]
SubscriptionStatus = Literal["active", "cancelled", "frozen", "expired"]
PlanDuration = Literal["monthly", "quarterly", "annual"]
SortOrder = Literal["asc", "desc"]


# ---------------------------
# Rule helpers
# ---------------------------

def _person_name(value: Optional[str], label: str) -> str:
    if not value:
        raise ValueError(f"{label} is required")
    if len(value) > 50:
        raise ValueError(f"{label} must be less than 50 characters")
    if not NAME_PATTERN.match(value):
        raise ValueError(f"{label} contains invalid characters")
    return value


def _max_length(value: Optional[str], limit: int, message: str) -> Optional[str]:
    if value is not None and len(value) > limit:
        raise ValueError(message)
    return value


def _required_text(value: Optional[str], limit: int, required: str, too_long: str) -> str:
    if not value:
        raise ValueError(required)
    return _max_length(value, limit, too_long)


def _identifier(value: Any, message: str) -> str:
    try:
        return str(uuid.UUID(str(value)))
    except (TypeError, ValueError, AttributeError):
        raise ValueError(message)


def _optional_email(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    if not EMAIL_PATTERN.match(value):
        raise ValueError("Invalid email format")
    return value.lower()


def _required_email(value: Optional[str]) -> str:
    if not value:
        raise ValueError("Email is required")
    return _optional_email(value)


def _phone(value: Optional[str], pattern: re.Pattern) -> Optional[str]:
    if not value:
        return None
    if not pattern.match(value):
        raise ValueError("Invalid phone number format")
    return value


def _number_range(value, minimum, maximum, too_low: str, too_high: str):
    if value is None:
        return value
    if minimum is not None and value < minimum:
        raise ValueError(too_low)
    if maximum is not None and value > maximum:
        raise ValueError(too_high)
    return value


def _price(value: Optional[float]) -> Optional[float]:
    return _number_range(value, 0, 10000, "Price cannot be negative", "Price cannot exceed $10,000")


def _session_duration(value: Optional[int]) -> Optional[int]:
    if value is None:
        return value
    valid, message = validate_duration(value)
    if not valid:
        raise ValueError(message)
    return value


def _rating(value: Optional[int]) -> Optional[int]:
    return _number_range(value, 1, 5, "Rating must be at least 1", "Rating cannot exceed 5")


def _password(value: Optional[str]) -> str:
    if value is None or len(value) < 8:
        raise ValueError("Password must be at least 8 characters")
    if len(value) > 128:
        raise ValueError("Password must be less than 128 characters")
    if not PASSWORD_PATTERN.match(value):
        raise ValueError(
            "Password must contain at least one lowercase letter, one uppercase letter, and one number"
        )
    return value


def _string_list(values, *, empty_item: str, minimum=0, too_few=None, maximum=None, too_many=None):
    if values is None:
        return values
    if len(values) < minimum:
        raise ValueError(too_few)
    if maximum is not None and len(values) > maximum:
        raise ValueError(too_many)
    for item in values:
        if not item or not item.strip():
            raise ValueError(empty_item)
    return values


def parse_clock(value: Any) -> time:
    """'9:30' / '09:30' / '09:30:00' / time -> time."""
    if isinstance(value, time):
        return value.replace(tzinfo=None)
    if isinstance(value, str):
        text = value.strip()
        if TIME_PATTERN.match(text[:5] if len(text) == 8 else text):
            hours, minutes = text.split(":")[:2]
            return time(int(hours), int(minutes))
    raise ValueError("Invalid time format")


def format_validation_error(exc: ValidationError) -> str:
    """Report only the first issue, prefixed by its field path."""
    first = exc.errors()[0]
    path = ".".join(str(part) for part in first["loc"])
    if first["type"] == "value_error":
        message = str(first.get("ctx", {}).get("error", first["msg"]))
    elif first["type"] == "missing":
        message = "Required"
    else:
        message = first["msg"]
    return f"{path}: {message}" if path else message


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ReadModel(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def dump(schema: type[BaseModel], value: Any) -> Any:
    """Serialize ORM objects (or lists of them) to camelCase JSON-ready dicts."""
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return [dump(schema, item) for item in value]
    return schema.model_validate(value).model_dump(mode="json", by_alias=True)


# ---------------------------
# Members
# ---------------------------

class EmergencyContact(CamelModel):
    name: str
    phone: str
    relationship: str

    @field_validator("name")
    @classmethod
    def check_name(cls, value):
        return _required_text(value, 100, "Name is required", "Name must be less than 100 characters")

    @field_validator("phone")
    @classmethod
    def check_phone(cls, value):
        return _required_text(value, 30, "Phone is required", "Phone must be less than 30 characters")

    @field_validator("relationship")
    @classmethod
    def check_relationship(cls, value):
        return _required_text(
            value, 50, "Relationship is required", "Relationship must be less than 50 characters"
        )


class MemberCreate(CamelModel):
    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    membership_status: MembershipStatus = "active"
    emergency_contact: Optional[EmergencyContact] = None
    medical_conditions: Optional[str] = None
    fitness_goals: Optional[str] = None
    preferred_training_times: list[str] = Field(default_factory=list)
    join_date: Optional[date] = None

    @field_validator("first_name")
    @classmethod
    def check_first_name(cls, value):
        return _person_name(value, "First name")

    @field_validator("last_name")
    @classmethod
    def check_last_name(cls, value):
        return _person_name(value, "Last name")

    @field_validator("email")
    @classmethod
    def check_email(cls, value):
        return _optional_email(value)

    @field_validator("phone")
    @classmethod
    def check_phone(cls, value):
        return _phone(value, MEMBER_PHONE_PATTERN)

    @field_validator("medical_conditions")
    @classmethod
    def check_medical(cls, value):
        return _max_length(value, 500, "Medical conditions must be less than 500 characters")

    @field_validator("fitness_goals")
    @classmethod
    def check_goals(cls, value):
        return _max_length(value, 500, "Fitness goals must be less than 500 characters")

    @field_validator("join_date", mode="before")
    @classmethod
    def check_join_date(cls, value):
        return None if value in (None, "") else parse_day(value)


class MemberUpdate(MemberCreate):
    id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    membership_status: Optional[MembershipStatus] = None
    preferred_training_times: Optional[list[str]] = None

    @field_validator("id")
    @classmethod
    def check_id(cls, value):
        return _identifier(value, "Invalid member ID")


class MemberFilters(CamelModel):
    status: Optional[MembershipStatus] = None
    search_term: Optional[str] = None
    join_date_from: Optional[date] = None
    join_date_to: Optional[date] = None
    has_emergency_contact: Optional[bool] = None

    @field_validator("join_date_from", "join_date_to", mode="before")
    @classmethod
    def check_dates(cls, value):
        return None if value in (None, "") else parse_day(value)


class MemberRead(ReadModel):
    id: str
    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    membership_status: str
    emergency_contact: Optional[dict] = None
    medical_conditions: Optional[str] = None
    fitness_goals: Optional[str] = None
    preferred_training_times: list[str] = Field(default_factory=list)
    join_date: date
    created_at: datetime
    updated_at: datetime


# ---------------------------
# Training sessions
# ---------------------------

class RecurringPattern(CamelModel):
    frequency: Literal["daily", "weekly", "monthly"]
    interval: int = 1
    end_date: Optional[date] = None
    days_of_week: Optional[list[int]] = None

    @field_validator("interval")
    @classmethod
    def check_interval(cls, value):
        return _number_range(
            value, 1, 12, "Interval must be at least 1", "Interval cannot exceed 12"
        )

    @field_validator("end_date", mode="before")
    @classmethod
    def check_end_date(cls, value):
        return None if value in (None, "") else parse_day(value)

    @field_validator("days_of_week")
    @classmethod
    def check_days(cls, value):
        for day in value or []:
            if not 0 <= day <= 6:
                raise ValueError("Days of week must be between 0 and 6")
        return value


class SessionCreate(CamelModel):
    member_id: str
    trainer_id: str
    session_type: SessionType = Field(default="personal", alias="type")
    title: str
    description: Optional[str] = None
    scheduled_date: datetime
    # None: the default length for the session type
    duration: Optional[int] = None
    cost: Optional[float] = None
    session_room: Optional[str] = None
    equipment_needed: list[str] = Field(default_factory=list)
    session_goals: Optional[str] = None
    preparation_notes: Optional[str] = None
    recurring_pattern: Optional[RecurringPattern] = None

    @field_validator("member_id")
    @classmethod
    def check_member_id(cls, value):
        return _identifier(value, "Invalid member ID")

    @field_validator("trainer_id")
    @classmethod
    def check_trainer_id(cls, value):
        return _identifier(value, "Invalid trainer ID")

    @field_validator("title")
    @classmethod
    def check_title(cls, value):
        return _required_text(value, 100, "Title is required", "Title must be less than 100 characters")

    @field_validator("description")
    @classmethod
    def check_description(cls, value):
        return _max_length(value, 500, "Description must be less than 500 characters")

    @field_validator("scheduled_date", mode="before")
    @classmethod
    def check_scheduled_date(cls, value):
        return parse_instant(value)

    @field_validator("duration")
    @classmethod
    def check_duration(cls, value):
        return _session_duration(value)

    @field_validator("cost")
    @classmethod
    def check_cost(cls, value):
        return _number_range(value, 0, None, "Cost cannot be negative", "")

    @field_validator("session_room")
    @classmethod
    def check_room(cls, value):
        return _max_length(value, 50, "Room name must be less than 50 characters")

    @field_validator("session_goals")
    @classmethod
    def check_goals(cls, value):
        return _max_length(value, 500, "Session goals must be less than 500 characters")

    @field_validator("preparation_notes")
    @classmethod
    def check_preparation(cls, value):
        return _max_length(value, 500, "Preparation notes must be less than 500 characters")


class SessionUpdate(SessionCreate):
    id: str
    member_id: Optional[str] = None
    trainer_id: Optional[str] = None
    session_type: Optional[SessionType] = Field(default=None, alias="type")
    title: Optional[str] = None
    scheduled_date: Optional[datetime] = None
    duration: Optional[int] = None
    equipment_needed: Optional[list[str]] = None
    status: Optional[SessionStatusValue] = None
    actual_start_time: Optional[datetime] = None
    actual_end_time: Optional[datetime] = None
    completion_summary: Optional[str] = None
    member_rating: Optional[int] = None
    trainer_rating: Optional[int] = None
    notes: Optional[str] = None

    @field_validator("id")
    @classmethod
    def check_id(cls, value):
        return _identifier(value, "Invalid session ID")

    @field_validator("status")
    @classmethod
    def check_status(cls, value):
        if value is None:
            raise ValueError("Status is required")
        return value

    @field_validator("actual_start_time", "actual_end_time", mode="before")
    @classmethod
    def check_actual_times(cls, value):
        return None if value in (None, "") else parse_instant(value)

    @field_validator("completion_summary")
    @classmethod
    def check_summary(cls, value):
        return _max_length(value, 1000, "Completion summary must be less than 1000 characters")

    @field_validator("member_rating", "trainer_rating")
    @classmethod
    def check_ratings(cls, value):
        return _rating(value)

    @field_validator("notes")
    @classmethod
    def check_notes(cls, value):
        return _max_length(value, 1000, "Notes must be less than 1000 characters")


class SessionReschedule(CamelModel):
    scheduled_date: datetime
    # None keeps the current length
    duration: Optional[int] = None

    @field_validator("scheduled_date", mode="before")
    @classmethod
    def check_scheduled_date(cls, value):
        return parse_instant(value)

    @field_validator("duration")
    @classmethod
    def check_duration(cls, value):
        return _session_duration(value)


class SessionCompletion(CamelModel):
    completion_summary: str
    member_rating: Optional[int] = None
    trainer_rating: Optional[int] = None
    notes: Optional[str] = None

    @field_validator("completion_summary")
    @classmethod
    def check_summary(cls, value):
        return _required_text(
            value,
            1000,
            "Completion summary is required",
            "Completion summary must be less than 1000 characters",
        )

    @field_validator("member_rating", "trainer_rating")
    @classmethod
    def check_ratings(cls, value):
        return _rating(value)

    @field_validator("notes")
    @classmethod
    def check_notes(cls, value):
        return _max_length(value, 1000, "Notes must be less than 1000 characters")


class SessionFilters(CamelModel):
    member_id: Optional[str] = None
    trainer_id: Optional[str] = None
    status: Optional[SessionStatusValue] = None
    session_type: Optional[SessionType] = Field(default=None, alias="type")
    session_room: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def check_dates(cls, value):
        return None if value in (None, "") else parse_instant(value)


class ConflictCheckRequest(CamelModel):
    trainer_id: str
    scheduled_date: datetime
    duration: int = 60
    exclude_session_id: Optional[str] = None

    @field_validator("trainer_id")
    @classmethod
    def check_trainer_id(cls, value):
        return _identifier(value, "Invalid trainer ID")

    @field_validator("scheduled_date", mode="before")
    @classmethod
    def check_scheduled_date(cls, value):
        return parse_instant(value)

    @field_validator("duration")
    @classmethod
    def check_duration(cls, value):
        if value < 1:
            raise ValueError("Duration must be a positive number of minutes")
        return value


class SessionRead(ReadModel):
    id: str
    member_id: str
    trainer_id: str
    session_type: str = Field(
        validation_alias=AliasChoices("session_type", "type"), serialization_alias="type"
    )
    title: str
    description: Optional[str] = None
    scheduled_date: datetime
    duration: int
    scheduled_end: datetime
    status: str
    cost: Optional[float] = None
    session_room: Optional[str] = None
    equipment_needed: list[str] = Field(default_factory=list)
    session_goals: Optional[str] = None
    preparation_notes: Optional[str] = None
    notes: Optional[str] = None
    recurring_pattern: Optional[dict] = None
    actual_start_time: Optional[datetime] = None
    actual_end_time: Optional[datetime] = None
    completion_summary: Optional[str] = None
    member_rating: Optional[int] = None
    trainer_rating: Optional[int] = None
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime


# ---------------------------
# Session comments
# ---------------------------

class CommentCreate(CamelModel):
    session_id: str
    comment: str
    comment_type: CommentType = "note"
    is_private: bool = False

    @field_validator("session_id")
    @classmethod
    def check_session_id(cls, value):
        return _identifier(value, "Invalid session ID")

    @field_validator("comment")
    @classmethod
    def check_comment(cls, value):
        return _required_text(
            value, 1000, "Comment is required", "Comment must be less than 1000 characters"
        )


class CommentUpdate(CamelModel):
    id: str
    comment: Optional[str] = None
    comment_type: Optional[CommentType] = None
    is_private: Optional[bool] = None

    @field_validator("id")
    @classmethod
    def check_id(cls, value):
        return _identifier(value, "Invalid comment ID")

    @field_validator("comment")
    @classmethod
    def check_comment(cls, value):
        return _required_text(
            value, 1000, "Comment is required", "Comment must be less than 1000 characters"
        )


class CommentRead(ReadModel):
    id: str
    session_id: str
    user_id: Optional[str] = None
    comment: str
    comment_type: str
    is_private: bool
    created_at: datetime
    updated_at: datetime


# ---------------------------
# Subscriptions and plans
# ---------------------------

class SubscriptionCreate(CamelModel):
    member_id: str
    plan_id: str
    start_date: date
    end_date: Optional[date] = None
    auto_renew: bool = False
    price: Optional[float] = None

    @field_validator("member_id")
    @classmethod
    def check_member_id(cls, value):
        return _identifier(value, "Invalid member ID")

    @field_validator("plan_id")
    @classmethod
    def check_plan_id(cls, value):
        return _identifier(value, "Invalid plan ID")

    @field_validator("start_date", mode="before")
    @classmethod
    def check_start_date(cls, value):
        try:
            return parse_day(value)
        except ValueError:
            raise ValueError("Invalid start date")

    @field_validator("end_date", mode="before")
    @classmethod
    def check_end_date_format(cls, value):
        if value in (None, ""):
            return None
        try:
            return parse_day(value)
        except ValueError:
            raise ValueError("Invalid end date")

    @field_validator("end_date")
    @classmethod
    def check_end_after_start(cls, value, info: ValidationInfo):
        start = info.data.get("start_date")
        if value is not None and start is not None and value <= start:
            raise ValueError("End date must be after start date")
        return value

    @field_validator("price")
    @classmethod
    def check_price(cls, value):
        return _price(value)


class SubscriptionUpdate(CamelModel):
    id: str
    status: Optional[SubscriptionStatus] = None
    end_date: Optional[date] = None
    auto_renew: Optional[bool] = None
    price: Optional[float] = None

    @field_validator("id")
    @classmethod
    def check_id(cls, value):
        return _identifier(value, "Invalid subscription ID")

    @field_validator("end_date", mode="before")
    @classmethod
    def check_end_date(cls, value):
        try:
            return parse_day(value)
        except ValueError:
            raise ValueError("Invalid end date")

    @field_validator("price")
    @classmethod
    def check_price(cls, value):
        return _price(value)


class SubscriptionRead(ReadModel):
    id: str
    member_id: str
    plan_id: str
    status: str
    start_date: date
    end_date: date
    auto_renew: bool
    price: float
    member_name: Optional[str] = None
    member_email: Optional[str] = None
    plan_name: Optional[str] = None
    plan_duration: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class PlanCreate(CamelModel):
    name: str
    description: Optional[str] = None
    price: float
    duration: PlanDuration
    features: list[str]
    max_sessions_per_month: Optional[int] = None
    includes_personal_training: bool = False
    is_active: bool = True

    @field_validator("name")
    @classmethod
    def check_name(cls, value):
        return _required_text(
            value, 100, "Plan name is required", "Plan name must be less than 100 characters"
        )

    @field_validator("description")
    @classmethod
    def check_description(cls, value):
        return _max_length(value, 500, "Description must be less than 500 characters")

    @field_validator("price")
    @classmethod
    def check_price(cls, value):
        if value is None:
            raise ValueError("Price is required")
        return _price(value)

    @field_validator("features")
    @classmethod
    def check_features(cls, value):
        return _string_list(
            value or [],
            empty_item="Feature cannot be empty",
            minimum=1,
            too_few="At least one feature is required",
            maximum=20,
            too_many="Maximum 20 features allowed",
        )

    @field_validator("max_sessions_per_month")
    @classmethod
    def check_sessions(cls, value):
        return _number_range(
            value, 0, 100, "Sessions cannot be negative", "Maximum 100 sessions per month"
        )


class PlanUpdate(PlanCreate):
    id: str
    name: Optional[str] = None
    price: Optional[float] = None
    duration: Optional[PlanDuration] = None
    features: Optional[list[str]] = None
    includes_personal_training: Optional[bool] = None
    is_active: Optional[bool] = None

    @field_validator("id")
    @classmethod
    def check_id(cls, value):
        return _identifier(value, "Invalid plan ID")


class PlanFilters(CamelModel):
    is_active: Optional[bool] = None
    duration: Optional[PlanDuration] = None
    price_min: Optional[float] = None
    price_max: Optional[float] = None
    includes_personal_training: Optional[bool] = None
    search_term: Optional[str] = None
    sort_by: Literal["name", "price", "duration", "createdAt"] = "price"
    sort_order: SortOrder = "asc"


class PlanRead(ReadModel):
    id: str
    name: str
    description: Optional[str] = None
    price: float
    duration: str
    features: list[str] = Field(default_factory=list)
    max_sessions_per_month: Optional[int] = None
    includes_personal_training: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime


# ---------------------------
# Trainers and availability
# ---------------------------

class AvailabilitySlot(CamelModel):
    start: str
    end: str

    @field_validator("start", "end")
    @classmethod
    def check_clock(cls, value):
        if not TIME_PATTERN.match(value):
            raise ValueError("Invalid time format")
        return value

    @field_validator("end")
    @classmethod
    def check_end_after_start(cls, value, info: ValidationInfo):
        start = info.data.get("start")
        if start is not None and parse_clock(value) <= parse_clock(start):
            raise ValueError("End time must be after start time")
        return value


class _TrainerProfile(CamelModel):
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    specializations: list[str]
    certifications: list[str] = Field(default_factory=list)
    hourly_rate: float = 50
    availability: dict[str, list[AvailabilitySlot]] = Field(default_factory=dict)
    bio: Optional[str] = None
    years_experience: Optional[int] = None

    @field_validator("first_name")
    @classmethod
    def check_first_name(cls, value):
        return _person_name(value, "First name")

    @field_validator("last_name")
    @classmethod
    def check_last_name(cls, value):
        return _person_name(value, "Last name")

    @field_validator("email")
    @classmethod
    def check_email(cls, value):
        return _required_email(value)

    @field_validator("phone")
    @classmethod
    def check_phone(cls, value):
        return _phone(value, CONTACT_PHONE_PATTERN)

    @field_validator("specializations")
    @classmethod
    def check_specializations(cls, value):
        return _string_list(
            value or [],
            empty_item="Specialization cannot be empty",
            minimum=1,
            too_few="At least one specialization is required",
            maximum=10,
            too_many="Maximum 10 specializations allowed",
        )

    @field_validator("certifications")
    @classmethod
    def check_certifications(cls, value):
        return _string_list(
            value or [],
            empty_item="Certification cannot be empty",
            maximum=15,
            too_many="Maximum 15 certifications allowed",
        )

    @field_validator("hourly_rate")
    @classmethod
    def check_hourly_rate(cls, value):
        if value is None:
            raise ValueError("Hourly rate is required")
        return _number_range(
            value, 0, 1000, "Hourly rate cannot be negative", "Hourly rate seems too high"
        )

    @field_validator("availability")
    @classmethod
    def check_availability(cls, value):
        for day in value or {}:
            try:
                weekday_index(day)
            except ValueError:
                raise ValueError(f"Invalid day of week: {day}")
        return value or {}

    @field_validator("bio")
    @classmethod
    def check_bio(cls, value):
        return _max_length(value, 1000, "Bio must be less than 1000 characters")

    @field_validator("years_experience")
    @classmethod
    def check_experience(cls, value):
        return _number_range(
            value, 0, 70, "Experience cannot be negative", "Experience seems too high"
        )


class TrainerCreate(_TrainerProfile):
    password: Optional[str] = None

    @field_validator("password")
    @classmethod
    def check_password(cls, value):
        return None if value is None else _password(value)


class TrainerUpdate(_TrainerProfile):
    id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    specializations: Optional[list[str]] = None
    certifications: Optional[list[str]] = None
    hourly_rate: Optional[float] = None
    availability: Optional[dict[str, list[AvailabilitySlot]]] = None
    is_active: Optional[bool] = None

    @field_validator("id")
    @classmethod
    def check_id(cls, value):
        return _identifier(value, "Invalid trainer ID")


class TrainerFilters(CamelModel):
    search_term: Optional[str] = None
    specialization: Optional[str] = None
    is_active: Optional[bool] = None
    hourly_rate_min: Optional[float] = None
    hourly_rate_max: Optional[float] = None
    sort_by: Literal["name", "email", "hourlyRate", "createdAt"] = "name"
    sort_order: SortOrder = "asc"


class AvailabilityWindowInput(CamelModel):
    trainer_id: str
    day_of_week: int
    start_time: time
    end_time: time
    is_available: bool = True
    effective_date: Optional[date] = None
    end_date: Optional[date] = None

    @field_validator("trainer_id")
    @classmethod
    def check_trainer_id(cls, value):
        return _identifier(value, "Invalid trainer ID")

    @field_validator("day_of_week", mode="before")
    @classmethod
    def check_day(cls, value):
        try:
            return weekday_index(value)
        except ValueError:
            raise ValueError("Day of week must be between 0 (Sunday) and 6 (Saturday)")

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def check_clock(cls, value):
        return parse_clock(value)

    @field_validator("end_time")
    @classmethod
    def check_window(cls, value, info: ValidationInfo):
        start = info.data.get("start_time")
        if start is not None and start >= value:
            raise ValueError("Availability start time must be before end time")
        return value

    @field_validator("effective_date", "end_date", mode="before")
    @classmethod
    def check_dates(cls, value):
        return None if value in (None, "") else parse_day(value)


class AvailabilityRead(ReadModel):
    id: str
    trainer_id: str
    day_of_week: int
    start_time: time
    end_time: time
    is_available: bool
    effective_date: Optional[date] = None
    end_date: Optional[date] = None


class TrainerRead(ReadModel):
    id: str
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    specializations: list[str] = Field(default_factory=list)
    certifications: list[str] = Field(default_factory=list)
    hourly_rate: float
    availability: dict = Field(default_factory=dict)
    bio: Optional[str] = None
    years_experience: Optional[int] = None
    is_active: bool
    created_at: datetime


# ---------------------------
# Users
# ---------------------------

class UserProfileUpdate(CamelModel):
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    avatar: Optional[str] = None

    @field_validator("first_name")
    @classmethod
    def check_first_name(cls, value):
        return _person_name(value, "First name")

    @field_validator("last_name")
    @classmethod
    def check_last_name(cls, value):
        return _person_name(value, "Last name")

    @field_validator("email")
    @classmethod
    def check_email(cls, value):
        return _required_email(value)

    @field_validator("phone")
    @classmethod
    def check_phone(cls, value):
        return _phone(value, CONTACT_PHONE_PATTERN)

    @field_validator("avatar")
    @classmethod
    def check_avatar(cls, value):
        if not value:
            return None
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("Invalid avatar URL")
        return value


class PasswordChange(CamelModel):
    current_password: str
    new_password: str
    confirm_password: str

    @field_validator("current_password")
    @classmethod
    def check_current(cls, value):
        if not value:
            raise ValueError("Current password is required")
        return value

    @field_validator("new_password")
    @classmethod
    def check_new(cls, value):
        return _password(value)

    @field_validator("confirm_password")
    @classmethod
    def check_confirm(cls, value, info: ValidationInfo):
        if value != info.data.get("new_password"):
            raise ValueError("Passwords don't match")
        return value


class LoginRequest(CamelModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def check_email(cls, value):
        return _required_email(value)

    @field_validator("password")
    @classmethod
    def check_password(cls, value):
        if not value:
            raise ValueError("Password is required")
        return value


class UserRead(ReadModel):
    id: str
    email: str
    role: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    avatar: Optional[str] = None
    created_at: datetime


# ---------------------------
# Shared
# ---------------------------

class Pagination(CamelModel):
    page: int = 1
    limit: int = 20

    @field_validator("page")
    @classmethod
    def check_page(cls, value):
        return _number_range(value, 1, None, "Page must be at least 1", "")

    @field_validator("limit")
    @classmethod
    def check_limit(cls, value):
        return _number_range(value, 1, 100, "Limit must be at least 1", "Limit cannot exceed 100")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class DateRange(CamelModel):
    start_date: datetime
    end_date: datetime

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def check_dates(cls, value):
        return parse_instant(value)

    @field_validator("end_date")
    @classmethod
    def check_ordered(cls, value, info: ValidationInfo):
        start = info.data.get("start_date")
        if start is not None and value < start:
            raise ValueError("End date must be after start date")
        return value


def camelize(value: Any) -> Any:
    """Recursively convert dict keys to camelCase for JSON responses."""
    if isinstance(value, dict):
        return {to_camel(key) if isinstance(key, str) else key: camelize(item) for key, item in value.items()}
    if isinstance(value, list):
        return [camelize(item) for item in value]
    return value
