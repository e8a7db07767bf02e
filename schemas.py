"""
Database Schemas for the Speaking Club backend

Each Pydantic model maps to a MongoDB collection. Documents keep the
camelCase field names the web client reads (`maxAttendees`,
`currentAttendees`, `sessionId`, ...); Python code uses the snake_case
attribute names and dumps with `by_alias=True`.

Collections used:
- sessions, events (ScheduledItem, identical shape)
- registrations (Registration)
- users (User)
- siteConfig (SiteConfig, single document)
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

DeliveryType = Literal["zoom", "offline"]
RegistrationStatus = Literal["open", "waitlist", "closed"]
RecordStatus = Literal["confirmed", "pending", "cancelled"]
ItemType = Literal["session", "event"]
YearOfStudy = Literal["1st", "2nd", "3rd", "4th", "graduate", "phd"]
EnglishLevel = Literal["beginner", "intermediate", "advanced", "native"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# -----------------------------
# Scheduled items
# -----------------------------
class ScheduledItem(CamelModel):
    title: str = Field(..., description="Session topic or event title")
    description: str = Field("", description="Free text description")
    date: datetime = Field(..., description="Scheduled date and time")
    type: DeliveryType = Field("zoom", description="zoom | offline")
    location: str = Field("", description="Venue or platform name")
    zoom_link: str = Field("", description="Meeting link for zoom items")
    max_attendees: int = Field(..., ge=1, description="Capacity")
    current_attendees: int = Field(0, ge=0, description="Registered head count")
    registration_status: RegistrationStatus = Field("open", description="open | waitlist | closed")
    status: str = Field("upcoming", description="Lifecycle label shown on cards")


class ScheduledItemCreate(CamelModel):
    title: str = Field(..., min_length=1)
    description: str = ""
    date: datetime
    type: DeliveryType = "zoom"
    location: str = ""
    zoom_link: str = ""
    max_attendees: Optional[int] = Field(None, ge=1, description="Defaults to the site's maxSessionCapacity")
    registration_status: RegistrationStatus = "open"


class ScheduledItemUpdate(CamelModel):
    """Editable fields. The attendee counter is deliberately absent."""

    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    date: Optional[datetime] = None
    type: Optional[DeliveryType] = None
    location: Optional[str] = None
    zoom_link: Optional[str] = None
    max_attendees: Optional[int] = Field(None, ge=1)
    registration_status: Optional[RegistrationStatus] = None
    status: Optional[str] = None


class AttendeeAdjustment(BaseModel):
    delta: Literal[1, -1]


class ItemStatusUpdate(CamelModel):
    registration_status: RegistrationStatus


# -----------------------------
# Registrations
# -----------------------------
class RegistrationForm(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: EmailStr
    phone: str = ""
    telegram: str = ""
    university: str = Field(..., min_length=1)
    major: str = Field(..., min_length=1)
    year_of_study: YearOfStudy
    english_level: EnglishLevel
    # the form posts "yes" / "no"
    previous_participation: bool = False
    special_requests: str = ""

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()


class Registration(RegistrationForm):
    """
    One signup. The session* fields copy the parent item at submission
    time and are never synchronised with later edits of that item.
    """

    session_id: str
    session_title: str
    session_date: Optional[datetime] = None
    session_type: Optional[str] = None
    item_type: ItemType
    registration_date: datetime
    status: RecordStatus = "confirmed"
    attended: bool = False


class UpdateRecordStatus(BaseModel):
    status: RecordStatus


class AttendanceUpdate(BaseModel):
    attended: bool


# -----------------------------
# Users (owned by the auth provider, read here for the mentor role)
# -----------------------------
class User(CamelModel):
    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    role: Literal["mentor", "member"] = "member"


# -----------------------------
# Site configuration
# -----------------------------
class SiteConfig(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True, extra="ignore")

    site_title: str = "BUSA Speaking CLUB"
    site_tagline: str = "Connect, Speak, Thrive"
    site_description: str = (
        "Empowering Uzbek students in Korea to develop confident English communication skills "
        "through structured practice, meaningful debates, and supportive community connections."
    )
    mission_statement: str = (
        "Empowering Uzbek students in Korea to develop confident English communication skills "
        "through structured practice, meaningful debates, and supportive community connections."
    )
    logo_url: str = ""
    email: str = "busa.speak@gmail.com"
    telegram: str = "@busa_speak"
    phone: str = "+82-10-5889-2707"
    address: str = "Busan, South Korea"
    google_form_url: str = ""
    instagram_url: str = ""
    youtube_url: str = ""
    maintenance_mode: bool = False
    registration_enabled: bool = True
    max_session_capacity: int = Field(50, ge=1)
    default_session_duration: int = 90
    confirmation_seconds: int = Field(2, ge=0, description="How long the client shows the success state")
    email_notifications: bool = True
    telegram_notifications: bool = True
    analytics_enabled: bool = False
    google_analytics_id: str = ""


class SiteConfigUpdate(CamelModel):
    site_title: Optional[str] = None
    site_tagline: Optional[str] = None
    site_description: Optional[str] = None
    mission_statement: Optional[str] = None
    logo_url: Optional[str] = None
    email: Optional[str] = None
    telegram: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    google_form_url: Optional[str] = None
    instagram_url: Optional[str] = None
    youtube_url: Optional[str] = None
    maintenance_mode: Optional[bool] = None
    registration_enabled: Optional[bool] = None
    max_session_capacity: Optional[int] = Field(None, ge=1)
    default_session_duration: Optional[int] = None
    confirmation_seconds: Optional[int] = Field(None, ge=0)
    email_notifications: Optional[bool] = None
    telegram_notifications: Optional[bool] = None
    analytics_enabled: Optional[bool] = None
    google_analytics_id: Optional[str] = None
