"""
Database Schemas

Pydantic models for every MongoDB collection, the form payloads that feed
them, and the view models returned to callers.

- *Record models describe what is written to a collection.
- *Form models validate raw named-field input before any store access.
- View models (Event, Teaching, User, ...) are what leaves the data layer:
  the store's `_id` is replaced by a plain string `id`.
"""

import logging
import math
from datetime import datetime
from typing import Annotated, Any, ClassVar, Dict, List, Literal, Mapping, Optional, Tuple, Type, TypeVar

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    EmailStr,
    Field,
    HttpUrl,
    ValidationError,
)

logger = logging.getLogger(__name__)

Role = Literal["member", "pastor"]
MediaType = Literal["photo", "video", "audio"]
FieldErrors = Dict[str, List[str]]

PLACEHOLDER_IMAGE = "https://placehold.co/600x400.png"


def _iso(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


IsoTimestamp = Annotated[str, BeforeValidator(_iso)]


def _min_length(length: int, message: str):
    def check(value: Optional[str]) -> str:
        value = (value or "").strip()
        if len(value) < length:
            raise ValueError(message)
        return value

    return AfterValidator(check)


def RequiredText(message: str, length: int = 1):
    return Annotated[Optional[str], _min_length(length, message)]


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _stringify(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


# ==========================
# RESULTS
# ==========================
class ActionResult(BaseModel):
    success: bool = False
    message: str = ""
    errors: Optional[FieldErrors] = None


class LoginResult(ActionResult):
    role: Optional[Role] = None
    email: Optional[str] = None
    access_token: Optional[str] = None
    token_type: str = "bearer"


# ==========================
# STORED RECORDS
# ==========================
class UserRecord(BaseModel):
    """
    Church members and the pastor
    Collection name: "users"
    """
    name: str = Field(..., description="Display name")
    email: EmailStr = Field(..., description="Unique email address (lower-cased)")
    phone: str = Field(..., description="Phone number")
    role: Role = Field("member", description="member | pastor")
    password_hash: str = Field(..., description="BCrypt password hash")
    image_url: Optional[str] = Field(None, description="Avatar image URL")
    joined_at: IsoTimestamp = Field(..., description="Signup time (ISO 8601 UTC)")
    reset_token: Optional[str] = None
    reset_token_expiry: Optional[datetime] = None


class EventRecord(BaseModel):
    """Collection name: "events" """
    title: str
    description: str
    date: str
    time: str
    location: str
    image_url: str = PLACEHOLDER_IMAGE
    teaching_id: Optional[str] = Field(None, description="Application id of a linked teaching")
    created_at: IsoTimestamp


class TeachingRecord(BaseModel):
    """Collection name: "teachings" """
    id: str = Field(..., description="Application-assigned id, distinct from _id")
    media_type: MediaType
    media_url: str
    text: Optional[str] = None
    created_at: IsoTimestamp


class TeamMemberRecord(BaseModel):
    """Collection name: "teamMembers" """
    name: str
    position: str
    image_url: str


class SermonPoint(BaseModel):
    point_title: str = Field(..., description="Introduction, Main Point 1, Conclusion, ...")
    content: str
    supporting_verses: List[str] = Field(default_factory=list)


class SavedEventIdeaRecord(BaseModel):
    """Collection name: "savedEventIdeas" """
    title: str
    description: str
    created_at: IsoTimestamp


class SavedSermonOutlineRecord(BaseModel):
    """Collection name: "savedSermonOutlines" """
    sermon_title: str
    outline: List[SermonPoint]
    created_at: IsoTimestamp


class ContributionRecord(BaseModel):
    """Collection name: "contributions" (read-only here)"""
    mpesa_ref: str
    user_id: Optional[str] = None
    amount: Optional[float] = None
    date: str


# ==========================
# VIEW MODELS
# ==========================
class User(BaseModel):
    id: str
    name: str
    email: str
    phone: str = "N/A"
    role: Role = "member"
    image_url: str
    joined_at: IsoTimestamp


class Event(BaseModel):
    id: str
    title: str
    description: str
    date: str
    time: str
    location: str
    image_url: str = PLACEHOLDER_IMAGE
    teaching_id: Optional[str] = None


class Teaching(BaseModel):
    id: str
    media_type: MediaType
    media_url: str
    text: Optional[str] = None
    created_at: IsoTimestamp


class TeamMember(BaseModel):
    id: str
    name: str
    position: str
    image_url: str


class Contribution(BaseModel):
    id: str
    mpesa_ref: str
    user_name: str
    user_email: str
    amount: Optional[float] = None
    date: str


class SavedEventIdea(BaseModel):
    id: str
    title: str
    description: str
    created_at: IsoTimestamp


class SavedSermonOutline(BaseModel):
    id: str
    sermon_title: str
    outline: List[SermonPoint]
    created_at: IsoTimestamp


V = TypeVar("V", bound=BaseModel)


def to_view(model: Type[V], doc: Mapping[str, Any], **overrides: Any) -> Optional[V]:
    """Shape a raw document into `model`, dropping `_id` in favour of a string `id`.

    Documents that do not fit the model are logged and skipped (None).
    """
    data = {k: v for k, v in doc.items() if k != "_id"}
    if "id" not in data and "_id" in doc:
        data["id"] = str(doc["_id"])
    data.update(overrides)
    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.warning("Skipping malformed %s document %s: %s", model.__name__, doc.get("_id"), e)
        return None


# ==========================
# FORMS
# ==========================
class FormModel(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, validate_default=True, extra="ignore")

    # Messages used for errors raised by pydantic's own types (email, url, enum, missing).
    field_messages: ClassVar[Dict[str, str]] = {}


F = TypeVar("F", bound=FormModel)


def flatten_errors(model: Type[FormModel], exc: ValidationError) -> FieldErrors:
    errors: FieldErrors = {}
    for err in exc.errors():
        field = str(err["loc"][0]) if err["loc"] else "form"
        ctx = err.get("ctx") or {}
        if field in model.field_messages:
            message = model.field_messages[field]
        elif "error" in ctx:
            message = str(ctx["error"])
        else:
            message = err["msg"]
        messages = errors.setdefault(field, [])
        if message not in messages:
            messages.append(message)
    return errors


def validate(model: Type[F], raw: Optional[Mapping[str, Any]]) -> Tuple[Optional[F], Optional[FieldErrors]]:
    try:
        return model.model_validate(dict(raw or {})), None
    except ValidationError as e:
        return None, flatten_errors(model, e)


class SignupForm(FormModel):
    field_messages: ClassVar[Dict[str, str]] = {"email": "Please enter a valid email."}

    name: RequiredText("Name must be at least 2 characters.", 2) = None
    email: EmailStr
    phone: RequiredText("Please enter a valid phone number.", 10) = None
    password: RequiredText("Password must be at least 6 characters.", 6) = None


class LoginForm(FormModel):
    field_messages: ClassVar[Dict[str, str]] = {"role": "Role must be member or pastor."}

    identifier: RequiredText("Please enter your email or name.") = None
    password: RequiredText("Password is required.") = None
    role: Optional[Role] = None


class ForgotPasswordForm(FormModel):
    field_messages: ClassVar[Dict[str, str]] = {"email": "Please enter a valid email."}

    email: EmailStr


class ResetPasswordForm(FormModel):
    token: RequiredText("Invalid token.") = None
    password: RequiredText("Password must be at least 6 characters.", 6) = None


class EventForm(FormModel):
    """Create form: an event, a teaching, or both in one submission."""
    field_messages: ClassVar[Dict[str, str]] = {
        "teaching_media_type": "Please choose a media type (photo, video or audio).",
    }

    title: Optional[str] = None
    description: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    location: Optional[str] = None

    teaching_text: Optional[str] = None
    teaching_media_type: Optional[MediaType] = None
    teaching_media_url: Optional[str] = None

    EVENT_FIELDS: ClassVar[Tuple[str, ...]] = ("title", "description", "date", "time", "location")

    def event_fields(self) -> Dict[str, Optional[str]]:
        return {name: getattr(self, name) or None for name in self.EVENT_FIELDS}

    @property
    def has_teaching(self) -> bool:
        return bool(self.teaching_text or self.teaching_media_url)


class EventUpdateForm(FormModel):
    id: RequiredText("Event ID is required.") = None
    title: RequiredText("Title is required.") = None
    description: RequiredText("Description is required.") = None
    date: RequiredText("Date is required.") = None
    time: RequiredText("Time is required.") = None
    location: RequiredText("Location is required.") = None

    teaching_id: Optional[str] = None
    teaching_text: Optional[str] = None


class TeachingForm(FormModel):
    field_messages: ClassVar[Dict[str, str]] = {
        "media_type": "Please choose a media type (photo, video or audio).",
    }

    media_type: MediaType
    text: Optional[str] = None
    media_url: Optional[str] = None


class TeachingUpdateForm(FormModel):
    text: RequiredText("Teaching text is required.") = None


class TeamMemberForm(FormModel):
    field_messages: ClassVar[Dict[str, str]] = {"image_url": "A valid image URL is required."}

    id: Optional[str] = None
    name: RequiredText("Name is required.", 2) = None
    position: RequiredText("Position is required.", 2) = None
    image_url: HttpUrl


class ProfilePictureForm(FormModel):
    field_messages: ClassVar[Dict[str, str]] = {"image_url": "A valid image URL is required."}

    image_url: Annotated[Optional[HttpUrl], BeforeValidator(_blank_to_none)] = None


class EventIdeaForm(FormModel):
    title: RequiredText("Title is required.") = None
    description: RequiredText("Description is required.") = None


class SermonOutlineForm(FormModel):
    field_messages: ClassVar[Dict[str, str]] = {"outline": "The outline must contain at least one point."}

    sermon_title: RequiredText("Sermon title is required.") = None
    outline: List[SermonPoint] = Field(..., min_length=1)


def _positive_amount(value: Optional[str]) -> str:
    value = (value or "").strip()
    if not value:
        raise ValueError("Amount is required.")
    try:
        amount = float(value)
    except ValueError:
        raise ValueError("Amount must be a number.")
    if not math.isfinite(amount) or amount < 1:
        raise ValueError("Amount must be at least 1.")
    return value


class StkPushForm(FormModel):
    phone: RequiredText("A valid phone number is required.", 10) = None
    amount: Annotated[Optional[str], BeforeValidator(_stringify), AfterValidator(_positive_amount)] = None
