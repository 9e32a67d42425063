from typing import NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class AbsModel(BaseModel):
    """Base for Audiobookshelf payloads (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Go-style decoding: JSON null reads as the zero value of the field.
def _none_to_empty(value):
    return "" if value is None else value


def _none_to_zero(value):
    return 0 if value is None else value


def _none_to_list(value):
    return [] if value is None else value


class Library(AbsModel):
    id: str
    name: str = ""

    normalize_strings = field_validator("name", mode="before")(_none_to_empty)


class LibraryDetail(AbsModel):
    total_items: int = Field(default=0, ge=0)

    normalize_numbers = field_validator("total_items", mode="before")(_none_to_zero)


class User(AbsModel):
    id: str
    username: str = ""

    normalize_strings = field_validator("username", mode="before")(_none_to_empty)


class SessionUser(AbsModel):
    id: str = ""
    username: str = ""

    normalize_strings = field_validator("id", "username", mode="before")(_none_to_empty)


class SessionDevice(AbsModel):
    client_name: str = ""
    model: str = ""

    normalize_strings = field_validator("client_name", "model", mode="before")(_none_to_empty)


class MediaMetadata(AbsModel):
    title: str = ""

    normalize_strings = field_validator("title", mode="before")(_none_to_empty)


class ListeningSession(AbsModel):
    """One playback record from /api/sessions."""

    library_id: str = ""
    user_id: str = ""
    media_type: str = ""
    duration: float = 0.0
    time_listening: float = 0.0
    date: str = ""
    day_of_week: str = ""
    user: Optional[SessionUser] = None
    device_info: Optional[SessionDevice] = None
    media_metadata: Optional[MediaMetadata] = None

    normalize_strings = field_validator(
        "library_id", "user_id", "media_type", "date", "day_of_week", mode="before"
    )(_none_to_empty)

    normalize_numbers = field_validator("duration", "time_listening", mode="before")(
        _none_to_zero
    )


class SessionsPage(AbsModel):
    total: int = 0
    num_pages: int = 0
    page: int = 0
    items_per_page: int = 0
    sessions: list[ListeningSession] = Field(default_factory=list)

    normalize_numbers = field_validator(
        "total", "num_pages", "page", "items_per_page", mode="before"
    )(_none_to_zero)
    normalize_sessions = field_validator("sessions", mode="before")(_none_to_list)


class LibrariesResponse(AbsModel):
    libraries: list[Library] = Field(default_factory=list)

    normalize_libraries = field_validator("libraries", mode="before")(_none_to_list)


class UsersResponse(AbsModel):
    users: list[User] = Field(default_factory=list)

    normalize_users = field_validator("users", mode="before")(_none_to_list)


class LibraryKey(NamedTuple):
    library_id: str
    library_name: str


class DeviceKey(NamedTuple):
    client: str
    model: str


class Rollups(BaseModel):
    """Per-dimension listening totals for one scrape cycle."""

    seconds_by_user: dict[str, float] = Field(default_factory=dict)
    count_by_user: dict[str, int] = Field(default_factory=dict)
    seconds_by_library: dict[LibraryKey, float] = Field(default_factory=dict)
    count_by_library: dict[LibraryKey, int] = Field(default_factory=dict)
    seconds_by_book: dict[str, float] = Field(default_factory=dict)
    seconds_by_device: dict[DeviceKey, float] = Field(default_factory=dict)
    seconds_by_weekday: dict[str, float] = Field(default_factory=dict)
    total_sessions: int = 0
