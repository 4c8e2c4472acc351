"""
Models for media records (books and movies) kept as markdown files.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

MEDIA_TYPES = ("book", "movie")
DEFAULT_STATUS = {"book": "read", "movie": "watched"}


class MediaItem(BaseModel):
    """A single book or movie record."""

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    id: str = ""
    filename: str | None = None
    title: str = "Untitled"
    type: str = "book"
    status: str = ""
    author: str = ""
    director: str = ""
    actors: list[str] = Field(default_factory=list)
    isbn: str = ""
    year: str = ""
    rating: float | None = None
    tags: list[str] = Field(default_factory=list)
    cover_url: str = Field("", alias="coverUrl")
    date_read: str = Field("", alias="dateRead")
    date_watched: str = Field("", alias="dateWatched")
    date_added: str = Field("", alias="dateAdded")
    review: str = ""
    file_id: str | None = Field(None, alias="fileId")

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: str) -> str:
        v = (v or "book").strip().lower()
        if v not in MEDIA_TYPES:
            raise ValueError(f"Media type must be 'book' or 'movie', got '{v}'.")
        return v

    @field_validator("year", mode="before")
    @classmethod
    def coerce_year(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("rating", mode="before")
    @classmethod
    def coerce_rating(cls, v: Any) -> float | None:
        if v in (None, ""):
            return None
        return float(v)

    @field_validator("actors", "tags", mode="before")
    @classmethod
    def coerce_list(cls, v: Any) -> list[str]:
        if v in (None, ""):
            return []
        if isinstance(v, str):
            return [part.strip() for part in v.split(",") if part.strip()]
        return [str(part) for part in v]

    @property
    def creator(self) -> str:
        """The author of a book or the director of a movie."""
        return self.director if self.type == "movie" else self.author

    @property
    def effective_status(self) -> str:
        return self.status or DEFAULT_STATUS[self.type]


class UndoInfo(BaseModel):
    """Where a trashed record was moved from and to, relative to the root."""

    source: str
    destination: str
