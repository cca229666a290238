"""
Watcher data models.

All models use Pydantic with strict validation and no silent coercion.
"""

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator


class MediaKind(str, Enum):
    """Coarse type tag derived from a MIME type."""

    IMAGE = "image"
    VIDEO = "video"
    OTHER = "other"

    @classmethod
    def from_mime_type(cls, mime_type: Optional[str]) -> "MediaKind":
        if not mime_type:
            return cls.OTHER
        major = mime_type.split("/", 1)[0].strip().lower()
        if major == "image":
            return cls.IMAGE
        if major == "video":
            return cls.VIDEO
        return cls.OTHER


class FeedRow(BaseModel):
    """One raw row from the media index, before any file checks."""

    model_config = {"extra": "forbid"}

    path: str
    mime_type: Optional[str] = None
    added_at: int = Field(
        ..., description="Add time since the epoch, in the index's own units (s or ns)"
    )


class MediaItem(BaseModel):
    """
    Item descriptor for one candidate media entry found in a sweep.

    Transient: created per sweep and discarded once the filter pipeline
    has consumed it.
    """

    model_config = {"extra": "forbid", "frozen": True}

    path: str = Field(..., description="Absolute path to the media file")
    kind: MediaKind = MediaKind.OTHER
    added_at: int = 0

    @field_validator("path")
    @classmethod
    def validate_absolute_path(cls, v: str) -> str:
        """Ensure path is absolute."""
        if not Path(v).is_absolute():
            raise ValueError(f"Media item path must be absolute: {v}")
        return v

    @property
    def name(self) -> str:
        return Path(self.path).name


class FeedBatch(BaseModel):
    """Result of reading the feed since a marker."""

    model_config = {"extra": "forbid"}

    items: List[MediaItem] = Field(default_factory=list)
    max_timestamp: Optional[int] = Field(
        None, description="Largest add time seen in the feed, None if the feed was empty"
    )


class RuleAction(str, Enum):
    INCLUDE = "include"
    EXCLUDE = "exclude"


class PathRule(BaseModel):
    """
    A single path filter rule.

    `pattern` is either a directory prefix (no glob characters) or an
    fnmatch-style glob matched against the full path. `sidecars` lists
    globs, relative to the matched file's directory, for files that should
    travel with an admitted item.
    """

    model_config = {"extra": "forbid", "frozen": True}

    pattern: str
    action: RuleAction = RuleAction.EXCLUDE
    sidecars: List[str] = Field(default_factory=list)

    @field_validator("pattern")
    @classmethod
    def validate_pattern(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Path rule pattern must not be empty")
        return v


class FilterDecision(str, Enum):
    ADMITTED = "admitted"
    REJECTED_OWN_FILE = "rejected_own_file"
    REJECTED_EXCLUDED = "rejected_excluded"

    @property
    def admitted(self) -> bool:
        return self is FilterDecision.ADMITTED


class SweepState(str, Enum):
    IDLE = "idle"
    ACQUIRING_LIVENESS = "acquiring_liveness"
    READING_FEED = "reading_feed"
    FILTERING = "filtering"
    ADVANCING_MARKER = "advancing_marker"
    DISPATCHING = "dispatching"
    RELEASING_LIVENESS = "releasing_liveness"


class SweepStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"


class SweepResult(BaseModel):
    """Outcome of one sweep."""

    model_config = {"extra": "forbid"}

    status: SweepStatus
    started_at: datetime = Field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None
    marker_before: int = 0
    marker_after: int = 0
    candidates: int = 0
    dispatched: List[str] = Field(default_factory=list)
    skipped_own: int = 0
    skipped_excluded: int = 0
    skipped_processed: int = 0
    failed_items: int = 0
    kicked: bool = False
    liveness_held: bool = False
    error: Optional[str] = None
