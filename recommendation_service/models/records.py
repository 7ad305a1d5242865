"""
Storage record models.

Pydantic models matching the JSON files read by ``JsonFileRepository``.
They validate raw store data and convert it into domain records.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from .domain import CandidateItem, InteractionEvent, InteractionKind, as_utc


class ItemRecord(BaseModel):
    """Artwork row as stored in ``items.json``."""
    id: str = Field(description="Artwork identifier")
    creator_id: str = Field(description="Author user id")
    category: str = Field(default="", description="Material / artwork type")
    price: float = Field(default=0.0, ge=0, description="Listed price")
    created_at: datetime = Field(description="Upload time (ISO format)")
    popularity_count: int = Field(default=0, ge=0, description="All-time view count")
    engagement_count: int = Field(default=0, ge=0, description="All-time like count")
    comment_count: int = Field(default=0, ge=0, description="Comment count")
    is_hidden: bool = Field(default=False, description="Hidden artworks are never recommended")

    @field_validator("created_at")
    @classmethod
    def _normalize_created_at(cls, value: datetime) -> datetime:
        return as_utc(value)

    def to_domain(self) -> CandidateItem:
        return CandidateItem(
            id=self.id,
            creator_id=self.creator_id,
            category=self.category,
            price=self.price,
            created_at=self.created_at,
            popularity_count=self.popularity_count,
            engagement_count=self.engagement_count,
            comment_count=self.comment_count,
        )


class InteractionRecord(BaseModel):
    """Interaction row as stored in a per-user ``interactions/<uid>.json`` file."""
    kind: InteractionKind = Field(description="like, bookmark, follow or view")
    ts: datetime = Field(description="Interaction time (ISO format)")
    item_id: Optional[str] = Field(default=None, description="Target artwork")
    creator_id: Optional[str] = Field(default=None, description="Followed creator (follow only)")

    @field_validator("ts")
    @classmethod
    def _normalize_ts(cls, value: datetime) -> datetime:
        return as_utc(value)

    def to_domain(self, user_id: str) -> InteractionEvent:
        return InteractionEvent(
            user_id=user_id,
            kind=self.kind,
            created_at=self.ts,
            item_id=self.item_id,
            creator_id=self.creator_id,
        )


class UserInteractionsFile(BaseModel):
    """Complete per-user interaction file."""
    events: List[InteractionRecord] = Field(default_factory=list)


class ItemsFile(BaseModel):
    """Complete item catalogue file."""
    items: List[ItemRecord] = Field(default_factory=list)
