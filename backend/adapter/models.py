"""
Shared data models for data sources.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# Scores inside (-NEUTRAL_BAND, NEUTRAL_BAND) read as neutral
NEUTRAL_BAND = 0.1


class SentimentLabel(str, Enum):
    """Polarity label attached to a post."""
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"

    @classmethod
    def from_score(cls, score: float) -> "SentimentLabel":
        """Derive a label from a score in [-1, 1]."""
        if score > NEUTRAL_BAND:
            return cls.POSITIVE
        if score < -NEUTRAL_BAND:
            return cls.NEGATIVE
        return cls.NEUTRAL


class Engagement(BaseModel):
    """Interaction counts for a single post."""
    model_config = ConfigDict(frozen=True)

    likes: int = Field(default=0, ge=0, description="Like/reaction count")
    shares: int = Field(default=0, ge=0, description="Share/retweet count")
    comments: int = Field(default=0, ge=0, description="Comment/reply count")

    @property
    def total(self) -> int:
        return self.likes + self.shares + self.comments


class Post(BaseModel):
    """
    A single social-media mention.

    Attributes:
        id: Unique post ID within a dataset
        timestamp: When the post was created (UTC)
        text: Full post text
        sentiment: Polarity label
        score: Sentiment score in [-1, 1]
        brand: Brand the post mentions, if any
        topic: Discussion topic, if any
        platform: Network the post came from
        author: Author handle, if known
        engagement: Likes, shares and comments
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1, description="Unique post ID")
    timestamp: datetime = Field(description="When the post was created")
    text: str = Field(min_length=1, description="Full post text")
    sentiment: SentimentLabel = Field(description="Sentiment label")
    score: float = Field(ge=-1.0, le=1.0, description="Sentiment score (-1 to +1)")
    brand: Optional[str] = Field(default=None, description="Mentioned brand")
    topic: Optional[str] = Field(default=None, description="Discussion topic")
    platform: str = Field(default="unknown", description="Source platform")
    author: Optional[str] = Field(default=None, description="Author handle")
    engagement: Engagement = Field(default_factory=Engagement, description="Engagement metrics")

    @field_validator("timestamp")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        # Naive timestamps are UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


__all__ = ["Post", "Engagement", "SentimentLabel", "NEUTRAL_BAND"]
