"""
Aggregator module for the sentiment dashboard.

Architecture:
- Posts are the source of truth
- Analytics are derived wholesale from the full post list on every change
- Time-series resolution is a query parameter, not a storage attribute

Everything in here is pure: posts in, AnalyticsData out. No I/O and no
shared state, so the same posts always produce the same analytics.
"""

from __future__ import annotations

import logging
import math
from collections import Counter, defaultdict
from datetime import datetime, timezone, timedelta
from typing import Callable, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from adapter.models import Post, SentimentLabel

logger = logging.getLogger(__name__)


# Resolution constants (in seconds)
RESOLUTION_MAP = {
    "hour": 3600,
    "day": 86400,
    "week": 604800,  # Weeks start on Monday (UTC)
}

# Hourly for datasets spanning up to AUTO_HOURLY_MAX_BUCKETS hours, else the
# finest of day/week that stays within MAX_TIME_BUCKETS
AUTO_RESOLUTION = "auto"
AUTO_HOURLY_MAX_BUCKETS = 48

DEFAULT_RESOLUTION = "day"
DEFAULT_TOP_N = 10
MAX_TIME_BUCKETS = 1000

BUCKET_LABEL_FORMATS = {
    "hour": "%Y-%m-%d %H:00",
    "day": "%Y-%m-%d",
    "week": "%G-W%V",
}


class SentimentBreakdown(BaseModel):
    """Post counts per sentiment label."""
    positive: int = Field(default=0, ge=0)
    negative: int = Field(default=0, ge=0)
    neutral: int = Field(default=0, ge=0)

    @property
    def total(self) -> int:
        return self.positive + self.negative + self.neutral

    def percentages(self) -> Dict[str, float]:
        """Share of each label in percent (0-100, one decimal)."""
        total = self.total
        return {
            "positive": _percent(self.positive, total),
            "negative": _percent(self.negative, total),
            "neutral": _percent(self.neutral, total),
        }


class RankedItem(BaseModel):
    """A brand, topic or platform ranked by mention count."""
    name: str = Field(description="Brand/topic/platform name")
    count: int = Field(description="Number of posts mentioning it")
    percentage: float = Field(description="Share of all posts (0-100)")
    average_score: float = Field(description="Mean sentiment score of its posts")
    sentiment: SentimentBreakdown = Field(description="Label counts for its posts")
    engagement: int = Field(default=0, description="Total interactions across its posts")


class TimeSeriesPoint(BaseModel):
    """
    A time bucket of the sentiment trend.
    Generated on-demand from posts at the requested resolution.
    """
    start: datetime = Field(description="Start of the bucket (inclusive)")
    end: datetime = Field(description="End of the bucket (exclusive)")
    label: str = Field(description="Display label (e.g. '2024-01-15')")
    positive: int = Field(default=0)
    negative: int = Field(default=0)
    neutral: int = Field(default=0)
    total: int = Field(default=0, description="Number of posts in this bucket")
    average_score: float = Field(default=0.0, description="Mean score (0.0 for empty buckets)")
    engagement: int = Field(default=0, description="Total interactions in this bucket")


class EngagementSummary(BaseModel):
    """Engagement totals across the dataset."""
    total_likes: int = 0
    total_shares: int = 0
    total_comments: int = 0
    total_interactions: int = 0
    average_per_post: float = 0.0


class DateRange(BaseModel):
    """Earliest and latest post timestamps."""
    start: datetime
    end: datetime


class AnalyticsData(BaseModel):
    """
    Read-only summary of a post collection.

    sentiment_breakdown always sums to total_posts, and average_score is the
    arithmetic mean of every post score (0.0 when there are no posts).
    """
    total_posts: int = Field(description="Number of posts analyzed")
    sentiment_breakdown: SentimentBreakdown
    sentiment_percentages: Dict[str, float] = Field(description="Share per label (0-100)")
    average_score: float = Field(ge=-1.0, le=1.0, description="Mean sentiment score")
    top_brands: List[RankedItem] = Field(default_factory=list)
    top_topics: List[RankedItem] = Field(default_factory=list)
    top_platforms: List[RankedItem] = Field(default_factory=list)
    time_series_data: List[TimeSeriesPoint] = Field(default_factory=list)
    engagement: EngagementSummary = Field(default_factory=EngagementSummary)
    date_range: Optional[DateRange] = Field(default=None)
    resolution: str = Field(default=DEFAULT_RESOLUTION, description="Bucket width of time_series_data")


def _percent(part: int, total: int) -> float:
    return round(part / total * 100, 1) if total else 0.0


def _mean_score(posts: List[Post]) -> float:
    if not posts:
        return 0.0
    mean = math.fsum(p.score for p in posts) / len(posts)
    # Guard against float drift at the bounds
    return max(-1.0, min(1.0, mean))


def summarize_sentiment(posts: Iterable[Post]) -> SentimentBreakdown:
    """Count posts per sentiment label."""
    counts = Counter(p.sentiment for p in posts)
    return SentimentBreakdown(
        positive=counts.get(SentimentLabel.POSITIVE, 0),
        negative=counts.get(SentimentLabel.NEGATIVE, 0),
        neutral=counts.get(SentimentLabel.NEUTRAL, 0),
    )


def rank_posts(
    posts: List[Post],
    key: Callable[[Post], Optional[str]],
    top_n: int = DEFAULT_TOP_N,
) -> List[RankedItem]:
    """
    Rank the values of a post attribute by frequency.

    Args:
        posts: Posts to rank
        key: Extracts the value to rank (posts returning None are ignored)
        top_n: Maximum number of items to return

    Returns:
        Items ordered by count descending, then name ascending
    """
    if top_n < 1:
        raise ValueError(f"top_n must be at least 1, got {top_n}")

    groups: Dict[str, List[Post]] = defaultdict(list)
    for post in posts:
        value = key(post)
        if value:
            groups[value].append(post)

    total = len(posts)
    ordered = sorted(groups.items(), key=lambda item: (-len(item[1]), item[0]))

    return [
        RankedItem(
            name=name,
            count=len(group),
            percentage=_percent(len(group), total),
            average_score=_mean_score(group),
            sentiment=summarize_sentiment(group),
            engagement=sum(p.engagement.total for p in group),
        )
        for name, group in ordered[:top_n]
    ]


def get_bucket_boundaries(resolution: str, reference_time: Optional[datetime] = None) -> tuple[datetime, datetime]:
    """
    Get the bucket boundaries containing the reference time.

    Args:
        resolution: Bucket width ("hour", "day" or "week")
        reference_time: Reference time (default: now); naive times are UTC

    Returns:
        Tuple of (bucket_start, bucket_end)
    """
    if resolution not in RESOLUTION_MAP:
        raise ValueError(f"Invalid resolution: {resolution}. Valid: {list(RESOLUTION_MAP.keys())}")

    now = reference_time or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    if resolution == "week":
        day_start, _ = get_bucket_boundaries("day", now)
        bucket_start = day_start - timedelta(days=day_start.weekday())
    else:
        resolution_seconds = RESOLUTION_MAP[resolution]
        # Floor to resolution boundary
        ts = now.timestamp()
        bucket_start_ts = int(ts // resolution_seconds) * resolution_seconds
        bucket_start = datetime.fromtimestamp(bucket_start_ts, tz=timezone.utc)

    bucket_end = bucket_start + timedelta(seconds=RESOLUTION_MAP[resolution])
    return bucket_start, bucket_end


def _bucket_count(start: datetime, end: datetime, resolution: str) -> int:
    first, _ = get_bucket_boundaries(resolution, start)
    last, _ = get_bucket_boundaries(resolution, end)
    return int((last - first).total_seconds() // RESOLUTION_MAP[resolution]) + 1


def choose_resolution(start: datetime, end: datetime) -> str:
    """Pick a resolution suited to the span between start and end."""
    if _bucket_count(start, end, "hour") <= AUTO_HOURLY_MAX_BUCKETS:
        return "hour"
    for resolution in ("day", "week"):
        if _bucket_count(start, end, resolution) <= MAX_TIME_BUCKETS:
            return resolution
    raise ValueError(f"Date range {start.isoformat()} to {end.isoformat()} is too wide to chart")


def build_time_series(posts: List[Post], resolution: str = DEFAULT_RESOLUTION) -> List[TimeSeriesPoint]:
    """
    Bucket posts by time at the given resolution.

    Buckets run oldest first and cover every interval between the first
    and last post, with empty intervals included as zero buckets.

    Raises:
        ValueError: If the resolution is unknown or the series would
            exceed MAX_TIME_BUCKETS
    """
    if resolution not in RESOLUTION_MAP:
        raise ValueError(f"Invalid resolution: {resolution}. Valid: {list(RESOLUTION_MAP.keys())}")
    if not posts:
        return []

    buckets: Dict[datetime, List[Post]] = defaultdict(list)
    for post in posts:
        bucket_start, _ = get_bucket_boundaries(resolution, post.timestamp)
        buckets[bucket_start].append(post)

    first = min(buckets)
    last = max(buckets)
    step = timedelta(seconds=RESOLUTION_MAP[resolution])
    count = int((last - first) / step) + 1
    if count > MAX_TIME_BUCKETS:
        raise ValueError(
            f"Resolution '{resolution}' would produce {count} buckets "
            f"(max {MAX_TIME_BUCKETS}); use a coarser resolution"
        )

    series = []
    label_format = BUCKET_LABEL_FORMATS[resolution]
    bucket_start = first
    for _ in range(count):
        group = buckets.get(bucket_start, [])
        breakdown = summarize_sentiment(group)
        series.append(TimeSeriesPoint(
            start=bucket_start,
            end=bucket_start + step,
            label=bucket_start.strftime(label_format),
            positive=breakdown.positive,
            negative=breakdown.negative,
            neutral=breakdown.neutral,
            total=len(group),
            average_score=_mean_score(group),
            engagement=sum(p.engagement.total for p in group),
        ))
        bucket_start += step

    return series


def summarize_engagement(posts: List[Post]) -> EngagementSummary:
    """Total likes, shares and comments across posts."""
    likes = sum(p.engagement.likes for p in posts)
    shares = sum(p.engagement.shares for p in posts)
    comments = sum(p.engagement.comments for p in posts)
    interactions = likes + shares + comments
    return EngagementSummary(
        total_likes=likes,
        total_shares=shares,
        total_comments=comments,
        total_interactions=interactions,
        average_per_post=round(interactions / len(posts), 2) if posts else 0.0,
    )


def generate_analytics(
    posts: List[Post],
    resolution: str = DEFAULT_RESOLUTION,
    top_n: int = DEFAULT_TOP_N,
) -> AnalyticsData:
    """
    Compute the dashboard analytics for a post collection.

    Args:
        posts: Posts to analyze (may be empty)
        resolution: Time-series resolution, or "auto"
        top_n: Length of the brand/topic/platform rankings

    Returns:
        AnalyticsData computed from scratch

    Raises:
        ValueError: On an unknown resolution, a top_n below 1, or a
            series that would be too long to chart
    """
    if resolution != AUTO_RESOLUTION and resolution not in RESOLUTION_MAP:
        raise ValueError(f"Invalid resolution: {resolution}. Valid: {list(RESOLUTION_MAP.keys()) + [AUTO_RESOLUTION]}")
    if top_n < 1:
        raise ValueError(f"top_n must be at least 1, got {top_n}")

    posts = list(posts)
    breakdown = summarize_sentiment(posts)

    date_range = None
    if posts:
        date_range = DateRange(
            start=min(p.timestamp for p in posts),
            end=max(p.timestamp for p in posts),
        )

    if resolution == AUTO_RESOLUTION:
        resolution = choose_resolution(date_range.start, date_range.end) if date_range else DEFAULT_RESOLUTION

    analytics = AnalyticsData(
        total_posts=len(posts),
        sentiment_breakdown=breakdown,
        sentiment_percentages=breakdown.percentages(),
        average_score=_mean_score(posts),
        top_brands=rank_posts(posts, lambda p: p.brand, top_n),
        top_topics=rank_posts(posts, lambda p: p.topic, top_n),
        top_platforms=rank_posts(posts, lambda p: p.platform, top_n),
        time_series_data=build_time_series(posts, resolution),
        engagement=summarize_engagement(posts),
        date_range=date_range,
        resolution=resolution,
    )

    logger.debug(
        f"Generated analytics for {analytics.total_posts} posts "
        f"({len(analytics.time_series_data)} {resolution} buckets)"
    )
    return analytics


__all__ = [
    "AnalyticsData",
    "SentimentBreakdown",
    "RankedItem",
    "TimeSeriesPoint",
    "EngagementSummary",
    "DateRange",
    "generate_analytics",
    "summarize_sentiment",
    "summarize_engagement",
    "rank_posts",
    "build_time_series",
    "choose_resolution",
    "get_bucket_boundaries",
    "RESOLUTION_MAP",
    "AUTO_RESOLUTION",
    "AUTO_HOURLY_MAX_BUCKETS",
    "DEFAULT_RESOLUTION",
    "DEFAULT_TOP_N",
    "MAX_TIME_BUCKETS",
    "Post",  # Re-exported from adapter.models
]
