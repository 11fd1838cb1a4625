"""
Core services for the sentiment dashboard backend.
- DashboardSession: Holds the loaded posts and their analytics

Architecture:
- Posts are stored once per upload or sample load (not analytics)
- Analytics are recomputed wholesale whenever the posts change
- Resolution and ranking length are query parameters
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import List, Optional, Tuple, Union
from enum import Enum

from pydantic import BaseModel, Field

from adapter.csvfile import DataProcessingError, ParseResult, SkippedRow, parse_csv
from adapter.models import Post, SentimentLabel
from adapter.sample import DEFAULT_SAMPLE_SIZE, generate_sample_data
from aggregator import (
    AnalyticsData, generate_analytics,
    RESOLUTION_MAP, AUTO_RESOLUTION, DEFAULT_TOP_N,
)
from monitoring import monitor, EventType

logger = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    """State of the dashboard session."""
    EMPTY = "empty"
    READY = "ready"
    ERROR = "error"


class DataSource(str, Enum):
    """Where the loaded posts came from."""
    CSV = "csv"
    SAMPLE = "sample"


class SessionState(BaseModel):
    """Snapshot of the session for status displays."""
    status: SessionStatus = Field(default=SessionStatus.EMPTY)
    source: Optional[DataSource] = Field(default=None)
    filename: Optional[str] = Field(default=None)
    loaded_at: Optional[datetime] = Field(default=None)
    total_posts: int = Field(default=0)
    skipped_rows: List[SkippedRow] = Field(default_factory=list)
    last_error: Optional[str] = Field(default=None, description="User-visible message of the last failed load")


class DashboardSession:
    """
    Holds the dashboard's in-memory dataset.

    Architecture:
    - One dataset at a time; every load replaces the previous one
    - A failed load leaves the session empty with the error recorded
    - Analytics at the default resolution are cached until the posts change

    Usage:
        session = DashboardSession()

        # Load an uploaded file
        result = session.load_csv(text, filename="posts.csv")

        # Or load demo data
        session.load_sample(count=200, seed=42)

        # Analytics at any resolution (computed on demand)
        daily = session.get_analytics()
        hourly = session.get_analytics(resolution="hour")

        # Back to the upload screen
        session.reset()
    """

    def __init__(
        self,
        sample_size: int = DEFAULT_SAMPLE_SIZE,
        sample_seed: Optional[Union[int, str]] = None,
        default_resolution: str = AUTO_RESOLUTION,
        top_n: int = DEFAULT_TOP_N,
    ):
        if default_resolution != AUTO_RESOLUTION and default_resolution not in RESOLUTION_MAP:
            raise ValueError(f"Invalid resolution: {default_resolution}. Valid: {list(RESOLUTION_MAP.keys())}")
        if top_n < 1:
            raise ValueError(f"top_n must be at least 1, got {top_n}")

        self.sample_size = sample_size
        self.sample_seed = sample_seed
        self.default_resolution = default_resolution
        self.top_n = top_n

        self._posts: List[Post] = []
        self._analytics: Optional[AnalyticsData] = None
        self._state = SessionState()

    @property
    def has_data(self) -> bool:
        return bool(self._posts)

    @property
    def posts(self) -> List[Post]:
        """Loaded posts (a copy; posts themselves are immutable)."""
        return list(self._posts)

    @property
    def analytics(self) -> Optional[AnalyticsData]:
        """Analytics at the default resolution, or None when empty."""
        return self._analytics

    def state(self) -> SessionState:
        """Get a snapshot of the session state."""
        return self._state.model_copy(deep=True)

    def _clear(self) -> None:
        self._posts = []
        self._analytics = None
        self._state = SessionState()

    def _set_posts(
        self,
        posts: List[Post],
        source: DataSource,
        filename: Optional[str] = None,
        skipped: Optional[List[SkippedRow]] = None,
    ) -> None:
        """Replace the dataset and recompute analytics from scratch."""
        analytics = self._compute(posts, self.default_resolution, self.top_n)

        self._posts = list(posts)
        self._analytics = analytics
        self._state = SessionState(
            status=SessionStatus.READY,
            source=source,
            filename=filename,
            loaded_at=datetime.now(timezone.utc),
            total_posts=len(posts),
            skipped_rows=skipped or [],
        )

    def _fail(self, message: str, source: DataSource, filename: Optional[str] = None) -> None:
        self._clear()
        self._state = SessionState(
            status=SessionStatus.ERROR,
            source=source,
            filename=filename,
            last_error=message,
        )

    def _compute(self, posts: List[Post], resolution: str, top_n: int) -> AnalyticsData:
        start = time.time()
        analytics = generate_analytics(posts, resolution=resolution, top_n=top_n)
        latency_ms = (time.time() - start) * 1000

        monitor.metrics.record_analytics(latency_ms)
        monitor.activity.add_event(
            EventType.ANALYTICS_COMPUTED,
            posts=analytics.total_posts,
            resolution=analytics.resolution,
            latency_ms=round(latency_ms, 2),
        )
        return analytics

    def load_csv(self, text: str, filename: Optional[str] = None) -> ParseResult:
        """
        Replace the dataset with posts parsed from CSV text.

        Args:
            text: Raw CSV content
            filename: Original file name, for display

        Returns:
            ParseResult with the loaded posts and skipped rows

        Raises:
            DataProcessingError: If the file yields no usable posts
        """
        self._clear()

        try:
            result = parse_csv(text)
            self._set_posts(result.posts, DataSource.CSV, filename, result.skipped)
        except DataProcessingError as e:
            skipped = getattr(e, "skipped", [])
            self._fail(str(e), DataSource.CSV, filename)
            logger.error(f"Failed to load CSV {filename or '<upload>'}: {e}")

            monitor.metrics.record_parse_error(rows_skipped=len(skipped))
            monitor.activity.add_event(
                EventType.PARSE_ERROR,
                source=DataSource.CSV.value,
                filename=filename,
                error=str(e)[:200],
            )
            raise
        except ValueError as e:
            # Dataset parsed but could not be charted (e.g. range too wide)
            self._fail(str(e), DataSource.CSV, filename)
            logger.error(f"Failed to analyze CSV {filename or '<upload>'}: {e}")
            monitor.activity.add_event(EventType.ERROR, source=DataSource.CSV.value, error=str(e)[:200])
            raise

        logger.info(f"Loaded {result.valid_rows} posts from {filename or '<upload>'}")
        monitor.metrics.record_upload(result.valid_rows, len(result.skipped))
        monitor.activity.add_event(
            EventType.DATA_LOADED,
            source=DataSource.CSV.value,
            filename=filename,
            posts=result.valid_rows,
            skipped=len(result.skipped),
        )
        if result.skipped:
            monitor.activity.add_event(
                EventType.ROWS_SKIPPED,
                source=DataSource.CSV.value,
                filename=filename,
                count=len(result.skipped),
            )

        return result

    def load_sample(
        self,
        count: Optional[int] = None,
        seed: Optional[Union[int, str]] = None,
    ) -> List[Post]:
        """
        Replace the dataset with generated sample posts.

        Args:
            count: Number of posts (default: the session's sample size)
            seed: Seed for repeatable data (default: the session's seed)

        Returns:
            The generated posts
        """
        self._clear()
        count = count if count is not None else self.sample_size
        seed = seed if seed is not None else self.sample_seed

        try:
            posts = generate_sample_data(count=count, seed=seed)
            self._set_posts(posts, DataSource.SAMPLE)
        except ValueError as e:
            self._fail(str(e), DataSource.SAMPLE)
            logger.error(f"Failed to generate sample data: {e}")
            monitor.activity.add_event(EventType.ERROR, source=DataSource.SAMPLE.value, error=str(e)[:200])
            raise

        monitor.metrics.record_sample(len(posts))
        monitor.activity.add_event(
            EventType.SAMPLE_GENERATED,
            source=DataSource.SAMPLE.value,
            posts=len(posts),
            seed=seed,
        )
        return posts

    def reset(self) -> None:
        """Drop the dataset, its analytics and any recorded error."""
        had_data = self.has_data
        self._clear()
        logger.info("Session reset")
        monitor.activity.add_event(EventType.RESET, had_data=had_data)

    def get_analytics(
        self,
        resolution: Optional[str] = None,
        top_n: Optional[int] = None,
    ) -> Optional[AnalyticsData]:
        """
        Get analytics for the loaded posts.

        The default resolution and ranking length are served from cache;
        anything else is computed from the full post list.

        Returns:
            AnalyticsData, or None if nothing is loaded
        """
        if not self.has_data:
            return None

        resolution = resolution if resolution is not None else self.default_resolution
        top_n = top_n if top_n is not None else self.top_n

        if resolution == self.default_resolution and top_n == self.top_n:
            return self._analytics

        return self._compute(self._posts, resolution, top_n)

    def list_posts(
        self,
        limit: int = 50,
        offset: int = 0,
        sentiment: Optional[SentimentLabel] = None,
        brand: Optional[str] = None,
        topic: Optional[str] = None,
        platform: Optional[str] = None,
        search: Optional[str] = None,
    ) -> Tuple[int, List[Post]]:
        """
        Get a page of posts for the data table, newest first.

        Brand, topic and platform filters match case-insensitively; search
        matches a substring of the post text.

        Returns:
            Tuple of (matching post count, posts in the requested page)
        """
        matches = self._posts
        if sentiment:
            matches = [p for p in matches if p.sentiment == sentiment]
        if brand:
            matches = [p for p in matches if p.brand and p.brand.lower() == brand.lower()]
        if topic:
            matches = [p for p in matches if p.topic and p.topic.lower() == topic.lower()]
        if platform:
            matches = [p for p in matches if p.platform == platform.lower()]
        if search:
            needle = search.lower()
            matches = [p for p in matches if needle in p.text.lower()]

        ordered = sorted(matches, key=lambda p: p.timestamp, reverse=True)
        return len(ordered), ordered[offset:offset + limit]


__all__ = [
    "DashboardSession",
    "SessionState",
    "SessionStatus",
    "DataSource",
]
