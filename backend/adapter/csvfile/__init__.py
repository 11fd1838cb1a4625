"""
CSV data source for the sentiment dashboard.

Turns raw delimited text (an uploaded file) into validated Post objects.
Malformed rows are skipped and reported rather than failing the whole
upload; the parse only fails when the file cannot be read at all, when
required columns are missing, or when no valid rows remain.
"""

from __future__ import annotations

import csv
import io
import logging
import math
from datetime import datetime
from typing import Dict, List, Optional

import pandas as pd
from pydantic import BaseModel, Field, ValidationError

from ..models import Engagement, Post, SentimentLabel

logger = logging.getLogger(__name__)


NO_VALID_DATA_MESSAGE = "No valid data found in the CSV file"

REQUIRED_COLUMNS = ("text", "score", "timestamp")

# Accepted header spellings -> canonical column name
COLUMN_ALIASES: Dict[str, str] = {
    "id": "id",
    "post_id": "id",
    "text": "text",
    "content": "text",
    "message": "text",
    "post": "text",
    "timestamp": "timestamp",
    "date": "timestamp",
    "created_at": "timestamp",
    "time": "timestamp",
    "sentiment": "sentiment",
    "label": "sentiment",
    "sentiment_label": "sentiment",
    "score": "score",
    "sentiment_score": "score",
    "polarity": "score",
    "brand": "brand",
    "topic": "topic",
    "platform": "platform",
    "source": "platform",
    "author": "author",
    "user": "author",
    "username": "author",
    "likes": "likes",
    "shares": "shares",
    "retweets": "shares",
    "comments": "comments",
    "replies": "comments",
}

SENTIMENT_ALIASES: Dict[str, SentimentLabel] = {
    "positive": SentimentLabel.POSITIVE,
    "pos": SentimentLabel.POSITIVE,
    "negative": SentimentLabel.NEGATIVE,
    "neg": SentimentLabel.NEGATIVE,
    "neutral": SentimentLabel.NEUTRAL,
    "neu": SentimentLabel.NEUTRAL,
}

# Words pandas resolves to the current clock time
RELATIVE_DATE_KEYWORDS = frozenset({"now", "today"})

# Fills every cell of a row with the wrong field count so it keeps its position
BAD_LINE_MARKER = "\x00bad-line:"


class DataProcessingError(Exception):
    """Base exception for dataset ingestion errors."""
    pass


class CSVParseError(DataProcessingError):
    """Raised when the CSV text cannot be turned into posts."""
    pass


class MissingColumnsError(CSVParseError):
    """Raised when the header lacks required columns."""
    def __init__(self, missing: List[str]):
        super().__init__(f"CSV is missing required column(s): {', '.join(missing)}")
        self.missing = missing


class NoValidDataError(CSVParseError):
    """Raised when no valid rows remain after validation."""
    def __init__(self, skipped: Optional[List["SkippedRow"]] = None):
        super().__init__(NO_VALID_DATA_MESSAGE)
        self.skipped = skipped or []


class RowError(ValueError):
    """A single row failed validation."""
    pass


class SkippedRow(BaseModel):
    """A row that was left out of the parsed dataset."""
    row: int = Field(description="1-based data row, counting neither the header nor blank lines")
    reason: str = Field(description="Why the row was skipped")


class ParseResult(BaseModel):
    """Outcome of parsing a CSV file."""
    posts: List[Post] = Field(default_factory=list)
    skipped: List[SkippedRow] = Field(default_factory=list)
    total_rows: int = Field(default=0, description="Data rows seen, including skipped ones")

    @property
    def valid_rows(self) -> int:
        return len(self.posts)


def decode_csv_bytes(raw: bytes) -> str:
    """Decode an uploaded file body, tolerating a UTF-8 byte order mark."""
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise CSVParseError(f"File must be UTF-8 encoded text ({e.reason} at byte {e.start})") from e


def _cell(row: Dict[str, object], column: str) -> str:
    """Get a stripped string cell; short rows and absent columns read as blank."""
    value = row.get(column)
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return ""
    return str(value).strip()


def _parse_score(value: str) -> float:
    if not value:
        raise RowError("missing score")
    try:
        score = float(value)
    except ValueError:
        raise RowError(f"invalid score {value!r}")
    if math.isnan(score) or not -1.0 <= score <= 1.0:
        raise RowError(f"score {value} outside [-1, 1]")
    return score


def _parse_sentiment(value: str, score: float) -> SentimentLabel:
    if not value:
        return SentimentLabel.from_score(score)
    label = SENTIMENT_ALIASES.get(value.lower())
    if label is None:
        raise RowError(f"unknown sentiment {value!r}")
    return label


def _parse_timestamp(value: str) -> datetime:
    if not value:
        raise RowError("missing timestamp")
    if value.lower() in RELATIVE_DATE_KEYWORDS:
        raise RowError(f"invalid timestamp {value!r}")
    try:
        # Long digit strings are unix epoch seconds, short ones compact dates
        if value.isdigit() and len(value) >= 9:
            ts = pd.to_datetime(int(value), unit="s", utc=True)
        else:
            ts = pd.to_datetime(value, utc=True)
    except (ValueError, OverflowError):
        raise RowError(f"invalid timestamp {value!r}")
    if pd.isna(ts):
        raise RowError(f"invalid timestamp {value!r}")
    return ts.to_pydatetime()


def _parse_count(value: str, name: str) -> int:
    if not value:
        return 0
    try:
        number = float(value.replace(",", ""))
    except ValueError:
        raise RowError(f"invalid {name} {value!r}")
    if math.isnan(number) or number < 0 or number != int(number):
        raise RowError(f"{name} must be a non-negative integer, got {value!r}")
    return int(number)


def _row_to_post(row: Dict[str, object], position: int) -> Post:
    """Validate one row and build a Post from it."""
    text = _cell(row, "text")
    if not text:
        raise RowError("missing text")

    score = _parse_score(_cell(row, "score"))
    engagement = Engagement(
        likes=_parse_count(_cell(row, "likes"), "likes"),
        shares=_parse_count(_cell(row, "shares"), "shares"),
        comments=_parse_count(_cell(row, "comments"), "comments"),
    )

    try:
        return Post(
            id=_cell(row, "id") or f"row-{position}",
            timestamp=_parse_timestamp(_cell(row, "timestamp")),
            text=text,
            sentiment=_parse_sentiment(_cell(row, "sentiment"), score),
            score=score,
            brand=_cell(row, "brand") or None,
            topic=_cell(row, "topic") or None,
            platform=_cell(row, "platform").lower() or "unknown",
            author=_cell(row, "author") or None,
            engagement=engagement,
        )
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ()))
        raise RowError(f"{field}: {first.get('msg')}")


def _resolve_columns(columns: List[str]) -> Dict[str, str]:
    """Map canonical column names to the header names actually used."""
    resolved: Dict[str, str] = {}
    for column in columns:
        key = str(column).strip().lower().replace(" ", "_")
        canonical = COLUMN_ALIASES.get(key)
        # First matching header wins when aliases collide
        if canonical and canonical not in resolved:
            resolved[canonical] = column
    return resolved


def parse_csv(text: str) -> ParseResult:
    """
    Parse CSV text into validated posts.

    Args:
        text: Raw CSV content with a header row

    Returns:
        ParseResult with the valid posts and every skipped row

    Raises:
        NoValidDataError: If the input is empty or every row is invalid
        MissingColumnsError: If required columns are absent from the header
        CSVParseError: If the text is not parseable as CSV
    """
    if not text or not text.strip():
        raise NoValidDataError()

    read_options = dict(dtype=str, keep_default_na=False, skip_blank_lines=True, engine="python")
    width = 0

    def _on_bad_line(fields: List[str]) -> List[str]:
        return [f"{BAD_LINE_MARKER}{len(fields)}"] * width

    try:
        width = len(pd.read_csv(io.StringIO(text), nrows=0, **read_options).columns)
        df = pd.read_csv(io.StringIO(text), on_bad_lines=_on_bad_line, **read_options)
    except pd.errors.EmptyDataError:
        raise NoValidDataError()
    except (pd.errors.ParserError, csv.Error) as e:
        raise CSVParseError(f"Failed to parse CSV: {e}") from e

    # pandas turns surplus leading fields of the first row into an index
    if not isinstance(df.index, pd.RangeIndex):
        raise CSVParseError("Failed to parse CSV: first data row has more fields than the header")

    columns = _resolve_columns(list(df.columns))
    missing = [c for c in REQUIRED_COLUMNS if c not in columns]
    if missing:
        raise MissingColumnsError(missing)

    df = df[list(columns.values())].rename(columns={v: k for k, v in columns.items()})

    posts: List[Post] = []
    skipped: List[SkippedRow] = []
    seen_ids = set()
    for position, row in enumerate(df.to_dict(orient="records"), start=1):
        marker = _cell(row, "text")
        if marker.startswith(BAD_LINE_MARKER):
            field_count = marker[len(BAD_LINE_MARKER):]
            skipped.append(SkippedRow(row=position, reason=f"unexpected number of fields ({field_count})"))
            continue

        try:
            post = _row_to_post(row, position)
        except RowError as e:
            skipped.append(SkippedRow(row=position, reason=str(e)))
            continue

        if post.id in seen_ids:
            skipped.append(SkippedRow(row=position, reason=f"duplicate id {post.id!r}"))
            continue

        seen_ids.add(post.id)
        posts.append(post)

    total_rows = len(df)

    if skipped:
        logger.warning(f"Skipped {len(skipped)} of {total_rows} CSV rows")

    if not posts:
        raise NoValidDataError(skipped)

    logger.info(f"Parsed {len(posts)} posts from CSV ({len(skipped)} skipped)")
    return ParseResult(posts=posts, skipped=skipped, total_rows=total_rows)


def parse_csv_data(text: str) -> List[Post]:
    """Parse CSV text and return only the valid posts."""
    return parse_csv(text).posts


__all__ = [
    "parse_csv",
    "parse_csv_data",
    "decode_csv_bytes",
    "ParseResult",
    "SkippedRow",
    "DataProcessingError",
    "CSVParseError",
    "MissingColumnsError",
    "NoValidDataError",
    "NO_VALID_DATA_MESSAGE",
    "REQUIRED_COLUMNS",
]
