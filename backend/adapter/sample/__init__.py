"""
Synthetic post generator for the dashboard's demo mode.

Produces a plausible mix of brand mentions across platforms and topics so
the dashboard can be explored without uploading a file. Pass a seed to get
the same dataset every time.
"""

from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Union

from ..models import Engagement, Post, SentimentLabel

logger = logging.getLogger(__name__)


DEFAULT_SAMPLE_SIZE = 100
MAX_SAMPLE_SIZE = 10000
SAMPLE_WINDOW_DAYS = 30

BRANDS = ["Apple", "Samsung", "Google", "Microsoft", "Amazon", "Tesla", "Nike", "Netflix"]

TOPICS = [
    "product launch",
    "customer service",
    "pricing",
    "quality",
    "innovation",
    "sustainability",
    "delivery",
]

PLATFORMS = ["twitter", "facebook", "instagram", "reddit", "linkedin"]

# positive, negative, neutral
SENTIMENT_WEIGHTS = [0.45, 0.25, 0.30]

TEMPLATES = {
    SentimentLabel.POSITIVE: [
        "Really impressed with {brand}'s {topic} lately. Great job!",
        "{brand} keeps getting better. Loving the focus on {topic}.",
        "Just had an amazing experience with {brand}. Their {topic} is top notch.",
        "Huge fan of how {brand} handles {topic}. Would recommend.",
    ],
    SentimentLabel.NEGATIVE: [
        "Disappointed with {brand} again. The {topic} situation is a mess.",
        "{brand} really dropped the ball on {topic} this time.",
        "Not happy with {brand}. Their {topic} needs serious work.",
        "Third time this month {brand} let me down on {topic}.",
    ],
    SentimentLabel.NEUTRAL: [
        "Anyone have thoughts on {brand}'s {topic}?",
        "{brand} announced an update about {topic} today.",
        "Reading up on {brand} and {topic} before deciding.",
        "Comparing {brand} with others on {topic}.",
    ],
}

AUTHORS = [
    "techfan", "dailyreviewer", "consumer_voice", "early_adopter",
    "market_watch", "gadget_guru", "brandwatcher", "the_skeptic",
]


def sample_rng(seed: Optional[Union[int, str]] = None) -> random.Random:
    """Create a random number generator; a seed makes output repeatable."""
    return random.Random(seed)


def _sample_score(rng: random.Random, sentiment: SentimentLabel) -> float:
    if sentiment == SentimentLabel.POSITIVE:
        score = rng.uniform(0.15, 1.0)
    elif sentiment == SentimentLabel.NEGATIVE:
        score = rng.uniform(-1.0, -0.15)
    else:
        score = rng.uniform(-0.1, 0.1)
    return round(score, 3)


def _sample_engagement(rng: random.Random, score: float) -> Engagement:
    # Strong opinions travel further
    boost = 1 + 2 * abs(score)
    return Engagement(
        likes=int(rng.randint(0, 200) * boost),
        shares=int(rng.randint(0, 40) * boost),
        comments=int(rng.randint(0, 60) * boost),
    )


def generate_sample_data(
    count: int = DEFAULT_SAMPLE_SIZE,
    seed: Optional[Union[int, str]] = None,
    end_time: Optional[datetime] = None,
) -> List[Post]:
    """
    Generate synthetic posts for demonstration.

    Args:
        count: Number of posts to generate
        seed: Optional seed; the same seed (and end_time) yields identical posts
        end_time: Latest possible timestamp (default: now, floored to the hour)

    Returns:
        List of posts sorted by timestamp (oldest first)
    """
    if count < 1 or count > MAX_SAMPLE_SIZE:
        raise ValueError(f"count must be between 1 and {MAX_SAMPLE_SIZE}, got {count}")

    rng = sample_rng(seed)

    if end_time is None:
        end_time = datetime.now(timezone.utc).replace(minute=0, second=0, microsecond=0)
    elif end_time.tzinfo is None:
        end_time = end_time.replace(tzinfo=timezone.utc)
    window_seconds = SAMPLE_WINDOW_DAYS * 86400

    posts = []
    for i in range(count):
        sentiment = rng.choices(
            [SentimentLabel.POSITIVE, SentimentLabel.NEGATIVE, SentimentLabel.NEUTRAL],
            weights=SENTIMENT_WEIGHTS,
        )[0]
        brand = rng.choice(BRANDS)
        topic = rng.choice(TOPICS)
        score = _sample_score(rng, sentiment)
        text = rng.choice(TEMPLATES[sentiment]).format(brand=brand, topic=topic)

        posts.append(Post(
            id=f"sample_{i + 1}",
            timestamp=end_time - timedelta(seconds=rng.randint(0, window_seconds)),
            text=text,
            sentiment=sentiment,
            score=score,
            brand=brand,
            topic=topic,
            platform=rng.choice(PLATFORMS),
            author=f"{rng.choice(AUTHORS)}{rng.randint(1, 999)}",
            engagement=_sample_engagement(rng, score),
        ))

    posts.sort(key=lambda p: p.timestamp)
    logger.info(f"Generated {len(posts)} sample posts (seed={seed!r})")
    return posts


__all__ = [
    "generate_sample_data",
    "sample_rng",
    "DEFAULT_SAMPLE_SIZE",
    "MAX_SAMPLE_SIZE",
    "BRANDS",
    "TOPICS",
    "PLATFORMS",
]
