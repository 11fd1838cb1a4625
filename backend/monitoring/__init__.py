"""
Monitoring for the sentiment dashboard backend.

Everything is kept in process memory and resets on restart:
- Per-endpoint request counts, errors and latency percentiles
- Ingestion counters (uploads, sample loads, rows parsed/skipped)
- Analytics computation timings
- A bounded feed of dataset events
"""

from __future__ import annotations

import logging
import time
from collections import Counter, defaultdict, deque
from dataclasses import dataclass, field
from datetime import datetime, timezone, timedelta
from enum import Enum
from itertools import islice
from typing import Any, Deque, Dict, List, Optional

logger = logging.getLogger(__name__)

LATENCY_WINDOW = 1000


class EventType(str, Enum):
    """Dataset lifecycle events shown in the activity feed."""
    DATA_LOADED = "data_loaded"
    SAMPLE_GENERATED = "sample_generated"
    ROWS_SKIPPED = "rows_skipped"
    PARSE_ERROR = "parse_error"
    ANALYTICS_COMPUTED = "analytics_computed"
    RESET = "reset"
    ERROR = "error"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LatencyWindow:
    """The most recent latency samples (ms) of one operation."""

    def __init__(self, size: int = LATENCY_WINDOW):
        self._samples: Deque[float] = deque(maxlen=size)

    def add(self, latency_ms: float) -> None:
        self._samples.append(latency_ms)

    def summary(self) -> Dict[str, float]:
        if not self._samples:
            return {"avg": 0.0, "p50": 0.0, "p95": 0.0, "max": 0.0}

        ordered = sorted(self._samples)

        def rank(q: float) -> float:
            return ordered[min(len(ordered) - 1, int(q * len(ordered)))]

        return {
            "avg": round(sum(ordered) / len(ordered), 2),
            "p50": round(rank(0.50), 2),
            "p95": round(rank(0.95), 2),
            "max": round(ordered[-1], 2),
        }


@dataclass
class EndpointStats:
    requests: int = 0
    errors: int = 0
    latency: LatencyWindow = field(default_factory=LatencyWindow)


@dataclass
class PipelineCounters:
    """Ingestion totals since startup."""
    uploads: int = 0
    samples: int = 0
    parse_errors: int = 0
    rows_parsed: int = 0
    rows_skipped: int = 0

    @property
    def skip_rate(self) -> float:
        seen = self.rows_parsed + self.rows_skipped
        return self.rows_skipped / seen if seen else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uploads": self.uploads,
            "samples": self.samples,
            "parse_errors": self.parse_errors,
            "rows_parsed": self.rows_parsed,
            "rows_skipped": self.rows_skipped,
            "skip_rate": f"{self.skip_rate:.1%}",
        }


class MetricsCollector:
    """
    Request and pipeline metrics.

    Request metrics are fed by the HTTP middleware; pipeline and analytics
    metrics by the dashboard session.
    """

    def __init__(self):
        self._started = time.monotonic()
        self._endpoints: Dict[str, EndpointStats] = defaultdict(EndpointStats)
        self.pipeline = PipelineCounters()
        self._analytics = LatencyWindow()
        self._analytics_runs = 0

    def record_request(self, endpoint: str, latency_ms: float, error: bool = False) -> None:
        stats = self._endpoints[endpoint]
        stats.requests += 1
        stats.latency.add(latency_ms)
        if error:
            stats.errors += 1

    def record_upload(self, rows_parsed: int, rows_skipped: int) -> None:
        self.pipeline.uploads += 1
        self.pipeline.rows_parsed += rows_parsed
        self.pipeline.rows_skipped += rows_skipped

    def record_sample(self, count: int) -> None:
        self.pipeline.samples += 1
        self.pipeline.rows_parsed += count

    def record_parse_error(self, rows_skipped: int = 0) -> None:
        """Record an upload rejected as a whole."""
        self.pipeline.parse_errors += 1
        self.pipeline.rows_skipped += rows_skipped

    def record_analytics(self, latency_ms: float) -> None:
        self._analytics_runs += 1
        self._analytics.add(latency_ms)

    @staticmethod
    def format_uptime(seconds: float) -> str:
        minutes, secs = divmod(int(seconds), 60)
        hours, minutes = divmod(minutes, 60)
        if hours:
            return f"{hours}h {minutes}m"
        if minutes:
            return f"{minutes}m {secs}s"
        return f"{secs}s"

    def get_metrics(self) -> Dict[str, Any]:
        uptime = time.monotonic() - self._started
        endpoints = dict(self._endpoints)

        return {
            "uptime_seconds": int(uptime),
            "uptime_human": self.format_uptime(uptime),
            "requests": {
                "total": sum(s.requests for s in endpoints.values()),
                "by_endpoint": {name: s.requests for name, s in endpoints.items()},
                "errors": {name: s.errors for name, s in endpoints.items() if s.errors},
                "latency_ms": {name: s.latency.summary() for name, s in endpoints.items()},
            },
            "data_pipeline": self.pipeline.to_dict(),
            "analytics": {
                "runs": self._analytics_runs,
                "latency_ms": self._analytics.summary(),
            },
        }


@dataclass
class SystemEvent:
    """One entry of the activity feed."""
    event_type: EventType
    source: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "source": self.source,
            "details": self.details,
            "age_seconds": round((_utcnow() - self.timestamp).total_seconds(), 3),
        }


class ActivityFeed:
    """Bounded, newest-last log of dataset events."""

    def __init__(self, max_events: int = 500):
        self._events: Deque[SystemEvent] = deque(maxlen=max_events)

    def add_event(self, event_type: EventType, source: Optional[str] = None, **details) -> None:
        self._events.append(SystemEvent(event_type=event_type, source=source, details=details))
        logger.debug(f"Event {event_type.value}: {details}")

    def get_recent(self, limit: int = 50, event_type: Optional[EventType] = None) -> List[Dict[str, Any]]:
        """Most recent events first, optionally of a single type."""
        events = (e for e in reversed(self._events) if event_type is None or e.event_type == event_type)
        return [e.to_dict() for e in islice(events, limit)]

    def get_event_counts(self, since_minutes: int = 5) -> Dict[str, int]:
        cutoff = _utcnow() - timedelta(minutes=since_minutes)
        return dict(Counter(e.event_type.value for e in self._events if e.timestamp >= cutoff))


# Worst status wins when rolling components up into overall health
_SEVERITY = {"healthy": 0, "unknown": 1, "warning": 2, "error": 3}
_OVERALL = {0: "healthy", 1: "unknown", 2: "warning", 3: "degraded"}


class SystemMonitor:
    """Process-wide metrics, activity feed and component health."""

    def __init__(self):
        self.metrics = MetricsCollector()
        self.activity = ActivityFeed()
        self._components: Dict[str, Dict[str, Any]] = {}

    def set_component_status(self, component: str, status: str, details: Optional[Dict[str, Any]] = None) -> None:
        self._components[component] = {
            "status": status,
            "last_updated": _utcnow().isoformat(),
            "details": details or {},
        }

    def get_health_status(self) -> Dict[str, Any]:
        worst = max((_SEVERITY.get(c["status"], 1) for c in self._components.values()), default=1)
        return {
            "status": _OVERALL[worst],
            "timestamp": _utcnow().isoformat(),
            "components": self._components,
        }

    def get_dashboard_data(self) -> Dict[str, Any]:
        """Health, metrics and recent activity in one payload."""
        return {
            "health": self.get_health_status(),
            "metrics": self.metrics.get_metrics(),
            "recent_activity": self.activity.get_recent(limit=20),
            "event_counts_5m": self.activity.get_event_counts(since_minutes=5),
        }


monitor = SystemMonitor()


__all__ = [
    "SystemMonitor",
    "MetricsCollector",
    "ActivityFeed",
    "LatencyWindow",
    "PipelineCounters",
    "EventType",
    "SystemEvent",
    "monitor",
]
