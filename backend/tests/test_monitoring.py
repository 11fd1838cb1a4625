"""Unit tests for the monitoring module."""

from monitoring import (
    ActivityFeed, EventType, LatencyWindow, MetricsCollector, PipelineCounters, SystemMonitor,
)


class TestLatencyWindow:
    """Test latency percentiles."""

    def test_empty(self):
        assert LatencyWindow().summary() == {"avg": 0.0, "p50": 0.0, "p95": 0.0, "max": 0.0}

    def test_percentiles(self):
        window = LatencyWindow()
        for value in range(1, 101):
            window.add(float(value))

        summary = window.summary()

        assert summary["avg"] == 50.5
        assert summary["p50"] == 51.0
        assert summary["p95"] == 96.0
        assert summary["max"] == 100.0

    def test_window_is_bounded(self):
        window = LatencyWindow(size=3)
        for value in (100.0, 1.0, 2.0, 3.0):
            window.add(value)

        assert window.summary()["max"] == 3.0


class TestMetricsCollector:
    """Test request and pipeline metrics."""

    def test_requests(self):
        metrics = MetricsCollector()
        metrics.record_request("/analytics", 12.0)
        metrics.record_request("/analytics", 8.0, error=True)
        metrics.record_request("/health", 1.0)

        requests = metrics.get_metrics()["requests"]

        assert requests["total"] == 3
        assert requests["by_endpoint"] == {"/analytics": 2, "/health": 1}
        assert requests["errors"] == {"/analytics": 1}

    def test_pipeline(self):
        metrics = MetricsCollector()
        metrics.record_upload(rows_parsed=90, rows_skipped=10)
        metrics.record_sample(100)
        metrics.record_parse_error(rows_skipped=5)

        pipeline = metrics.get_metrics()["data_pipeline"]

        assert pipeline["uploads"] == 1
        assert pipeline["samples"] == 1
        assert pipeline["parse_errors"] == 1
        assert pipeline["rows_parsed"] == 190
        assert pipeline["rows_skipped"] == 15

    def test_skip_rate(self):
        assert PipelineCounters().skip_rate == 0.0
        assert PipelineCounters(rows_parsed=3, rows_skipped=1).skip_rate == 0.25

    def test_analytics_runs(self):
        metrics = MetricsCollector()
        metrics.record_analytics(4.0)

        assert metrics.get_metrics()["analytics"]["runs"] == 1

    def test_format_uptime(self):
        assert MetricsCollector.format_uptime(42) == "42s"
        assert MetricsCollector.format_uptime(125) == "2m 5s"
        assert MetricsCollector.format_uptime(7260) == "2h 1m"


class TestActivityFeed:
    """Test the activity feed."""

    def test_most_recent_first(self):
        feed = ActivityFeed()
        feed.add_event(EventType.DATA_LOADED, source="csv", posts=10)
        feed.add_event(EventType.RESET, had_data=True)

        events = feed.get_recent()

        assert [e["event_type"] for e in events] == ["reset", "data_loaded"]
        assert events[1]["source"] == "csv"
        assert events[1]["details"] == {"posts": 10}

    def test_filter_and_limit(self):
        feed = ActivityFeed()
        for i in range(5):
            feed.add_event(EventType.SAMPLE_GENERATED, posts=i)
        feed.add_event(EventType.ERROR, error="boom")

        events = feed.get_recent(limit=2, event_type=EventType.SAMPLE_GENERATED)

        assert [e["details"]["posts"] for e in events] == [4, 3]

    def test_bounded(self):
        feed = ActivityFeed(max_events=3)
        for i in range(10):
            feed.add_event(EventType.RESET, n=i)

        assert len(feed.get_recent(limit=100)) == 3

    def test_event_counts(self):
        feed = ActivityFeed()
        feed.add_event(EventType.RESET)
        feed.add_event(EventType.RESET)
        feed.add_event(EventType.PARSE_ERROR)

        assert feed.get_event_counts() == {"reset": 2, "parse_error": 1}


class TestSystemMonitor:
    """Test component health roll-up."""

    def test_unknown_without_components(self):
        assert SystemMonitor().get_health_status()["status"] == "unknown"

    def test_healthy(self):
        monitor = SystemMonitor()
        monitor.set_component_status("session", "healthy")

        assert monitor.get_health_status()["status"] == "healthy"

    def test_error_degrades(self):
        monitor = SystemMonitor()
        monitor.set_component_status("session", "healthy")
        monitor.set_component_status("upload", "error", {"reason": "disk"})

        health = monitor.get_health_status()

        assert health["status"] == "degraded"
        assert health["components"]["upload"]["details"] == {"reason": "disk"}

    def test_dashboard_data(self):
        data = SystemMonitor().get_dashboard_data()

        assert set(data) == {"health", "metrics", "recent_activity", "event_counts_5m"}
