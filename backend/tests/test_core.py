"""
Unit tests for the core module (DashboardSession).
"""

import pytest
from unittest.mock import patch

from adapter.csvfile import NoValidDataError, MissingColumnsError, NO_VALID_DATA_MESSAGE
from adapter.models import SentimentLabel
from adapter.sample import generate_sample_data
from core import DashboardSession, SessionState, SessionStatus, DataSource
from monitoring import monitor, EventType


CSV_TEXT = """id,timestamp,text,score,brand,topic,platform
1,2024-01-15T10:00:00Z,Love the Apple keynote,0.8,Apple,product launch,twitter
2,2024-01-15T14:00:00Z,Samsung support never answers,-0.7,Samsung,customer service,reddit
3,2024-01-16T09:00:00Z,Apple pricing announced,0.0,Apple,pricing,twitter
4,2024-01-17T18:00:00Z,Great Samsung delivery experience,0.6,Samsung,delivery,facebook
5,,missing timestamp,0.2,Apple,pricing,twitter
"""


@pytest.fixture
def session():
    """Create an empty session."""
    return DashboardSession(sample_size=40, top_n=5)


@pytest.fixture
def loaded_session(session):
    """Session with the test CSV loaded."""
    session.load_csv(CSV_TEXT, filename="posts.csv")
    return session


# ============================================================================
# Session Model Tests
# ============================================================================

class TestSessionState:
    """Test the SessionState model."""

    def test_defaults(self):
        state = SessionState()

        assert state.status == SessionStatus.EMPTY
        assert state.source is None
        assert state.total_posts == 0
        assert state.skipped_rows == []
        assert state.last_error is None

    def test_enum_values(self):
        assert SessionStatus.READY.value == "ready"
        assert DataSource.SAMPLE.value == "sample"


class TestSessionInit:
    """Test session construction."""

    def test_empty_session(self, session):
        assert session.has_data is False
        assert session.posts == []
        assert session.analytics is None
        assert session.get_analytics() is None
        assert session.state().status == SessionStatus.EMPTY

    def test_invalid_resolution_fails(self):
        with pytest.raises(ValueError):
            DashboardSession(default_resolution="minute")

    def test_invalid_top_n_fails(self):
        with pytest.raises(ValueError):
            DashboardSession(top_n=0)


# ============================================================================
# Loading
# ============================================================================

class TestLoadCSV:
    """Test loading uploaded CSV data."""

    def test_load_csv(self, session):
        result = session.load_csv(CSV_TEXT, filename="posts.csv")

        assert result.valid_rows == 4
        assert len(result.skipped) == 1
        assert session.has_data is True
        assert len(session.posts) == 4

        state = session.state()
        assert state.status == SessionStatus.READY
        assert state.source == DataSource.CSV
        assert state.filename == "posts.csv"
        assert state.total_posts == 4
        assert state.skipped_rows[0].row == 5
        assert state.loaded_at is not None

    def test_analytics_computed_on_load(self, loaded_session):
        analytics = loaded_session.analytics

        assert analytics.total_posts == 4
        assert analytics.sentiment_breakdown.total == 4
        assert analytics.resolution == "day"
        assert analytics.top_brands[0].count == 2

    def test_invalid_csv_records_error(self, loaded_session):
        with pytest.raises(NoValidDataError):
            loaded_session.load_csv("text,score,timestamp\n", filename="empty.csv")

        state = loaded_session.state()
        assert loaded_session.has_data is False
        assert loaded_session.analytics is None
        assert state.status == SessionStatus.ERROR
        assert state.last_error == NO_VALID_DATA_MESSAGE
        assert state.filename == "empty.csv"

    def test_missing_columns_error(self, session):
        with pytest.raises(MissingColumnsError):
            session.load_csv("text,brand\nhello,Apple\n")

        assert "score" in session.state().last_error

    def test_too_wide_for_fixed_resolution(self):
        session = DashboardSession(default_resolution="hour")
        text = "text,score,timestamp\na,0.1,2020-01-01\nb,0.2,2024-01-01\n"

        with pytest.raises(ValueError):
            session.load_csv(text)

        assert session.state().status == SessionStatus.ERROR
        assert session.has_data is False

    def test_parse_error_is_monitored(self, session):
        before = monitor.metrics.get_metrics()["data_pipeline"]["parse_errors"]

        with pytest.raises(NoValidDataError):
            session.load_csv("")

        after = monitor.metrics.get_metrics()["data_pipeline"]["parse_errors"]
        assert after == before + 1
        latest = monitor.activity.get_recent(limit=1, event_type=EventType.PARSE_ERROR)[0]
        assert latest["details"]["error"] == NO_VALID_DATA_MESSAGE

    def test_load_replaces_previous_data(self, loaded_session):
        loaded_session.load_csv("text,score,timestamp\nonly one,0.5,2024-02-01\n")

        assert len(loaded_session.posts) == 1
        assert loaded_session.state().filename is None


class TestLoadSample:
    """Test loading generated sample data."""

    def test_default_sample_size(self, session):
        posts = session.load_sample()

        assert len(posts) == 40
        state = session.state()
        assert state.source == DataSource.SAMPLE
        assert state.status == SessionStatus.READY
        assert session.analytics.total_posts == 40
        assert session.analytics.resolution == "day"

    def test_count_and_seed_passed_through(self, session):
        with patch("core.generate_sample_data", wraps=generate_sample_data) as gen:
            session.load_sample(count=10, seed=3)

        gen.assert_called_once_with(count=10, seed=3)
        assert len(session.posts) == 10

    def test_session_seed_used(self):
        session = DashboardSession(sample_seed=99)

        with patch("core.generate_sample_data", side_effect=ValueError("boom")) as gen:
            with pytest.raises(ValueError):
                session.load_sample(count=5)

        gen.assert_called_once_with(count=5, seed=99)
        assert session.state().last_error == "boom"
        assert session.state().status == SessionStatus.ERROR

    def test_invalid_count(self, session):
        with pytest.raises(ValueError):
            session.load_sample(count=0)

        assert session.state().source == DataSource.SAMPLE
        assert session.has_data is False


# ============================================================================
# Reset and Analytics
# ============================================================================

class TestReset:
    """Test resetting the session."""

    def test_reset_clears_everything(self, loaded_session):
        loaded_session.reset()

        state = loaded_session.state()
        assert loaded_session.has_data is False
        assert loaded_session.analytics is None
        assert state.status == SessionStatus.EMPTY
        assert state.last_error is None
        assert state.skipped_rows == []

    def test_reset_clears_error(self, session):
        with pytest.raises(NoValidDataError):
            session.load_csv("")

        session.reset()

        assert session.state().last_error is None

    def test_reset_recorded(self, loaded_session):
        loaded_session.reset()

        latest = monitor.activity.get_recent(limit=1)[0]
        assert latest["event_type"] == EventType.RESET.value
        assert latest["details"]["had_data"] is True


class TestGetAnalytics:
    """Test analytics on demand."""

    def test_default_is_cached(self, loaded_session):
        assert loaded_session.get_analytics() is loaded_session.analytics

    def test_other_resolution_recomputed(self, loaded_session):
        daily = loaded_session.get_analytics(resolution="day")

        assert daily is not loaded_session.analytics
        assert daily.resolution == "day"
        assert [p.total for p in daily.time_series_data] == [2, 1, 1]

    def test_custom_top_n(self, loaded_session):
        analytics = loaded_session.get_analytics(top_n=1)

        assert len(analytics.top_brands) == 1
        assert len(analytics.top_topics) == 1

    def test_invalid_resolution(self, loaded_session):
        with pytest.raises(ValueError):
            loaded_session.get_analytics(resolution="fortnight")

    def test_zero_top_n_rejected(self, loaded_session):
        with pytest.raises(ValueError):
            loaded_session.get_analytics(top_n=0)

    def test_empty_resolution_rejected(self, loaded_session):
        with pytest.raises(ValueError):
            loaded_session.get_analytics(resolution="")


class TestListPosts:
    """Test the post table."""

    def test_newest_first(self, loaded_session):
        total, posts = loaded_session.list_posts()

        assert total == 4
        assert [p.id for p in posts] == ["4", "3", "2", "1"]

    def test_pagination(self, loaded_session):
        total, posts = loaded_session.list_posts(limit=2, offset=1)

        assert total == 4
        assert [p.id for p in posts] == ["3", "2"]

    def test_filters(self, loaded_session):
        assert loaded_session.list_posts(brand="apple")[0] == 2
        assert loaded_session.list_posts(platform="Twitter")[0] == 2
        assert loaded_session.list_posts(topic="Delivery")[0] == 1
        assert loaded_session.list_posts(sentiment=SentimentLabel.NEGATIVE)[0] == 1
        assert loaded_session.list_posts(search="KEYNOTE")[0] == 1
        assert loaded_session.list_posts(brand="Apple", sentiment=SentimentLabel.POSITIVE)[0] == 1

    def test_empty_session(self, session):
        assert session.list_posts() == (0, [])
