"""
Tests for context features, work-mode classification and profiles.
"""

import pytest

from conftest import NOW, make_event
from filesense.core.history import HistoryStore
from filesense.core.models import EventKind
from filesense.errors import NotFoundError
from filesense.profiles import ContextBuilder, ProfileStore, classify_work_mode, file_variety


class TestWorkMode:

    def test_empty_window_is_exploratory(self):
        """No activity counts as exploratory."""
        assert classify_work_mode([]) == "exploratory"
        assert file_variety([]) is None

    @pytest.mark.parametrize("distinct,expected", [
        (2, "focused"),
        (9, "exploratory"),
        (5, "collaborative"),
        (3, "collaborative"),
        (7, "collaborative"),
    ])
    def test_variety_thresholds(self, distinct, expected):
        """10 events over N distinct files classify by N / 10."""
        events = [make_event(f"f{i % distinct}.txt", minutes_ago=i) for i in range(10)]
        assert classify_work_mode(events) == expected


class TestContextBuilder:

    @pytest.fixture
    def history(self):
        history = HistoryStore()
        history.append(make_event("a.py", minutes_ago=20, project="alpha"))
        history.append(make_event("b.py", minutes_ago=10, kind=EventKind.EDIT))
        history.append(make_event("c.py", minutes_ago=5, kind=EventKind.CLOSE))
        history.append(make_event("a.py", minutes_ago=2, working_directory="/src"))
        history.append(make_event("z.py", minutes_ago=1, subject_id="u2"))
        return history

    def test_features(self, history):
        """Recent files are unique access events, newest first."""
        context = ContextBuilder(history, ProfileStore()).compute_context("u1", NOW)
        assert context.recent_files == ("a.py", "b.py")
        assert context.current_file == "a.py"
        assert context.project == "alpha"
        assert context.working_directory == "/src"
        assert context.hour == 10
        assert context.weekday == 0
        # 4 events over 3 files in the last hour
        assert context.work_mode == "exploratory"

    def test_recent_limit(self):
        """At most recent_limit files are kept."""
        history = HistoryStore()
        for i in range(8):
            history.append(make_event(f"f{i}.py", minutes_ago=10 - i))
        context = ContextBuilder(history, ProfileStore()).compute_context("u1", NOW)
        assert context.recent_files == ("f7.py", "f6.py", "f5.py", "f4.py", "f3.py")

    def test_idempotent(self, history):
        """Two calls with no new events give identical features."""
        builder = ContextBuilder(history, ProfileStore())
        assert builder.compute_context("u1", NOW) == builder.compute_context("u1", NOW)

    def test_does_not_create_profiles(self, history):
        """Computing context for an unknown subject has no side effects."""
        profiles = ProfileStore()
        context = ContextBuilder(history, profiles).compute_context("nobody", NOW)
        assert "nobody" not in profiles
        assert context.recent_files == ()
        assert context.work_mode == "exploratory"

    def test_preferred_types_from_profile(self, history):
        profiles = ProfileStore()
        for event in history.for_subject("u1"):
            profiles.update_on_event(event)
        context = ContextBuilder(history, profiles).compute_context("u1", NOW)
        assert context.preferred_types == (("py", 1.0),)


class TestProfileStore:

    def test_update_on_event_counters(self):
        """Raw type, category and hour counters are bumped."""
        profiles = ProfileStore()
        profiles.update_on_event(make_event("report.pdf", category="reports"))
        profiles.update_on_event(make_event("notes.md"))
        profile = profiles.get("u1")
        assert profile.type_counts == {"pdf": 1, "md": 1}
        assert profile.category_counts == {"reports": 1}
        assert profile.hour_counts == {"hour_10": 2}
        assert profile.total_events == 2
        assert profiles.type_weights("u1") == {"pdf": 0.5, "md": 0.5}

    def test_lazy_creation(self):
        """get() creates profiles on demand."""
        profiles = ProfileStore()
        profiles.get("new")
        assert "new" in profiles
        assert len(profiles) == 1

    def test_missing_without_create(self):
        """create=False raises NotFoundError for unknown subjects."""
        with pytest.raises(NotFoundError) as excinfo:
            ProfileStore().get("ghost", create=False)
        assert isinstance(excinfo.value, KeyError)
        assert "ghost" in str(excinfo.value)

    def test_record_click_running_update(self):
        """Clicks move weights toward 1 by the learning rate."""
        profiles = ProfileStore()
        profiles.record_click("u1", "pdf", ["reports"])
        profile = profiles.record_click("u1", "pdf")
        assert profile.click_weights["pdf"] == pytest.approx(0.36)
        assert profile.click_weights["reports"] == pytest.approx(0.2)

    def test_personal_vector(self):
        """The personal vector is an exponential moving average."""
        profiles = ProfileStore(vector_dimensions=2)
        profiles.update_personal_vector("u1", [1.0, 0.0])
        profile = profiles.update_personal_vector("u1", [0.0, 1.0])
        assert profile.personal_vector.tolist() == pytest.approx([0.9, 0.1])
        assert profiles.update_personal_vector("u1", [1.0, 2.0, 3.0]) is None

    def test_snapshot_is_independent(self):
        """Mutating a snapshot does not touch the stored profile."""
        profiles = ProfileStore()
        profiles.update_on_event(make_event("a.py"))
        snap = profiles.snapshot("u1")
        snap.type_counts["py"] = 99
        assert profiles.get("u1").type_counts["py"] == 1
        assert profiles.snapshot("missing") is None
