"""
Tests for access pattern mining.
"""

from datetime import timedelta

import pytest

from conftest import NOW, make_event
from filesense.patterns import AccessPattern, PatternLearner, pattern_confidence


def sequence(*paths, subject_id="u1"):
    """Events for paths one minute apart, the last one at NOW."""
    n = len(paths)
    return [make_event(p, minutes_ago=n - 1 - i, subject_id=subject_id) for i, p in enumerate(paths)]


class TestConfidence:

    @pytest.mark.parametrize("frequency,hours_ago,expected", [
        (10, 0, 1.0),
        (5, 84, 0.5),
        (1, 200, 0.05),
        (50, 0, 1.0),
    ])
    def test_blend_of_frequency_and_recency(self, frequency, hours_ago, expected):
        """Confidence is the mean of the frequency and recency factors."""
        last_seen = NOW - timedelta(hours=hours_ago)
        assert pattern_confidence(frequency, last_seen, NOW) == pytest.approx(expected)

    def test_decays_without_new_occurrences(self):
        """Confidence never rises while time passes with no new occurrences."""
        pattern = AccessPattern(sequence=("a", "b"), frequency=3, last_seen=NOW)
        previous = pattern.refresh(NOW)
        for hours in range(0, 240, 12):
            current = pattern.refresh(NOW + timedelta(hours=hours))
            assert 0.0 <= current <= 1.0
            assert current <= previous
            previous = current

    def test_observe_bumps_frequency(self):
        pattern = AccessPattern(sequence=("a", "b"), frequency=1, last_seen=NOW - timedelta(hours=1))
        pattern.observe(NOW, NOW)
        assert pattern.frequency == 2
        assert pattern.last_seen == NOW
        assert pattern.prefix == ("a",)
        assert pattern.next_path == "b"


class TestLearn:

    def test_mines_every_window(self):
        """Windows of length 2, 3 and 4 are all counted."""
        learner = PatternLearner()
        count = learner.learn(sequence("a", "b", "c", "a", "b"), "u1", NOW)
        assert count == 8
        assert learner.get(("a", "b"), "u1").frequency == 2
        assert learner.get(("b", "c", "a", "b"), "u1").frequency == 1

    def test_short_history_learns_nothing(self):
        """Fewer events than min_history produce no patterns."""
        learner = PatternLearner()
        assert learner.learn(sequence("a", "b"), "u1", NOW) == 0
        assert len(learner) == 0

    def test_learn_rebuilds(self):
        """A second learn() replaces the subject's table."""
        learner = PatternLearner()
        learner.learn(sequence("a", "b", "c"), "u1", NOW)
        learner.learn(sequence("x", "y", "z"), "u1", NOW)
        assert learner.get(("a", "b"), "u1") is None
        assert learner.get(("x", "y"), "u1") is not None

    def test_observe_counts_windows_ending_at_newest(self):
        """observe() only adds windows that end at the newest event."""
        learner = PatternLearner()
        events = sequence("a", "b", "c", "d")
        assert learner.observe(events[:2], "u1", NOW) == 0
        assert learner.observe(events, "u1", NOW) == 3
        assert learner.get(("c", "d"), "u1").frequency == 1
        assert learner.get(("a", "b", "c", "d"), "u1").frequency == 1

    def test_observe_catches_up_at_min_history(self):
        """Reaching min_history also counts the windows ending earlier."""
        learner = PatternLearner()
        events = sequence("a", "b", "c")
        assert learner.observe(events, "u1", NOW) == 3
        assert learner.get(("a", "b"), "u1").frequency == 1
        assert learner.get(("b", "c"), "u1").frequency == 1
        assert learner.get(("a", "b", "c"), "u1").frequency == 1

    @pytest.mark.parametrize("paths", [
        ("a", "b", "c"),
        ("a", "b", "c", "a", "b"),
        ("a", "b", "a", "b", "a", "b", "c", "d", "a"),
    ])
    def test_observe_matches_learn(self, paths):
        """Observing each append builds the same table as one learn()."""
        events = sequence(*paths)
        full = PatternLearner()
        full.learn(events, "u1", NOW)
        inline = PatternLearner()
        for i in range(1, len(events) + 1):
            inline.observe(events[:i], "u1", NOW)

        def table(learner):
            return {
                p.sequence: (p.frequency, p.last_seen, p.first_seen, p.confidence)
                for p in learner.patterns("u1", NOW)
            }

        assert table(inline) == table(full)

    def test_patterns_sorted_by_confidence(self):
        learner = PatternLearner()
        learner.learn(sequence("a", "b", "a", "b", "a", "b"), "u1", NOW)
        confidences = [p.confidence for p in learner.patterns("u1", NOW)]
        assert confidences == sorted(confidences, reverse=True)


class TestPredictNext:

    def test_prefix_must_match_tail(self):
        """Only patterns whose prefix ends the recent paths predict."""
        learner = PatternLearner()
        learner.learn(sequence("a", "b", "c", "a", "b"), "u1", NOW)
        predictions = learner.predict_next(["c", "a", "b"], "u1", NOW)
        assert [path for path, _, _ in predictions] == ["c"]

    def test_tie_prefers_longer_prefix(self):
        """Equal confidence goes to the more specific pattern."""
        learner = PatternLearner()
        learner.learn(sequence("a", "b", "c", "a", "b"), "u1", NOW)
        _, _, pattern = learner.predict_next(["c", "a", "b"], "u1", NOW)[0]
        assert pattern.sequence == ("a", "b", "c")

    def test_subjects_are_isolated(self):
        """One subject's patterns never predict for another."""
        learner = PatternLearner()
        learner.learn(sequence("a", "b", "c", "a", "b"), "u1", NOW)
        assert learner.predict_next(["a", "b"], "u2", NOW) == []

    def test_empty_recent(self):
        assert PatternLearner().predict_next([], "u1", NOW) == []

    def test_limit(self):
        learner = PatternLearner()
        learner.learn(sequence("a", "b", "a", "c", "a", "d"), "u1", NOW)
        assert len(learner.predict_next(["a"], "u1", NOW, limit=2)) == 2
