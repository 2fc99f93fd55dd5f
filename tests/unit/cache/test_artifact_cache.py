"""
Unit tests for the TTL + milestone artifact cache.
"""

from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from reflective_prompts.cache.artifact_cache import ArtifactCache, milestone
from reflective_prompts.errors import (
    CacheWriteError,
    GenerationError,
    LockContentionError,
    ValidationError,
)
from reflective_prompts.models.artifacts import ArtifactType, CacheState
from reflective_prompts.scheduling.tracker import GenerationTracker
from reflective_prompts.storage.stores import ArtifactStore, TrackerStore


@pytest.fixture
def tracker(session_factory, clock):
    return GenerationTracker(
        TrackerStore(session_factory),
        threshold=2,
        cooldown=timedelta(minutes=5),
        lock_timeout=timedelta(seconds=90),
        clock=clock,
    )


@pytest.fixture
def cache(mock_oracle, tracker, session_factory, clock):
    return ArtifactCache(
        oracle=mock_oracle,
        tracker=tracker,
        store=ArtifactStore(session_factory),
        ttl=timedelta(days=7),
        milestone_every=3,
        min_documents=3,
        clock=clock,
    )


@pytest.fixture
def docs(make_document):
    """Callable returning n plain journal entries."""

    def _docs(n):
        return [make_document(f"Entry number {i} about my day at work", hours_ago=n - i) for i in range(n)]

    return _docs


class TestMilestone:
    """Test milestone bucketing."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "count,expected",
        [(0, 0), (2, 0), (3, 3), (5, 3), (6, 6), (10, 9)],
    )
    def test_bucket(self, count, expected):
        assert milestone(count, 3) == expected


class TestCacheStates:
    """Test the Missing / Fresh / Expired / MilestoneCrossed transitions."""

    @pytest.mark.unit
    def test_miss_generates_then_hit_serves(self, cache, mock_oracle, docs, valid_insight):
        first = cache.get_or_generate("u1", ArtifactType.THEME_SUMMARY, docs(3))
        second = cache.get_or_generate("u1", ArtifactType.THEME_SUMMARY, docs(3))

        assert first.from_cache is False
        assert first.state == CacheState.MISSING
        assert first.content == valid_insight
        assert second.from_cache is True
        assert second.state == CacheState.FRESH
        assert second.content == valid_insight
        assert mock_oracle.generate.call_count == 1

    @pytest.mark.unit
    def test_provenance_recorded(self, cache, docs):
        cache.get_or_generate("u1", "theme_summary", docs(3))

        entry = cache.store.get_latest_valid("u1", "theme_summary")
        assert entry.model_version.startswith("openai:gpt-4o-mini/")
        assert entry.source_doc_count == 3

    @pytest.mark.unit
    def test_expired_entry_regenerates(self, cache, mock_oracle, docs, clock):
        cache.get_or_generate("u1", "theme_summary", docs(3))
        clock.advance(timedelta(days=8))

        result = cache.get_or_generate("u1", "theme_summary", docs(3))

        assert result.from_cache is False
        assert result.state == CacheState.EXPIRED
        assert result.expires_at == clock() + timedelta(days=7)
        assert mock_oracle.generate.call_count == 2

    @pytest.mark.unit
    def test_same_milestone_bucket_is_fresh(self, cache, mock_oracle, docs, clock):
        cache.get_or_generate("u1", "theme_summary", docs(3))
        clock.advance(timedelta(minutes=10))

        result = cache.get_or_generate("u1", "theme_summary", docs(5))

        assert result.from_cache is True
        assert result.state == CacheState.FRESH
        assert mock_oracle.generate.call_count == 1

    @pytest.mark.unit
    def test_crossing_milestone_regenerates(self, cache, mock_oracle, docs, clock):
        cache.get_or_generate("u1", "theme_summary", docs(3))
        clock.advance(timedelta(minutes=10))

        result = cache.get_or_generate("u1", "theme_summary", docs(6))

        assert result.from_cache is False
        assert result.state == CacheState.MILESTONE_CROSSED
        assert result.source_doc_count == 6
        assert mock_oracle.generate.call_count == 2

    @pytest.mark.unit
    def test_follow_up_documents_do_not_count(self, cache, mock_oracle, docs, make_document, clock):
        cache.get_or_generate("u1", "theme_summary", docs(3))
        clock.advance(timedelta(minutes=10))
        follow_ups = [make_document("answer", is_follow_up=True) for _ in range(4)]

        result = cache.get_or_generate("u1", "theme_summary", docs(5) + follow_ups)

        assert result.from_cache is True
        assert mock_oracle.generate.call_count == 1

    @pytest.mark.unit
    def test_types_are_cached_separately(self, cache, mock_oracle, docs):
        cache.get_or_generate("u1", ArtifactType.THEME_SUMMARY, docs(3))
        cache.get_or_generate("u1", ArtifactType.WEEKLY_RECAP, docs(3))
        cache.get_or_generate("u2", ArtifactType.THEME_SUMMARY, docs(3))

        assert mock_oracle.generate.call_count == 3


class TestGating:
    """Test cooldown, force refresh and lock handling."""

    @pytest.mark.unit
    def test_milestone_inside_cooldown_serves_cached(self, cache, mock_oracle, docs, clock):
        cache.get_or_generate("u1", "theme_summary", docs(3))
        clock.advance(timedelta(minutes=1))

        result = cache.get_or_generate("u1", "theme_summary", docs(6))

        assert result.from_cache is True
        assert result.state == CacheState.MILESTONE_CROSSED
        assert result.source_doc_count == 3
        assert mock_oracle.generate.call_count == 1

    @pytest.mark.unit
    def test_force_refresh_bypasses_milestone(self, cache, mock_oracle, docs, clock):
        cache.get_or_generate("u1", "theme_summary", docs(3))
        clock.advance(timedelta(minutes=10))

        result = cache.get_or_generate("u1", "theme_summary", docs(4), force_refresh=True)

        assert result.from_cache is False
        assert result.state == CacheState.FRESH
        assert mock_oracle.generate.call_count == 2

    @pytest.mark.unit
    def test_force_refresh_respects_cooldown(self, cache, mock_oracle, docs, clock):
        cache.get_or_generate("u1", "theme_summary", docs(3))
        clock.advance(timedelta(minutes=2))

        result = cache.get_or_generate("u1", "theme_summary", docs(3), force_refresh=True)

        assert result.from_cache is True
        assert mock_oracle.generate.call_count == 1

    @pytest.mark.unit
    def test_miss_with_lock_held_raises(self, cache, tracker, mock_oracle, docs):
        assert tracker.try_acquire("u1")

        with pytest.raises(LockContentionError):
            cache.get_or_generate("u1", "theme_summary", docs(3))

        mock_oracle.generate.assert_not_called()

    @pytest.mark.unit
    def test_regeneration_with_lock_held_serves_cached(self, cache, tracker, mock_oracle, docs, clock):
        cache.get_or_generate("u1", "theme_summary", docs(3))
        clock.advance(timedelta(minutes=10))
        assert tracker.try_acquire("u1")

        result = cache.get_or_generate("u1", "theme_summary", docs(6))

        assert result.from_cache is True
        assert mock_oracle.generate.call_count == 1

    @pytest.mark.unit
    def test_lock_released_after_generation(self, cache, tracker, docs):
        cache.get_or_generate("u1", "theme_summary", docs(3))

        state = tracker.state("u1")
        assert state.in_flight is False
        # Cache regeneration does not move the background tracker's mark
        assert state.last_source_doc_count_mark == 0
        assert state.last_generation_at is None


class TestFailures:
    """Test error propagation and absorption."""

    @pytest.mark.unit
    def test_too_few_documents(self, cache, mock_oracle, docs):
        with pytest.raises(ValidationError) as exc_info:
            cache.get_or_generate("u1", "theme_summary", docs(2))

        assert exc_info.value.missing == 1
        mock_oracle.generate.assert_not_called()

    @pytest.mark.unit
    def test_generation_failure_on_miss_raises(self, cache, tracker, mock_oracle, docs):
        mock_oracle.generate.side_effect = GenerationError("timeout")

        with pytest.raises(GenerationError):
            cache.get_or_generate("u1", "theme_summary", docs(3))

        assert tracker.try_acquire("u1") is not None

    @pytest.mark.unit
    def test_generation_failure_on_regeneration_serves_cached(
        self, cache, mock_oracle, docs, clock, valid_insight
    ):
        cache.get_or_generate("u1", "theme_summary", docs(3))
        clock.advance(timedelta(minutes=10))
        mock_oracle.generate.side_effect = GenerationError("malformed output")

        result = cache.get_or_generate("u1", "theme_summary", docs(6))

        assert result.from_cache is True
        assert result.content == valid_insight

    @pytest.mark.unit
    def test_write_failure_still_returns_content(self, cache, mock_oracle, docs, valid_insight):
        with patch.object(cache.store, "save", side_effect=CacheWriteError("disk full")):
            result = cache.get_or_generate("u1", "theme_summary", docs(3))

        assert result.from_cache is False
        assert result.content == valid_insight

        # Nothing was stored, so the next call is another miss
        again = cache.get_or_generate("u1", "theme_summary", docs(3))
        assert again.state == CacheState.MISSING
        assert mock_oracle.generate.call_count == 2

    @pytest.mark.unit
    def test_unreadable_cache_is_a_miss(self, cache, mock_oracle, docs):
        error = OperationalError("SELECT", {}, Exception("database is locked"))
        with patch.object(cache.store, "get_latest_valid", side_effect=error):
            result = cache.get_or_generate("u1", "theme_summary", docs(3))

        assert result.from_cache is False
        assert mock_oracle.generate.call_count == 1


class TestInvalidate:
    """Test explicit invalidation."""

    @pytest.mark.unit
    def test_invalidate_forces_miss(self, cache, mock_oracle, docs):
        cache.get_or_generate("u1", "theme_summary", docs(3))

        assert cache.invalidate("u1", ArtifactType.THEME_SUMMARY) == 1

        result = cache.get_or_generate("u1", "theme_summary", docs(3))
        assert result.state == CacheState.MISSING
        assert mock_oracle.generate.call_count == 2

    @pytest.mark.unit
    def test_invalidate_all_types(self, cache, docs):
        cache.get_or_generate("u1", ArtifactType.THEME_SUMMARY, docs(3))
        cache.get_or_generate("u1", ArtifactType.MONTHLY_INSIGHTS, docs(3))

        assert cache.invalidate("u1") == 2
        assert cache.invalidate("u1") == 0
