"""
Unit tests for the per-session draft registry (idle expiry, size cap).
"""

import pytest

from order_entry.models import DraftState
from order_entry.services.draft_service import DraftRegistry, OrderDraft


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


class TestDraftRegistry:
    """Tests for DraftRegistry."""

    def test_same_key_returns_same_draft(self, clock):
        registry = DraftRegistry(clock=clock)
        first = registry.get_or_create('terminal-1', OrderDraft)
        assert registry.get_or_create('terminal-1', OrderDraft) is first
        assert len(registry) == 1

    def test_discard(self, clock):
        """Test a discarded session gets a fresh draft next time."""
        registry = DraftRegistry(clock=clock)
        first = registry.get_or_create('terminal-1', OrderDraft)

        assert registry.discard('terminal-1') is True
        assert registry.discard('terminal-1') is False
        assert registry.get_or_create('terminal-1', OrderDraft) is not first

    def test_idle_drafts_expire(self, clock):
        """Test drafts untouched for longer than the idle timeout are dropped."""
        registry = DraftRegistry(idle_timeout=60, clock=clock)
        registry.get_or_create('idle', OrderDraft)
        clock.now += 30
        registry.get_or_create('busy', OrderDraft)
        clock.now += 45

        registry.get_or_create('busy', OrderDraft)

        assert len(registry) == 1
        assert registry.discard('idle') is False

    def test_least_recently_used_dropped_at_limit(self, clock):
        registry = DraftRegistry(max_drafts=2, clock=clock)
        registry.get_or_create('a', OrderDraft)
        registry.get_or_create('b', OrderDraft)
        registry.get_or_create('a', OrderDraft)

        registry.get_or_create('c', OrderDraft)

        assert len(registry) == 2
        assert registry.discard('b') is False
        assert registry.discard('a') is True

    def test_submitting_draft_is_never_evicted(self, clock):
        """Test a draft mid-submission survives both the idle timeout and the size cap."""
        registry = DraftRegistry(idle_timeout=60, max_drafts=1, clock=clock)
        draft = registry.get_or_create('a', OrderDraft)
        draft.state = DraftState.SUBMITTING
        clock.now += 120

        registry.get_or_create('b', OrderDraft)

        assert len(registry) == 2
        assert registry.discard('a') is True
