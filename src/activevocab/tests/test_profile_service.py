"""Tests for profile contexts and check-ins."""
from datetime import date

import pytest

from activevocab.services.profile_service import ProfileService

TODAY = date(2026, 3, 10)


@pytest.fixture
def profile_service(store):
    """Create a profile service over the test store."""
    return ProfileService(store)


def test_add_context_ignores_blank(profile_service, store):
    assert profile_service.add_context("   ") is None
    context = profile_service.add_context("  Cooking dinner  ")
    assert context.text == "Cooking dinner"
    profile_service.remove_context(context.id)
    assert store.profile.saved_contexts == []


def test_add_check_in_merges_same_day(profile_service, clock):
    """Test that a repeated check-in merges word ids and keeps created_at."""
    first = profile_service.add_check_in("2026-03-10", 1, ["a", "b"])
    clock.advance(hours=2)
    second = profile_service.add_check_in("2026-03-10", 2, ["b", "c"])

    assert second.groups_completed == 2
    assert second.words_learned == ["a", "b", "c"]
    assert second.created_at == first.created_at
    assert profile_service.get_check_in_record("2026-03-10") is second
    assert len(profile_service.store.profile.check_in_history) == 1


def test_total_check_in_days(profile_service):
    profile_service.add_check_in("2026-03-08", 1, [])
    profile_service.add_check_in("2026-03-09", 0, [])
    profile_service.add_check_in("2026-03-10", 3, [])
    assert profile_service.total_check_in_days() == 2


def test_recent_check_ins(profile_service):
    profile_service.add_check_in("2026-02-01", 1, [])
    profile_service.add_check_in("2026-03-05", 1, [])
    profile_service.add_check_in("2026-03-10", 1, [])
    profile_service.add_check_in("2026-03-08", 1, [])

    recent = profile_service.recent_check_ins(7, today=TODAY)

    assert [r.date for r in recent] == ["2026-03-10", "2026-03-08", "2026-03-05"]


def test_makeup_eligible_dates(profile_service):
    profile_service.add_check_in("2026-03-09", 1, [])
    profile_service.add_check_in("2026-03-07", 0, [])

    eligible = profile_service.makeup_eligible_dates(today=TODAY)

    assert eligible == ["2026-03-08", "2026-03-07", "2026-03-06", "2026-03-05", "2026-03-04", "2026-03-03"]


def test_makeup_moves_one_group(profile_service):
    profile_service.add_check_in("2026-03-10", 2, ["w1"])

    assert profile_service.makeup_check_in("2026-03-08", today=TODAY) is True

    assert profile_service.get_check_in_record("2026-03-10").groups_completed == 1
    target = profile_service.get_check_in_record("2026-03-08")
    assert target.groups_completed == 1
    assert target.words_learned == ["w1"]


def test_makeup_requires_two_groups_today(profile_service):
    profile_service.add_check_in("2026-03-10", 1, [])
    assert profile_service.makeup_check_in("2026-03-08", today=TODAY) is False
    assert profile_service.get_check_in_record("2026-03-08") is None


def test_makeup_without_record_today(profile_service):
    assert profile_service.makeup_check_in("2026-03-08", today=TODAY) is False


if __name__ == "__main__":
    pytest.main([__file__])
