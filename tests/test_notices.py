"""Tests for tvshows.services.notices."""

from tvshows.services.notices import Notices


def test_recent_is_newest_first():
    notices = Notices()
    notices.publish("network", "Network error: a, retries: 1")
    notices.publish("boundary", "Already at the last part")

    recent = notices.recent()
    assert [n["kind"] for n in recent] == ["boundary", "network"]
    assert recent[0]["message"] == "Already at the last part"
    assert notices.recent(limit=1) == recent[:1]


def test_history_is_bounded():
    """Only the newest notices are kept."""
    notices = Notices(maxlen=2)
    for i in range(5):
        notices.publish("network", f"retries: {i}")
    assert [n["message"] for n in notices.recent()] == ["retries: 4", "retries: 3"]
