from quizroom.services.live.events import Outbound
from quizroom.services.live.presence import PresenceTracker


def test_silent_account_is_removed_from_roster(coordinator, channel, store, seeded):
    presence = PresenceTracker(coordinator, timeout=15, clock=lambda: 0.0)
    for account_id in (seeded.alice, seeded.bob):
        coordinator.join(seeded.session_id, account_id)
        presence.track(seeded.session_id, account_id, now=0.0)

    presence.touch(seeded.bob, now=10.0)
    removed = presence.sweep(now=20.0)

    assert removed == [(seeded.session_id, seeded.alice)]
    assert store.list_roster_members(seeded.session_id) == [seeded.bob]
    assert channel.broadcasts(Outbound.ROSTER_CHANGED)[-1]['players'] == [seeded.bob]
    assert presence.last_seen(seeded.alice) is None


def test_recent_ping_keeps_account(coordinator, seeded):
    presence = PresenceTracker(coordinator, timeout=15)
    coordinator.join(seeded.session_id, seeded.alice)
    presence.track(seeded.session_id, seeded.alice, now=100.0)
    assert presence.sweep(now=110.0) == []
    assert presence.sessions_for(seeded.alice) == {seeded.session_id}


def test_forget_stops_tracking():
    presence = PresenceTracker(coordinator=None, timeout=15)
    presence.track('s1', 1, now=0.0)
    presence.track('s2', 1, now=0.0)
    presence.forget('s1', 1)
    assert presence.sessions_for(1) == {'s2'}
    presence.forget('s2', 1)
    assert presence.last_seen(1) is None
    assert presence.expired(now=100.0) == []


class _FlakyCoordinator:
    def __init__(self, broken_account):
        self.broken_account = broken_account
        self.left = []

    def leave(self, session_id, account_id, sid=None):
        if account_id == self.broken_account:
            raise RuntimeError('store unavailable')
        self.left.append((session_id, account_id))
        return True


def test_one_failed_cleanup_does_not_stop_the_sweep():
    coordinator = _FlakyCoordinator(broken_account=1)
    presence = PresenceTracker(coordinator, timeout=15)
    presence.track('s1', 1, now=0.0)
    presence.track('s1', 2, now=0.0)

    removed = presence.sweep(now=30.0)

    assert removed == [('s1', 2)]
    assert coordinator.left == [('s1', 2)]
