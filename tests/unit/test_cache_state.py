from core.trading.cache_state import CacheState, snapshot


def test_new_state_is_stale_and_empty():
    state = CacheState(refresh_interval=30.0)
    assert state.is_empty
    assert state.is_stale(0.0)
    assert state.needs_refresh(0.0)


def test_refreshed_state_is_fresh_within_interval():
    state = CacheState(refresh_interval=30.0).refreshed({"ZUSD": 1}, now=100.0)
    assert not state.is_stale(100.0)
    assert not state.is_stale(130.0)
    assert state.is_stale(130.5)
    assert state.age(115.0) == 15.0


def test_refreshed_returns_new_value():
    original = CacheState(refresh_interval=30.0)
    refreshed = original.refreshed({"ZUSD": 1}, now=5.0)
    assert original.value is None
    assert refreshed.value == {"ZUSD": 1}


def test_invalidated_keeps_value_but_forces_refresh():
    state = CacheState(refresh_interval=30.0).refreshed({"ZUSD": 1}, now=100.0).invalidated()
    assert state.value == {"ZUSD": 1}
    assert state.last_refresh is None
    assert state.needs_refresh(100.0)


def test_force_refresh_overrides_freshness():
    state = CacheState(refresh_interval=30.0).refreshed({"ZUSD": 1}, now=100.0)
    assert not state.needs_refresh(101.0)
    assert state.needs_refresh(101.0, force=True)


def test_empty_value_needs_refresh_even_when_fresh():
    state = CacheState(refresh_interval=30.0).refreshed({}, now=100.0)
    assert state.needs_refresh(101.0)


def test_snapshot_is_a_copy():
    values = {"ZUSD": 1}
    copy = snapshot(values)
    copy["ZUSD"] = 2
    assert values["ZUSD"] == 1
    assert snapshot(None) == {}
