"""
Tests for time-slot rotation over cached art pools.
"""
import random

import pytest

from dashboard.errors import PoolBuildFailed
from dashboard.rotation import CATEGORY_SLOTS, FilterSet, NO_FILTERS, RotationPoolManager, WeightedFetcher

from conftest import ScriptedSource, make_item, weighted

INTERVALS = {"portrait": 300, "landscape": 420, "tv": 360}


class SwitchableSource(ScriptedSource):
    """Scripted source that can be told to start failing."""

    def __init__(self, key):
        super().__init__(key, fail_when=lambda n: self.broken)
        self.broken = False


@pytest.fixture
def source():
    return SwitchableSource("a")


@pytest.fixture
def manager(store, clock, source):
    fetcher = WeightedFetcher([weighted(source)], rng=random.Random(1), sleep=lambda s: None)
    # Align the clock to the start of a portrait slot
    clock.now = 300 * 6_000_000
    return RotationPoolManager(
        store,
        fetcher,
        intervals=INTERVALS,
        pool_size=4,
        pool_ttl=3600,
        fallback=make_item("fallback", "sentinel"),
        clock=clock,
    )


class TestSlots:

    def test_slot_is_floor_of_time_over_interval(self, manager, clock):
        clock.now = 1000.0
        assert manager.current_slot("portrait") == 3
        assert manager.current_slot("landscape") == 2
        assert manager.current_slot("tv", now=720.0) == 2

    def test_keys(self):
        filters = FilterSet.from_styles(["Cubism", "Bauhaus"])
        assert RotationPoolManager.pool_key("portrait", NO_FILTERS) == "pool:portrait:any"
        assert RotationPoolManager.rotation_key("tv", filters, 7) == "rotation:tv:Cubism-Bauhaus:7"


class TestGetCurrent:

    def test_same_item_within_a_slot(self, manager, clock, source):
        first = manager.get_current("portrait")
        clock.advance(299)
        assert manager.get_current("portrait") == first
        # One pool build only
        assert source.calls == 4

    def test_advances_one_step_per_interval(self, manager, clock):
        pool = manager.get_pool("portrait")
        seen = []
        for _ in range(6):
            seen.append(manager.get_current("portrait").identity)
            clock.advance(300)

        start = manager.current_slot("portrait") - 6
        expected = [pool.pick(start + i).identity for i in range(6)]
        assert seen == expected
        # Wraps around a pool of four
        assert seen[0] == seen[4]

    def test_filters_get_separate_pools(self, manager, store):
        manager.get_current("portrait")
        manager.get_current("portrait", FilterSet.from_styles(["Cubism"]))
        assert store.has("pool:portrait:any")
        assert store.has("pool:portrait:Cubism")

    def test_fallback_to_last_known_pool_when_rebuild_fails(self, manager, store, clock, source):
        pool = manager.get_pool("portrait")
        store.flush()
        source.broken = True

        item = manager.get_current("portrait")

        assert item.identity == pool[0].identity

    def test_fallback_to_cached_pool_when_rotation_pick_fails(self, manager, store, source):
        pool = manager.get_pool("portrait")

        def explode(*args, **kwargs):
            raise RuntimeError("cache failure")

        original = store.get_or_set
        store.get_or_set = explode
        try:
            assert manager.get_current("portrait").identity == pool[0].identity
        finally:
            store.get_or_set = original

    def test_fallback_sentinel_when_nothing_is_known(self, manager, source):
        source.broken = True
        item = manager.get_current("landscape")
        assert item.source == "fallback"

    def test_none_without_fallback(self, store, clock):
        source = SwitchableSource("a")
        source.broken = True
        fetcher = WeightedFetcher([weighted(source)], sleep=lambda s: None)
        manager = RotationPoolManager(store, fetcher, intervals=INTERVALS, pool_size=2, clock=clock)
        assert manager.get_current("tv") is None


    def test_partial_interval_table_uses_builtin_cadence(self, store, clock, source):
        fetcher = WeightedFetcher([weighted(source)], sleep=lambda s: None)
        manager = RotationPoolManager(store, fetcher, intervals={"portrait": 300}, pool_size=2, clock=clock)

        assert manager.interval_for("tv") == 420
        assert manager.get_current("tv").source == "a"

    def test_remembered_pools_are_bounded(self, store, clock, source):
        fetcher = WeightedFetcher([weighted(source)], sleep=lambda s: None)
        manager = RotationPoolManager(
            store, fetcher, intervals=INTERVALS, pool_size=1, clock=clock, max_remembered=6,
        )

        for i in range(10):
            manager.get_all_current(FilterSet.from_styles([f"style{i}"]))
        store.flush()

        assert len(manager._last_pools) == 6
        newest = FilterSet.from_styles(["style9"])
        assert RotationPoolManager.pool_key("tv", newest) in manager._last_pools
        oldest = FilterSet.from_styles(["style0"])
        assert RotationPoolManager.pool_key("tv", oldest) not in manager._last_pools


class TestGetAllCurrent:

    def test_one_entry_per_screen_slot(self, manager):
        result = manager.get_all_current()
        assert set(result) == set(CATEGORY_SLOTS.values())
        for item in result.values():
            assert item["source"] == "a"
            assert item["imageUrl"]

    def test_failed_category_is_none_without_fallback(self, store, clock):
        source = SwitchableSource("a")
        source.broken = True
        fetcher = WeightedFetcher([weighted(source)], sleep=lambda s: None)
        manager = RotationPoolManager(store, fetcher, intervals=INTERVALS, pool_size=2, clock=clock)
        assert manager.get_all_current() == {slot: None for slot in CATEGORY_SLOTS.values()}


class TestRefresh:

    def test_refresh_keeps_current_slot_item(self, manager, store, source):
        before = manager.get_current("portrait")
        new_pool = manager.refresh_pool("portrait")

        assert manager.get_current("portrait") == before
        assert store.get("pool:portrait:any") is new_pool
        assert before.identity not in new_pool.identities

    def test_next_slot_uses_new_pool(self, manager, clock):
        manager.get_current("portrait")
        new_pool = manager.refresh_pool("portrait")
        clock.advance(300)
        assert manager.get_current("portrait").identity in new_pool.identities

    def test_refresh_all_reports_sizes(self, manager):
        result = manager.refresh_all()
        assert result["success"] is True
        assert result["poolSizes"] == {"portrait": 4, "landscape": 4, "tv": 4}
        assert result["errors"] == {}

    def test_refresh_all_reports_errors(self, manager, source):
        source.broken = True
        result = manager.refresh_all()
        assert result["success"] is False
        assert set(result["errors"]) == {"portrait", "landscape", "tv"}

    def test_refresh_pool_raises_when_nothing_fetched(self, manager, source):
        source.broken = True
        with pytest.raises(PoolBuildFailed):
            manager.refresh_pool("tv")
