"""
Tests for mode definitions and the current-mode state.
"""
import threading

import pytest

from dashboard.aggregator import DEFAULT_MODE, MODES, ModeState, get_all_modes, get_mode, is_valid_mode
from dashboard.errors import InvalidModeError


class TestModeDefinitions:

    def test_expected_modes(self):
        assert set(MODES) == {"personal", "guest", "transit", "morning", "work", "gallery"}

    def test_lookup_is_case_insensitive(self):
        assert is_valid_mode(" Guest ")
        assert get_mode("GALLERY").key == "gallery"

    def test_unknown_mode_resolves_to_default(self):
        assert get_mode("nope") is MODES[DEFAULT_MODE]
        assert get_mode(None) is MODES[DEFAULT_MODE]
        assert not is_valid_mode("nope")

    def test_guest_mode_is_public_only(self):
        includes = MODES["guest"].includes
        assert includes.weather and includes.transit
        assert not (includes.calendar or includes.tasks or includes.next_event)

    def test_morning_mode_needs_events_for_next_event(self):
        includes = MODES["morning"].includes
        assert not includes.calendar
        assert includes.needs_events
        assert includes.urgent_tasks_only

    def test_serialized_modes(self):
        modes = {m["key"]: m for m in get_all_modes()}
        assert modes["morning"]["includes"]["urgentTasksOnly"] is True
        assert modes["gallery"]["artStyles"][0] == "Cubism"
        assert "artStyles" not in modes["guest"]


class TestModeState:

    def test_initial_state(self):
        state = ModeState()
        assert state.current == DEFAULT_MODE
        assert state.version == 0
        assert state.history() == []

    def test_set_mode_records_transition(self):
        state = ModeState(initial="personal")
        transition = state.set_mode("Guest")

        assert state.current == "guest"
        assert transition.to_dict()["from"] == "personal"
        assert transition.to_dict()["to"] == "guest"
        assert state.version == 1
        assert state.history()[-1]["version"] == 1

    def test_invalid_mode_raises_and_keeps_state(self):
        state = ModeState()
        with pytest.raises(InvalidModeError, match="Invalid mode: disco"):
            state.set_mode("disco")
        assert state.current == DEFAULT_MODE
        assert state.version == 0

    def test_history_is_bounded(self):
        state = ModeState(history_size=3)
        for mode in ["guest", "transit", "work", "morning", "gallery"]:
            state.set_mode(mode)
        history = state.history()
        assert [h["to"] for h in history] == ["work", "morning", "gallery"]

    def test_reset_returns_to_initial(self):
        state = ModeState(initial="work")
        state.set_mode("gallery")
        state.reset()
        assert state.current == "work"
        assert state.version == 2

    def test_profile(self):
        state = ModeState()
        state.set_mode("transit")
        profile = state.profile()
        assert profile["mode"] == "transit"
        assert profile["name"] == "Transit"
        assert profile["includes"]["transit"] is True
        assert profile["version"] == 1

    def test_concurrent_changes_get_unique_versions(self):
        state = ModeState()
        threads = [
            threading.Thread(target=state.set_mode, args=(mode,))
            for mode in ["guest", "transit", "work", "morning"] * 5
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        versions = [h["version"] for h in state.history()]
        assert state.version == 20
        assert versions == sorted(versions)
        assert len(set(versions)) == len(versions)

    def test_invalid_initial_mode(self):
        with pytest.raises(InvalidModeError):
            ModeState(initial="disco")
