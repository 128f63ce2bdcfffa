"""
Shared fixtures: a six-territory map small enough to reason about by hand,
the classic 42-territory map, and a factory for mid-game states.
"""

import copy

import pytest

from conquest.engine.definitions import load_map, map_from_dict
from conquest.engine.utils import initialize_game_state

# north (bonus 2): a, b, c    south (bonus 3): d, e, f
# a - b, a - c, b - c, c - d, d - e, d - f, e - f
TINY_MAP = {
    "id": "tiny",
    "display_name": "Tiny",
    "continents": {
        "north": {"display_name": "North", "bonus": 2},
        "south": {"display_name": "South", "bonus": 3},
    },
    "territories": {
        "a": {"display_name": "A", "continent": "north", "adjacent": ["b", "c"]},
        "b": {"display_name": "B", "continent": "north", "adjacent": ["a", "c"]},
        "c": {"display_name": "C", "continent": "north", "adjacent": ["a", "b", "d"]},
        "d": {"display_name": "D", "continent": "south", "adjacent": ["c", "e", "f"]},
        "e": {"display_name": "E", "continent": "south", "adjacent": ["d", "f"]},
        "f": {"display_name": "F", "continent": "south", "adjacent": ["d", "e"]},
    },
}


@pytest.fixture
def tiny_map_data():
    return copy.deepcopy(TINY_MAP)


@pytest.fixture
def tiny_map(tiny_map_data):
    return map_from_dict(tiny_map_data)


@pytest.fixture(scope="session")
def classic_map():
    return load_map("classic")


@pytest.fixture
def make_state(tiny_map):
    """
    Build a state on the tiny map with the given ownership.
    owners: territory_id -> (owner, armies)
    """
    def _make(owners, phase="attack", current="alice", players=("alice", "bob"), map_def=None):
        map_def = map_def or tiny_map
        state = initialize_game_state(list(players), map_def, victory_threshold=1.0)
        for tid, (owner, armies) in owners.items():
            state.territories[tid].owner = owner
            state.territories[tid].armies = armies
        state.armies_placed = sum(armies for _, armies in owners.values())
        state.remaining_armies = {p: 0 for p in players}
        state.phase = phase
        state.initial_deployment_complete = True
        state.current_player_index = list(players).index(current)
        return state
    return _make


@pytest.fixture
def split_board(make_state):
    """alice holds the north, bob the south; c borders d."""
    return make_state({
        "a": ("alice", 3), "b": ("alice", 1), "c": ("alice", 5),
        "d": ("bob", 3), "e": ("bob", 2), "f": ("bob", 1),
    })
