"""
Reinforcement amounts and deployment.
"""

import pytest

from conquest.engine.errors import ErrorKind, RulesError
from conquest.engine.reinforcement import (
    calculate_reinforcements,
    controlled_continents,
    deploy_armies,
    get_continent_control_info,
    get_initial_armies,
)
from conquest.engine.utils import initialize_game_state

AUSTRALIA = ["eastern-australia", "indonesia", "new-guinea", "western-australia"]
SOUTH_AMERICA = ["argentina", "brazil", "peru", "venezuela"]


def _owning(classic_map, alice_territories):
    """alice owns the given territories, bob owns the rest; one army each."""
    state = initialize_game_state(["alice", "bob"], classic_map)
    for tid, ts in state.territories.items():
        ts.owner = "alice" if tid in alice_territories else "bob"
        ts.armies = 1
    state.armies_placed = len(state.territories)
    state.remaining_armies = {"alice": 0, "bob": 0}
    return state


def _scattered(n):
    """n territories with no complete continent (skips Australia and South America)."""
    pool = ["alaska", "alberta", "central-america", "eastern-united-states", "greenland",
            "northwest-territory", "ontario", "quebec", "great-britain", "iceland",
            "northern-europe", "scandinavia", "southern-europe", "ukraine", "congo",
            "east-africa", "egypt", "madagascar", "north-africa", "afghanistan", "china"]
    return pool[:n]


@pytest.mark.parametrize("count,expected", [(2, 40), (3, 35), (4, 30), (5, 25), (6, 20), (7, 30)])
def test_initial_armies(count, expected):
    assert get_initial_armies(count) == expected


@pytest.mark.parametrize("owned,expected", [(1, 3), (8, 3), (11, 3), (12, 4), (14, 4), (15, 5), (21, 7)])
def test_base_reinforcements(classic_map, owned, expected):
    state = _owning(classic_map, _scattered(owned))
    assert controlled_continents(state, classic_map, "alice") == []
    assert calculate_reinforcements(state, classic_map, "alice") == expected


def test_continent_bonus_added(classic_map):
    state = _owning(classic_map, AUSTRALIA)
    assert controlled_continents(state, classic_map, "alice") == ["australia"]
    assert calculate_reinforcements(state, classic_map, "alice") == 3 + 2

    state = _owning(classic_map, AUSTRALIA + SOUTH_AMERICA + _scattered(4))
    # 12 territories -> 4, plus 2 + 2
    assert calculate_reinforcements(state, classic_map, "alice") == 8


def test_continent_bonus_uses_state_values(classic_map):
    state = _owning(classic_map, AUSTRALIA)
    state.continent_bonuses["australia"] = 10
    assert calculate_reinforcements(state, classic_map, "alice") == 13


def test_continent_control_info(classic_map):
    state = _owning(classic_map, AUSTRALIA + ["peru"])
    info = {c["continent_id"]: c for c in get_continent_control_info(state, classic_map, "alice")}
    assert info["australia"]["controlled"]
    assert info["south-america"]["owned"] == 1
    assert info["south-america"]["total"] == 4
    assert info["south-america"]["progress"] == 0.25
    assert not info["asia"]["controlled"]


def test_deploy_armies(classic_map):
    state = _owning(classic_map, AUSTRALIA)
    state.remaining_armies["alice"] = 5
    deploy_armies(state, "alice", "indonesia", 3)
    assert state.territories["indonesia"].armies == 4
    assert state.remaining_armies["alice"] == 2
    assert state.armies_placed == 42 + 3


@pytest.mark.parametrize("territory,count,kind", [
    ("peru", 1, ErrorKind.NOT_OWNER),
    ("atlantis", 1, ErrorKind.INVALID_TERRITORY),
    ("indonesia", 0, ErrorKind.INVALID_ARMY_COUNT),
    ("indonesia", 6, ErrorKind.INSUFFICIENT_REINFORCEMENTS),
])
def test_deploy_rejections(classic_map, territory, count, kind):
    state = _owning(classic_map, AUSTRALIA)
    state.remaining_armies["alice"] = 5
    with pytest.raises(RulesError) as exc:
        deploy_armies(state, "alice", territory, count)
    assert exc.value.kind == kind
    assert state.remaining_armies["alice"] == 5
