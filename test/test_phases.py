"""
Setup, phase transitions and turn order.
"""

import pytest

from conquest.engine import actions
from conquest.engine.errors import ErrorKind, RulesError
from conquest.engine.events import (
    PHASE_CHANGED,
    PLAYER_ELIMINATED,
    REINFORCEMENTS_GRANTED,
    TURN_STARTED,
    VICTORY,
)
from conquest.engine.reducer import apply_action, replay_from_actions
from conquest.engine.reinforcement import calculate_reinforcements
from conquest.engine.state import check_invariants
from conquest.engine.utils import initialize_game_state


def _apply(state, action, map_def):
    new_state, _ = apply_action(state, action, map_def)
    check_invariants(new_state)
    return new_state


def _rejected(state, action, map_def):
    with pytest.raises(RulesError) as exc:
        apply_action(state, action, map_def)
    return exc.value.kind


def _claimed_tiny(tiny_map):
    """Two players claim the tiny map alternately: alice a, c, e and bob b, d, f."""
    state = initialize_game_state(["alice", "bob"], tiny_map)
    for tid in ["a", "b", "c", "d", "e", "f"]:
        state = _apply(state, actions.claim_territory(state.current_player, tid), tiny_map)
    return state


# ===== Setup =====

def test_new_game_starts_in_setup(classic_map):
    state = initialize_game_state(["alice", "bob", "carol", "dave"], classic_map)
    assert state.phase == "initial_setup"
    assert state.remaining_armies == {"alice": 30, "bob": 30, "carol": 30, "dave": 30}
    assert all(ts.owner is None for ts in state.territories.values())
    check_invariants(state)


@pytest.mark.parametrize("players", [["solo"], ["alice", "alice"], ["alice", ""]])
def test_invalid_player_lists(classic_map, players):
    with pytest.raises(RulesError) as exc:
        initialize_game_state(players, classic_map)
    assert exc.value.kind == ErrorKind.INVALID_SETUP


def test_claiming_rotates_and_ends_setup(tiny_map):
    state = initialize_game_state(["alice", "bob"], tiny_map)
    state = _apply(state, actions.claim_territory("alice", "a"), tiny_map)
    assert state.current_player == "bob"
    assert state.territories["a"].armies == 1
    assert state.remaining_armies["alice"] == 39

    assert _rejected(state, actions.claim_territory("bob", "a"), tiny_map) == ErrorKind.TERRITORY_ALREADY_CLAIMED
    assert _rejected(state, actions.claim_territory("alice", "b"), tiny_map) == ErrorKind.NOT_CURRENT_PLAYER
    assert _rejected(state, actions.advance_phase("bob"), tiny_map) == ErrorKind.PHASE_INCOMPLETE

    state = _claimed_tiny(tiny_map)
    assert state.phase == "initial_placement"
    assert state.current_player == "alice"
    assert state.territories_owned_by("bob") == ["b", "d", "f"]


def test_random_assignment_then_placement(classic_map):
    state = initialize_game_state(["alice", "bob", "carol", "dave"], classic_map)
    state = _apply(state, actions.assign_territories("alice", seed=42), classic_map)
    assert state.phase == "initial_placement"

    counts = sorted(len(state.territories_owned_by(p)) for p in state.player_names())
    assert counts == [10, 10, 11, 11]
    for name in state.player_names():
        assert state.remaining_armies[name] == 30 - len(state.territories_owned_by(name))

    while state.phase == "initial_placement":
        player = state.current_player
        target = state.territories_owned_by(player)[0]
        state = _apply(state, actions.place_armies(player, target, state.remaining_armies[player]), classic_map)

    assert state.phase == "deploy"
    assert state.turn_number == 1
    assert state.current_player == "alice"
    assert state.remaining_armies["alice"] == calculate_reinforcements(state, classic_map, "alice")
    # Reinforcements are granted, not yet placed
    assert sum(ts.armies for ts in state.territories.values()) == 120


def test_same_seed_same_deal(classic_map):
    first = initialize_game_state(["alice", "bob", "carol"], classic_map)
    second = initialize_game_state(["alice", "bob", "carol"], classic_map)
    first, _ = replay_from_actions(first, [actions.assign_territories("alice", seed=7)], classic_map)
    second, _ = replay_from_actions(second, [actions.assign_territories("alice", seed=7)], classic_map)
    assert first.to_dict() == second.to_dict()


# ===== Turn cycle =====

def test_first_round_uses_deploy_then_reinforce(tiny_map):
    state = _claimed_tiny(tiny_map)
    state = _apply(state, actions.place_armies("alice", "a", 37), tiny_map)
    state, events = apply_action(state, actions.place_armies("bob", "b", 37), tiny_map)

    assert state.phase == "deploy"
    assert state.current_player == "alice"
    assert [e.type for e in events][-3:] == [TURN_STARTED, PHASE_CHANGED, REINFORCEMENTS_GRANTED]
    assert state.remaining_armies["alice"] == 3

    assert _rejected(state, actions.advance_phase("alice"), tiny_map) == ErrorKind.PHASE_INCOMPLETE
    state = _apply(state, actions.place_armies("alice", "a", 3), tiny_map)
    state = _apply(state, actions.advance_phase("alice"), tiny_map)
    assert state.phase == "attack"
    state = _apply(state, actions.advance_phase("alice"), tiny_map)
    assert state.phase == "fortify"

    # a can still send armies to c
    assert _rejected(state, actions.advance_phase("alice"), tiny_map) == ErrorKind.PHASE_INCOMPLETE
    state = _apply(state, actions.skip_fortification("alice"), tiny_map)
    state = _apply(state, actions.advance_phase("alice"), tiny_map)

    assert state.current_player == "bob"
    assert state.phase == "deploy"
    assert state.turn_number == 1
    assert not state.initial_deployment_complete

    state = _apply(state, actions.place_armies("bob", "b", 3), tiny_map)
    state = _apply(state, actions.advance_phase("bob"), tiny_map)
    state = _apply(state, actions.advance_phase("bob"), tiny_map)
    # bob has nothing to fortify with (d and f hold one army, b has no friendly neighbor)
    state = _apply(state, actions.advance_phase("bob"), tiny_map)

    assert state.current_player == "alice"
    assert state.turn_number == 2
    assert state.initial_deployment_complete
    assert state.phase == "reinforce"


def test_wrong_phase_actions(split_board, tiny_map):
    kind = _rejected(split_board, actions.place_armies("alice", "a", 1), tiny_map)
    assert kind == ErrorKind.WRONG_PHASE
    kind = _rejected(split_board, actions.fortify("alice", "a", "b", 1), tiny_map)
    assert kind == ErrorKind.WRONG_PHASE
    kind = _rejected(split_board, actions.Action("teleport", "alice", {}), tiny_map)
    assert kind == ErrorKind.UNKNOWN_ACTION


def test_eliminated_players_are_skipped(make_state, tiny_map):
    state = make_state({
        "a": ("alice", 2), "b": ("alice", 1), "c": ("alice", 1),
        "d": ("bob", 1), "e": ("bob", 1), "f": ("bob", 1),
    }, phase="fortify", current="bob", players=("alice", "carol", "bob"))
    state.get_player("carol").eliminated = True
    state.fortification_used = True

    state = _apply(state, actions.advance_phase("bob"), tiny_map)
    assert state.current_player == "alice"
    assert state.turn_number == 2

    state.phase = "fortify"
    state.fortification_used = True
    state = _apply(state, actions.advance_phase("alice"), tiny_map)
    assert state.current_player == "bob"


# ===== Elimination and victory =====

def test_conquering_last_territory_eliminates(make_state, tiny_map):
    state = make_state({
        "a": ("alice", 1), "b": ("alice", 1), "c": ("alice", 5),
        "d": ("bob", 2), "e": ("alice", 1), "f": ("carol", 1),
    }, players=("alice", "bob", "carol"))
    state = _apply(state, actions.start_combat("alice", "c", "d"), tiny_map)
    state = _apply(state, actions.execute_exchange("alice", 4, 0), tiny_map)
    state, events = apply_action(state, actions.complete_conquest("alice", 2), tiny_map)

    assert state.get_player("bob").eliminated
    assert state.active_players() == ["alice", "carol"]
    assert PLAYER_ELIMINATED in [e.type for e in events]
    assert state.winner is None


def test_last_conquest_wins(make_state, tiny_map):
    state = make_state({
        "a": ("alice", 1), "b": ("alice", 1), "c": ("alice", 5),
        "d": ("bob", 1), "e": ("alice", 1), "f": ("alice", 1),
    })
    state = _apply(state, actions.start_combat("alice", "c", "d"), tiny_map)
    state = _apply(state, actions.execute_exchange("alice", 5, 0), tiny_map)
    state, events = apply_action(state, actions.complete_conquest("alice", 1), tiny_map)

    assert state.winner == "alice"
    victory = [e for e in events if e.type == VICTORY][0]
    assert victory.payload["territories_required"] == 6
    assert _rejected(state, actions.advance_phase("alice"), tiny_map) == ErrorKind.GAME_OVER


def test_partial_victory_threshold(make_state, tiny_map):
    state = make_state({
        "a": ("alice", 1), "b": ("alice", 1), "c": ("alice", 5),
        "d": ("bob", 1), "e": ("bob", 1), "f": ("bob", 1),
    })
    state.victory_threshold = 0.6  # ceil(3.6) = 4 territories
    state = _apply(state, actions.start_combat("alice", "c", "d"), tiny_map)
    state = _apply(state, actions.execute_exchange("alice", 5, 0), tiny_map)
    state = _apply(state, actions.complete_conquest("alice", 4), tiny_map)
    assert state.winner == "alice"
    assert not state.get_player("bob").eliminated
