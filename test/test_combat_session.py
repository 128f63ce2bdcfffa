"""
Combat sessions through the reducer: start, exchanges, conquest transfer, retreat.
"""

import pytest

from conquest.engine import actions
from conquest.engine.errors import ErrorKind, RulesError
from conquest.engine.events import (
    COMBAT_ENDED,
    COMBAT_STARTED,
    CONQUEST_COMPLETED,
    EXCHANGE_RESOLVED,
    TERRITORY_CONQUERED,
)
from conquest.engine.reducer import apply_action
from conquest.engine.state import COMBAT_CONQUERED, COMBAT_IN_PROGRESS, check_invariants


def _rejected(state, action, map_def):
    with pytest.raises(RulesError) as exc:
        apply_action(state, action, map_def)
    return exc.value.kind


def _attack(state, map_def, source="c", target="d"):
    state, events = apply_action(state, actions.start_combat("alice", source, target), map_def)
    return state, events


def test_start_combat_records_initial_state(split_board, tiny_map):
    state, events = _attack(split_board, tiny_map)
    combat = state.active_combat
    assert combat.attacker_id == "c"
    assert combat.defender_id == "d"
    assert combat.initial_state["attacker_armies"] == 5
    assert combat.initial_state["defender_owner"] == "bob"
    assert [e.type for e in events] == [COMBAT_STARTED]
    assert split_board.active_combat is None


@pytest.mark.parametrize("source,target,kind", [
    ("c", "zz", ErrorKind.INVALID_TERRITORY),
    ("d", "c", ErrorKind.NOT_OWNER),
    ("a", "c", ErrorKind.CANNOT_ATTACK_OWN_TERRITORY),
    ("a", "d", ErrorKind.NOT_ADJACENT),
])
def test_start_combat_rejections(split_board, tiny_map, source, target, kind):
    assert _rejected(split_board, actions.start_combat("alice", source, target), tiny_map) == kind


def test_attacker_needs_two_armies(make_state, tiny_map):
    state = make_state({
        "a": ("alice", 1), "b": ("alice", 1), "c": ("alice", 1),
        "d": ("bob", 3), "e": ("bob", 1), "f": ("bob", 1),
    })
    kind = _rejected(state, actions.start_combat("alice", "c", "d"), tiny_map)
    assert kind == ErrorKind.INSUFFICIENT_ATTACKER_FORCE


def test_only_one_combat_at_a_time(split_board, tiny_map):
    state, _ = _attack(split_board, tiny_map)
    kind = _rejected(state, actions.start_combat("alice", "c", "d"), tiny_map)
    assert kind == ErrorKind.COMBAT_ALREADY_ACTIVE


def test_exchange_updates_armies_and_history(split_board, tiny_map):
    state, _ = _attack(split_board, tiny_map)
    state, events = apply_action(state, actions.execute_exchange("alice", 4, 2), tiny_map)

    assert state.territories["c"].armies == 4
    assert state.territories["d"].armies == 2
    assert state.armies_lost == 2
    assert state.active_combat.status == COMBAT_IN_PROGRESS
    assert state.active_combat.round_number == 1
    assert [e.type for e in events] == [EXCHANGE_RESOLVED]
    payload = events[0].payload
    assert payload["attacker_losses"] == 1
    assert payload["defender_losses"] == 1
    assert payload["can_continue"]
    check_invariants(state)


def test_invalid_exchange_leaves_state_untouched(split_board, tiny_map):
    state, _ = _attack(split_board, tiny_map)
    before = state.to_dict()
    kind = _rejected(state, actions.execute_exchange("alice", 6, 1), tiny_map)
    assert kind == ErrorKind.ARMY_COUNT_INCREASED
    assert state.to_dict() == before


def test_exchange_without_combat(split_board, tiny_map):
    kind = _rejected(split_board, actions.execute_exchange("alice", 4, 0), tiny_map)
    assert kind == ErrorKind.NO_ACTIVE_COMBAT


def test_conquest_flow(split_board, tiny_map):
    state, _ = _attack(split_board, tiny_map)
    state, events = apply_action(state, actions.execute_exchange("alice", 4, 0), tiny_map)

    d = state.territories["d"]
    assert d.owner == "alice"
    assert d.armies == 0
    assert state.active_combat.status == COMBAT_CONQUERED
    assert [e.type for e in events] == [EXCHANGE_RESOLVED, TERRITORY_CONQUERED]
    assert events[1].payload["old_owner"] == "bob"
    # Conquered territory may sit at 0 armies until the transfer
    check_invariants(state)

    assert _rejected(state, actions.execute_exchange("alice", 4, 0), tiny_map) == ErrorKind.CONQUEST_PENDING
    assert _rejected(state, actions.end_combat("alice"), tiny_map) == ErrorKind.CONQUEST_PENDING
    assert _rejected(state, actions.advance_phase("alice"), tiny_map) == ErrorKind.CONQUEST_PENDING

    state, events = apply_action(state, actions.complete_conquest("alice", 3), tiny_map)
    assert state.territories["c"].armies == 1
    assert state.territories["d"].armies == 3
    assert state.active_combat is None
    assert [e.type for e in events][:2] == [CONQUEST_COMPLETED, COMBAT_ENDED]
    assert events[1].payload["result"] == "conquered"
    check_invariants(state)


@pytest.mark.parametrize("armies", [0, 4, -1])
def test_conquest_transfer_bounds(split_board, tiny_map, armies):
    state, _ = _attack(split_board, tiny_map)
    state, _ = apply_action(state, actions.execute_exchange("alice", 4, 0), tiny_map)
    kind = _rejected(state, actions.complete_conquest("alice", armies), tiny_map)
    assert kind == ErrorKind.INVALID_TRANSFER_COUNT


def test_complete_conquest_before_conquest(split_board, tiny_map):
    state, _ = _attack(split_board, tiny_map)
    assert _rejected(state, actions.complete_conquest("alice", 1), tiny_map) == ErrorKind.NOT_CONQUERED
    kind = _rejected(split_board, actions.complete_conquest("alice", 1), tiny_map)
    assert kind == ErrorKind.NO_ACTIVE_COMBAT


def test_retreat_keeps_losses(split_board, tiny_map):
    state, _ = _attack(split_board, tiny_map)
    state, _ = apply_action(state, actions.execute_exchange("alice", 3, 3), tiny_map)
    state, events = apply_action(state, actions.end_combat("alice"), tiny_map)
    assert state.active_combat is None
    assert state.territories["c"].armies == 3
    assert events[0].payload["result"] == "retreated"
    assert events[0].payload["total_rounds"] == 1


def test_attacker_reduced_to_one_cannot_continue(split_board, tiny_map):
    state, _ = _attack(split_board, tiny_map)
    state, events = apply_action(state, actions.execute_exchange("alice", 1, 3), tiny_map)
    assert not events[0].payload["can_continue"]
    assert events[0].payload["battle_complete"]
    kind = _rejected(state, actions.execute_exchange("alice", 1, 3), tiny_map)
    assert kind == ErrorKind.INSUFFICIENT_ATTACKER_FORCE


def test_advancing_closes_open_combat(split_board, tiny_map):
    state, _ = _attack(split_board, tiny_map)
    state, events = apply_action(state, actions.advance_phase("alice"), tiny_map)
    assert state.active_combat is None
    assert state.phase == "fortify"
    assert events[0].type == COMBAT_ENDED
    assert events[0].payload["result"] == "phase_ended"


def test_three_step_battle(split_board, tiny_map):
    state, _ = _attack(split_board, tiny_map)

    state, events = apply_action(state, actions.execute_exchange("alice", 4, 1), tiny_map)
    payload = events[0].payload
    assert (payload["attacker_losses"], payload["defender_losses"]) == (1, 2)
    assert not payload["conquered"]
    assert payload["can_continue"]
    assert state.territories["d"].owner == "bob"

    state, events = apply_action(state, actions.execute_exchange("alice", 4, 0), tiny_map)
    assert events[0].payload["conquered"]
    assert state.active_combat.status == COMBAT_CONQUERED

    state, _ = apply_action(state, actions.complete_conquest("alice", 2), tiny_map)
    assert state.territories["c"].armies == 2
    assert state.territories["d"].armies == 2
    assert state.territories["d"].owner == "alice"
    assert state.active_combat is None
    check_invariants(state)


def test_attacker_with_two_armies_must_keep_one(make_state, tiny_map):
    state = make_state({
        "a": ("alice", 1), "b": ("alice", 1), "c": ("alice", 2),
        "d": ("bob", 3), "e": ("bob", 1), "f": ("bob", 1),
    })
    state, _ = _attack(state, tiny_map)
    before = state.to_dict()
    kind = _rejected(state, actions.execute_exchange("alice", 0, 3), tiny_map)
    assert kind == ErrorKind.ATTACKER_MUST_RETAIN_FORCE
    assert state.to_dict() == before
