"""
Main game reducer.
Applies actions to state, enforcing rules and producing new state.
Returns (new_state, events) where events describe what happened.
The input state is never modified, so a rejected action leaves it untouched.
"""

import logging
import math

from conquest.engine.actions import Action
from conquest.engine.combat import complete_conquest, end_combat, execute_exchange, start_combat
from conquest.engine.definitions import MapDefinition
from conquest.engine.errors import ErrorKind, RulesError
from conquest.engine.events import (
    GameEvent,
    armies_fortified,
    armies_placed,
    combat_ended,
    combat_started,
    conquest_completed,
    exchange_resolved,
    fortification_skipped,
    phase_changed,
    player_eliminated,
    reinforcements_granted,
    territories_assigned,
    territory_claimed,
    territory_conquered,
    turn_started,
    victory,
)
from conquest.engine.movement import find_path, move_armies
from conquest.engine.phases import (
    ATTACK,
    COMBAT_ACTIONS,
    DEPLOY,
    FORTIFY,
    INITIAL_PLACEMENT,
    INITIAL_SETUP,
    PHASE_ALLOWED_ACTIONS,
    REINFORCE,
    all_pools_empty,
    all_territories_claimed,
    is_phase_complete,
    next_phase,
    turn_start_phase,
)
from conquest.engine.reinforcement import controlled_continents, deploy_armies, grant_reinforcements
from conquest.engine.state import COMBAT_CONQUERED, GameState
from conquest.engine.utils import assign_territories_randomly

logger = logging.getLogger(__name__)

KNOWN_ACTIONS = {t for types in PHASE_ALLOWED_ACTIONS.values() for t in types}


def _validate_action_for_phase(action: Action, state: GameState) -> None:
    """Validate that an action is allowed in the current phase."""
    if action.type not in KNOWN_ACTIONS:
        raise RulesError(ErrorKind.UNKNOWN_ACTION, f"Unknown action type: {action.type}")
    allowed_actions = PHASE_ALLOWED_ACTIONS.get(state.phase, [])
    if action.type not in allowed_actions:
        raise RulesError(
            ErrorKind.WRONG_PHASE,
            f"Action '{action.type}' is not allowed in phase '{state.phase}'. "
            f"Allowed actions: {', '.join(allowed_actions)}",
        )
    if state.active_combat is not None and action.type not in COMBAT_ACTIONS:
        raise RulesError(
            ErrorKind.COMBAT_ALREADY_ACTIVE,
            f"Combat in progress. Must use one of: {', '.join(COMBAT_ACTIONS)}",
        )


def apply_action(
    state: GameState,
    action: Action,
    map_def: MapDefinition,
) -> tuple[GameState, list[GameEvent]]:
    """
    Apply a single action to the current state, returning new state and events.

    Validates:
    - The game is not over
    - Action player is the current player
    - Action is valid for the current phase

    Raises RulesError on any rule violation.
    """
    if state.winner is not None:
        raise RulesError(ErrorKind.GAME_OVER, f"Game is over. {state.winner} has won.")

    if action.player != state.current_player:
        raise RulesError(
            ErrorKind.NOT_CURRENT_PLAYER,
            f"Not {action.player}'s turn. Current player: {state.current_player}",
        )

    _validate_action_for_phase(action, state)

    new_state = state.copy()
    events: list[GameEvent] = []

    if action.type == "claim_territory":
        _handle_claim_territory(new_state, action, map_def, events)
    elif action.type == "assign_territories":
        _handle_assign_territories(new_state, action, map_def, events)
    elif action.type == "place_armies":
        _handle_place_armies(new_state, action, map_def, events)
    elif action.type == "start_combat":
        _handle_start_combat(new_state, action, map_def, events)
    elif action.type == "execute_exchange":
        _handle_execute_exchange(new_state, action, events)
    elif action.type == "complete_conquest":
        _handle_complete_conquest(new_state, action, events)
    elif action.type == "end_combat":
        _handle_end_combat(new_state, events)
    elif action.type == "fortify":
        _handle_fortify(new_state, action, map_def, events)
    elif action.type == "skip_fortification":
        _handle_skip_fortification(new_state, action, events)
    elif action.type == "advance_phase":
        _handle_advance_phase(new_state, map_def, events)
    else:
        raise RulesError(ErrorKind.UNKNOWN_ACTION, f"Unknown action type: {action.type}")

    logger.debug("Applied %s by %s (%d events)", action.type, action.player, len(events))
    return new_state, events


def _payload_int(action: Action, key: str) -> int:
    value = action.payload.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise RulesError(ErrorKind.INVALID_ARMY_COUNT, f"'{key}' must be an integer (got {value!r})")
    return value


# ===== Setup =====

def _handle_claim_territory(
    state: GameState,
    action: Action,
    map_def: MapDefinition,
    events: list[GameEvent],
) -> None:
    player = action.player
    territory_id = action.payload.get("territory_id")
    territory = state.territories.get(territory_id)
    if territory is None:
        raise RulesError(ErrorKind.INVALID_TERRITORY, f"Invalid territory: {territory_id}")
    if territory.owner is not None:
        raise RulesError(
            ErrorKind.TERRITORY_ALREADY_CLAIMED,
            f"{territory_id} is already claimed by {territory.owner}",
        )
    if state.remaining_armies.get(player, 0) < 1:
        raise RulesError(ErrorKind.INSUFFICIENT_REINFORCEMENTS, f"{player} has no armies left to place")

    territory.owner = player
    territory.armies = 1
    state.remaining_armies[player] -= 1
    state.armies_placed += 1
    events.append(territory_claimed(player, territory_id))

    if all_territories_claimed(state):
        _enter_initial_placement(state, map_def, events)
    else:
        _pass_to_next_player(state, with_armies=True)


def _handle_assign_territories(
    state: GameState,
    action: Action,
    map_def: MapDefinition,
    events: list[GameEvent],
) -> None:
    seed = action.payload.get("seed")
    assignments = assign_territories_randomly(state, seed)
    events.append(territories_assigned(assignments, seed))
    _enter_initial_placement(state, map_def, events)


def _enter_initial_placement(state: GameState, map_def: MapDefinition, events: list[GameEvent]) -> None:
    """All territories are owned: players now place the rest of their pools in turn."""
    old_phase = state.phase
    state.phase = INITIAL_PLACEMENT
    state.current_player_index = _first_active_index(state)
    events.append(phase_changed(old_phase, INITIAL_PLACEMENT, state.current_player))
    if all_pools_empty(state):
        _begin_first_turn(state, map_def, events)
    elif state.remaining_armies.get(state.current_player, 0) == 0:
        _pass_to_next_player(state, with_armies=True)


def _begin_first_turn(state: GameState, map_def: MapDefinition, events: list[GameEvent]) -> None:
    """Initial placement is over; turn 1 starts with the first player's deploy phase."""
    state.current_player_index = _first_active_index(state)
    state.turn_number = 1
    events.append(turn_started(state.turn_number, state.current_player))
    _enter_phase(state, map_def, DEPLOY, events)


# ===== Deployment =====

def _handle_place_armies(
    state: GameState,
    action: Action,
    map_def: MapDefinition,
    events: list[GameEvent],
) -> None:
    player = action.player
    territory_id = action.payload.get("territory_id")
    count = _payload_int(action, "count")
    deploy_armies(state, player, territory_id, count)
    events.append(armies_placed(player, territory_id, count, state.remaining_armies.get(player, 0)))

    if state.phase == INITIAL_PLACEMENT:
        if all_pools_empty(state):
            _begin_first_turn(state, map_def, events)
        else:
            _pass_to_next_player(state, with_armies=True)


# ===== Combat =====

def _handle_start_combat(
    state: GameState,
    action: Action,
    map_def: MapDefinition,
    events: list[GameEvent],
) -> None:
    attacker_id = action.payload.get("attacker_id")
    defender_id = action.payload.get("defender_id")
    combat = start_combat(state, map_def, attacker_id, defender_id)
    events.append(combat_started(
        attacker_id,
        defender_id,
        combat.initial_state["attacker_owner"],
        combat.initial_state["defender_owner"],
        combat.initial_state["attacker_armies"],
        combat.initial_state["defender_armies"],
    ))


def _handle_execute_exchange(state: GameState, action: Action, events: list[GameEvent]) -> None:
    attacker_remaining = _payload_int(action, "attacker_remaining")
    defender_remaining = _payload_int(action, "defender_remaining")
    combat = state.active_combat
    result = execute_exchange(state, attacker_remaining, defender_remaining)
    attacker = combat.initial_state.get("attacker_owner")
    defender = combat.initial_state.get("defender_owner")
    events.append(exchange_resolved(
        combat.attacker_id,
        combat.defender_id,
        attacker,
        defender,
        result.to_dict(),
    ))
    if result.conquered:
        events.append(territory_conquered(combat.defender_id, defender, attacker, combat.round_number))


def _handle_complete_conquest(state: GameState, action: Action, events: list[GameEvent]) -> None:
    armies = _payload_int(action, "armies")
    combat = state.active_combat
    result = complete_conquest(state, armies)
    events.append(conquest_completed(combat.attacker_id, combat.defender_id, action.player, result.armies_moved))
    events.append(combat_ended(combat.attacker_id, combat.defender_id, "conquered", combat.round_number))
    _check_elimination(state, result.previous_owner, action.player, events)
    _check_victory(state, events)


def _handle_end_combat(state: GameState, events: list[GameEvent]) -> None:
    combat = end_combat(state)
    events.append(combat_ended(combat.attacker_id, combat.defender_id, "retreated", combat.round_number))


def _check_elimination(
    state: GameState,
    player: str | None,
    eliminated_by: str,
    events: list[GameEvent],
) -> None:
    """Flag a player with no territories left as eliminated."""
    if player is None:
        return
    pstate = state.get_player(player)
    if pstate is None or pstate.eliminated or state.territories_owned_by(player):
        return
    pstate.eliminated = True
    state.remaining_armies[player] = 0
    events.append(player_eliminated(player, eliminated_by))
    logger.info("%s was eliminated by %s", player, eliminated_by)


def _check_victory(state: GameState, events: list[GameEvent]) -> None:
    """
    A player wins by owning at least victory_threshold of all territories,
    or by being the last player not eliminated.
    """
    total = len(state.territories)
    if total == 0:
        return
    required = max(1, math.ceil(state.victory_threshold * total - 1e-9))
    counts = {name: len(state.territories_owned_by(name)) for name in state.player_names()}
    active = state.active_players()
    winner = None
    for name in active:
        if counts[name] >= required:
            winner = name
            break
    if winner is None and len(active) == 1:
        winner = active[0]
    if winner is None:
        return
    state.winner = winner
    events.append(victory(winner, counts, required))
    logger.info("%s has won the game with %d of %d territories", winner, counts[winner], total)


# ===== Fortification =====

def _handle_fortify(
    state: GameState,
    action: Action,
    map_def: MapDefinition,
    events: list[GameEvent],
) -> None:
    player = action.player
    source = action.payload.get("source")
    destination = action.payload.get("destination")
    count = _payload_int(action, "count")

    if state.fortification_used:
        raise RulesError(ErrorKind.FORTIFICATION_USED, "Fortification already used this turn")
    src = state.territories.get(source)
    dst = state.territories.get(destination)
    if src is None or dst is None:
        raise RulesError(ErrorKind.INVALID_TERRITORY, f"Invalid territory: {source} or {destination}")
    if src.owner != player or dst.owner != player:
        raise RulesError(ErrorKind.NOT_OWNER, f"{player} must own both {source} and {destination}")
    path = find_path(state, map_def, source, destination) if source != destination else None
    if path is None:
        raise RulesError(
            ErrorKind.NOT_REACHABLE,
            f"{destination} is not connected to {source} through {player}'s territories",
        )
    move_armies(state, source, destination, count)
    state.fortification_used = True
    events.append(armies_fortified(player, source, destination, count, path))


def _handle_skip_fortification(state: GameState, action: Action, events: list[GameEvent]) -> None:
    if state.fortification_used:
        raise RulesError(ErrorKind.FORTIFICATION_USED, "Fortification already used this turn")
    state.fortification_used = True
    events.append(fortification_skipped(action.player))


# ===== Phase / turn progression =====

def _handle_advance_phase(state: GameState, map_def: MapDefinition, events: list[GameEvent]) -> None:
    """
    Leave the current phase if its requirement is met.
    Leaving attack closes an open combat; a conquest still waiting for its
    army transfer blocks the phase change.
    """
    if state.phase == ATTACK and state.active_combat is not None:
        combat = state.active_combat
        if combat.status == COMBAT_CONQUERED:
            raise RulesError(
                ErrorKind.CONQUEST_PENDING,
                "Move armies into the conquered territory before ending the attack phase",
            )
        end_combat(state)
        events.append(combat_ended(combat.attacker_id, combat.defender_id, "phase_ended", combat.round_number))

    if not is_phase_complete(state, map_def):
        raise RulesError(ErrorKind.PHASE_INCOMPLETE, _incomplete_reason(state))

    if state.phase == INITIAL_SETUP:
        _enter_initial_placement(state, map_def, events)
        return
    if state.phase == INITIAL_PLACEMENT:
        _begin_first_turn(state, map_def, events)
        return

    nxt = next_phase(state)
    if nxt is None:
        _end_turn(state, map_def, events)
    else:
        _enter_phase(state, map_def, nxt, events)


def _incomplete_reason(state: GameState) -> str:
    if state.phase in (DEPLOY, REINFORCE):
        remaining = state.remaining_armies.get(state.current_player, 0)
        return f"{state.current_player} must place {remaining} more armies before leaving {state.phase}"
    if state.phase == FORTIFY:
        return "Fortify or skip fortification before ending the turn"
    return f"Phase {state.phase} is not complete"


def _enter_phase(state: GameState, map_def: MapDefinition, new_phase: str, events: list[GameEvent]) -> None:
    """Switch phase and apply its entry side effects."""
    old_phase = state.phase
    state.phase = new_phase
    player = state.current_player
    events.append(phase_changed(old_phase, new_phase, player))

    if new_phase in (DEPLOY, REINFORCE):
        amount = grant_reinforcements(state, map_def, player)
        events.append(reinforcements_granted(player, amount, controlled_continents(state, map_def, player)))
    elif new_phase == ATTACK:
        state.active_combat = None
    elif new_phase == FORTIFY:
        state.fortification_used = False


def _end_turn(state: GameState, map_def: MapDefinition, events: list[GameEvent]) -> None:
    """Pass the turn to the next player still in the game."""
    wrapped = _pass_to_next_player(state)
    if wrapped:
        state.turn_number += 1
        state.initial_deployment_complete = True
    events.append(turn_started(state.turn_number, state.current_player))
    _enter_phase(state, map_def, turn_start_phase(state), events)


def _first_active_index(state: GameState) -> int:
    for i, p in enumerate(state.players):
        if not p.eliminated:
            return i
    return 0


def _pass_to_next_player(state: GameState, with_armies: bool = False) -> bool:
    """
    Move current_player_index to the next non-eliminated player (optionally one
    with armies left to place). Returns True if the index wrapped past the end.
    """
    count = len(state.players)
    old_index = state.current_player_index
    for step in range(1, count + 1):
        idx = (old_index + step) % count
        p = state.players[idx]
        if p.eliminated:
            continue
        if with_armies and state.remaining_armies.get(p.name, 0) <= 0:
            continue
        state.current_player_index = idx
        return idx <= old_index
    return False


def replay_from_actions(
    initial_state: GameState,
    actions: list[Action],
    map_def: MapDefinition,
) -> tuple[GameState, list[GameEvent]]:
    """
    Replay a sequence of actions from an initial state.
    Useful for debugging, testing, and game replays.

    Returns:
        Tuple of (final_state, all_events)
    """
    state = initial_state
    all_events: list[GameEvent] = []
    for action in actions:
        state, events = apply_action(state, action, map_def)
        all_events.extend(events)
    return state, all_events
