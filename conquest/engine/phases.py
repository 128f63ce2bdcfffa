"""
Turn phases, which actions each phase allows, and when a phase may be left.
"""

from conquest.engine.definitions import MapDefinition
from conquest.engine.movement import has_valid_fortification_moves
from conquest.engine.state import GameState

INITIAL_SETUP = "initial_setup"
INITIAL_PLACEMENT = "initial_placement"
DEPLOY = "deploy"
REINFORCE = "reinforce"
ATTACK = "attack"
FORTIFY = "fortify"

SETUP_PHASES = (INITIAL_SETUP, INITIAL_PLACEMENT)
PLACEMENT_PHASES = (INITIAL_PLACEMENT, DEPLOY, REINFORCE)

# Per-turn order; deploy replaces reinforce on each player's first turn
PHASE_SEQUENCE = [REINFORCE, ATTACK, FORTIFY]
INITIAL_PHASE_SEQUENCE = [DEPLOY, ATTACK, FORTIFY]

# Phase rules: which action types are allowed in which phases
# Note: while a combat is active only exchanges, conquest transfer, end_combat
# and advance_phase are accepted (see reducer)
PHASE_ALLOWED_ACTIONS = {
    INITIAL_SETUP: ["claim_territory", "assign_territories", "advance_phase"],
    INITIAL_PLACEMENT: ["place_armies", "advance_phase"],
    DEPLOY: ["place_armies", "advance_phase"],
    REINFORCE: ["place_armies", "advance_phase"],
    ATTACK: ["start_combat", "execute_exchange", "complete_conquest", "end_combat", "advance_phase"],
    FORTIFY: ["fortify", "skip_fortification", "advance_phase"],
}

COMBAT_ACTIONS = ["execute_exchange", "complete_conquest", "end_combat", "advance_phase"]


def turn_start_phase(state: GameState) -> str:
    return REINFORCE if state.initial_deployment_complete else DEPLOY


def next_phase(state: GameState) -> str | None:
    """Phase after the current one within a turn; None when the turn ends after it."""
    if state.phase == INITIAL_SETUP:
        return INITIAL_PLACEMENT
    if state.phase == INITIAL_PLACEMENT:
        return DEPLOY
    sequence = INITIAL_PHASE_SEQUENCE if state.phase == DEPLOY else PHASE_SEQUENCE
    if state.phase not in sequence:
        return None
    idx = sequence.index(state.phase)
    if idx + 1 < len(sequence):
        return sequence[idx + 1]
    return None


def all_territories_claimed(state: GameState) -> bool:
    return all(ts.owner is not None for ts in state.territories.values())


def all_pools_empty(state: GameState) -> bool:
    return all(state.remaining_armies.get(name, 0) == 0 for name in state.active_players())


def is_phase_complete(state: GameState, map_def: MapDefinition) -> bool:
    """Whether the current phase's completion requirement holds."""
    phase = state.phase
    if phase == INITIAL_SETUP:
        return all_territories_claimed(state)
    if phase == INITIAL_PLACEMENT:
        return all_pools_empty(state)
    if phase in (DEPLOY, REINFORCE):
        return state.remaining_armies.get(state.current_player, 0) == 0
    if phase == ATTACK:
        return True
    if phase == FORTIFY:
        return state.fortification_used or not has_valid_fortification_moves(
            state, map_def, state.current_player
        )
    return False


def can_skip_phase(phase: str) -> bool:
    return phase in (ATTACK, FORTIFY)


def can_interact_with_territory(state: GameState, territory_id: str) -> bool:
    """Whether a click on territory_id can mean anything for the current player."""
    territory = state.territories.get(territory_id)
    if territory is None or state.winner is not None:
        return False
    player = state.current_player
    if state.phase == INITIAL_SETUP:
        return territory.owner is None
    if state.phase in PLACEMENT_PHASES:
        return territory.owner == player and state.remaining_armies.get(player, 0) > 0
    if state.phase == ATTACK:
        # own territory as source, anyone else's as target
        return territory.owner is not None
    if state.phase == FORTIFY:
        return territory.owner == player and not state.fortification_used
    return False
