"""
Query functions for UI integration.
These functions help the UI understand what actions are available
without mutating game state.
"""

import math
from dataclasses import dataclass
from typing import Any

from conquest.engine import MIN_ATTACKING_ARMIES, MIN_GARRISON
from conquest.engine.actions import Action
from conquest.engine.combat import get_attack_targets
from conquest.engine.definitions import MapDefinition
from conquest.engine.errors import ErrorKind, RulesError
from conquest.engine.movement import can_fortify_from, find_reachable_owned_territories
from conquest.engine.phases import (
    ATTACK,
    COMBAT_ACTIONS,
    FORTIFY,
    PHASE_ALLOWED_ACTIONS,
    PLACEMENT_PHASES,
    can_interact_with_territory,
    can_skip_phase,
    is_phase_complete,
)
from conquest.engine.reducer import apply_action
from conquest.engine.reinforcement import (
    calculate_reinforcements,
    controlled_continents,
    get_continent_control_info,
)
from conquest.engine.state import COMBAT_CONQUERED, GameState


@dataclass
class ValidationResult:
    """Result of action validation."""
    valid: bool
    error: ErrorKind | None = None
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "error": str(self.error) if self.error else None,
            "message": self.message,
        }


# ===== Action Validation =====

def validate_action(state: GameState, action: Action, map_def: MapDefinition) -> ValidationResult:
    """
    Validate an action without applying it.
    Runs the reducer on a copy of the state, so the answer always matches apply_action.
    """
    try:
        apply_action(state, action, map_def)
    except RulesError as e:
        return ValidationResult(False, e.kind, e.message)
    return ValidationResult(True)


def get_available_action_types(state: GameState) -> list[str]:
    """Get list of action types available in the current phase and combat state."""
    if state.winner is not None:
        return []
    allowed = PHASE_ALLOWED_ACTIONS.get(state.phase, [])
    if state.active_combat is None:
        return [a for a in allowed if a not in ("execute_exchange", "complete_conquest", "end_combat")]
    if state.active_combat.status == COMBAT_CONQUERED:
        return ["complete_conquest"]
    return [a for a in COMBAT_ACTIONS if a != "complete_conquest"]


# ===== Attack =====

def get_attack_sources(state: GameState, map_def: MapDefinition, player: str | None = None) -> list[str]:
    """Territories the player can attack from: enough armies and at least one enemy neighbor."""
    player = player or state.current_player
    return sorted(
        tid for tid in state.territories_owned_by(player)
        if state.territories[tid].armies >= MIN_ATTACKING_ARMIES
        and get_attack_targets(state, map_def, tid)
    )


def get_attack_options(state: GameState, map_def: MapDefinition, territory_id: str) -> list[dict[str, Any]]:
    """Targets from territory_id with owner and army count (for attack path display)."""
    out = []
    for tid in get_attack_targets(state, map_def, territory_id):
        ts = state.territories[tid]
        out.append({"territory_id": tid, "owner": ts.owner, "armies": ts.armies})
    return out


def get_combat_summary(state: GameState) -> dict[str, Any] | None:
    """Current combat with live army counts, or None."""
    combat = state.active_combat
    if combat is None:
        return None
    attacker = state.territories[combat.attacker_id]
    defender = state.territories[combat.defender_id]
    return {
        **combat.to_dict(),
        "attacker_armies": attacker.armies,
        "defender_armies": defender.armies,
        "round_number": combat.round_number,
        "can_continue": combat.status != COMBAT_CONQUERED and attacker.armies >= MIN_ATTACKING_ARMIES,
        "max_conquest_armies": attacker.armies - MIN_GARRISON if combat.status == COMBAT_CONQUERED else 0,
    }


# ===== Fortify =====

def get_fortification_sources(state: GameState, map_def: MapDefinition, player: str | None = None) -> list[str]:
    player = player or state.current_player
    return sorted(tid for tid in state.territories_owned_by(player) if can_fortify_from(state, map_def, tid))


def get_fortification_destinations(state: GameState, map_def: MapDefinition, source: str) -> list[str]:
    return sorted(find_reachable_owned_territories(state, map_def, source))


# ===== Players =====

def get_player_stats(state: GameState, map_def: MapDefinition) -> dict[str, Any]:
    """Territories, armies, continents and reinforcement preview per player."""
    out = {}
    for p in state.players:
        owned = state.territories_owned_by(p.name)
        out[p.name] = {
            "color": p.color,
            "eliminated": p.eliminated,
            "territories": len(owned),
            "armies": state.total_armies_of(p.name),
            "remaining_armies": state.remaining_armies.get(p.name, 0),
            "continents": controlled_continents(state, map_def, p.name),
            "reinforcements_per_turn": calculate_reinforcements(state, map_def, p.name) if owned else 0,
        }
    return out


def get_victory_progress(state: GameState) -> dict[str, Any]:
    """Territory counts against the number needed to win."""
    total = len(state.territories)
    required = max(1, math.ceil(state.victory_threshold * total - 1e-9)) if total else 0
    counts = {name: len(state.territories_owned_by(name)) for name in state.player_names()}
    return {
        "winner": state.winner,
        "threshold": state.victory_threshold,
        "territories_required": required,
        "territory_counts": counts,
        "progress": {name: (c / required if required else 0.0) for name, c in counts.items()},
    }


def get_available_actions(state: GameState, map_def: MapDefinition) -> dict[str, Any]:
    """Everything a UI needs to render the current player's options."""
    player = state.current_player
    out: dict[str, Any] = {
        "current_player": player,
        "phase": state.phase,
        "turn_number": state.turn_number,
        "action_types": get_available_action_types(state),
        "can_advance_phase": state.winner is None and is_phase_complete(state, map_def)
        and not (state.active_combat is not None and state.active_combat.status == COMBAT_CONQUERED),
        "can_skip_phase": can_skip_phase(state.phase),
        "winner": state.winner,
        "clickable_territories": sorted(
            tid for tid in state.territories if can_interact_with_territory(state, tid)
        ),
    }
    if state.phase in PLACEMENT_PHASES:
        out["remaining_armies"] = state.remaining_armies.get(player, 0)
        out["placeable_territories"] = sorted(state.territories_owned_by(player))
        out["continents"] = get_continent_control_info(state, map_def, player)
    elif state.phase == ATTACK:
        out["attack_sources"] = get_attack_sources(state, map_def, player)
        out["combat"] = get_combat_summary(state)
    elif state.phase == FORTIFY:
        out["fortification_used"] = state.fortification_used
        out["fortification_sources"] = [] if state.fortification_used else get_fortification_sources(
            state, map_def, player
        )
    else:
        out["unclaimed_territories"] = sorted(
            tid for tid, ts in state.territories.items() if ts.owner is None
        )
        out["remaining_armies"] = state.remaining_armies.get(player, 0)
    return out


def get_game_summary(state: GameState, map_def: MapDefinition) -> dict[str, Any]:
    return {
        "turn_number": state.turn_number,
        "current_player": state.current_player,
        "phase": state.phase,
        "players": get_player_stats(state, map_def),
        "victory": get_victory_progress(state),
        "combat": get_combat_summary(state),
    }
