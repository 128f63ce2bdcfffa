"""
Reinforcement calculation and army deployment.
"""

from conquest.engine import (
    DEFAULT_INITIAL_ARMIES,
    INITIAL_ARMIES_BY_PLAYER_COUNT,
    MIN_REINFORCEMENTS,
    TERRITORIES_PER_REINFORCEMENT,
)
from conquest.engine.definitions import MapDefinition
from conquest.engine.errors import ErrorKind, RulesError
from conquest.engine.state import GameState


def get_initial_armies(player_count: int) -> int:
    """Starting pool per player, before any territory is claimed."""
    return INITIAL_ARMIES_BY_PLAYER_COUNT.get(player_count, DEFAULT_INITIAL_ARMIES)


def controlled_continents(state: GameState, map_def: MapDefinition, player: str) -> list[str]:
    """Continents in which the player owns every territory."""
    out = []
    for cid, cdef in map_def.continents.items():
        if cdef.territories and all(
            tid in state.territories and state.territories[tid].owner == player
            for tid in cdef.territories
        ):
            out.append(cid)
    return out


def calculate_continent_bonus(state: GameState, map_def: MapDefinition, player: str) -> int:
    bonuses = state.continent_bonuses or map_def.continent_bonuses()
    return sum(bonuses.get(cid, 0) for cid in controlled_continents(state, map_def, player))


def calculate_reinforcements(state: GameState, map_def: MapDefinition, player: str) -> int:
    """
    Armies granted at the start of a reinforce/deploy phase:
    max(3, owned territories // 3) plus every fully held continent's bonus.
    """
    owned = len(state.territories_owned_by(player))
    base = max(MIN_REINFORCEMENTS, owned // TERRITORIES_PER_REINFORCEMENT)
    return base + calculate_continent_bonus(state, map_def, player)


def grant_reinforcements(state: GameState, map_def: MapDefinition, player: str) -> int:
    """Set both the granted and remaining pools for player. Returns the amount."""
    amount = calculate_reinforcements(state, map_def, player)
    state.reinforcements[player] = amount
    state.remaining_armies[player] = amount
    return amount


def get_continent_control_info(state: GameState, map_def: MapDefinition, player: str) -> list[dict]:
    """Per-continent progress for a player (for UI panels and stats)."""
    bonuses = state.continent_bonuses or map_def.continent_bonuses()
    info = []
    for cid, cdef in map_def.continents.items():
        total = len(cdef.territories)
        owned = sum(
            1 for tid in cdef.territories
            if tid in state.territories and state.territories[tid].owner == player
        )
        info.append({
            "continent_id": cid,
            "name": cdef.display_name,
            "bonus": bonuses.get(cid, cdef.bonus),
            "owned": owned,
            "total": total,
            "controlled": total > 0 and owned == total,
            "progress": owned / total if total else 0.0,
        })
    return info


def deploy_armies(state: GameState, player: str, territory_id: str, count: int) -> None:
    """Place count armies from the player's pool onto one of their territories."""
    territory = state.territories.get(territory_id)
    if territory is None:
        raise RulesError(ErrorKind.INVALID_TERRITORY, f"Invalid territory: {territory_id}")
    if territory.owner != player:
        raise RulesError(ErrorKind.NOT_OWNER, f"{territory_id} is not owned by {player}")
    if count < 1:
        raise RulesError(ErrorKind.INVALID_ARMY_COUNT, f"Must place at least 1 army (got {count})")
    remaining = state.remaining_armies.get(player, 0)
    if count > remaining:
        raise RulesError(
            ErrorKind.INSUFFICIENT_REINFORCEMENTS,
            f"{player} has only {remaining} armies left to place (requested {count})",
        )
    territory.armies += count
    state.remaining_armies[player] = remaining - count
    state.armies_placed += count
