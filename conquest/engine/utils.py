"""
Setup helpers and debug printing.
"""

import random

from conquest.engine import DEFAULT_PLAYER_COLORS, MIN_GARRISON
from conquest.engine.definitions import MapDefinition
from conquest.engine.errors import ErrorKind, RulesError
from conquest.engine.phases import INITIAL_SETUP
from conquest.engine.reinforcement import get_initial_armies
from conquest.engine.state import GameState, PlayerState, TerritoryState


def _parse_players(players: list, colors: list[str] | None) -> list[PlayerState]:
    palette = colors or DEFAULT_PLAYER_COLORS
    out = []
    for i, p in enumerate(players):
        if isinstance(p, PlayerState):
            out.append(PlayerState(name=p.name, color=p.color))
            continue
        if isinstance(p, dict):
            name = str(p.get("name") or "").strip()
            color = p.get("color") or palette[i % len(palette)]
        else:
            name = str(p).strip()
            color = palette[i % len(palette)]
        out.append(PlayerState(name=name, color=str(color)))
    return out


def initialize_game_state(
    players: list,
    map_def: MapDefinition,
    colors: list[str] | None = None,
    victory_threshold: float | None = None,
) -> GameState:
    """
    Create a fresh game in the initial_setup phase.

    Args:
        players: Player names in turn order (or {"name", "color"} dicts)
        map_def: Map the game is played on
        colors: Palette used for players without an explicit color
        victory_threshold: Fraction of territories needed to win (default from config)

    Every territory starts unclaimed and every player starts with the pool
    for the player count.
    """
    parsed = _parse_players(players, colors)
    names = [p.name for p in parsed]
    if len(parsed) < 2:
        raise RulesError(ErrorKind.INVALID_SETUP, "A game needs at least 2 players")
    if any(not n for n in names):
        raise RulesError(ErrorKind.INVALID_SETUP, "Player names cannot be empty")
    if len(set(names)) != len(names):
        raise RulesError(ErrorKind.INVALID_SETUP, "Player names must be unique")
    if len(parsed) > len(map_def.territories):
        raise RulesError(
            ErrorKind.INVALID_SETUP,
            f"Map {map_def.id} has only {len(map_def.territories)} territories for {len(parsed)} players",
        )
    if victory_threshold is None:
        from conquest.config import DEFAULT_VICTORY_THRESHOLD
        victory_threshold = DEFAULT_VICTORY_THRESHOLD
    if not 0 < victory_threshold <= 1:
        raise RulesError(ErrorKind.INVALID_SETUP, f"Victory threshold must be in (0, 1], got {victory_threshold}")

    initial = get_initial_armies(len(parsed))
    return GameState(
        players=parsed,
        territories={tid: TerritoryState(owner=None, armies=0) for tid in map_def.territories},
        phase=INITIAL_SETUP,
        current_player_index=0,
        turn_number=1,
        remaining_armies={name: initial for name in names},
        reinforcements={name: 0 for name in names},
        continent_bonuses=map_def.continent_bonuses(),
        victory_threshold=victory_threshold,
        map_id=map_def.id,
    )


def assign_territories_randomly(state: GameState, seed: int | None = None) -> dict[str, list[str]]:
    """
    Deal every unclaimed territory, one army each, starting with the current player.
    Territories split as evenly as possible; the first players in the deal get the extras.
    Mutates state. Returns player -> territory ids dealt.
    """
    rng = random.Random(seed)
    unclaimed = sorted(tid for tid, ts in state.territories.items() if ts.owner is None)
    rng.shuffle(unclaimed)

    order = state.active_players()
    start = order.index(state.current_player) if state.current_player in order else 0
    order = order[start:] + order[:start]

    assignments: dict[str, list[str]] = {name: [] for name in order}
    for i, tid in enumerate(unclaimed):
        player = order[i % len(order)]
        territory = state.territories[tid]
        territory.owner = player
        territory.armies = MIN_GARRISON
        assignments[player].append(tid)

    for player, tids in assignments.items():
        state.remaining_armies[player] = max(0, state.remaining_armies.get(player, 0) - len(tids))
    state.armies_placed += len(unclaimed) * MIN_GARRISON
    return assignments


def print_game_state(state: GameState, map_def: MapDefinition):
    """Pretty-print the current game state, grouped by continent."""
    print(f"\n{'='*60}")
    print(f"Turn {state.turn_number} | Player: {state.current_player} | Phase: {state.phase}")
    print(f"{'='*60}")

    for cid, cdef in map_def.continents.items():
        print(f"\n{cdef.display_name} (+{state.continent_bonuses.get(cid, cdef.bonus)})")
        for tid in sorted(cdef.territories):
            ts = state.territories.get(tid)
            if ts is None:
                continue
            owner_str = ts.owner or "unclaimed"
            print(f"  - {map_def.territories[tid].display_name}: {owner_str} ({ts.armies})")

    print(f"\n{'Players':.<40}")
    for p in state.players:
        status = " [eliminated]" if p.eliminated else ""
        owned = len(state.territories_owned_by(p.name))
        print(f"  {p.name}{status}: {owned} territories, "
              f"{state.total_armies_of(p.name)} armies, {state.remaining_armies.get(p.name, 0)} to place")
    if state.winner:
        print(f"\nWinner: {state.winner}")
    print()


def print_battle_history(history: list[dict]):
    """Print exchange records (dicts from ExchangeRecord.to_dict or exchange_resolved payloads)."""
    for r in history:
        line = (f"  Round {r['round_number']}: "
                f"{r['attacker_armies_before']} vs {r['defender_armies_before']} -> "
                f"{r['attacker_remaining']} vs {r['defender_remaining']} "
                f"(losses {r['attacker_losses']}/{r['defender_losses']})")
        if r.get("conquered"):
            line += " CONQUERED"
        print(line)
