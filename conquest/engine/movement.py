"""
Fortification movement and pathfinding.
"""

from collections import deque

from conquest.engine import MIN_GARRISON
from conquest.engine.definitions import MapDefinition
from conquest.engine.errors import ErrorKind, RulesError
from conquest.engine.state import GameState


def find_reachable_owned_territories(
    state: GameState,
    map_def: MapDefinition,
    source: str,
) -> dict[str, int]:
    """
    Territories reachable from source through a chain of territories owned by
    the source's owner. Returns territory_id -> number of steps; source excluded.
    """
    territory = state.territories.get(source)
    if territory is None or territory.owner is None:
        return {}
    owner = territory.owner

    reachable: dict[str, int] = {}
    visited = {source}
    queue: deque[tuple[str, int]] = deque([(source, 0)])
    while queue:
        territory_id, distance = queue.popleft()
        for adjacent_id in sorted(map_def.neighbors_of(territory_id)):
            if adjacent_id in visited:
                continue
            adjacent = state.territories.get(adjacent_id)
            if adjacent is None or adjacent.owner != owner:
                continue
            visited.add(adjacent_id)
            reachable[adjacent_id] = distance + 1
            queue.append((adjacent_id, distance + 1))
    return reachable


def are_connected(state: GameState, map_def: MapDefinition, source: str, destination: str) -> bool:
    return destination in find_reachable_owned_territories(state, map_def, source)


def find_path(
    state: GameState,
    map_def: MapDefinition,
    source: str,
    destination: str,
) -> list[str] | None:
    """Shortest owned path from source to destination (both included), or None."""
    territory = state.territories.get(source)
    if territory is None or territory.owner is None:
        return None
    owner = territory.owner
    parents: dict[str, str | None] = {source: None}
    queue: deque[str] = deque([source])
    while queue:
        territory_id = queue.popleft()
        if territory_id == destination:
            path = []
            node: str | None = territory_id
            while node is not None:
                path.append(node)
                node = parents[node]
            return list(reversed(path))
        for adjacent_id in sorted(map_def.neighbors_of(territory_id)):
            if adjacent_id in parents:
                continue
            adjacent = state.territories.get(adjacent_id)
            if adjacent is None or adjacent.owner != owner:
                continue
            parents[adjacent_id] = territory_id
            queue.append(adjacent_id)
    return None


def can_fortify_from(state: GameState, map_def: MapDefinition, source: str) -> bool:
    """True if source has a spare army and a connected owned destination."""
    territory = state.territories.get(source)
    if territory is None or territory.armies <= MIN_GARRISON:
        return False
    return bool(find_reachable_owned_territories(state, map_def, source))


def has_valid_fortification_moves(state: GameState, map_def: MapDefinition, player: str) -> bool:
    return any(
        can_fortify_from(state, map_def, tid)
        for tid in state.territories_owned_by(player)
    )


def move_armies(state: GameState, source: str, destination: str, count: int) -> None:
    """Move count armies between two territories. Source keeps at least one army."""
    src = state.territories.get(source)
    dst = state.territories.get(destination)
    if src is None or dst is None:
        raise RulesError(ErrorKind.INVALID_TERRITORY, f"Invalid territory: {source} or {destination}")
    if count < 1:
        raise RulesError(ErrorKind.INVALID_TRANSFER_COUNT, f"Must move at least 1 army (got {count})")
    if count >= src.armies:
        raise RulesError(
            ErrorKind.INSUFFICIENT_FORCE,
            f"{source} has {src.armies} armies; can move at most {src.armies - MIN_GARRISON}",
        )
    src.armies -= count
    dst.armies += count
