"""
Game events for UI hooks, statistics and logging.
Events describe what happened during action processing; the EventBus
delivers them to subscribers after a state change is committed.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)


@dataclass
class GameEvent:
    """Base event class. All events have a type and payload."""
    type: str
    payload: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "payload": self.payload}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GameEvent":
        return cls(type=data["type"], payload=data["payload"])


# ===== Event Type Constants =====

# Phase/Turn events
PHASE_CHANGED = "phase_changed"
TURN_STARTED = "turn_started"
REINFORCEMENTS_GRANTED = "reinforcements_granted"

# Setup / deployment events
TERRITORY_CLAIMED = "territory_claimed"
TERRITORIES_ASSIGNED = "territories_assigned"
ARMIES_PLACED = "armies_placed"

# Combat events
COMBAT_STARTED = "combat_started"
EXCHANGE_RESOLVED = "exchange_resolved"
TERRITORY_CONQUERED = "territory_conquered"
CONQUEST_COMPLETED = "conquest_completed"
COMBAT_ENDED = "combat_ended"

# Fortification events
ARMIES_FORTIFIED = "armies_fortified"
FORTIFICATION_SKIPPED = "fortification_skipped"

# Elimination / victory events
PLAYER_ELIMINATED = "player_eliminated"
VICTORY = "victory"

ALL_EVENT_TYPES = (
    PHASE_CHANGED, TURN_STARTED, REINFORCEMENTS_GRANTED,
    TERRITORY_CLAIMED, TERRITORIES_ASSIGNED, ARMIES_PLACED,
    COMBAT_STARTED, EXCHANGE_RESOLVED, TERRITORY_CONQUERED, CONQUEST_COMPLETED, COMBAT_ENDED,
    ARMIES_FORTIFIED, FORTIFICATION_SKIPPED,
    PLAYER_ELIMINATED, VICTORY,
)


# ===== Event Factory Functions =====

def phase_changed(old_phase: str, new_phase: str, player: str) -> GameEvent:
    return GameEvent(PHASE_CHANGED, {
        "old_phase": old_phase,
        "new_phase": new_phase,
        "player": player,
    })


def turn_started(turn_number: int, player: str) -> GameEvent:
    return GameEvent(TURN_STARTED, {
        "turn_number": turn_number,
        "player": player,
    })


def reinforcements_granted(player: str, amount: int, continents: list[str]) -> GameEvent:
    return GameEvent(REINFORCEMENTS_GRANTED, {
        "player": player,
        "amount": amount,
        "continents": continents,  # continent ids that contributed a bonus
    })


def territory_claimed(player: str, territory: str) -> GameEvent:
    return GameEvent(TERRITORY_CLAIMED, {"player": player, "territory": territory})


def territories_assigned(assignments: dict[str, list[str]], seed: int | None) -> GameEvent:
    return GameEvent(TERRITORIES_ASSIGNED, {
        "assignments": assignments,  # player -> territory ids
        "seed": seed,
    })


def armies_placed(player: str, territory: str, count: int, remaining: int) -> GameEvent:
    return GameEvent(ARMIES_PLACED, {
        "player": player,
        "territory": territory,
        "count": count,
        "remaining": remaining,  # armies left in the player's pool
    })


def combat_started(
    attacker_territory: str,
    defender_territory: str,
    attacker: str,
    defender: str | None,
    attacker_armies: int,
    defender_armies: int,
) -> GameEvent:
    return GameEvent(COMBAT_STARTED, {
        "attacker_territory": attacker_territory,
        "defender_territory": defender_territory,
        "attacker": attacker,
        "defender": defender,
        "attacker_armies": attacker_armies,
        "defender_armies": defender_armies,
    })


def exchange_resolved(
    attacker_territory: str,
    defender_territory: str,
    attacker: str,
    defender: str | None,
    exchange: dict[str, Any],
) -> GameEvent:
    """exchange is an ExchangeRecord dict (round, before/after counts, losses, conquered)."""
    return GameEvent(EXCHANGE_RESOLVED, {
        "attacker_territory": attacker_territory,
        "defender_territory": defender_territory,
        "attacker": attacker,
        "defender": defender,
        **exchange,
    })


def territory_conquered(territory: str, old_owner: str | None, new_owner: str, rounds: int) -> GameEvent:
    return GameEvent(TERRITORY_CONQUERED, {
        "territory": territory,
        "old_owner": old_owner,
        "new_owner": new_owner,
        "rounds": rounds,
    })


def conquest_completed(
    from_territory: str,
    to_territory: str,
    player: str,
    armies_moved: int,
) -> GameEvent:
    return GameEvent(CONQUEST_COMPLETED, {
        "from_territory": from_territory,
        "to_territory": to_territory,
        "player": player,
        "armies_moved": armies_moved,
    })


def combat_ended(
    attacker_territory: str,
    defender_territory: str,
    result: str,  # "conquered", "retreated", "phase_ended"
    total_rounds: int,
) -> GameEvent:
    return GameEvent(COMBAT_ENDED, {
        "attacker_territory": attacker_territory,
        "defender_territory": defender_territory,
        "result": result,
        "total_rounds": total_rounds,
    })


def armies_fortified(player: str, source: str, destination: str, count: int, path: list[str]) -> GameEvent:
    return GameEvent(ARMIES_FORTIFIED, {
        "player": player,
        "source": source,
        "destination": destination,
        "count": count,
        "path": path,
    })


def fortification_skipped(player: str) -> GameEvent:
    return GameEvent(FORTIFICATION_SKIPPED, {"player": player})


def player_eliminated(player: str, eliminated_by: str) -> GameEvent:
    return GameEvent(PLAYER_ELIMINATED, {
        "player": player,
        "eliminated_by": eliminated_by,
    })


def victory(winner: str, territory_counts: dict[str, int], territories_required: int) -> GameEvent:
    """
    Emitted when one player owns enough territories to win.

    Args:
        winner: The winning player
        territory_counts: {player: territories owned} for all players
        territories_required: The threshold that was reached
    """
    return GameEvent(VICTORY, {
        "winner": winner,
        "territory_counts": territory_counts,
        "territories_required": territories_required,
    })


# ===== Observer =====

EventCallback = Callable[[GameEvent], None]


class EventBus:
    """
    Synchronous publish/subscribe for GameEvents.

    A subscriber that raises is logged and skipped; it never affects the
    game state or other subscribers.

    Example:
        bus = EventBus()
        bus.subscribe(TERRITORY_CONQUERED, lambda e: print(e.payload["territory"]))
        bus.publish_all(events)
    """

    def __init__(self):
        self._subscribers: dict[str, list[EventCallback]] = {}
        self._wildcard: list[EventCallback] = []

    def subscribe(self, event_type: str, callback: EventCallback) -> None:
        """Register a callback for one event type."""
        if event_type not in self._subscribers:
            self._subscribers[event_type] = []
        self._subscribers[event_type].append(callback)

    def subscribe_all(self, callback: EventCallback) -> None:
        """Register a callback for every event."""
        self._wildcard.append(callback)

    def unsubscribe(self, event_type: str, callback: EventCallback) -> bool:
        """Remove a callback. Returns True if found and removed."""
        if event_type in self._subscribers and callback in self._subscribers[event_type]:
            self._subscribers[event_type].remove(callback)
            return True
        return False

    def unsubscribe_all(self, callback: EventCallback) -> bool:
        if callback in self._wildcard:
            self._wildcard.remove(callback)
            return True
        return False

    def publish(self, event: GameEvent) -> int:
        """Deliver one event. Returns the number of callbacks that succeeded."""
        callbacks = list(self._subscribers.get(event.type, [])) + list(self._wildcard)
        invoked = 0
        for callback in callbacks:
            try:
                callback(event)
                invoked += 1
            except Exception:
                logger.exception("Event subscriber failed for %s", event.type)
        return invoked

    def publish_all(self, events: list[GameEvent]) -> None:
        for event in events:
            self.publish(event)

    def subscriber_count(self, event_type: str) -> int:
        return len(self._subscribers.get(event_type, [])) + len(self._wildcard)
