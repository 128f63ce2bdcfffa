"""
Action definitions for the game.
Actions are immutable, deterministic instructions.
"""

from dataclasses import dataclass
from typing import Any


@dataclass
class Action:
    """Base action class. All actions have a type, player, and payload."""
    type: str  # e.g., "place_armies", "start_combat", "fortify", "advance_phase"
    player: str  # name of the player performing the action
    payload: dict  # Action-specific data

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "player": self.player, "payload": self.payload}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Action":
        payload = data.get("payload")
        return cls(
            type=str(data.get("type") or ""),
            player=str(data.get("player") or ""),
            payload=payload if isinstance(payload, dict) else {},
        )


def claim_territory(player: str, territory_id: str) -> Action:
    """
    Claim an unclaimed territory during initial setup.
    One army from the player's pool is placed there and the next player claims.
    """
    return Action(type="claim_territory", player=player, payload={"territory_id": territory_id})


def assign_territories(player: str, seed: int | None = None) -> Action:
    """
    Deal every territory at random, as evenly as possible, one army each.
    The seed is part of the action so replaying it gives the same deal.
    """
    return Action(type="assign_territories", player=player, payload={"seed": seed})


def place_armies(player: str, territory_id: str, count: int = 1) -> Action:
    """
    Place armies from the player's pool (initial placement, deploy or reinforce).
    Example: place_armies("alice", "alaska", 3)
    """
    return Action(
        type="place_armies",
        player=player,
        payload={"territory_id": territory_id, "count": count},
    )


def start_combat(player: str, attacker_id: str, defender_id: str) -> Action:
    """
    Open a combat session: attack defender_id from the adjacent attacker_id.
    The attacker must hold at least 2 armies.
    """
    return Action(
        type="start_combat",
        player=player,
        payload={"attacker_id": attacker_id, "defender_id": defender_id},
    )


def execute_exchange(player: str, attacker_remaining: int, defender_remaining: int) -> Action:
    """
    Resolve one exchange of the active combat by stating the surviving armies.
    Example: 5 attackers vs 3 defenders, execute_exchange("alice", 4, 0) conquers
    the territory with the attacker losing 1 army.
    """
    return Action(
        type="execute_exchange",
        player=player,
        payload={
            "attacker_remaining": attacker_remaining,
            "defender_remaining": defender_remaining,
        },
    )


def complete_conquest(player: str, armies: int) -> Action:
    """Move armies into the territory just conquered (1 .. attacker armies - 1)."""
    return Action(type="complete_conquest", player=player, payload={"armies": armies})


def end_combat(player: str) -> Action:
    """Stop attacking. Not allowed after a conquest until armies are moved in."""
    return Action(type="end_combat", player=player, payload={})


def fortify(player: str, source: str, destination: str, count: int) -> Action:
    """
    Move armies between two connected owned territories. Once per turn.
    """
    return Action(
        type="fortify",
        player=player,
        payload={"source": source, "destination": destination, "count": count},
    )


def skip_fortification(player: str) -> Action:
    """Give up this turn's fortification."""
    return Action(type="skip_fortification", player=player, payload={})


def advance_phase(player: str) -> Action:
    """End the current phase; leaving fortify ends the turn."""
    return Action(type="advance_phase", player=player, payload={})
