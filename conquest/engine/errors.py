"""
Rule errors and action results.
Validation and sequencing failures are raised as RulesError inside the engine and
reported as ActionResult at the session boundary. InvariantViolation is fatal.
"""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class ErrorKind(StrEnum):
    # Combat resolver
    INSUFFICIENT_ATTACKER_FORCE = "InsufficientAttackerForce"
    ATTACKER_MUST_RETAIN_FORCE = "AttackerMustRetainForce"
    ARMY_COUNT_INCREASED = "ArmyCountIncreased"
    NEGATIVE_ARMY_COUNT = "NegativeArmyCount"

    # Combat session
    INVALID_TERRITORY = "InvalidTerritory"
    NOT_OWNER = "NotOwner"
    CANNOT_ATTACK_OWN_TERRITORY = "CannotAttackOwnTerritory"
    NOT_ADJACENT = "NotAdjacent"
    NO_ATTACK_TARGETS = "NoAttackTargets"
    COMBAT_ALREADY_ACTIVE = "CombatAlreadyActive"
    NO_ACTIVE_COMBAT = "NoActiveCombat"
    NOT_CONQUERED = "NotConquered"
    CONQUEST_PENDING = "ConquestPending"
    INVALID_TRANSFER_COUNT = "InvalidTransferCount"

    # Movement / fortify
    INSUFFICIENT_FORCE = "InsufficientForce"
    NOT_REACHABLE = "NotReachable"
    FORTIFICATION_USED = "FortificationUsed"
    NO_SELECTION = "NoSelection"

    # Deployment / setup
    INVALID_ARMY_COUNT = "InvalidArmyCount"
    INSUFFICIENT_REINFORCEMENTS = "InsufficientReinforcements"
    TERRITORY_ALREADY_CLAIMED = "TerritoryAlreadyClaimed"
    INVALID_SETUP = "InvalidSetup"

    # Turn sequencing
    WRONG_PHASE = "WrongPhase"
    NOT_CURRENT_PLAYER = "NotCurrentPlayer"
    PHASE_INCOMPLETE = "PhaseIncomplete"
    GAME_OVER = "GameOver"
    UNKNOWN_ACTION = "UnknownAction"


class RulesError(ValueError):
    """An action was rejected by the rules. State is left unchanged."""

    def __init__(self, kind: ErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message


class InvariantViolation(AssertionError):
    """The game state broke a rule that no legal action can break. Not recoverable."""


@dataclass
class ActionResult:
    """Outcome of one input event: success with data, or a typed error."""
    success: bool
    error: ErrorKind | None = None
    message: str = ""
    data: dict[str, Any] = field(default_factory=dict)
    events: list = field(default_factory=list)  # GameEvent

    @classmethod
    def ok(cls, data: dict[str, Any] | None = None, events: list | None = None) -> "ActionResult":
        return cls(success=True, data=data or {}, events=events or [])

    @classmethod
    def failed(cls, kind: ErrorKind, message: str) -> "ActionResult":
        return cls(success=False, error=kind, message=message)

    @classmethod
    def from_error(cls, exc: RulesError) -> "ActionResult":
        return cls.failed(exc.kind, exc.message)

    def to_dict(self) -> dict[str, Any]:
        if not self.success:
            return {"success": False, "error": str(self.error), "message": self.message}
        out = {"success": True, **self.data}
        if self.events:
            out["events"] = [e.to_dict() for e in self.events]
        return out
