"""
Game state representation.
The reducer never mutates a state it is given; it works on a copy.
Includes JSON serialization for save/load functionality.
"""

import json
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any

from conquest.engine.errors import InvariantViolation

# Combat session status
COMBAT_INITIATED = "initiated"
COMBAT_IN_PROGRESS = "in_progress"
COMBAT_CONQUERED = "conquered"
COMBAT_ENDED = "ended"
COMBAT_STATUSES = (COMBAT_INITIATED, COMBAT_IN_PROGRESS, COMBAT_CONQUERED)


def _int(v: Any, default: int) -> int:
    try:
        return int(v) if v is not None else default
    except (TypeError, ValueError):
        return default


def _int_dict(value: Any) -> dict[str, int]:
    """Parse a {player: count} mapping from dict; bad values become 0."""
    if not isinstance(value, dict):
        return {}
    return {str(k): _int(v, 0) for k, v in value.items()}


@dataclass
class TerritoryState:
    """State of a single territory."""
    owner: str | None  # player name or None if unclaimed
    armies: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"owner": self.owner, "armies": self.armies}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TerritoryState":
        if not isinstance(data, dict):
            data = {}
        owner = data.get("owner")
        return cls(
            owner=str(owner) if owner is not None else None,
            armies=max(0, _int(data.get("armies"), 0)),
        )


@dataclass
class PlayerState:
    """A seat at the table. Turn order is the player's index in GameState.players."""
    name: str
    color: str
    eliminated: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "color": self.color, "eliminated": self.eliminated}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PlayerState":
        if not isinstance(data, dict):
            data = {}
        return cls(
            name=str(data.get("name") or ""),
            color=str(data.get("color") or "#888888"),
            eliminated=bool(data.get("eliminated", False)),
        )


@dataclass(frozen=True)
class ExchangeRecord:
    """One resolved exchange of a combat session (for the battle history)."""
    round_number: int
    attacker_armies_before: int
    defender_armies_before: int
    attacker_remaining: int
    defender_remaining: int
    attacker_losses: int
    defender_losses: int
    conquered: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "round_number": self.round_number,
            "attacker_armies_before": self.attacker_armies_before,
            "defender_armies_before": self.defender_armies_before,
            "attacker_remaining": self.attacker_remaining,
            "defender_remaining": self.defender_remaining,
            "attacker_losses": self.attacker_losses,
            "defender_losses": self.defender_losses,
            "conquered": self.conquered,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExchangeRecord":
        if not isinstance(data, dict):
            data = {}
        return cls(
            round_number=_int(data.get("round_number"), 0),
            attacker_armies_before=_int(data.get("attacker_armies_before"), 0),
            defender_armies_before=_int(data.get("defender_armies_before"), 0),
            attacker_remaining=_int(data.get("attacker_remaining"), 0),
            defender_remaining=_int(data.get("defender_remaining"), 0),
            attacker_losses=_int(data.get("attacker_losses"), 0),
            defender_losses=_int(data.get("defender_losses"), 0),
            conquered=bool(data.get("conquered", False)),
        )


@dataclass
class ActiveCombat:
    """
    Tracks an ongoing attack of one territory from an adjacent one.
    Only one exists per game. While status is "conquered" the defender territory
    already belongs to the attacker but holds 0 armies until the transfer is chosen.
    """
    attacker_id: str
    defender_id: str
    status: str  # "initiated", "in_progress", "conquered"
    # Army counts and owners when the combat started:
    # {"attacker_armies", "defender_armies", "attacker_owner", "defender_owner"}
    initial_state: dict[str, Any] = field(default_factory=dict)
    battle_history: list[ExchangeRecord] = field(default_factory=list)

    @property
    def round_number(self) -> int:
        return len(self.battle_history)

    def to_dict(self) -> dict[str, Any]:
        return {
            "attacker_id": self.attacker_id,
            "defender_id": self.defender_id,
            "status": self.status,
            "initial_state": dict(self.initial_state),
            "battle_history": [r.to_dict() for r in self.battle_history],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ActiveCombat":
        if not isinstance(data, dict):
            data = {}
        history = data.get("battle_history") or []
        if not isinstance(history, list):
            history = []
        initial = data.get("initial_state")
        if not isinstance(initial, dict):
            initial = {}
        status = str(data.get("status") or COMBAT_INITIATED)
        if status not in COMBAT_STATUSES:
            status = COMBAT_INITIATED
        return cls(
            attacker_id=str(data.get("attacker_id") or ""),
            defender_id=str(data.get("defender_id") or ""),
            status=status,
            initial_state=initial,
            battle_history=[ExchangeRecord.from_dict(r) for r in history if isinstance(r, dict)],
        )


@dataclass
class GameState:
    """Complete game state."""
    players: list[PlayerState]
    territories: dict[str, TerritoryState]  # territory_id -> TerritoryState
    # "initial_setup", "initial_placement", "deploy", "reinforce", "attack", "fortify"
    phase: str
    current_player_index: int = 0
    turn_number: int = 1
    # player -> armies still to place this phase (initial pool during setup)
    remaining_armies: dict[str, int] = field(default_factory=dict)
    # player -> armies granted at the start of their last reinforce/deploy phase
    reinforcements: dict[str, int] = field(default_factory=dict)
    # continent_id -> bonus (copied from the map so the snapshot is self-contained)
    continent_bonuses: dict[str, int] = field(default_factory=dict)
    # Set once every player has had their first (deploy) turn
    initial_deployment_complete: bool = False
    # One fortification per turn; reset when the fortify phase is entered
    fortification_used: bool = False
    # The single combat session (None if no combat in progress)
    active_combat: ActiveCombat | None = None
    # Winning player name (None while the game is running)
    winner: str | None = None
    # Fraction of all territories one player must own to win
    victory_threshold: float = 1.0
    map_id: str | None = None
    # Army ledger: every army placed on the board and every army lost in combat.
    # Territory armies always sum to armies_placed - armies_lost.
    armies_placed: int = 0
    armies_lost: int = 0

    def copy(self) -> "GameState":
        """Return a deep copy of this game state."""
        return deepcopy(self)

    # ===== Player helpers =====

    @property
    def current_player(self) -> str:
        if not self.players:
            return ""
        return self.players[self.current_player_index % len(self.players)].name

    def player_names(self) -> list[str]:
        return [p.name for p in self.players]

    def get_player(self, name: str) -> PlayerState | None:
        for p in self.players:
            if p.name == name:
                return p
        return None

    def active_players(self) -> list[str]:
        return [p.name for p in self.players if not p.eliminated]

    def territories_owned_by(self, player: str) -> list[str]:
        return [tid for tid, ts in self.territories.items() if ts.owner == player]

    def total_armies_of(self, player: str) -> int:
        return sum(ts.armies for ts in self.territories.values() if ts.owner == player)

    # ===== Serialization Methods =====

    def to_dict(self) -> dict[str, Any]:
        """Convert GameState to a dictionary for JSON serialization."""
        return {
            "players": [p.to_dict() for p in self.players],
            "territories": {
                tid: ts.to_dict() for tid, ts in self.territories.items()
            },
            "phase": self.phase,
            "current_player_index": self.current_player_index,
            "current_player": self.current_player,
            "turn_number": self.turn_number,
            "remaining_armies": dict(self.remaining_armies),
            "reinforcements": dict(self.reinforcements),
            "continent_bonuses": dict(self.continent_bonuses),
            "initial_deployment_complete": self.initial_deployment_complete,
            "fortification_used": self.fortification_used,
            "active_combat": self.active_combat.to_dict() if self.active_combat else None,
            "winner": self.winner,
            "victory_threshold": self.victory_threshold,
            "map_id": self.map_id,
            "armies_placed": self.armies_placed,
            "armies_lost": self.armies_lost,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GameState":
        """Create GameState from a dictionary (missing keys fall back to defaults)."""
        players_data = data.get("players") or []
        if not isinstance(players_data, list):
            players_data = []
        territories_data = data.get("territories") or {}
        if not isinstance(territories_data, dict):
            territories_data = {}
        try:
            threshold = float(data.get("victory_threshold", 1.0))
        except (TypeError, ValueError):
            threshold = 1.0
        winner = data.get("winner")
        return cls(
            players=[PlayerState.from_dict(p) for p in players_data if isinstance(p, dict)],
            territories={
                str(tid): TerritoryState.from_dict(ts)
                for tid, ts in territories_data.items()
                if isinstance(ts, dict)
            },
            phase=str(data.get("phase") or "initial_setup"),
            current_player_index=_int(data.get("current_player_index"), 0),
            turn_number=_int(data.get("turn_number"), 1),
            remaining_armies=_int_dict(data.get("remaining_armies")),
            reinforcements=_int_dict(data.get("reinforcements")),
            continent_bonuses=_int_dict(data.get("continent_bonuses")),
            initial_deployment_complete=bool(data.get("initial_deployment_complete", False)),
            fortification_used=bool(data.get("fortification_used", False)),
            active_combat=ActiveCombat.from_dict(data["active_combat"])
            if data.get("active_combat") else None,
            winner=str(winner) if winner is not None else None,
            victory_threshold=threshold,
            map_id=data.get("map_id") if isinstance(data.get("map_id"), str) else None,
            armies_placed=_int(data.get("armies_placed"), 0),
            armies_lost=_int(data.get("armies_lost"), 0),
        )

    def to_json(self, indent: int = 2) -> str:
        """Serialize GameState to a JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, json_str: str) -> "GameState":
        """Deserialize GameState from a JSON string."""
        return cls.from_dict(json.loads(json_str))

    def save(self, filepath: str) -> None:
        """Save GameState to a JSON file."""
        with open(filepath, "w") as f:
            f.write(self.to_json())

    @classmethod
    def load(cls, filepath: str) -> "GameState":
        """Load GameState from a JSON file."""
        with open(filepath, "r") as f:
            return cls.from_json(f.read())


def check_invariants(state: GameState) -> None:
    """
    Raise InvariantViolation if the state is inconsistent.
    The defender of a conquered (not yet transferred) combat may hold 0 armies.
    """
    names = set(state.player_names())
    if len(names) != len(state.players):
        raise InvariantViolation("Player names are not unique")

    transient = None
    combat = state.active_combat
    if combat is not None:
        if combat.status not in COMBAT_STATUSES:
            raise InvariantViolation(f"Unknown combat status {combat.status}")
        for tid in (combat.attacker_id, combat.defender_id):
            if tid not in state.territories:
                raise InvariantViolation(f"Combat references unknown territory {tid}")
        if combat.status == COMBAT_CONQUERED:
            transient = combat.defender_id

    total = 0
    for tid, ts in state.territories.items():
        if ts.armies < 0:
            raise InvariantViolation(f"{tid} has negative armies ({ts.armies})")
        if ts.owner is None:
            if ts.armies != 0:
                raise InvariantViolation(f"Unclaimed territory {tid} holds {ts.armies} armies")
        else:
            if ts.owner not in names:
                raise InvariantViolation(f"{tid} is owned by unknown player {ts.owner}")
            if ts.armies < 1 and tid != transient:
                raise InvariantViolation(f"Owned territory {tid} has no armies")
        total += ts.armies

    if total != state.armies_placed - state.armies_lost:
        raise InvariantViolation(
            f"Army count {total} does not match ledger "
            f"({state.armies_placed} placed - {state.armies_lost} lost)"
        )

    for player, count in state.remaining_armies.items():
        if count < 0:
            raise InvariantViolation(f"{player} has negative remaining armies ({count})")

    if state.players and not 0 <= state.current_player_index < len(state.players):
        raise InvariantViolation(f"Current player index {state.current_player_index} out of range")
