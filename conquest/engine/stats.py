"""
Combat statistics collected from game events.
CombatStatistics subscribes to an EventBus and never touches game state.
"""

from dataclasses import asdict, dataclass, field
from typing import Any

from conquest.engine.events import (
    COMBAT_STARTED,
    EXCHANGE_RESOLVED,
    GameEvent,
    PLAYER_ELIMINATED,
    TERRITORY_CONQUERED,
    EventBus,
)


@dataclass
class PlayerCombatStats:
    battles_initiated: int = 0
    battles_defended: int = 0
    territories_conquered: int = 0
    territories_lost: int = 0
    armies_lost: int = 0  # own armies lost, attacking or defending
    armies_defeated: int = 0  # enemy armies destroyed
    eliminated_players: list[str] = field(default_factory=list)


@dataclass
class TerritoryCombatStats:
    conquests: int = 0
    exchanges: int = 0
    armies_lost: int = 0  # defender losses in this territory


class CombatStatistics:
    """
    Per-player, per-territory and global combat figures.

    Example:
        stats = CombatStatistics()
        stats.attach(session.bus)
        ...
        stats.to_dict()["global"]["total_exchanges"]
    """

    def __init__(self):
        self.players: dict[str, PlayerCombatStats] = {}
        self.territories: dict[str, TerritoryCombatStats] = {}
        self.total_battles = 0
        self.total_exchanges = 0
        self.total_territories_conquered = 0
        self.attacker_armies_lost = 0
        self.defender_armies_lost = 0
        self.longest_battle_rounds = 0
        self.largest_army_loss = 0
        # losses accumulated by the combat in progress
        self._current_rounds = 0
        self._current_losses = 0

    def attach(self, bus: EventBus) -> None:
        bus.subscribe(COMBAT_STARTED, self.on_combat_started)
        bus.subscribe(EXCHANGE_RESOLVED, self.on_exchange_resolved)
        bus.subscribe(TERRITORY_CONQUERED, self.on_territory_conquered)
        bus.subscribe(PLAYER_ELIMINATED, self.on_player_eliminated)

    def detach(self, bus: EventBus) -> None:
        bus.unsubscribe(COMBAT_STARTED, self.on_combat_started)
        bus.unsubscribe(EXCHANGE_RESOLVED, self.on_exchange_resolved)
        bus.unsubscribe(TERRITORY_CONQUERED, self.on_territory_conquered)
        bus.unsubscribe(PLAYER_ELIMINATED, self.on_player_eliminated)

    def _player(self, name: str | None) -> PlayerCombatStats | None:
        if name is None:
            return None
        if name not in self.players:
            self.players[name] = PlayerCombatStats()
        return self.players[name]

    def _territory(self, territory_id: str) -> TerritoryCombatStats:
        if territory_id not in self.territories:
            self.territories[territory_id] = TerritoryCombatStats()
        return self.territories[territory_id]

    def on_combat_started(self, event: GameEvent) -> None:
        p = event.payload
        self.total_battles += 1
        self._current_rounds = 0
        self._current_losses = 0
        self._player(p["attacker"]).battles_initiated += 1
        defender = self._player(p.get("defender"))
        if defender:
            defender.battles_defended += 1

    def on_exchange_resolved(self, event: GameEvent) -> None:
        p = event.payload
        attacker_losses = p["attacker_losses"]
        defender_losses = p["defender_losses"]
        self.total_exchanges += 1
        self.attacker_armies_lost += attacker_losses
        self.defender_armies_lost += defender_losses
        self._current_rounds += 1
        self._current_losses += attacker_losses + defender_losses
        self.longest_battle_rounds = max(self.longest_battle_rounds, self._current_rounds)
        self.largest_army_loss = max(self.largest_army_loss, self._current_losses)

        attacker = self._player(p["attacker"])
        attacker.armies_lost += attacker_losses
        attacker.armies_defeated += defender_losses
        defender = self._player(p.get("defender"))
        if defender:
            defender.armies_lost += defender_losses
            defender.armies_defeated += attacker_losses

        territory = self._territory(p["defender_territory"])
        territory.exchanges += 1
        territory.armies_lost += defender_losses

    def on_territory_conquered(self, event: GameEvent) -> None:
        p = event.payload
        self.total_territories_conquered += 1
        self._player(p["new_owner"]).territories_conquered += 1
        old_owner = self._player(p.get("old_owner"))
        if old_owner:
            old_owner.territories_lost += 1
        self._territory(p["territory"]).conquests += 1

    def on_player_eliminated(self, event: GameEvent) -> None:
        p = event.payload
        self._player(p["eliminated_by"]).eliminated_players.append(p["player"])

    def to_dict(self) -> dict[str, Any]:
        return {
            "players": {name: asdict(s) for name, s in self.players.items()},
            "territories": {tid: asdict(s) for tid, s in self.territories.items()},
            "global": {
                "total_battles": self.total_battles,
                "total_exchanges": self.total_exchanges,
                "total_territories_conquered": self.total_territories_conquered,
                "total_armies_lost": {
                    "attacker": self.attacker_armies_lost,
                    "defender": self.defender_armies_lost,
                },
                "longest_battle_rounds": self.longest_battle_rounds,
                "largest_army_loss": self.largest_army_loss,
            },
        }
