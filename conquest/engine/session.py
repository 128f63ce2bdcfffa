"""
GameSession: the aggregate that owns a game's state, its map and its event bus.

All input (territory clicks, numeric choices, phase advance requests) enters here,
is turned into Actions for the reducer, and comes back as an ActionResult.
Rule violations are returned as data; only InvariantViolation propagates.
"""

import logging
import threading
from typing import Any

from conquest.engine import MIN_ATTACKING_ARMIES, MIN_GARRISON
from conquest.engine import actions
from conquest.engine.actions import Action
from conquest.engine.combat import get_attack_targets, validate_attack
from conquest.engine.definitions import MapDefinition, load_map
from conquest.engine.errors import ActionResult, ErrorKind, RulesError
from conquest.engine.events import EXCHANGE_RESOLVED, EventBus
from conquest.engine.movement import find_reachable_owned_territories
from conquest.engine.phases import ATTACK, FORTIFY, INITIAL_SETUP, PLACEMENT_PHASES
from conquest.engine.queries import (
    get_attack_options,
    get_available_actions,
    get_combat_summary,
    get_fortification_destinations,
)
from conquest.engine.reducer import apply_action
from conquest.engine.state import COMBAT_CONQUERED, GameState, check_invariants
from conquest.engine.utils import initialize_game_state

logger = logging.getLogger(__name__)


class GameSession:
    """
    One game in play. Mutations are serialized with a lock so a session can be
    shared between request handlers.

    Example:
        session = GameSession.new_game(["alice", "bob", "carol"])
        session.assign_territories(seed=7)
        session.territory_clicked("alaska")   # places one army during placement
    """

    def __init__(self, state: GameState, map_def: MapDefinition, bus: EventBus | None = None):
        self.state = state
        self.map = map_def
        self.bus = bus or EventBus()
        self.action_log: list[Action] = []
        # Click selection (attack source, fortify source/destination)
        self.selected_source: str | None = None
        self.selected_destination: str | None = None
        if state.active_combat is not None:
            self.selected_source = state.active_combat.attacker_id
        self._lock = threading.Lock()

    @classmethod
    def new_game(
        cls,
        players: list,
        map_id: str | None = None,
        map_def: MapDefinition | None = None,
        colors: list[str] | None = None,
        victory_threshold: float | None = None,
        bus: EventBus | None = None,
        seed: int | None = None,
    ) -> "GameSession":
        """
        Create a session in initial_setup. If seed is given, territories are
        dealt at once and the game starts in initial_placement.
        """
        if map_def is None:
            map_def = load_map(map_id)
        state = initialize_game_state(players, map_def, colors=colors, victory_threshold=victory_threshold)
        session = cls(state, map_def, bus)
        if seed is not None:
            result = session.assign_territories(seed)
            if not result.success:
                raise RulesError(result.error, result.message)
        return session

    # ===== Core dispatch =====

    def dispatch(self, action: Action) -> ActionResult:
        """Apply an action; publish its events if it succeeded."""
        with self._lock:
            return self._dispatch(action)

    def _dispatch(self, action: Action) -> ActionResult:
        try:
            new_state, events = apply_action(self.state, action, self.map)
        except RulesError as e:
            logger.warning("Rejected %s by %s: %s (%s)", action.type, action.player, e.message, e.kind)
            return ActionResult.from_error(e)

        check_invariants(new_state)

        turn_changed = (
            new_state.phase != self.state.phase
            or new_state.current_player_index != self.state.current_player_index
        )
        self.state = new_state
        self.action_log.append(action)
        if turn_changed:
            self._clear_selection()
        self.bus.publish_all(events)

        out = {"action": action.type, "phase": new_state.phase, "current_player": new_state.current_player}
        return ActionResult.ok(out, events)

    def _clear_selection(self) -> None:
        self.selected_source = None
        self.selected_destination = None

    @property
    def current_player(self) -> str:
        return self.state.current_player

    # ===== Input events =====

    def territory_clicked(self, territory_id: str) -> ActionResult:
        """Interpret a click on a territory according to the current phase."""
        with self._lock:
            if territory_id not in self.state.territories:
                return ActionResult.failed(ErrorKind.INVALID_TERRITORY, f"Invalid territory: {territory_id}")
            if self.state.winner is not None:
                return ActionResult.failed(ErrorKind.GAME_OVER, f"Game is over. {self.state.winner} has won.")
            player = self.current_player
            phase = self.state.phase
            if phase == INITIAL_SETUP:
                return self._dispatch(actions.claim_territory(player, territory_id))
            if phase in PLACEMENT_PHASES:
                return self._dispatch(actions.place_armies(player, territory_id, 1))
            if phase == ATTACK:
                return self._attack_click(territory_id)
            if phase == FORTIFY:
                return self._fortify_click(territory_id)
            return ActionResult.failed(ErrorKind.WRONG_PHASE, f"Clicks do nothing in phase {phase}")

    def _attack_click(self, territory_id: str) -> ActionResult:
        player = self.current_player
        territory = self.state.territories[territory_id]
        combat = self.state.active_combat
        if combat is not None and combat.status == COMBAT_CONQUERED:
            return ActionResult.failed(
                ErrorKind.CONQUEST_PENDING,
                "Move armies into the conquered territory first",
            )

        if territory.owner == player:
            if territory.armies < MIN_ATTACKING_ARMIES:
                return ActionResult.failed(
                    ErrorKind.INSUFFICIENT_ATTACKER_FORCE,
                    f"{territory_id} needs at least {MIN_ATTACKING_ARMIES} armies to attack",
                )
            targets = get_attack_targets(self.state, self.map, territory_id)
            if not targets:
                return ActionResult.failed(ErrorKind.NO_ATTACK_TARGETS, f"{territory_id} has no enemy neighbors")
            if combat is not None:
                ended = self._dispatch(actions.end_combat(player))
                if not ended.success:
                    return ended
            self.selected_source = territory_id
            return ActionResult.ok({
                "action": "select_attack_source",
                "source": territory_id,
                "targets": targets,
            })

        if self.selected_source is None:
            return ActionResult.failed(ErrorKind.NO_SELECTION, "Select one of your territories to attack from")
        source = self.selected_source
        if combat is not None and combat.attacker_id == source and combat.defender_id == territory_id:
            return ActionResult.ok({"action": "start_combat", "combat": get_combat_summary(self.state)})

        # Check the new attack before abandoning a running one
        probe = self.state.copy()
        probe.active_combat = None
        try:
            validate_attack(probe, self.map, source, territory_id)
        except RulesError as e:
            return ActionResult.from_error(e)
        if combat is not None:
            ended = self._dispatch(actions.end_combat(player))
            if not ended.success:
                return ended
        result = self._dispatch(actions.start_combat(player, source, territory_id))
        if result.success:
            result.data["combat"] = get_combat_summary(self.state)
        return result

    def _fortify_click(self, territory_id: str) -> ActionResult:
        player = self.current_player
        territory = self.state.territories[territory_id]
        if self.state.fortification_used:
            return ActionResult.failed(ErrorKind.FORTIFICATION_USED, "Fortification already used this turn")
        if territory.owner != player:
            return ActionResult.failed(ErrorKind.NOT_OWNER, f"{territory_id} is not owned by {player}")

        if self.selected_source is not None and self.selected_destination is None:
            if territory_id == self.selected_source:
                self._clear_selection()
                return ActionResult.ok({"action": "clear_selection"})
            reachable = find_reachable_owned_territories(self.state, self.map, self.selected_source)
            if territory_id not in reachable:
                return ActionResult.failed(
                    ErrorKind.NOT_REACHABLE,
                    f"{territory_id} is not connected to {self.selected_source}",
                )
            self.selected_destination = territory_id
            return ActionResult.ok({
                "action": "select_fortify_destination",
                "source": self.selected_source,
                "destination": territory_id,
                "max_armies": self.state.territories[self.selected_source].armies - MIN_GARRISON,
            })

        # No source yet, or both chosen: start a new selection
        self._clear_selection()
        if territory.armies <= MIN_GARRISON:
            return ActionResult.failed(
                ErrorKind.INSUFFICIENT_FORCE,
                "Cannot move from a territory with only 1 army",
            )
        destinations = sorted(find_reachable_owned_territories(self.state, self.map, territory_id))
        if not destinations:
            return ActionResult.failed(ErrorKind.NOT_REACHABLE, f"{territory_id} has no connected territories")
        self.selected_source = territory_id
        return ActionResult.ok({
            "action": "select_fortify_source",
            "source": territory_id,
            "destinations": destinations,
        })

    def exchange_submitted(self, attacker_remaining: int, defender_remaining: int) -> ActionResult:
        """The player entered the surviving army counts for one exchange."""
        with self._lock:
            result = self._dispatch(actions.execute_exchange(self.current_player, attacker_remaining, defender_remaining))
            if result.success:
                for event in result.events:
                    if event.type == EXCHANGE_RESOLVED:
                        result.data["exchange"] = event.payload
                result.data["combat"] = get_combat_summary(self.state)
            return result

    def conquest_armies_submitted(self, count: int) -> ActionResult:
        """The player chose how many armies move into the conquered territory."""
        with self._lock:
            result = self._dispatch(actions.complete_conquest(self.current_player, count))
            if result.success:
                self._clear_selection()
                result.data["winner"] = self.state.winner
            return result

    def fortify_armies_submitted(self, count: int) -> ActionResult:
        """Move count armies along the selected fortify source/destination."""
        with self._lock:
            if self.selected_source is None or self.selected_destination is None:
                return ActionResult.failed(ErrorKind.NO_SELECTION, "Select a source and a destination first")
            result = self._dispatch(actions.fortify(
                self.current_player, self.selected_source, self.selected_destination, count,
            ))
            if result.success:
                self._clear_selection()
            return result

    def phase_advance_requested(self) -> ActionResult:
        with self._lock:
            return self._dispatch(actions.advance_phase(self.current_player))

    # ===== Direct commands (API / CLI) =====

    def claim_territory(self, territory_id: str) -> ActionResult:
        with self._lock:
            return self._dispatch(actions.claim_territory(self.current_player, territory_id))

    def assign_territories(self, seed: int | None = None) -> ActionResult:
        with self._lock:
            return self._dispatch(actions.assign_territories(self.current_player, seed))

    def place_armies(self, territory_id: str, count: int) -> ActionResult:
        with self._lock:
            return self._dispatch(actions.place_armies(self.current_player, territory_id, count))

    def start_combat(self, attacker_id: str, defender_id: str) -> ActionResult:
        with self._lock:
            result = self._dispatch(actions.start_combat(self.current_player, attacker_id, defender_id))
            if result.success:
                self.selected_source = attacker_id
                result.data["combat"] = get_combat_summary(self.state)
            return result

    def end_combat(self) -> ActionResult:
        with self._lock:
            return self._dispatch(actions.end_combat(self.current_player))

    def fortify(self, source: str, destination: str, count: int) -> ActionResult:
        with self._lock:
            result = self._dispatch(actions.fortify(self.current_player, source, destination, count))
            if result.success:
                self._clear_selection()
            return result

    def skip_fortification(self) -> ActionResult:
        with self._lock:
            return self._dispatch(actions.skip_fortification(self.current_player))

    # ===== Read side =====

    def available_actions(self) -> dict[str, Any]:
        out = get_available_actions(self.state, self.map)
        out["selection"] = {"source": self.selected_source, "destination": self.selected_destination}
        if self.selected_source is not None:
            if self.state.phase == ATTACK:
                out["attack_options"] = get_attack_options(self.state, self.map, self.selected_source)
            elif self.state.phase == FORTIFY:
                out["fortify_destinations"] = get_fortification_destinations(
                    self.state, self.map, self.selected_source,
                )
        return out

    def snapshot(self) -> dict[str, Any]:
        return self.state.to_dict()
