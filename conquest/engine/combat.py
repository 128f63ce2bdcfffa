"""
Combat resolution system.
No dice: each exchange, the players state how many armies remain on each side
and the resolver derives losses and whether the territory fell.
The combat session functions mutate the state they are given; the reducer
always hands them a copy.
"""

import logging
from dataclasses import dataclass

from conquest.engine import MIN_ATTACKING_ARMIES, MIN_GARRISON
from conquest.engine.definitions import MapDefinition
from conquest.engine.errors import ErrorKind, RulesError
from conquest.engine.state import (
    COMBAT_CONQUERED,
    COMBAT_ENDED,
    COMBAT_INITIATED,
    COMBAT_IN_PROGRESS,
    ActiveCombat,
    ExchangeRecord,
    GameState,
)

logger = logging.getLogger(__name__)


@dataclass
class ExchangeOutcome:
    """Pure result of one exchange."""
    attacker_losses: int
    defender_losses: int
    attacker_remaining: int
    defender_remaining: int
    territory_conquered: bool
    battle_complete: bool  # conquered, or attacker can no longer attack


def resolve_exchange(
    attacker_armies: int,
    defender_armies: int,
    attacker_remaining: int,
    defender_remaining: int,
) -> ExchangeOutcome:
    """
    Resolve one exchange from the chosen remaining counts.

    Checks run in a fixed order and the first failure is raised:
    attacker too weak, attacker wiped out, either side gaining armies,
    defender below zero.
    """
    if attacker_armies < MIN_ATTACKING_ARMIES:
        raise RulesError(
            ErrorKind.INSUFFICIENT_ATTACKER_FORCE,
            f"Attacker needs at least {MIN_ATTACKING_ARMIES} armies (has {attacker_armies})",
        )
    if attacker_remaining < MIN_GARRISON:
        raise RulesError(
            ErrorKind.ATTACKER_MUST_RETAIN_FORCE,
            "Attacker must keep at least one army in the attacking territory",
        )
    if attacker_remaining > attacker_armies:
        raise RulesError(
            ErrorKind.ARMY_COUNT_INCREASED,
            f"Attacker cannot end with more armies ({attacker_remaining}) than it had ({attacker_armies})",
        )
    if defender_remaining > defender_armies:
        raise RulesError(
            ErrorKind.ARMY_COUNT_INCREASED,
            f"Defender cannot end with more armies ({defender_remaining}) than it had ({defender_armies})",
        )
    if defender_remaining < 0:
        raise RulesError(ErrorKind.NEGATIVE_ARMY_COUNT, "Defender army count cannot be negative")

    conquered = defender_remaining <= 0
    return ExchangeOutcome(
        attacker_losses=attacker_armies - attacker_remaining,
        defender_losses=defender_armies - defender_remaining,
        attacker_remaining=attacker_remaining,
        defender_remaining=defender_remaining,
        territory_conquered=conquered,
        battle_complete=conquered or attacker_remaining <= MIN_GARRISON,
    )


def get_attack_targets(state: GameState, map_def: MapDefinition, territory_id: str) -> list[str]:
    """Neighbors of territory_id owned by someone else (not checked for army count)."""
    territory = state.territories.get(territory_id)
    if territory is None or territory.owner is None:
        return []
    return sorted(
        nid for nid in map_def.neighbors_of(territory_id)
        if nid in state.territories and state.territories[nid].owner != territory.owner
    )


def validate_attack(
    state: GameState,
    map_def: MapDefinition,
    attacker_id: str,
    defender_id: str,
) -> None:
    """Raise RulesError if the current player cannot attack defender_id from attacker_id."""
    attacker = state.territories.get(attacker_id)
    defender = state.territories.get(defender_id)
    if attacker is None or defender is None:
        raise RulesError(ErrorKind.INVALID_TERRITORY, f"Invalid territory: {attacker_id} or {defender_id}")
    if attacker.owner != state.current_player:
        raise RulesError(
            ErrorKind.NOT_OWNER,
            f"{attacker_id} is not owned by {state.current_player}",
        )
    if defender.owner == attacker.owner:
        raise RulesError(ErrorKind.CANNOT_ATTACK_OWN_TERRITORY, f"Cannot attack own territory {defender_id}")
    if attacker.armies < MIN_ATTACKING_ARMIES:
        raise RulesError(
            ErrorKind.INSUFFICIENT_ATTACKER_FORCE,
            f"{attacker_id} needs at least {MIN_ATTACKING_ARMIES} armies to attack (has {attacker.armies})",
        )
    if not map_def.are_adjacent(attacker_id, defender_id):
        raise RulesError(ErrorKind.NOT_ADJACENT, f"{attacker_id} is not adjacent to {defender_id}")


def start_combat(
    state: GameState,
    map_def: MapDefinition,
    attacker_id: str,
    defender_id: str,
) -> ActiveCombat:
    """Open the combat session between two territories."""
    if state.active_combat is not None:
        raise RulesError(
            ErrorKind.COMBAT_ALREADY_ACTIVE,
            "Cannot start combat while another combat is active",
        )
    validate_attack(state, map_def, attacker_id, defender_id)
    attacker = state.territories[attacker_id]
    defender = state.territories[defender_id]
    combat = ActiveCombat(
        attacker_id=attacker_id,
        defender_id=defender_id,
        status=COMBAT_INITIATED,
        initial_state={
            "attacker_armies": attacker.armies,
            "defender_armies": defender.armies,
            "attacker_owner": attacker.owner,
            "defender_owner": defender.owner,
        },
    )
    state.active_combat = combat
    logger.debug("Combat started: %s (%d) -> %s (%d)",
                 attacker_id, attacker.armies, defender_id, defender.armies)
    return combat


@dataclass
class ExchangeResult:
    """What execute_exchange reports back to the caller."""
    record: ExchangeRecord
    conquered: bool
    can_continue: bool
    battle_complete: bool

    def to_dict(self) -> dict:
        return {
            **self.record.to_dict(),
            "can_continue": self.can_continue,
            "battle_complete": self.battle_complete,
        }


def execute_exchange(state: GameState, attacker_remaining: int, defender_remaining: int) -> ExchangeResult:
    """Resolve one exchange of the active combat and commit the new army counts."""
    combat = state.active_combat
    if combat is None:
        raise RulesError(ErrorKind.NO_ACTIVE_COMBAT, "No active combat")
    if combat.status == COMBAT_CONQUERED:
        raise RulesError(
            ErrorKind.CONQUEST_PENDING,
            "Territory already conquered; choose how many armies to move in",
        )
    attacker = state.territories[combat.attacker_id]
    defender = state.territories[combat.defender_id]

    outcome = resolve_exchange(attacker.armies, defender.armies, attacker_remaining, defender_remaining)

    record = ExchangeRecord(
        round_number=combat.round_number + 1,
        attacker_armies_before=attacker.armies,
        defender_armies_before=defender.armies,
        attacker_remaining=outcome.attacker_remaining,
        defender_remaining=outcome.defender_remaining,
        attacker_losses=outcome.attacker_losses,
        defender_losses=outcome.defender_losses,
        conquered=outcome.territory_conquered,
    )
    attacker.armies = outcome.attacker_remaining
    defender.armies = outcome.defender_remaining
    state.armies_lost += outcome.attacker_losses + outcome.defender_losses
    combat.battle_history.append(record)

    if outcome.territory_conquered:
        defender.owner = attacker.owner
        defender.armies = 0
        combat.status = COMBAT_CONQUERED
        logger.info("%s conquered %s from %s", attacker.owner, combat.defender_id,
                    combat.initial_state.get("defender_owner"))
    else:
        combat.status = COMBAT_IN_PROGRESS

    return ExchangeResult(
        record=record,
        conquered=outcome.territory_conquered,
        can_continue=not outcome.territory_conquered and attacker.armies > MIN_GARRISON,
        battle_complete=outcome.battle_complete,
    )


@dataclass
class ConquestResult:
    armies_moved: int
    attacker_armies_remaining: int
    defender_armies_new: int
    conquered_territory: str
    previous_owner: str | None

    def to_dict(self) -> dict:
        return {
            "armies_moved": self.armies_moved,
            "attacker_armies_remaining": self.attacker_armies_remaining,
            "defender_armies_new": self.defender_armies_new,
            "conquered_territory": self.conquered_territory,
            "previous_owner": self.previous_owner,
        }


def complete_conquest(state: GameState, armies_to_move: int) -> ConquestResult:
    """Move armies into the conquered territory and close the combat session."""
    combat = state.active_combat
    if combat is None:
        raise RulesError(ErrorKind.NO_ACTIVE_COMBAT, "No active combat")
    if combat.status != COMBAT_CONQUERED:
        raise RulesError(ErrorKind.NOT_CONQUERED, f"{combat.defender_id} has not been conquered")
    attacker = state.territories[combat.attacker_id]
    defender = state.territories[combat.defender_id]
    max_move = attacker.armies - MIN_GARRISON
    if armies_to_move < 1 or armies_to_move > max_move:
        raise RulesError(
            ErrorKind.INVALID_TRANSFER_COUNT,
            f"Must move between 1 and {max_move} armies (got {armies_to_move})",
        )
    attacker.armies -= armies_to_move
    defender.armies += armies_to_move
    combat.status = COMBAT_ENDED
    state.active_combat = None
    return ConquestResult(
        armies_moved=armies_to_move,
        attacker_armies_remaining=attacker.armies,
        defender_armies_new=defender.armies,
        conquered_territory=combat.defender_id,
        previous_owner=combat.initial_state.get("defender_owner"),
    )


def end_combat(state: GameState) -> ActiveCombat:
    """Abandon the active combat (retreat). Not allowed once the territory fell."""
    combat = state.active_combat
    if combat is None:
        raise RulesError(ErrorKind.NO_ACTIVE_COMBAT, "No active combat to end")
    if combat.status == COMBAT_CONQUERED:
        raise RulesError(
            ErrorKind.CONQUEST_PENDING,
            "Territory already conquered; choose how many armies to move in",
        )
    combat.status = COMBAT_ENDED
    state.active_combat = None
    return combat
