"""
Exchange resolution: losses are derived from the surviving counts the players state.
"""

import pytest

from conquest.engine.combat import resolve_exchange
from conquest.engine.errors import ErrorKind, RulesError


def test_five_against_three_conquers():
    outcome = resolve_exchange(5, 3, 4, 0)
    assert outcome.attacker_losses == 1
    assert outcome.defender_losses == 3
    assert outcome.territory_conquered
    assert outcome.battle_complete


def test_partial_exchange_keeps_battle_open():
    outcome = resolve_exchange(6, 4, 5, 2)
    assert (outcome.attacker_losses, outcome.defender_losses) == (1, 2)
    assert not outcome.territory_conquered
    assert not outcome.battle_complete


def test_no_losses_is_a_valid_exchange():
    outcome = resolve_exchange(3, 2, 3, 2)
    assert (outcome.attacker_losses, outcome.defender_losses) == (0, 0)
    assert not outcome.battle_complete


def test_attacker_down_to_one_completes_battle():
    outcome = resolve_exchange(4, 4, 1, 2)
    assert not outcome.territory_conquered
    assert outcome.battle_complete


@pytest.mark.parametrize("args,kind", [
    ((1, 3, 1, 3), ErrorKind.INSUFFICIENT_ATTACKER_FORCE),
    ((5, 3, 0, 0), ErrorKind.ATTACKER_MUST_RETAIN_FORCE),
    ((5, 3, 6, 1), ErrorKind.ARMY_COUNT_INCREASED),
    ((5, 3, 4, 4), ErrorKind.ARMY_COUNT_INCREASED),
    ((5, 3, 4, -1), ErrorKind.NEGATIVE_ARMY_COUNT),
])
def test_invalid_exchanges(args, kind):
    with pytest.raises(RulesError) as exc:
        resolve_exchange(*args)
    assert exc.value.kind == kind


def test_first_failing_check_wins():
    # Too weak to attack beats every other problem with the numbers
    with pytest.raises(RulesError) as exc:
        resolve_exchange(1, 3, 0, -1)
    assert exc.value.kind == ErrorKind.INSUFFICIENT_ATTACKER_FORCE

    # Wiping out the attacker is reported before a negative defender count
    with pytest.raises(RulesError) as exc:
        resolve_exchange(5, 3, 0, -2)
    assert exc.value.kind == ErrorKind.ATTACKER_MUST_RETAIN_FORCE
