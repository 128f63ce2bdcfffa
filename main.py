"""
Main entry point for the conquest rules engine.
Demonstrates core functionality with a simple simulated scenario.
"""

from conquest.config import configure_logging
from conquest.engine.events import GameEvent
from conquest.engine.combat import get_attack_targets
from conquest.engine.queries import get_game_summary
from conquest.engine.session import GameSession
from conquest.engine.stats import CombatStatistics
from conquest.engine.utils import print_battle_history, print_game_state


def fill_pools(session: GameSession) -> None:
    """Place every remaining army one at a time on each player's first territory."""
    while session.state.phase == "initial_placement":
        player = session.current_player
        target = sorted(session.state.territories_owned_by(player))[0]
        result = session.territory_clicked(target)
        if not result.success:
            raise RuntimeError(result.message)


def main():
    configure_logging("WARNING")
    print("Conquest Rules Engine")
    print("=" * 60)

    session = GameSession.new_game(["alice", "bob", "carol", "dave"])
    stats = CombatStatistics()
    stats.attach(session.bus)

    def announce(event: GameEvent) -> None:
        if event.type in ("phase_changed", "turn_started", "territory_conquered", "victory"):
            print(f"  [event] {event.type}: {event.payload}")

    session.bus.subscribe_all(announce)

    # ===== SCENARIO 1: Setup =====
    print("\n[SCENARIO 1: Random territory assignment + initial placement]")
    result = session.assign_territories(seed=42)
    print(f"Assigned territories: success={result.success}, phase={session.state.phase}")
    for name in session.state.player_names():
        print(f"  {name}: {len(session.state.territories_owned_by(name))} territories, "
              f"{session.state.remaining_armies[name]} armies to place")
    fill_pools(session)
    print(f"Placement done: phase={session.state.phase}, player={session.current_player}")

    # ===== SCENARIO 2: Deploy, attack, conquer =====
    print("\n[SCENARIO 2: Deploy and attack]")
    player = session.current_player
    sources = [t for t in session.state.territories_owned_by(player)
               if get_attack_targets(session.state, session.map, t)]
    source = max(sources, key=lambda t: session.state.territories[t].armies)
    print(f"{player} deploys {session.state.remaining_armies[player]} armies on {source}")
    session.place_armies(source, session.state.remaining_armies[player])
    session.phase_advance_requested()

    target = min(get_attack_targets(session.state, session.map, source),
                 key=lambda t: session.state.territories[t].armies)
    print(f"{player} attacks {target} from {source}")
    session.territory_clicked(source)
    session.territory_clicked(target)

    attacker_armies = session.state.territories[source].armies
    result = session.exchange_submitted(attacker_armies - 1, 0)
    print(f"Exchange: {result.data.get('exchange')}")
    if result.success and result.data["combat"]["status"] == "conquered":
        moved = session.conquest_armies_submitted(result.data["combat"]["max_conquest_armies"])
        print(f"Conquest completed: {moved.data.get('action')}")
    print_battle_history([e.payload for e in result.events if e.type == "exchange_resolved"])

    # ===== SCENARIO 3: Fortify and end turn =====
    print("\n[SCENARIO 3: Fortify and end turn]")
    session.phase_advance_requested()
    skip = session.skip_fortification()
    print(f"Skipped fortification: {skip.success}")
    end = session.phase_advance_requested()
    print(f"Turn passed to {end.data.get('current_player')} (phase {session.state.phase})")

    # ===== SCENARIO 4: Rejected actions =====
    print("\n[SCENARIO 4: Rejected actions]")
    bad = session.phase_advance_requested()
    print(f"Advance with armies left: {bad.to_dict()}")
    bad = session.exchange_submitted(1, 0)
    print(f"Exchange outside the attack phase: {bad.to_dict()}")

    print_game_state(session.state, session.map)
    print("Summary:", get_game_summary(session.state, session.map)["victory"])
    print("Combat stats:", stats.to_dict()["global"])


if __name__ == "__main__":
    main()
