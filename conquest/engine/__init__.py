"""
Territorial Conquest Rules Engine
Phases, combat, reinforcements and fortification without UI, rendering or networking.
"""

# An attack needs at least this many armies in the attacking territory.
MIN_ATTACKING_ARMIES = 2

# Every owned territory keeps at least one army.
MIN_GARRISON = 1

# Floor for per-turn reinforcements and the divisor applied to owned territories.
MIN_REINFORCEMENTS = 3
TERRITORIES_PER_REINFORCEMENT = 3

# Starting army pool by player count; other counts use DEFAULT_INITIAL_ARMIES.
INITIAL_ARMIES_BY_PLAYER_COUNT = {2: 40, 3: 35, 4: 30, 5: 25, 6: 20}
DEFAULT_INITIAL_ARMIES = 30

DEFAULT_PLAYER_COLORS = ["#ff4444", "#44ff44", "#4444ff", "#ffff44", "#ff44ff", "#44ffff"]
