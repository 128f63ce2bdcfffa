"""
Static map definitions: territories, adjacency and continents.
Maps live under data/maps/<map_id>.json with keys: id, display_name, continents, territories.
"""

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path

DATA_DIR = Path(__file__).parent.parent / "data"
MAPS_DIR = DATA_DIR / "maps"


def _default_map_id() -> str:
    """Single place for default: conquest.config.DEFAULT_MAP_ID."""
    from conquest.config import DEFAULT_MAP_ID
    return DEFAULT_MAP_ID


@dataclass
class TerritoryDefinition:
    """Defines immutable properties of a territory."""
    id: str
    display_name: str
    continent: str  # continent id
    adjacent: list[str]  # IDs of adjacent territories


@dataclass
class ContinentDefinition:
    """A group of territories; owning all of them grants the bonus each reinforcement."""
    id: str
    display_name: str
    bonus: int
    territories: list[str] = field(default_factory=list)


@dataclass
class MapDefinition:
    """The territory graph. Adjacency is symmetric and fixed for the whole game."""
    id: str
    display_name: str
    territories: dict[str, TerritoryDefinition]
    continents: dict[str, ContinentDefinition]

    def neighbors_of(self, territory_id: str) -> set[str]:
        tdef = self.territories.get(territory_id)
        if tdef is None:
            return set()
        return set(tdef.adjacent)

    def are_adjacent(self, a: str, b: str) -> bool:
        return b in self.neighbors_of(a)

    def continent_of(self, territory_id: str) -> str | None:
        tdef = self.territories.get(territory_id)
        return tdef.continent if tdef else None

    def territories_in_continent(self, continent_id: str) -> set[str]:
        cdef = self.continents.get(continent_id)
        if cdef is None:
            return set()
        return set(cdef.territories)

    def continent_bonuses(self) -> dict[str, int]:
        return {cid: c.bonus for cid, c in self.continents.items()}


def validate_map(map_def: MapDefinition) -> None:
    """Raise ValueError if the map data is inconsistent."""
    if not map_def.territories:
        raise ValueError(f"Map {map_def.id} has no territories")
    for tid, tdef in map_def.territories.items():
        if tdef.continent not in map_def.continents:
            raise ValueError(f"Territory {tid} belongs to unknown continent {tdef.continent}")
        for other in tdef.adjacent:
            if other == tid:
                raise ValueError(f"Territory {tid} lists itself as adjacent")
            other_def = map_def.territories.get(other)
            if other_def is None:
                raise ValueError(f"Territory {tid} lists unknown neighbor {other}")
            if tid not in other_def.adjacent:
                raise ValueError(f"Adjacency is not symmetric: {tid} -> {other}")
    for cid, cdef in map_def.continents.items():
        if not cdef.territories:
            raise ValueError(f"Continent {cid} has no territories")


def map_from_dict(data: dict) -> MapDefinition:
    """
    Build a MapDefinition from its JSON form (map file or snapshot stored in game config).
    Continent membership is taken from each territory's "continent" field.
    """
    continents_data = data.get("continents") or {}
    territories_data = data.get("territories") or {}

    continents = {}
    for cid, c in continents_data.items():
        continents[cid] = ContinentDefinition(
            id=cid,
            display_name=c.get("display_name", cid),
            bonus=int(c.get("bonus", 0)),
        )

    territories = {}
    for tid, t in territories_data.items():
        territories[tid] = TerritoryDefinition(
            id=tid,
            display_name=t.get("display_name", tid),
            continent=t["continent"],
            adjacent=list(t.get("adjacent", [])),
        )
        if t["continent"] in continents:
            continents[t["continent"]].territories.append(tid)

    map_def = MapDefinition(
        id=str(data.get("id") or "custom"),
        display_name=str(data.get("display_name") or data.get("id") or "custom"),
        territories=territories,
        continents=continents,
    )
    validate_map(map_def)
    return map_def


def map_to_dict(map_def: MapDefinition) -> dict:
    """Snapshot a map so a persisted game always uses the map it was created with."""
    return {
        "id": map_def.id,
        "display_name": map_def.display_name,
        "continents": {
            cid: {"display_name": c.display_name, "bonus": c.bonus}
            for cid, c in map_def.continents.items()
        },
        "territories": {
            tid: {k: v for k, v in asdict(t).items() if k != "id"}
            for tid, t in map_def.territories.items()
        },
    }


def list_maps() -> list[dict]:
    """Return [{ id, display_name, territory_count }, ...] for all map files in data/maps/."""
    out = []
    if not MAPS_DIR.exists():
        return out
    for path in sorted(MAPS_DIR.glob("*.json")):
        try:
            with open(path, "r") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError):
            continue
        out.append({
            "id": data.get("id", path.stem),
            "display_name": data.get("display_name", path.stem),
            "territory_count": len(data.get("territories") or {}),
        })
    return out


def load_map(map_id: str | None = None) -> MapDefinition:
    """Load map by id (default from config). Raises FileNotFoundError for unknown ids."""
    if map_id is None:
        map_id = _default_map_id()
    path = MAPS_DIR / f"{map_id}.json"
    if path.parent != MAPS_DIR or not path.exists():
        raise FileNotFoundError(f"Map not found: {map_id}")
    with open(path, "r") as f:
        data = json.load(f)
    data.setdefault("id", map_id)
    return map_from_dict(data)
