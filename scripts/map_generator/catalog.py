from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

TEST_PREFIX = "test:"


@dataclass(frozen=True)
class MapItem:
    name: str
    is_test: bool = False


# giantworldmap is listed under both roots; the test copy is emitted to
# tests/testdata/maps alongside the production one.
BUILTIN_MAPS: Tuple[MapItem, ...] = (
    MapItem("africa"),
    MapItem("asia"),
    MapItem("australia"),
    MapItem("achiran"),
    MapItem("baikal"),
    MapItem("baikalnukewars"),
    MapItem("betweentwoseas"),
    MapItem("blacksea"),
    MapItem("britannia"),
    MapItem("deglaciatedantarctica"),
    MapItem("eastasia"),
    MapItem("europe"),
    MapItem("europeclassic"),
    MapItem("falklandislands"),
    MapItem("faroeislands"),
    MapItem("fourislands"),
    MapItem("gatewaytotheatlantic"),
    MapItem("giantworldmap"),
    MapItem("halkidiki"),
    MapItem("iceland"),
    MapItem("italia"),
    MapItem("japan"),
    MapItem("mars"),
    MapItem("mena"),
    MapItem("montreal"),
    MapItem("northamerica"),
    MapItem("oceania"),
    MapItem("pangaea"),
    MapItem("pluto"),
    MapItem("southamerica"),
    MapItem("straitofgibraltar"),
    MapItem("world"),
    MapItem("big_plains", is_test=True),
    MapItem("half_land_half_ocean", is_test=True),
    MapItem("ocean_and_land", is_test=True),
    MapItem("plains", is_test=True),
    MapItem("giantworldmap", is_test=True),
)


def parse_map_token(raw_value: str) -> Optional[MapItem]:
    """Parse one `--maps` element. Blank elements yield None."""
    token = raw_value.strip()
    if not token:
        return None
    is_test = token.startswith(TEST_PREFIX)
    if is_test:
        token = token[len(TEST_PREFIX):]
        if not token:
            raise ValueError(f"missing map name after {TEST_PREFIX!r}")
    return MapItem(name=token, is_test=is_test)


def parse_maps_override(raw_value: str) -> List[MapItem]:
    items: List[MapItem] = []
    for part in raw_value.split(","):
        item = parse_map_token(part)
        if item is not None:
            items.append(item)
    return items


def effective_catalog(override: Optional[str] = None) -> List[MapItem]:
    """Return the maps to process for an optional `--maps` value.

    An absent override, or one that parses to no items (e.g. `" , , "`),
    keeps the built-in catalog. Anything else replaces it entirely.
    Names are not validated here; unknown maps fail when their inputs are read.
    """
    if override:
        items = parse_maps_override(override)
        if items:
            return items
    return list(BUILTIN_MAPS)
