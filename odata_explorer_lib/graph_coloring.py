"""
Deterministic, load-balanced color assignment for the entity relationship graph.
"""

from typing import Dict, List, Set

from .constants import PALETTE_DARK, PALETTE_LIGHT
from .models import EntityType, short_type_name


def palette_length(is_dark: bool = False) -> int:
    return len(PALETTE_DARK if is_dark else PALETTE_LIGHT)


def get_color(index: int, is_dark: bool = False) -> str:
    """Palette color for a color index; indices wrap around the palette."""
    palette = PALETTE_DARK if is_dark else PALETTE_LIGHT
    return palette[index % len(palette)]


def build_adjacency(entities: List[EntityType]) -> Dict[str, Set[str]]:
    """
    Undirected neighbor sets keyed by entity name.

    Self references and navigation targets that are unresolved or not among
    the given entities are left out.
    """
    known = {entity.name for entity in entities}
    adjacency: Dict[str, Set[str]] = {entity.name: set() for entity in entities}
    for entity in entities:
        for nav in entity.navigation_properties:
            target = short_type_name(nav.target_type)
            if not target or target == entity.name or target not in known:
                continue
            adjacency[entity.name].add(target)
            adjacency[target].add(entity.name)
    return adjacency


def compute_graph_coloring(entities: List[EntityType], palette_length: int) -> Dict[str, int]:
    """
    Greedy coloring with global usage balancing.

    Entities are visited by descending degree, then ascending name. Each takes
    the color no colored neighbor uses that has the lowest global usage so far
    (lowest index on ties). When every color is taken by some neighbor, the
    color least used among its neighbors wins, ties going to lower global
    usage and then to the lower index. Collisions are minimized, not ruled out.
    """
    if palette_length < 1:
        raise ValueError(f"Palette length must be at least 1, got {palette_length}.")

    adjacency = build_adjacency(entities)
    colors: Dict[str, int] = {}
    global_usage = [0] * palette_length

    ordered = sorted(entities, key=lambda e: (-len(adjacency.get(e.name, ())), e.name))
    for entity in ordered:
        if entity.name in colors:
            continue
        neighbor_colors = [colors[n] for n in sorted(adjacency.get(entity.name, ())) if n in colors]
        taken = set(neighbor_colors)
        free = [i for i in range(palette_length) if i not in taken]

        if free:
            chosen = min(free, key=lambda i: (global_usage[i], i))
        else:
            local_usage = [0] * palette_length
            for color in neighbor_colors:
                local_usage[color] += 1
            chosen = min(range(palette_length), key=lambda i: (local_usage[i], global_usage[i], i))

        colors[entity.name] = chosen
        global_usage[chosen] += 1
    return colors
