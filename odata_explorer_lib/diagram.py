"""
Node and edge data for an entity relationship diagram built from a ParsedSchema.
"""

from typing import Dict, List, Optional
from pydantic import BaseModel

from .graph_coloring import compute_graph_coloring, get_color, palette_length
from .models import ParsedSchema, short_type_name


class DiagramNode(BaseModel):
    id: str
    color_index: int
    color: str
    keys: List[str] = []
    property_count: int = 0
    navigation_count: int = 0
    field_colors: Dict[str, str] = {}  # constraint property -> owning entity color


class DiagramEdge(BaseModel):
    id: str
    source: str
    target: str
    navigation: str
    source_label: str
    target_label: str
    source_color: str
    target_color: str


class DiagramGraph(BaseModel):
    nodes: List[DiagramNode] = []
    edges: List[DiagramEdge] = []
    color_map: Dict[str, int] = {}

    def get_node(self, node_id: str) -> Optional[DiagramNode]:
        return next((node for node in self.nodes if node.id == node_id), None)


def build_diagram(schema: ParsedSchema, is_dark: bool = False) -> DiagramGraph:
    """One node per entity and at most one edge per related entity pair."""
    entities = schema.entities
    if not entities:
        return DiagramGraph()

    color_map = compute_graph_coloring(entities, palette_length(is_dark))
    known = {entity.name for entity in entities}
    field_colors: Dict[str, Dict[str, str]] = {entity.name: {} for entity in entities}
    processed_pairs = set()
    edges: List[DiagramEdge] = []

    for entity in entities:
        for nav in entity.navigation_properties:
            target = short_type_name(nav.target_type)
            if not target or target == entity.name or target not in known:
                continue

            source_color = get_color(color_map[entity.name], is_dark)
            target_color = get_color(color_map[target], is_dark)

            # Constraint columns are tinted even when the pair already has an edge
            for mapping in nav.constraints:
                field_colors[entity.name][mapping.source_property] = source_color
                field_colors[target][mapping.target_property] = target_color

            pair_key = tuple(sorted((entity.name, target)))
            if pair_key in processed_pairs:
                continue
            processed_pairs.add(pair_key)

            edges.append(DiagramEdge(
                id=f"{entity.name}-{target}-{nav.name}",
                source=entity.name,
                target=target,
                navigation=nav.name,
                source_label=f"{entity.name} ({nav.source_multiplicity or '?'}",
                target_label=f"{nav.target_multiplicity or '?'}) {target}",
                source_color=source_color,
                target_color=target_color
            ))

    nodes = [
        DiagramNode(
            id=entity.name,
            color_index=color_map[entity.name],
            color=get_color(color_map[entity.name], is_dark),
            keys=list(entity.keys),
            property_count=len(entity.properties),
            navigation_count=len(entity.navigation_properties),
            field_colors=field_colors[entity.name]
        )
        for entity in entities
    ]
    return DiagramGraph(nodes=nodes, edges=edges, color_map=color_map)
