"""
OData Explorer Library - metadata parsing, version detection, graph coloring
and entity-context traversal for OData V2/V3/V4 services.
"""

from .models import (
    ODataVersion,
    EntityProperty,
    PropertyMapping,
    NavigationProperty,
    EntityType,
    ComplexType,
    EntitySet,
    FieldPath,
    ParsedSchema,
    EntityContextTask,
    ResolvedUri
)
from .metadata_parser import MetadataParser, parse_metadata_to_schema
from .version_detector import VersionDetector, detect_odata_version, get_service_root, get_metadata_url
from .graph_coloring import compute_graph_coloring, build_adjacency, get_color, palette_length
from .diagram import DiagramGraph, DiagramNode, DiagramEdge, build_diagram
from .traversal import (
    collect_selected_items_with_context,
    get_key_predicate,
    resolve_item_uri,
    set_selection
)
from .client import ODataClient, MutationRequest, BatchReport, build_update_payload, extract_results

__all__ = [
    'ODataVersion',
    'EntityProperty',
    'PropertyMapping',
    'NavigationProperty',
    'EntityType',
    'ComplexType',
    'EntitySet',
    'FieldPath',
    'ParsedSchema',
    'EntityContextTask',
    'ResolvedUri',
    'MetadataParser',
    'parse_metadata_to_schema',
    'VersionDetector',
    'detect_odata_version',
    'get_service_root',
    'get_metadata_url',
    'compute_graph_coloring',
    'build_adjacency',
    'get_color',
    'palette_length',
    'DiagramGraph',
    'DiagramNode',
    'DiagramEdge',
    'build_diagram',
    'collect_selected_items_with_context',
    'get_key_predicate',
    'resolve_item_uri',
    'set_selection',
    'ODataClient',
    'MutationRequest',
    'BatchReport',
    'build_update_payload',
    'extract_results'
]
