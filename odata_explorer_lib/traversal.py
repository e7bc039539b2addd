"""
Entity-context traversal over fetched (possibly $expand-ed) row trees, plus
key predicate and request URI resolution for individual rows.
"""

import re
from typing import Any, List, NamedTuple, Optional

from .constants import FALLBACK_KEY_NAMES, SELECTION_KEY, SYSTEM_KEYS
from .models import EntityContextTask, EntityType, ParsedSchema, ResolvedUri, short_type_name

V2_MARKER = '__metadata'
V4_MARKER = '@odata.type'

# "/Segment(key)" at the end of a path; quoted literals ('' escapes) may hold '/' or ')'
_TRAILING_PREDICATE = re.compile(r"/[^/(]+(\((?:'(?:[^']|'')*'|[^'/])*\))$")


class TypeMarker(NamedTuple):
    kind: str  # V2_MARKER or V4_MARKER
    type_name: str


def detect_type_marker(node: Any) -> Optional[TypeMarker]:
    """Embedded type information of a row, if it carries any."""
    if not isinstance(node, dict):
        return None
    metadata = node.get(V2_MARKER)
    if isinstance(metadata, dict) and metadata.get('type'):
        return TypeMarker(V2_MARKER, metadata['type'])
    odata_type = node.get(V4_MARKER)
    if isinstance(odata_type, str) and odata_type:
        return TypeMarker(V4_MARKER, odata_type.lstrip('#'))
    return None


def find_entity_set_by_type(schema: Optional[ParsedSchema], short_name: Optional[str]) -> Optional[str]:
    if schema is None:
        return None
    return schema.find_entity_set_by_type(short_name)


def find_entity_type(schema: Optional[ParsedSchema], short_name: Optional[str]) -> Optional[EntityType]:
    if schema is None:
        return None
    return schema.find_entity_type(short_name)


def _unwrap_results(value: Any) -> Any:
    """V2/V3 collections arrive wrapped as {"results": [...]}."""
    if isinstance(value, dict) and isinstance(value.get('results'), list):
        return value['results']
    return value


def is_expandable(value: Any) -> bool:
    """True for values that can hold rows: lists, nested objects and results wrappers."""
    value = _unwrap_results(value)
    if isinstance(value, list):
        return True
    if not isinstance(value, dict):
        return False
    # Deferred links and bare metadata blocks hold no rows
    return any(key not in SYSTEM_KEYS for key in value)


def _heal_context(node: Any, entity_set: Optional[str], entity_type: Optional[EntityType],
                  schema: Optional[ParsedSchema]):
    if entity_set and entity_type is not None:
        return entity_set, entity_type
    marker = detect_type_marker(node)
    if marker is None or schema is None:
        return entity_set, entity_type
    short_name = short_type_name(marker.type_name)
    if not entity_set:
        entity_set = find_entity_set_by_type(schema, short_name)
    if entity_type is None:
        entity_type = find_entity_type(schema, short_name)
    return entity_set, entity_type


def collect_selected_items_with_context(items: List[Any], entity_set: Optional[str],
                                        entity_type: Optional[EntityType],
                                        schema: Optional[ParsedSchema],
                                        selection_key: str = SELECTION_KEY) -> List[EntityContextTask]:
    """
    Collect every row flagged with ``selection_key`` anywhere in the tree.

    Each task carries the best-known entity set and type for its row. Context
    missing from the caller is recovered from the row's own type marker, and
    nested collections get the target of the matching navigation property.
    Results are in depth-first, key-enumeration order.
    """
    tasks: List[EntityContextTask] = []
    skipped_keys = SYSTEM_KEYS | {selection_key}

    for node in items:
        if not isinstance(node, dict):
            continue
        node_set, node_type = _heal_context(node, entity_set, entity_type, schema)

        if node.get(selection_key) is True:
            tasks.append(EntityContextTask(item=node, entity_set=node_set, entity_type=node_type))

        for key, value in node.items():
            if key in skipped_keys or not is_expandable(value):
                continue

            child_set, child_type = None, None
            nav = node_type.get_navigation(key) if node_type is not None else None
            if nav is not None:
                target = nav.target_short_name()
                child_set = find_entity_set_by_type(schema, target)
                child_type = find_entity_type(schema, target)

            children = _unwrap_results(value)
            if isinstance(children, dict):
                children = [children]
            if children:
                tasks.extend(collect_selected_items_with_context(
                    children, child_set, child_type, schema, selection_key
                ))
    return tasks


def format_key_value(value: Any) -> str:
    """Literal form of a key value inside a predicate."""
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, str):
        return "'" + value.replace("'", "''") + "'"
    return str(value)


def get_key_predicate(item: Any, entity_type: Optional[EntityType]) -> Optional[str]:
    """
    Key predicate such as "(ID=5)" or "(CustomerID='A',OrderID=7)".

    Declared keys are used in declared order. Without them the first
    conventional key name present on the row is used, which is a best-effort
    guess and not validated as unique. Returns None when no complete key is
    available.
    """
    if not isinstance(item, dict):
        return None

    if entity_type is not None and entity_type.keys:
        keys = entity_type.keys
    else:
        found = next((name for name in FALLBACK_KEY_NAMES if item.get(name) is not None), None)
        keys = [found] if found else []

    if not keys or any(item.get(key) is None for key in keys):
        return None
    if len(keys) == 1:
        return f"({keys[0]}={format_key_value(item[keys[0]])})"
    return "(" + ",".join(f"{key}={format_key_value(item[key])}" for key in keys) + ")"


def _explicit_uri(item: dict) -> Optional[str]:
    metadata = item.get(V2_MARKER)
    if isinstance(metadata, dict) and metadata.get('uri'):
        return metadata['uri']
    return item.get('@odata.id') or item.get('@odata.editLink') or None


def _absolute(uri: str, base_url: str) -> str:
    if uri.startswith(('http://', 'https://')):
        return uri
    return f"{base_url.rstrip('/')}/{uri.lstrip('/')}"


def _predicate_from_uri(uri: str) -> Optional[str]:
    """Trailing '(...)' of the last path segment, if any. Quoted key literals may contain '/'."""
    match = _TRAILING_PREDICATE.search(uri.split('?')[0].rstrip('/'))
    return match.group(1) if match else None


def resolve_item_uri(item: Any, base_url: str, entity_set: Optional[str],
                     entity_type: Optional[EntityType]) -> ResolvedUri:
    """
    Request URI of a row: a server-supplied URI wins over one built from
    ``{base_url}/{entity_set}{key predicate}``.
    """
    if not isinstance(item, dict):
        return ResolvedUri()

    explicit = _explicit_uri(item)
    if explicit:
        url = _absolute(explicit, base_url)
        return ResolvedUri(url=url, predicate=_predicate_from_uri(url))

    if entity_set:
        predicate = get_key_predicate(item, entity_type)
        if predicate:
            return ResolvedUri(url=f"{base_url.rstrip('/')}/{entity_set}{predicate}", predicate=predicate)
    return ResolvedUri()


def set_selection(data: Any, selected: bool, selection_key: str = SELECTION_KEY) -> int:
    """Flag or unflag every row in a (nested) row tree. Returns the number of rows touched."""
    data = _unwrap_results(data)
    if isinstance(data, list):
        return sum(set_selection(row, selected, selection_key) for row in data)
    if not isinstance(data, dict):
        return 0

    data[selection_key] = selected
    touched = 1
    for key, value in data.items():
        if key in SYSTEM_KEYS or key == selection_key or not is_expandable(value):
            continue
        touched += set_selection(value, selected, selection_key)
    return touched
