"""
Data models for the normalized OData schema and the records derived from it.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel

from .constants import ODATA_PRIMITIVE_TYPES


class ODataVersion(str, Enum):
    V2 = "V2"
    V3 = "V3"
    V4 = "V4"
    UNKNOWN = "Unknown"


def strip_collection(type_name: Optional[str]) -> Optional[str]:
    """Unwrap 'Collection(NS.Type)' to 'NS.Type'."""
    if type_name and type_name.startswith('Collection(') and type_name.endswith(')'):
        return type_name[len('Collection('):-1]
    return type_name


def short_type_name(type_name: Optional[str]) -> Optional[str]:
    """Reduce a possibly qualified and/or collection type to its bare name."""
    unwrapped = strip_collection(type_name)
    if not unwrapped:
        return None
    return unwrapped.split('.')[-1] or None


class EntityProperty(BaseModel):
    name: str
    type: str  # OData type string (e.g., "Edm.String")
    nullable: bool = True
    max_length: Optional[int] = None
    fixed_length: bool = False
    precision: Optional[int] = None
    scale: Optional[int] = None
    unicode: bool = True
    default_value: Optional[str] = None
    concurrency_mode: Optional[str] = None
    custom_attributes: Optional[Dict[str, str]] = None
    description: Optional[str] = None

    def get_python_type(self) -> type:
        return ODATA_PRIMITIVE_TYPES.get(self.type, str)

    def get_custom_attribute(self, local_name: str) -> Optional[str]:
        """Look up a vendor attribute by its local name, ignoring the prefix."""
        for attr_name, value in (self.custom_attributes or {}).items():
            if attr_name.split(':')[-1] == local_name:
                return value
        return None

    def is_store_generated(self) -> bool:
        """True for Identity/Computed columns the server fills in itself."""
        pattern = self.get_custom_attribute('StoreGeneratedPattern')
        return pattern in ('Identity', 'Computed')


class PropertyMapping(BaseModel):
    source_property: str
    target_property: str


class NavigationProperty(BaseModel):
    name: str
    target_type: Optional[str] = None  # None when the association lookup failed
    relationship: Optional[str] = None
    source_multiplicity: Optional[str] = None
    target_multiplicity: Optional[str] = None
    constraints: List[PropertyMapping] = []

    def target_short_name(self) -> Optional[str]:
        return short_type_name(self.target_type)

    def is_collection(self) -> bool:
        return self.target_multiplicity == '*'


class EntityType(BaseModel):
    name: str
    keys: List[str] = []
    properties: List[EntityProperty] = []
    navigation_properties: List[NavigationProperty] = []
    description: Optional[str] = None

    def has_identity(self) -> bool:
        return len(self.keys) > 0

    def get_property(self, name: str) -> Optional[EntityProperty]:
        return next((prop for prop in self.properties if prop.name == name), None)

    def get_navigation(self, name: str) -> Optional[NavigationProperty]:
        return next((nav for nav in self.navigation_properties if nav.name == name), None)


class ComplexType(BaseModel):
    name: str
    properties: List[EntityProperty] = []
    navigation_properties: List[NavigationProperty] = []
    description: Optional[str] = None


class EntitySet(BaseModel):
    name: str
    entity_type: str  # qualified name as written in the container

    def entity_type_short_name(self) -> str:
        return self.entity_type.split('.')[-1]


class FieldPath(BaseModel):
    path: str  # dotted path through complex-type nesting, e.g. "Address.City"
    property: EntityProperty


class ParsedSchema(BaseModel):
    entities: List[EntityType] = []
    complex_types: List[ComplexType] = []
    entity_sets: List[EntitySet] = []
    namespace: str = ""
    version: ODataVersion = ODataVersion.UNKNOWN

    def find_entity_type(self, short_name: Optional[str]) -> Optional[EntityType]:
        if not short_name:
            return None
        return next((e for e in self.entities if e.name == short_name), None)

    def find_entity_set_by_type(self, short_name: Optional[str]) -> Optional[str]:
        """Name of the first entity set whose type matches, namespace ignored."""
        if not short_name:
            return None
        for entity_set in self.entity_sets:
            if entity_set.entity_type_short_name() == short_name:
                return entity_set.name
        return None

    def find_complex_type(self, short_name: Optional[str]) -> Optional[ComplexType]:
        if not short_name:
            return None
        return next((ct for ct in self.complex_types if ct.name == short_name), None)

    def qualified_name(self, short_name: str) -> str:
        return f"{self.namespace}.{short_name}" if self.namespace else short_name

    def flatten_properties(self, structure: Union[EntityType, ComplexType],
                           prefix: str = "", depth: int = 0) -> List[FieldPath]:
        """
        Expand complex-typed properties into their leaf fields.

        Keyless entity types are structural too: some producers declare them
        instead of ComplexType. Nesting stops after five levels so recursive
        complex types cannot loop forever.
        """
        if depth > 5:
            return []

        fields: List[FieldPath] = []
        for prop in structure.properties:
            path = f"{prefix}.{prop.name}" if prefix else prop.name
            type_name = short_type_name(prop.type)
            nested: Optional[Any] = self.find_complex_type(type_name)
            if nested is None:
                candidate = self.find_entity_type(type_name)
                if candidate is not None and not candidate.has_identity():
                    nested = candidate

            if nested is not None:
                fields.extend(self.flatten_properties(nested, path, depth + 1))
            else:
                fields.append(FieldPath(path=path, property=prop))
        return fields


class EntityContextTask(BaseModel):
    item: Any = None  # live data row, not owned by the schema
    entity_set: Optional[str] = None
    entity_type: Optional[EntityType] = None


class ResolvedUri(BaseModel):
    url: Optional[str] = None
    predicate: Optional[str] = None
