"""
OData metadata parser for turning EDMX/CSDL documents (V2, V3 and V4) into a ParsedSchema.
"""

import sys
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple, Union
import requests
from lxml import etree

from .constants import NAMESPACES, STANDARD_PROPERTY_ATTRS, USER_AGENT
from .models import (
    ComplexType,
    EntityProperty,
    EntitySet,
    EntityType,
    NavigationProperty,
    ParsedSchema,
    PropertyMapping,
)
from .version_detector import get_metadata_url, version_from_attributes


@dataclass
class AssociationEnd:
    role: str
    type: str
    multiplicity: str = "1"


@dataclass
class AssociationConstraint:
    principal_role: str
    principal_refs: List[str]
    dependent_role: str
    dependent_refs: List[str]


@dataclass
class Association:
    """V2/V3 association: the role table navigation properties resolve against."""
    name: str
    ends: Dict[str, AssociationEnd] = field(default_factory=dict)
    constraint: Optional[AssociationConstraint] = None


def _children(element, local_name: str) -> list:
    """Direct child elements by local name, whatever namespace the producer used."""
    return element.xpath(f"./*[local-name()='{local_name}']")


def _descendants(element, local_name: str) -> list:
    return element.xpath(f".//*[local-name()='{local_name}']")


def _first_child(element, local_name: str):
    found = _children(element, local_name)
    return found[0] if found else None


def _parse_int(value: Optional[str]) -> Optional[int]:
    """Numeric facet; non-numeric values such as 'Max' or 'variable' count as absent."""
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


class MetadataParser:
    """Parses OData V2/V3/V4 metadata into the normalized schema model."""

    def __init__(self, service_url: Optional[str] = None,
                 auth: Optional[Union[Tuple[str, str], Dict[str, str]]] = None,
                 verbose: bool = False, timeout: Optional[float] = 30):
        self.service_url = service_url.rstrip('/') if service_url else None
        self.auth = auth
        self.verbose = verbose
        self.timeout = timeout
        self.session = requests.Session()
        if isinstance(auth, tuple):
            self.session.auth = auth
            self.auth_type = "basic"
        elif isinstance(auth, dict):
            self.session.cookies.update(auth)
            self.auth_type = "cookie"
        else:
            self.auth_type = "none"
        self.session.headers.update({
            'Accept': 'application/xml',
            'User-Agent': USER_AGENT
        })

    def _log_verbose(self, message: str):
        """Prints message to stderr only if verbose mode is enabled."""
        if self.verbose:
            timestamp = datetime.now().strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]
            print(f"[{timestamp} Parser VERBOSE] {message}", file=sys.stderr)

    def _get_description(self, element) -> Optional[str]:
        """Helper to extract description from annotations (basic attempt)."""
        # SAP label attribute first
        desc = element.xpath(f"./@*[local-name()='label' and namespace-uri()='{NAMESPACES['sap']}']")
        if desc: return str(desc[0])
        desc = element.xpath("./*[local-name()='Documentation']/*[local-name()='LongDescription']/text()")
        if desc: return str(desc[0])
        desc = element.xpath("./*[local-name()='Documentation']/*[local-name()='Summary']/text()")
        if desc: return str(desc[0])
        # V4 inline annotation
        desc = element.xpath("./*[local-name()='Annotation' and @Term='Core.Description']/@String")
        if desc: return str(desc[0])
        return None

    def fetch(self, url: Optional[str] = None) -> ParsedSchema:
        """Fetch $metadata for a service (any URL below its root) and parse it."""
        source_url = url or self.service_url
        if not source_url:
            raise ValueError("No service URL given to fetch metadata from.")
        metadata_url = get_metadata_url(source_url)

        try:
            self._log_verbose(f"Fetching metadata from {metadata_url}...")
            response = self.session.get(metadata_url, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as req_err:
            status_code = req_err.response.status_code if req_err.response is not None else 'N/A'
            raise ValueError(f"Metadata request failed ({status_code}): {req_err}") from req_err

        self._log_verbose("Metadata fetched successfully.")
        return self.parse(response.content)

    def parse(self, xml_text: Union[str, bytes]) -> ParsedSchema:
        """Parse a metadata document. Raises ValueError only when there is no Schema to build from."""
        root = self._load_xml(xml_text)

        schemas = _descendants(root, 'Schema')
        if root.xpath("local-name()") == 'Schema':
            schemas.insert(0, root)
        if not schemas:
            raise ValueError("No Schema definition found in metadata document.")

        schema = schemas[0]
        namespace = schema.get('Namespace', '')
        self._log_verbose(f"Using schema '{namespace}' ({len(schemas)} schema element(s) in document).")

        # Navigation resolution is a pure lookup, so every association is indexed up front
        associations = self._parse_associations(schemas)
        entity_sets = self._parse_entity_sets(root)
        complex_types = [
            self._parse_complex_type(ct_elem, associations)
            for ct_elem in _children(schema, 'ComplexType')
            if ct_elem.get('Name')
        ]
        entities = [
            self._parse_entity_type(et_elem, associations)
            for et_elem in _children(schema, 'EntityType')
            if et_elem.get('Name')
        ]

        version = self._detect_document_version(root)
        self._log_verbose(
            f"Parsing complete. Found {len(entities)} entity types, {len(complex_types)} complex types, "
            f"{len(entity_sets)} entity sets, {len(associations)} association keys (version {version.value})."
        )
        return ParsedSchema(
            entities=entities,
            complex_types=complex_types,
            entity_sets=entity_sets,
            namespace=namespace,
            version=version
        )

    def _load_xml(self, xml_text: Union[str, bytes]):
        data = xml_text.encode('utf-8') if isinstance(xml_text, str) else xml_text
        parser = etree.XMLParser(resolve_entities=False, no_network=True, load_dtd=False, huge_tree=True)
        try:
            root = etree.fromstring(data, parser=parser)
        except etree.XMLSyntaxError as parse_err:
            raise ValueError(f"Metadata is not well-formed XML: {parse_err}") from parse_err
        if root is None:
            raise ValueError("Metadata document is empty.")
        return root

    def _detect_document_version(self, root):
        edmx_version = root.get('Version') if root.xpath("local-name()") == 'Edmx' else None
        data_service_version = None
        data_services = _children(root, 'DataServices')
        if data_services:
            for attr_name, value in data_services[0].attrib.items():
                if etree.QName(attr_name).localname == 'DataServiceVersion':
                    data_service_version = value
        return version_from_attributes(edmx_version, data_service_version)

    def _parse_associations(self, schemas) -> Dict[str, Association]:
        """Index Association elements by qualified and bare name."""
        associations: Dict[str, Association] = {}
        for schema in schemas:
            namespace = schema.get('Namespace', '')
            for assoc_elem in _children(schema, 'Association'):
                name = assoc_elem.get('Name')
                if not name: continue

                association = Association(name=name)
                for end_elem in _children(assoc_elem, 'End'):
                    role = end_elem.get('Role')
                    if not role: continue
                    association.ends[role] = AssociationEnd(
                        role=role,
                        type=end_elem.get('Type', ''),
                        multiplicity=end_elem.get('Multiplicity', '1')
                    )
                association.constraint = self._parse_association_constraint(assoc_elem)

                qualified = f"{namespace}.{name}" if namespace else name
                associations[qualified] = association
                # Bare name belongs to the first schema that declares it
                associations.setdefault(name, association)
        return associations

    def _parse_association_constraint(self, assoc_elem) -> Optional[AssociationConstraint]:
        ref_elem = _first_child(assoc_elem, 'ReferentialConstraint')
        if ref_elem is None:
            return None
        principal = _first_child(ref_elem, 'Principal')
        dependent = _first_child(ref_elem, 'Dependent')
        if principal is None or dependent is None:
            return None

        principal_role = principal.get('Role')
        dependent_role = dependent.get('Role')
        principal_refs = [pr.get('Name') for pr in _children(principal, 'PropertyRef') if pr.get('Name')]
        dependent_refs = [pr.get('Name') for pr in _children(dependent, 'PropertyRef') if pr.get('Name')]
        if not (principal_role and dependent_role and principal_refs and dependent_refs):
            return None
        return AssociationConstraint(
            principal_role=principal_role,
            principal_refs=principal_refs,
            dependent_role=dependent_role,
            dependent_refs=dependent_refs
        )

    def _parse_entity_sets(self, root) -> List[EntitySet]:
        """EntitySets from every EntityContainer (V2 producers often put the container in a second Schema)."""
        entity_sets = []
        for container in _descendants(root, 'EntityContainer'):
            for es_elem in _children(container, 'EntitySet'):
                name = es_elem.get('Name')
                entity_type = es_elem.get('EntityType')
                if not name or not entity_type: continue
                entity_sets.append(EntitySet(name=name, entity_type=entity_type))
        return entity_sets

    def _parse_complex_type(self, ct_elem, associations: Dict[str, Association]) -> ComplexType:
        return ComplexType(
            name=ct_elem.get('Name'),
            properties=self._parse_properties(ct_elem),
            navigation_properties=[
                self._parse_navigation(nav_elem, associations)
                for nav_elem in _children(ct_elem, 'NavigationProperty')
            ],
            description=self._get_description(ct_elem)
        )

    def _parse_entity_type(self, et_elem, associations: Dict[str, Association]) -> EntityType:
        keys = []
        key_elem = _first_child(et_elem, 'Key')
        if key_elem is not None:
            keys = [
                prop_ref.get('Name')
                for prop_ref in _children(key_elem, 'PropertyRef')
                if prop_ref.get('Name')
            ]

        return EntityType(
            name=et_elem.get('Name'),
            keys=keys,
            properties=self._parse_properties(et_elem),
            navigation_properties=[
                self._parse_navigation(nav_elem, associations)
                for nav_elem in _children(et_elem, 'NavigationProperty')
            ],
            description=self._get_description(et_elem)
        )

    def _parse_properties(self, element) -> List[EntityProperty]:
        """Shared <Property> parser for entity and complex types."""
        properties = []
        for prop_elem in _children(element, 'Property'):
            name = prop_elem.get('Name')
            if not name: continue

            properties.append(EntityProperty(
                name=name,
                type=(prop_elem.get('Type') or '').strip(),
                nullable=prop_elem.get('Nullable') != 'false',
                max_length=_parse_int(prop_elem.get('MaxLength')),
                fixed_length=prop_elem.get('FixedLength') == 'true',
                precision=_parse_int(prop_elem.get('Precision')),
                scale=_parse_int(prop_elem.get('Scale')),
                unicode=prop_elem.get('Unicode') != 'false',
                default_value=prop_elem.get('DefaultValue') or None,
                concurrency_mode=prop_elem.get('ConcurrencyMode') or None,
                custom_attributes=self._custom_attributes(prop_elem),
                description=self._get_description(prop_elem)
            ))
        return properties

    def _custom_attributes(self, element) -> Optional[Dict[str, str]]:
        """Vendor attributes keyed as written in the document, e.g. 'p6:StoreGeneratedPattern'."""
        # lxml never reports xmlns declarations as attributes
        prefixes = {uri: prefix for prefix, uri in element.nsmap.items() if prefix}
        custom = {}
        for attr_name, value in element.attrib.items():
            qname = etree.QName(attr_name)
            if qname.namespace is None:
                if qname.localname in STANDARD_PROPERTY_ATTRS: continue
                custom[qname.localname] = value
            else:
                prefix = prefixes.get(qname.namespace)
                custom[f"{prefix}:{qname.localname}" if prefix else qname.localname] = value
        return custom or None

    def _parse_navigation(self, nav_elem, associations: Dict[str, Association]) -> NavigationProperty:
        name = nav_elem.get('Name', '')
        v4_type = nav_elem.get('Type')
        relationship = nav_elem.get('Relationship')

        if v4_type:
            return self._parse_v4_navigation(nav_elem, name, v4_type.strip())

        navigation = NavigationProperty(name=name, relationship=relationship)
        to_role = nav_elem.get('ToRole')
        from_role = nav_elem.get('FromRole')
        if not (relationship and to_role and from_role):
            self._log_verbose(f"Navigation '{name}' has neither Type nor a complete Relationship/role triple.")
            return navigation

        association = associations.get(relationship) or associations.get(relationship.split('.')[-1])
        if association is None:
            self._log_verbose(f"Association '{relationship}' for navigation '{name}' not found.")
            return navigation

        to_end = association.ends.get(to_role)
        from_end = association.ends.get(from_role)
        if to_end is not None:
            navigation.target_type = to_end.type or None
            navigation.target_multiplicity = to_end.multiplicity
        if from_end is not None:
            navigation.source_multiplicity = from_end.multiplicity

        constraint = association.constraint
        if constraint is not None:
            if constraint.principal_role == from_role and constraint.dependent_role == to_role:
                pairs = zip(constraint.principal_refs, constraint.dependent_refs)
            elif constraint.dependent_role == from_role and constraint.principal_role == to_role:
                pairs = zip(constraint.dependent_refs, constraint.principal_refs)
            else:
                pairs = []
            navigation.constraints = [
                PropertyMapping(source_property=source, target_property=target)
                for source, target in pairs
            ]
        return navigation

    def _parse_v4_navigation(self, nav_elem, name: str, v4_type: str) -> NavigationProperty:
        if v4_type.startswith('Collection(') and v4_type.endswith(')'):
            target_type = v4_type[len('Collection('):-1]
            target_multiplicity = '*'
        else:
            target_type = v4_type
            target_multiplicity = '0..1' if nav_elem.get('Nullable') == 'true' else '1'

        constraints = []
        for ref_elem in _children(nav_elem, 'ReferentialConstraint'):
            prop = ref_elem.get('Property')
            referenced = ref_elem.get('ReferencedProperty')
            if prop and referenced:
                constraints.append(PropertyMapping(source_property=prop, target_property=referenced))

        return NavigationProperty(
            name=name,
            target_type=target_type or None,
            target_multiplicity=target_multiplicity,
            constraints=constraints
        )


def parse_metadata_to_schema(xml_text: Union[str, bytes], verbose: bool = False) -> ParsedSchema:
    """Parse metadata XML text into a ParsedSchema."""
    return MetadataParser(verbose=verbose).parse(xml_text)
