"""
Constants used throughout the OData Explorer library.
"""

# OData primitive type mappings to Python types
ODATA_PRIMITIVE_TYPES = {
    "Edm.String": str,
    "Edm.Byte": int,
    "Edm.SByte": int,
    "Edm.Int16": int,
    "Edm.Int32": int,
    "Edm.Int64": int,
    "Edm.Decimal": float,
    "Edm.Double": float,
    "Edm.Single": float,
    "Edm.Boolean": bool,
    "Edm.DateTime": str,
    "Edm.DateTimeOffset": str,
    "Edm.Date": str,
    "Edm.TimeOfDay": str,
    "Edm.Time": str,
    "Edm.Duration": str,
    "Edm.Guid": str,
    "Edm.Binary": str
}

# Namespace URIs used for version signatures and XML lookups
NAMESPACES = {
    'd': 'http://schemas.microsoft.com/ado/2007/08/dataservices',
    'data_v4': 'http://docs.oasis-open.org/odata/ns/data',
    'sap': 'http://www.sap.com/Protocols/SAPData',
}

# Namespace prefixes that identify a producer family when no version attribute exists
V4_NAMESPACE_MARKER = 'docs.oasis-open.org/odata/ns/'
V2_NAMESPACE_MARKER = 'schemas.microsoft.com/ado/2007/'

# <Property> attributes with a dedicated field; everything else lands in custom_attributes
STANDARD_PROPERTY_ATTRS = frozenset([
    'Name', 'Type', 'Nullable', 'MaxLength', 'FixedLength',
    'Precision', 'Scale', 'Unicode', 'DefaultValue', 'ConcurrencyMode'
])

# Conventional key names tried in order when the schema declares no key
FALLBACK_KEY_NAMES = ['ID', 'Id', 'id', 'Uuid', 'UUID', 'Guid', 'Key']

# Row keys owned by the protocol or the selection UI, never traversed as data
SYSTEM_KEYS = frozenset(['__metadata', '__deferred', '__selected'])

# Keys stripped from a payload before it is sent back to the service
PAYLOAD_STRIP_KEYS = ['__metadata', '__deferred', '__selected', '@odata.context', '@odata.etag']

SELECTION_KEY = '__selected'

# Light mode palette (high saturation for white backgrounds)
PALETTE_LIGHT = [
    '#9966ff',  # purple
    '#6666ff',  # indigo
    '#6699ff',  # blue
    '#ffcc66',  # amber
    '#ff9966',  # orange
    '#ff6666',  # red
    '#14b8a6',  # teal
    '#84cc16',  # lime
    '#3b82f6',  # bright blue
]

# Dark mode palette (One Dark Pro syntax colors)
PALETTE_DARK = [
    '#61afef',  # blue
    '#98c379',  # green
    '#e5c07b',  # yellow
    '#e06c75',  # red
    '#c678dd',  # purple
    '#56b6c2',  # cyan
    '#d19a66',  # orange
    '#be5046',  # dark red
]

USER_AGENT = 'OData-Explorer/1.0'
