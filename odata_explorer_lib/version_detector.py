"""
OData protocol version detection from metadata content or a live service URL.
"""

import re
import sys
from datetime import datetime
from typing import Any, Dict, Iterable, Optional, Tuple, Union
import requests

from .constants import NAMESPACES, USER_AGENT, V2_NAMESPACE_MARKER, V4_NAMESPACE_MARKER
from .models import ODataVersion

# Standalone Version="x.y" attribute (Edmx root); the lookbehind keeps
# DataServiceVersion / MaxDataServiceVersion out of the match.
_EXPLICIT_VERSION = re.compile(r'(?<![\w-])Version\s*=\s*["\'](\d+\.\d+)["\']')
_DATA_SERVICE_VERSION = re.compile(r'(?<![\w-])DataServiceVersion\s*=\s*["\'](\d+\.\d+)["\']')
_EDMX_ROOT = re.compile(r'<(?:[\w.-]+:)?Edmx[\s>]')
_SAP_GATEWAY_ROOT = re.compile(r"^(.*?/sap/opu/odata/[^/]+/[^/]+)", re.IGNORECASE)


def get_service_root(url: str) -> str:
    """Derive the service root from any URL below it (entity set, $metadata, query)."""
    clean_url = url.strip().split('#')[0].split('?')[0]
    lowered = clean_url.lower()

    if lowered.endswith('/$metadata'):
        return clean_url[:-len('/$metadata')]
    if lowered.endswith('$metadata'):
        return clean_url[:-len('$metadata')]

    # SAP Gateway: .../sap/opu/odata/<namespace>/<SERVICE>/Orders -> .../sap/opu/odata/<namespace>/<SERVICE>
    gateway = _SAP_GATEWAY_ROOT.match(clean_url)
    if gateway:
        return gateway.group(1)

    # WCF Data Services style: .../Northwind.svc/Orders -> .../Northwind.svc
    svc_index = lowered.find('.svc')
    if svc_index > -1:
        return clean_url[:svc_index + len('.svc')]

    # Common convention: .../api/odata/Users -> .../api/odata
    odata_index = lowered.find('/odata/')
    if odata_index > -1:
        return clean_url[:odata_index + len('/odata')]

    return clean_url.rstrip('/')


def get_metadata_url(url: str) -> str:
    return f"{get_service_root(url)}/$metadata"


def _classify(explicit_versions: Iterable[str], data_service_versions: Iterable[str]) -> ODataVersion:
    explicit = set(v for v in explicit_versions if v)
    data_service = set(v for v in data_service_versions if v)
    if explicit & {'4.0', '4.01'}:
        return ODataVersion.V4
    # V3 documents keep Edmx Version="1.0" and carry 3.0 only in DataServiceVersion
    if '3.0' in explicit or '3.0' in data_service:
        return ODataVersion.V3
    if explicit & {'1.0', '2.0'} or data_service & {'1.0', '2.0'}:
        return ODataVersion.V2
    return ODataVersion.UNKNOWN


def version_from_attributes(edmx_version: Optional[str], data_service_version: Optional[str] = None) -> ODataVersion:
    """Classify from the Edmx Version and DataServices DataServiceVersion attribute values."""
    return _classify([edmx_version], [data_service_version])


def version_from_header(value: Optional[str]) -> ODataVersion:
    """Classify an OData-Version / DataServiceVersion response header value (e.g. '2.0;')."""
    if not value:
        return ODataVersion.UNKNOWN
    number = value.split(';')[0].strip()
    if number.startswith('4.'):
        return ODataVersion.V4
    if number.startswith('3.'):
        return ODataVersion.V3
    if number.startswith('2.') or number.startswith('1.'):
        return ODataVersion.V2
    return ODataVersion.UNKNOWN


def detect_from_content(content: Union[str, bytes]) -> ODataVersion:
    """Signature matching on metadata text: version attributes first, then namespace URIs."""
    if isinstance(content, bytes):
        content = content.decode('utf-8', errors='replace')
    if not content:
        return ODataVersion.UNKNOWN

    version = _classify(_EXPLICIT_VERSION.findall(content), _DATA_SERVICE_VERSION.findall(content))
    if version != ODataVersion.UNKNOWN:
        return version

    if V4_NAMESPACE_MARKER in content:
        return ODataVersion.V4
    if V2_NAMESPACE_MARKER in content:
        return ODataVersion.V2
    return ODataVersion.UNKNOWN


def _version_from_json(data: Any) -> ODataVersion:
    """Classify a JSON payload by its wrapper and annotation conventions."""
    if isinstance(data, list):
        data = data[0] if data else None
    if not isinstance(data, dict):
        return ODataVersion.UNKNOWN

    if any(key.startswith('@odata.') for key in data):
        return ODataVersion.V4
    # V3 JSON light
    if 'odata.metadata' in data:
        return ODataVersion.V3
    if 'd' in data or '__metadata' in data:
        return ODataVersion.V2
    return ODataVersion.UNKNOWN


class VersionDetector:
    """
    Probes an OData service (or inspects metadata content) to classify its version.

    Detection is advisory: every probe failure falls through to the next
    strategy and the final answer is ODataVersion.UNKNOWN, never an exception.
    """

    def __init__(self, auth: Optional[Union[Tuple[str, str], Dict[str, str]]] = None,
                 verbose: bool = False, timeout: Optional[float] = 30):
        self.auth = auth
        self.verbose = verbose
        self.timeout = timeout
        self.session = requests.Session()
        if isinstance(auth, tuple):
            self.session.auth = auth
        elif isinstance(auth, dict):
            self.session.cookies.update(auth)
        self.session.headers.update({'User-Agent': USER_AGENT})

    def _log_verbose(self, message: str):
        """Prints message to stderr only if verbose mode is enabled."""
        if self.verbose:
            timestamp = datetime.now().strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]
            print(f"[{timestamp} Detector VERBOSE] {message}", file=sys.stderr)

    def detect(self, url_or_content: str, is_content: bool = False) -> ODataVersion:
        """Detect the OData version of a metadata document or a service URL."""
        try:
            if is_content:
                return detect_from_content(url_or_content)

            version = self._probe_metadata(url_or_content)
            if version != ODataVersion.UNKNOWN:
                return version

            self._log_verbose("Metadata probe inconclusive, checking the URL itself...")
            return self._probe_direct(url_or_content)
        except Exception as e:
            self._log_verbose(f"Version detection failed: {e}")
            return ODataVersion.UNKNOWN

    def _probe_metadata(self, url: str) -> ODataVersion:
        metadata_url = get_metadata_url(url)
        self._log_verbose(f"Probing metadata at {metadata_url}")
        try:
            response = self.session.get(metadata_url, timeout=self.timeout)
        except requests.exceptions.RequestException as req_err:
            self._log_verbose(f"Metadata fetch failed: {req_err}")
            return ODataVersion.UNKNOWN

        if not response.ok:
            self._log_verbose(f"Metadata fetch returned HTTP {response.status_code}")
            return ODataVersion.UNKNOWN

        text = response.text
        if not _EDMX_ROOT.search(text):
            self._log_verbose("Metadata response is not an EDMX document")
            return ODataVersion.UNKNOWN

        version = detect_from_content(text)
        self._log_verbose(f"Metadata signature: {version.value}")
        return version

    def _probe_direct(self, url: str) -> ODataVersion:
        try:
            response = self.session.get(
                url,
                headers={'Accept': 'application/json, application/xml, application/atom+xml'},
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as req_err:
            self._log_verbose(f"Direct URL fetch failed: {req_err}")
            return ODataVersion.UNKNOWN

        if not response.ok:
            self._log_verbose(f"Direct URL fetch returned HTTP {response.status_code}")
            return ODataVersion.UNKNOWN

        # A. Headers
        header_version = version_from_header(
            response.headers.get('OData-Version') or response.headers.get('DataServiceVersion')
        )
        if header_version != ODataVersion.UNKNOWN:
            self._log_verbose(f"Version from response header: {header_version.value}")
            return header_version

        content_type = response.headers.get('Content-Type', '')
        text = response.text
        stripped = text.lstrip()

        # B. JSON body shape
        if 'json' in content_type or stripped.startswith(('{', '[')):
            try:
                version = _version_from_json(response.json())
            except ValueError:
                version = ODataVersion.UNKNOWN
            if version != ODataVersion.UNKNOWN:
                self._log_verbose(f"Version from JSON shape: {version.value}")
                return version

        # C. XML body namespaces
        if 'xml' in content_type or stripped.startswith('<'):
            if _EDMX_ROOT.search(text):
                return detect_from_content(text)
            if NAMESPACES['data_v4'] in text:
                return ODataVersion.V4
            if NAMESPACES['d'] in text:
                return ODataVersion.V2

        return ODataVersion.UNKNOWN


def detect_odata_version(url_or_content: str, is_content: bool = False,
                         auth: Optional[Union[Tuple[str, str], Dict[str, str]]] = None,
                         timeout: Optional[float] = 30) -> ODataVersion:
    """Convenience wrapper around VersionDetector.detect."""
    return VersionDetector(auth=auth, timeout=timeout).detect(url_or_content, is_content=is_content)
