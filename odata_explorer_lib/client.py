"""
OData client for row queries and batched create/update/delete with CSRF token handling.
"""

import copy
import json
import sys
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Union
from urllib.parse import urlencode
import requests
from pydantic import BaseModel

from .constants import PAYLOAD_STRIP_KEYS, USER_AGENT
from .models import EntityType, ODataVersion, ParsedSchema
from .traversal import collect_selected_items_with_context, resolve_item_uri
from .version_detector import get_service_root


def encode_query_params(params):
    """Encode query parameters properly for OData compatibility.

    OData servers (especially SAP backends) don't accept '+' for spaces
    in URL parameters. They require '%20' according to RFC 3986.
    """
    encoded = urlencode(params, doseq=True, safe='$')
    return encoded.replace('+', '%20')


def extract_results(data: Any) -> list:
    """Unwrap the row list from any of the V2/V3/V4 JSON response envelopes."""
    if isinstance(data, list):
        return data
    if not isinstance(data, dict):
        return []
    if isinstance(data.get('value'), list):
        return data['value']
    if 'd' in data:
        inner = data['d']
        if isinstance(inner, list):
            return inner
        if isinstance(inner, dict):
            if isinstance(inner.get('results'), list):
                return inner['results']
            return [inner]
        return []
    return [data]


def version_headers(version: Union[ODataVersion, str], action: str = "read") -> Dict[str, str]:
    """Request headers a service of the given version expects for an action (read/create/update/delete)."""
    version = ODataVersion(version)
    if version == ODataVersion.V4:
        return {
            'Accept': 'application/json',
            'Content-Type': 'application/json',
            'OData-Version': '4.0',
            'OData-MaxVersion': '4.0'
        }
    if version == ODataVersion.V3:
        return {
            'Accept': 'application/json;odata=verbose',
            'Content-Type': 'application/json' if action == 'delete' else 'application/json;odata=verbose',
            'DataServiceVersion': '3.0',
            'MaxDataServiceVersion': '3.0'
        }
    return {
        'Accept': 'application/json',
        'Content-Type': 'application/json',
        'DataServiceVersion': '2.0',
        'MaxDataServiceVersion': '2.0'
    }


def build_update_payload(original_item: Optional[Dict[str, Any]], changes: Dict[str, Any],
                         version: Union[ODataVersion, str], schema: Optional[ParsedSchema],
                         entity_type: Optional[EntityType]) -> Dict[str, Any]:
    """
    Request body for a create/update: the changes without protocol or UI keys,
    plus the type annotation the service version expects. The original row's
    own type marker is preferred over one derived from the schema.
    """
    payload = copy.deepcopy(changes)
    for key in PAYLOAD_STRIP_KEYS:
        payload.pop(key, None)

    original_item = original_item or {}
    qualified = None
    if schema is not None and entity_type is not None:
        qualified = schema.qualified_name(entity_type.name)

    if ODataVersion(version) == ODataVersion.V4:
        type_name = original_item.get('@odata.type')
        if not type_name and qualified:
            type_name = f"#{qualified}"
        if type_name:
            payload['@odata.type'] = type_name
    else:
        metadata = original_item.get('__metadata')
        type_name = metadata.get('type') if isinstance(metadata, dict) else None
        if not type_name:
            type_name = qualified
        if type_name:
            # Only the type; uri/etag in a request body make some services reject it
            payload['__metadata'] = {'type': type_name}
    return payload


def clean_new_item(item: Dict[str, Any]) -> Dict[str, Any]:
    """Drop every internal '__'-prefixed key from a new row."""
    return {key: value for key, value in item.items() if not key.startswith('__')}


class MutationRequest(BaseModel):
    method: str
    url: Optional[str] = None  # None: row identity could not be resolved, request is skipped
    headers: Dict[str, str] = {}
    body: Optional[Dict[str, Any]] = None
    predicate: Optional[str] = None
    entity_set: Optional[str] = None

    def describe(self) -> str:
        if not self.url:
            return f"// SKIP: Cannot determine URL for item in {self.entity_set}"
        text = f"{self.method} {self.url}"
        if self.body is not None:
            text += f"\n\n{json.dumps(self.body, indent=2)}"
        return text


class BatchReport(BaseModel):
    success_count: int = 0
    failure_count: int = 0
    results: List[str] = []
    errors: List[str] = []

    def summary(self) -> str:
        return f"Batch Operation Report: {self.success_count} succeeded, {self.failure_count} failed"


class ODataClient:
    """Client for querying an OData service and executing planned mutations against it."""

    def __init__(self, service_url: str, version: Union[ODataVersion, str] = ODataVersion.V2,
                 schema: Optional[ParsedSchema] = None,
                 auth: Optional[Union[Tuple[str, str], Dict[str, str]]] = None,
                 verbose: bool = False, timeout: Optional[float] = 30):
        self.base_url = get_service_root(service_url)
        self.version = ODataVersion(version)
        self.schema = schema
        self.auth = auth
        self.verbose = verbose
        self.timeout = timeout
        self.session = requests.Session()

        if auth:
            if isinstance(auth, tuple) and len(auth) == 2:
                self.session.auth = auth
                self.auth_type = "basic"
            elif isinstance(auth, dict):
                self.session.cookies.update(auth)
                self.auth_type = "cookie"
            else:
                raise ValueError("Auth must be either (username, password) tuple or cookies dict")
        else:
            self.auth_type = "none"
        self.session.headers.update({'User-Agent': USER_AGENT})
        # SAP services require a CSRF token for modifying requests
        self.csrf_token = None

    def _log_verbose(self, message: str):
        """Prints message to stderr only if verbose mode is enabled."""
        if self.verbose:
            timestamp = datetime.now().strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]
            print(f"[{timestamp} Client VERBOSE] {message}", file=sys.stderr)

    def _fetch_csrf_token(self) -> bool:
        """Fetch CSRF token required by some SAP OData services for modifying requests."""
        self._log_verbose(f"Attempting CSRF token fetch from service root: {self.base_url}")
        self.csrf_token = None
        try:
            response = self.session.get(self.base_url, headers={'X-CSRF-Token': 'Fetch'}, timeout=self.timeout)
        except requests.exceptions.RequestException as req_e:
            self._log_verbose(f"Failed to fetch CSRF token: {req_e}")
            return False

        csrf_token = None
        for header_name, header_value in response.headers.items():
            if header_name.lower() == 'x-csrf-token':
                csrf_token = header_value
                break

        if csrf_token and csrf_token.lower() not in ['fetch', 'required']:
            self.csrf_token = csrf_token
            self._log_verbose(f"CSRF token fetched successfully: {csrf_token[:20]}...")
            return True
        self._log_verbose(f"No valid CSRF token from {self.base_url} (got: '{csrf_token}')")
        return False

    def _make_request(self, method: str, url: str, headers: Optional[Dict[str, str]] = None,
                      **kwargs) -> requests.Response:
        """Internal helper to make requests, retrying once when the CSRF token was rejected."""
        is_modifying = method.upper() in ['POST', 'PUT', 'MERGE', 'PATCH', 'DELETE']
        request_headers = dict(headers or {})
        if is_modifying and self.csrf_token:
            request_headers['X-CSRF-Token'] = self.csrf_token

        if kwargs.get('params'):
            encoded_params = encode_query_params(kwargs.pop('params'))
            url = f"{url}&{encoded_params}" if '?' in url else f"{url}?{encoded_params}"
        kwargs.pop('params', None)

        response = self.session.request(method, url, headers=request_headers, timeout=self.timeout, **kwargs)

        csrf_failed = (
            response.status_code == 403 and is_modifying and
            ('csrf' in response.text.lower() or
             response.headers.get('x-csrf-token', '').lower() == 'required')
        )
        if csrf_failed:
            self._log_verbose("CSRF token validation failed, attempting to refetch...")
            if self._fetch_csrf_token():
                request_headers['X-CSRF-Token'] = self.csrf_token
                self._log_verbose("Retrying request with new CSRF token...")
                response = self.session.request(method, url, headers=request_headers, timeout=self.timeout, **kwargs)
        return response

    def _parse_odata_error(self, response: requests.Response) -> str:
        """Attempt to extract a meaningful error message from an OData error response."""
        try:
            data = response.json()
        except ValueError:
            return response.text[:200] if response.text else f"HTTP {response.status_code}: {response.reason}"

        if isinstance(data, dict):
            error_obj = data.get('error') or data.get('odata.error')
            if isinstance(error_obj, dict):
                msg = error_obj.get('message')
                if isinstance(msg, dict) and 'value' in msg:
                    return msg['value']
                if isinstance(msg, str):
                    return msg
        return json.dumps(data)

    def query(self, url_or_entity_set: str, params: Optional[Dict[str, Any]] = None) -> list:
        """Fetch rows from an entity set (or full URL) and return them unwrapped."""
        if url_or_entity_set.startswith(('http://', 'https://')):
            url = url_or_entity_set
        else:
            url = f"{self.base_url}/{url_or_entity_set.lstrip('/')}"

        self._log_verbose(f"Querying {url} with params {params}")
        try:
            response = self._make_request('GET', url, headers=version_headers(self.version), params=params)
            response.raise_for_status()
        except requests.exceptions.RequestException as req_err:
            status_code = req_err.response.status_code if req_err.response is not None else 'N/A'
            detail = self._parse_odata_error(req_err.response) if req_err.response is not None else str(req_err)
            raise ValueError(f"Query failed ({status_code}): {detail}") from req_err

        try:
            data = response.json()
        except ValueError as json_err:
            raise ValueError(f"Query response from {url} is not JSON") from json_err
        results = extract_results(data)
        self._log_verbose(f"Query returned {len(results)} rows")
        return results

    def _resolve_url(self, item: Any, entity_set: Optional[str], entity_type: Optional[EntityType],
                     fallback_set: Optional[str], fallback_type: Optional[EntityType]):
        resolved = resolve_item_uri(item, self.base_url, entity_set, entity_type)
        if not resolved.url:
            resolved = resolve_item_uri(item, self.base_url, fallback_set, fallback_type)
        return resolved

    def plan_delete(self, rows: List[Any], entity_set: Optional[str],
                    entity_type: Optional[EntityType]) -> List[MutationRequest]:
        """DELETE requests for every selected row in a (nested) result tree."""
        tasks = collect_selected_items_with_context(rows, entity_set, entity_type, self.schema)
        headers = version_headers(self.version, 'delete')
        planned = []
        for task in tasks:
            resolved = self._resolve_url(task.item, task.entity_set, task.entity_type, entity_set, entity_type)
            planned.append(MutationRequest(
                method='DELETE',
                url=resolved.url,
                headers=headers,
                predicate=resolved.predicate,
                entity_set=task.entity_set or entity_set
            ))
        self._log_verbose(f"Planned {len(planned)} delete request(s)")
        return planned

    def plan_update(self, updates: List[Dict[str, Any]], entity_set: Optional[str],
                    entity_type: Optional[EntityType]) -> List[MutationRequest]:
        """PATCH requests for rows given as {'item': row, 'changes': {...}} pairs."""
        headers = version_headers(self.version, 'update')
        planned = []
        for update in updates:
            item = update.get('item')
            payload = build_update_payload(item, update.get('changes') or {}, self.version,
                                           self.schema, entity_type)
            # A server-supplied URI is tried before the caller's context
            resolved = self._resolve_url(item, None, None, entity_set, entity_type)
            planned.append(MutationRequest(
                method='PATCH',
                url=resolved.url,
                headers=headers,
                body=payload,
                predicate=resolved.predicate,
                entity_set=entity_set
            ))
        self._log_verbose(f"Planned {len(planned)} update request(s)")
        return planned

    def plan_create(self, items: List[Dict[str, Any]], entity_set: Optional[str],
                    entity_type: Optional[EntityType]) -> List[MutationRequest]:
        """POST requests creating each new row in the entity set."""
        headers = version_headers(self.version, 'create')
        url = f"{self.base_url}/{entity_set}" if entity_set else None
        planned = [
            MutationRequest(
                method='POST',
                url=url,
                headers=headers,
                body=build_update_payload(None, clean_new_item(item), self.version, self.schema, entity_type),
                entity_set=entity_set
            )
            for item in items
        ]
        self._log_verbose(f"Planned {len(planned)} create request(s)")
        return planned

    def execute_batch(self, planned: List[MutationRequest]) -> BatchReport:
        """Send planned requests one by one; failures are recorded, never raised."""
        report = BatchReport()
        if any(request.url for request in planned) and not self.csrf_token:
            if not self._fetch_csrf_token():
                self._log_verbose("Failed to fetch CSRF token, proceeding without it")

        for request in planned:
            if not request.url:
                report.results.append("SKIP: Unable to determine URL for item")
                report.errors.append("Missing URL for item")
                report.failure_count += 1
                continue

            kwargs = {}
            if request.method != 'DELETE' and request.body is not None:
                kwargs['data'] = json.dumps(request.body)
            try:
                response = self._make_request(request.method, request.url, headers=request.headers, **kwargs)
            except requests.exceptions.RequestException as req_err:
                self._log_verbose(f"{request.method} {request.url} raised {req_err}")
                report.results.append(f"ERROR: {request.url} - {req_err}")
                report.errors.append(str(req_err))
                report.failure_count += 1
                continue

            if 200 <= response.status_code < 300:
                report.results.append(f"SUCCESS ({request.method}): {request.url}")
                report.success_count += 1
            else:
                message = self._parse_odata_error(response)
                report.results.append(f"FAILED ({response.status_code}): {request.url}\nResponse: {response.text[:300]}")
                report.errors.append(message)
                report.failure_count += 1

        self._log_verbose(report.summary())
        return report
