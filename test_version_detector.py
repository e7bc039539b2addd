#!/usr/bin/env python3
"""
Unit tests for OData version detection and service root derivation.
"""

import json
import unittest
from unittest.mock import patch, MagicMock
import requests

from odata_explorer_lib import ODataVersion, VersionDetector, detect_odata_version, get_metadata_url, get_service_root
from odata_explorer_lib.version_detector import detect_from_content, version_from_attributes, version_from_header
from sample_metadata import V2_METADATA, V3_METADATA, V4_METADATA


def make_response(status=200, text='', headers=None, json_data=None):
    """Build a mocked requests.Response."""
    response = MagicMock()
    response.status_code = status
    response.ok = 200 <= status < 400
    response.headers = headers or {}
    if json_data is not None:
        response.text = json.dumps(json_data)
        response.json.return_value = json_data
    else:
        response.text = text
        response.json.side_effect = ValueError("No JSON object could be decoded")
    return response


class TestServiceRoot(unittest.TestCase):

    def test_metadata_suffix(self):
        self.assertEqual(get_service_root("https://host/svc/$metadata"), "https://host/svc")
        self.assertEqual(get_service_root("https://host/svc/$metadata?sap-client=100"), "https://host/svc")

    def test_svc_suffix(self):
        self.assertEqual(get_service_root("https://host/Northwind.svc/Orders(1)"), "https://host/Northwind.svc")
        self.assertEqual(get_service_root("https://host/Northwind.svc/"), "https://host/Northwind.svc")

    def test_odata_convention(self):
        self.assertEqual(get_service_root("https://host/api/odata/Users#top"), "https://host/api/odata")

    def test_sap_gateway_service(self):
        root = "https://host/sap/opu/odata/sap/SALES_SRV"
        self.assertEqual(get_service_root(root + "/"), root)
        self.assertEqual(get_service_root(root + "/Orders(1)/Items?$top=2"), root)
        self.assertEqual(get_metadata_url(root + "/Orders"), root + "/$metadata")

    def test_plain_url(self):
        self.assertEqual(get_service_root("https://host/service/"), "https://host/service")
        self.assertEqual(get_metadata_url("https://host/service/"), "https://host/service/$metadata")


class TestContentSignatures(unittest.TestCase):

    def test_sample_documents(self):
        self.assertEqual(detect_from_content(V2_METADATA), ODataVersion.V2)
        self.assertEqual(detect_from_content(V3_METADATA), ODataVersion.V3)
        self.assertEqual(detect_from_content(V4_METADATA), ODataVersion.V4)
        self.assertEqual(detect_from_content(V4_METADATA.encode("utf-8")), ODataVersion.V4)

    def test_explicit_version_attributes(self):
        self.assertEqual(detect_from_content('<Edmx Version="2.0"/>'), ODataVersion.V2)
        self.assertEqual(detect_from_content('<Edmx Version="3.0"/>'), ODataVersion.V3)
        self.assertEqual(detect_from_content("<Edmx Version='4.01'/>"), ODataVersion.V4)

    def test_max_data_service_version_is_not_a_version(self):
        content = '<DataServices m:MaxDataServiceVersion="3.0" xmlns:m="x"/>'
        self.assertEqual(detect_from_content(content), ODataVersion.UNKNOWN)

    def test_namespace_fallback(self):
        self.assertEqual(
            detect_from_content('<Schema xmlns="http://docs.oasis-open.org/odata/ns/edm"/>'), ODataVersion.V4)
        self.assertEqual(
            detect_from_content('<Schema xmlns="http://schemas.microsoft.com/ado/2007/05/edm"/>'), ODataVersion.V2)

    def test_unknown_content(self):
        self.assertEqual(detect_from_content("<html><body>hello</body></html>"), ODataVersion.UNKNOWN)
        self.assertEqual(detect_from_content(""), ODataVersion.UNKNOWN)
        self.assertEqual(VersionDetector().detect("plain text", is_content=True), ODataVersion.UNKNOWN)

    def test_attribute_and_header_helpers(self):
        self.assertEqual(version_from_attributes("1.0", "3.0"), ODataVersion.V3)
        self.assertEqual(version_from_attributes("1.0"), ODataVersion.V2)
        self.assertEqual(version_from_attributes(None, None), ODataVersion.UNKNOWN)
        self.assertEqual(version_from_header("2.0;"), ODataVersion.V2)
        self.assertEqual(version_from_header("4.0"), ODataVersion.V4)
        self.assertEqual(version_from_header("3.0;NetFx"), ODataVersion.V3)
        self.assertEqual(version_from_header(None), ODataVersion.UNKNOWN)


class TestNetworkProbing(unittest.TestCase):
    """Layered probing against a mocked service."""

    @patch('requests.Session.get')
    def test_metadata_probe_wins(self, mock_get):
        mock_get.return_value = make_response(text=V4_METADATA)

        version = VersionDetector().detect("https://host/TripPin.svc/People")

        self.assertEqual(version, ODataVersion.V4)
        self.assertEqual(mock_get.call_count, 1)
        self.assertEqual(mock_get.call_args[0][0], "https://host/TripPin.svc/$metadata")

    @patch('requests.Session.get')
    def test_falls_back_to_response_headers(self, mock_get):
        mock_get.side_effect = [
            make_response(status=404, text="Not Found"),
            make_response(headers={'OData-Version': '4.0'}, json_data={"value": []}),
        ]
        self.assertEqual(VersionDetector().detect("https://host/api/People"), ODataVersion.V4)
        self.assertEqual(mock_get.call_args[0][0], "https://host/api/People")

    @patch('requests.Session.get')
    def test_falls_back_to_json_shape(self, mock_get):
        mock_get.side_effect = [
            requests.exceptions.ConnectionError("refused"),
            make_response(headers={'Content-Type': 'application/json'}, json_data={"d": {"results": []}}),
        ]
        self.assertEqual(VersionDetector().detect("https://host/svc/Orders"), ODataVersion.V2)

    @patch('requests.Session.get')
    def test_non_edmx_metadata_response_falls_through(self, mock_get):
        mock_get.side_effect = [
            make_response(text="<html><body>Login</body></html>"),
            make_response(json_data={"@odata.context": "https://host/svc/$metadata#People", "value": []}),
        ]
        self.assertEqual(VersionDetector().detect("https://host/svc/People"), ODataVersion.V4)

    @patch('requests.Session.get')
    def test_v3_json_light_shape(self, mock_get):
        mock_get.side_effect = [
            make_response(status=500),
            make_response(json_data={"odata.metadata": "https://host/svc/$metadata#Products", "value": []}),
        ]
        self.assertEqual(VersionDetector().detect("https://host/svc/Products"), ODataVersion.V3)

    @patch('requests.Session.get')
    def test_xml_data_namespace(self, mock_get):
        atom = ('<feed xmlns="http://www.w3.org/2005/Atom" '
                'xmlns:d="http://schemas.microsoft.com/ado/2007/08/dataservices"></feed>')
        mock_get.side_effect = [
            make_response(status=404),
            make_response(headers={'Content-Type': 'application/atom+xml'}, text=atom),
        ]
        self.assertEqual(VersionDetector().detect("https://host/svc/Orders"), ODataVersion.V2)

    @patch('requests.Session.get')
    def test_every_probe_failing_returns_unknown(self, mock_get):
        mock_get.side_effect = requests.exceptions.ConnectionError("no route to host")
        self.assertEqual(detect_odata_version("https://unreachable/svc"), ODataVersion.UNKNOWN)

    @patch('requests.Session.get')
    def test_unexpected_error_returns_unknown(self, mock_get):
        mock_get.side_effect = RuntimeError("boom")
        self.assertEqual(VersionDetector(verbose=True).detect("https://host/svc"), ODataVersion.UNKNOWN)

    def test_cookie_auth_is_applied(self):
        detector = VersionDetector(auth={"SAP_SESSIONID": "abc"})
        self.assertEqual(detector.session.cookies.get("SAP_SESSIONID"), "abc")
        detector = VersionDetector(auth=("user", "pass"))
        self.assertEqual(detector.session.auth, ("user", "pass"))


if __name__ == "__main__":
    unittest.main()
