#!/usr/bin/env python3
"""
Unit tests for the odata_explorer command line front end.
"""

import argparse
import json
import os
import tempfile
import unittest
from io import StringIO
from unittest.mock import patch

from odata_explorer import (
    load_cookies_from_file,
    main,
    parse_cookie_string,
    print_trace_info,
    resolve_auth,
    resolve_service_url
)
from odata_explorer_lib import ODataVersion, parse_metadata_to_schema
from sample_metadata import V2_METADATA, V4_METADATA


def make_args(**overrides):
    values = dict(service_via_flag=None, service_url_pos=None, user=None, password=None,
                  cookie_file=None, cookie_string=None, verbose=False)
    values.update(overrides)
    return argparse.Namespace(**values)


class TestCookieAuthentication(unittest.TestCase):
    """Tests for cookie authentication functionality."""

    def test_parse_cookie_string(self):
        cookies = parse_cookie_string("session=abc123; user=john")
        self.assertEqual(cookies["session"], "abc123")
        self.assertEqual(cookies["user"], "john")

        cookies = parse_cookie_string("session=abc123;user=john;token=xyz789")
        self.assertEqual(len(cookies), 3)
        self.assertEqual(parse_cookie_string(""), {})

        cookies = parse_cookie_string("data=key=value; session=123")
        self.assertEqual(cookies["data"], "key=value")

    def test_load_cookies_from_file(self):
        with tempfile.NamedTemporaryFile(mode='w', delete=False, suffix='.txt') as f:
            f.write("# Netscape HTTP Cookie File\n")
            f.write(".example.com\tTRUE\t/\tFALSE\t0\tsession\tabc123\n")
            f.write(".test.com\tTRUE\t/\tTRUE\t1234567890\ttoken\txyz789\n")
            f.write("plain=value\n")
            temp_file = f.name

        try:
            cookies = load_cookies_from_file(temp_file)
            self.assertEqual(cookies, {"session": "abc123", "token": "xyz789", "plain": "value"})
        finally:
            os.unlink(temp_file)

    def test_missing_cookie_file(self):
        with patch('sys.stderr', new_callable=StringIO):
            self.assertIsNone(load_cookies_from_file("/nonexistent/cookies.txt"))


class TestConfigurationResolution(unittest.TestCase):

    def test_service_url_priority(self):
        with patch.dict(os.environ, {"ODATA_URL": "https://env/svc"}, clear=True):
            self.assertEqual(resolve_service_url(make_args(service_via_flag="https://flag/svc",
                                                           service_url_pos="https://pos/svc")),
                             "https://flag/svc")
            self.assertEqual(resolve_service_url(make_args(service_url_pos="https://pos/svc")), "https://pos/svc")
            self.assertEqual(resolve_service_url(make_args()), "https://env/svc")
        with patch.dict(os.environ, {"ODATA_SERVICE_URL": "https://alt/svc"}, clear=True):
            self.assertEqual(resolve_service_url(make_args()), "https://alt/svc")
        with patch.dict(os.environ, {}, clear=True):
            self.assertIsNone(resolve_service_url(make_args()))

    def test_basic_auth_flags_override_environment(self):
        with patch.dict(os.environ, {"ODATA_USER": "envuser", "ODATA_PASS": "envpass"}, clear=True):
            self.assertEqual(resolve_auth(make_args()), ("envuser", "envpass"))
            self.assertEqual(resolve_auth(make_args(user="cli", password="secret")), ("cli", "secret"))
        with patch.dict(os.environ, {"ODATA_USERNAME": "u"}, clear=True):
            self.assertIsNone(resolve_auth(make_args()))

    def test_cookie_sources(self):
        with patch.dict(os.environ, {"ODATA_COOKIE_STRING": "a=1; b=2", "ODATA_USER": "u", "ODATA_PASS": "p"}, clear=True):
            self.assertEqual(resolve_auth(make_args()), {"a": "1", "b": "2"})
            self.assertEqual(resolve_auth(make_args(cookie_string="c=3")), {"c": "3"})

    def test_invalid_cookie_string_exits(self):
        with patch.dict(os.environ, {}, clear=True), patch('sys.stderr', new_callable=StringIO):
            with self.assertRaises(SystemExit) as ctx:
                resolve_auth(make_args(cookie_string="no-pairs-here"))
        self.assertEqual(ctx.exception.code, 1)


class TestCommandLine(unittest.TestCase):

    def setUp(self):
        with tempfile.NamedTemporaryFile(mode='w', delete=False, suffix='.xml', encoding='utf-8') as f:
            f.write(V2_METADATA)
            self.metadata_file = f.name

    def tearDown(self):
        os.unlink(self.metadata_file)

    def run_main(self, *argv):
        with patch('sys.argv', ['odata_explorer.py', *argv]), \
                patch.dict(os.environ, {}, clear=True), \
                patch('sys.stdout', new_callable=StringIO) as stdout, \
                patch('sys.stderr', new_callable=StringIO):
            main()
        return stdout.getvalue()

    def test_json_output_from_metadata_file(self):
        output = self.run_main("--metadata-file", self.metadata_file, "--json")
        data = json.loads(output)
        self.assertEqual(data["namespace"], "NS")
        self.assertEqual(data["version"], "V2")
        self.assertEqual(len(data["entity_sets"]), 3)

    def test_detect_only_from_metadata_file(self):
        output = self.run_main("--metadata-file", self.metadata_file, "--detect-only")
        self.assertEqual(output.strip(), "V2")

    def test_trace_output(self):
        output = self.run_main("--metadata-file", self.metadata_file, "--trace")
        self.assertIn("Version:   V2", output)
        self.assertIn("Customers: NS.Customer", output)
        self.assertIn("Customer (1 -- *) Order  via Orders", output)
        self.assertIn("CustomerID = CustomerRef", output)

    def test_missing_service_exits(self):
        with self.assertRaises(SystemExit) as ctx:
            self.run_main()
        self.assertEqual(ctx.exception.code, 1)

    def test_unparseable_metadata_exits(self):
        with open(self.metadata_file, 'w', encoding='utf-8') as f:
            f.write("<not-metadata/>")
        with self.assertRaises(SystemExit) as ctx:
            self.run_main("--metadata-file", self.metadata_file)
        self.assertEqual(ctx.exception.code, 1)

    @patch('requests.Session.get')
    @patch('requests.Session.request')
    def test_query_prints_rows(self, mock_request, mock_get):
        query_response = mock_request.return_value
        query_response.status_code = 200
        query_response.json.return_value = {"d": {"results": [{"OrderID": 1}]}}

        output = self.run_main("https://host/svc", "--metadata-file", self.metadata_file,
                               "--query", "Orders", "--top", "1")

        self.assertEqual(json.loads(output), [{"OrderID": 1}])
        self.assertEqual(mock_request.call_args[0][1], "https://host/svc/Orders?$top=1")
        mock_get.assert_not_called()

    @patch('requests.Session.get')
    @patch('requests.Session.request')
    def test_query_from_entity_set_url_uses_service_root(self, mock_request, mock_get):
        metadata_response = mock_get.return_value
        metadata_response.ok = True
        metadata_response.status_code = 200
        metadata_response.text = V2_METADATA
        metadata_response.content = V2_METADATA.encode('utf-8')
        query_response = mock_request.return_value
        query_response.status_code = 200
        query_response.json.return_value = {"d": {"results": [{"CustomerID": "C1"}]}}

        output = self.run_main("https://host/Northwind.svc/Orders", "--query", "Customers")

        self.assertEqual(json.loads(output), [{"CustomerID": "C1"}])
        self.assertEqual(mock_get.call_args[0][0], "https://host/Northwind.svc/$metadata")
        self.assertEqual(mock_request.call_args[0][1], "https://host/Northwind.svc/Customers?$top=20")


class TestTraceInfo(unittest.TestCase):

    def test_v4_trace_lists_navigation_and_complex_types(self):
        schema = parse_metadata_to_schema(V4_METADATA)
        with patch('sys.stdout', new_callable=StringIO) as stdout:
            print_trace_info(schema, ODataVersion.V4, is_dark=True)
        output = stdout.getvalue()
        self.assertIn("Namespace: Trip", output)
        self.assertIn("Complex Types (2):", output)
        self.assertIn("-> Friends: Trip.Person (? : *)", output)
        self.assertIn("-> Owner: Trip.Person (? : 1)", output)
        self.assertIn("OwnerName = UserName", output)


if __name__ == "__main__":
    unittest.main()
