#!/usr/bin/env python3
"""
OData Explorer - command line front end.

Detects the OData version of a service, parses its $metadata into a
normalized schema and prints it (as JSON or as a readable trace including
graph colors and diagram edges), or fetches rows from an entity set.
"""

import argparse
import json
import os
import sys
import traceback
from typing import Dict, Optional, Tuple, Union
from pathlib import Path
from dotenv import load_dotenv

from odata_explorer_lib import (
    MetadataParser,
    ODataClient,
    ODataVersion,
    ParsedSchema,
    VersionDetector,
    build_diagram,
)

# Load environment variables from .env file
load_dotenv()


def load_cookies_from_file(cookie_file: str) -> Optional[Dict[str, str]]:
    """Load cookies from a Netscape format cookie file."""
    cookies = {}

    try:
        with open(cookie_file, 'r') as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith('#'):
                    continue

                # Netscape format: domain, flag, path, secure, expiration, name, value
                parts = line.split('\t')
                if len(parts) >= 7:
                    cookies[parts[5]] = parts[6]
                elif '=' in line:
                    key, value = line.split('=', 1)
                    cookies[key.strip()] = value.strip()

    except OSError as e:
        print(f"ERROR: Failed to read cookie file: {e}", file=sys.stderr)
        return None

    return cookies


def parse_cookie_string(cookie_string: str) -> Dict[str, str]:
    """Parse cookie string like 'key1=val1; key2=val2'."""
    cookies = {}
    for cookie in cookie_string.split(';'):
        cookie = cookie.strip()
        if '=' in cookie:
            key, value = cookie.split('=', 1)
            cookies[key.strip()] = value.strip()
    return cookies


def resolve_service_url(args) -> Optional[str]:
    """Priority: --service flag > positional argument > environment (.env)."""
    if args.service_via_flag:
        if args.verbose: print("[VERBOSE] Using OData service URL from --service flag.", file=sys.stderr)
        return args.service_via_flag
    if args.service_url_pos:
        if args.verbose: print("[VERBOSE] Using OData service URL from positional argument.", file=sys.stderr)
        return args.service_url_pos
    service_url = os.getenv("ODATA_URL") or os.getenv("ODATA_SERVICE_URL")
    if service_url and args.verbose: print("[VERBOSE] Using ODATA_URL from environment.", file=sys.stderr)
    return service_url


def resolve_auth(args) -> Union[Tuple[str, str], Dict[str, str], None]:
    """Priority: cookie flags > cookie env vars > basic auth (flags over env)."""
    if args.cookie_file:
        if not Path(args.cookie_file).exists():
            print(f"ERROR: Cookie file not found: {args.cookie_file}", file=sys.stderr)
            sys.exit(1)
        auth = load_cookies_from_file(args.cookie_file)
        if not auth:
            print("ERROR: Failed to load cookies from file", file=sys.stderr)
            sys.exit(1)
        if args.verbose:
            print(f"[VERBOSE] Loaded {len(auth)} cookies from file: {args.cookie_file}", file=sys.stderr)
        return auth

    if args.cookie_string:
        auth = parse_cookie_string(args.cookie_string)
        if not auth:
            print("ERROR: Failed to parse cookie string", file=sys.stderr)
            sys.exit(1)
        if args.verbose:
            print(f"[VERBOSE] Parsed {len(auth)} cookies from string", file=sys.stderr)
        return auth

    env_cookie_file = os.getenv("ODATA_COOKIE_FILE")
    env_cookie_string = os.getenv("ODATA_COOKIE_STRING")
    if env_cookie_file and Path(env_cookie_file).exists():
        auth = load_cookies_from_file(env_cookie_file)
        if auth and args.verbose:
            print(f"[VERBOSE] Loaded {len(auth)} cookies from environment ODATA_COOKIE_FILE", file=sys.stderr)
        return auth or None
    if env_cookie_string:
        auth = parse_cookie_string(env_cookie_string)
        if auth and args.verbose:
            print(f"[VERBOSE] Parsed {len(auth)} cookies from environment ODATA_COOKIE_STRING", file=sys.stderr)
        return auth or None

    final_user = args.user if args.user is not None else (os.getenv("ODATA_USER") or os.getenv("ODATA_USERNAME"))
    final_pass = args.password if args.password is not None else (os.getenv("ODATA_PASS") or os.getenv("ODATA_PASSWORD"))
    if final_user and final_pass:
        if args.verbose: print(f"[VERBOSE] Using basic authentication for user: {final_user}", file=sys.stderr)
        return (final_user, final_pass)
    if args.verbose:
        print("[VERBOSE] No authentication provided or configured. Attempting anonymous access.", file=sys.stderr)
    return None


def print_trace_info(schema: ParsedSchema, version: ODataVersion, is_dark: bool = False):
    """Print a readable summary of the parsed schema, its coloring and diagram edges."""
    diagram = build_diagram(schema, is_dark=is_dark)

    print("=" * 80)
    print("OData Explorer Trace Information")
    print("=" * 80)
    print(f"\nVersion:   {version.value}")
    print(f"Namespace: {schema.namespace or '(none)'}")

    print(f"\nEntity Sets ({len(schema.entity_sets)}):")
    for entity_set in schema.entity_sets:
        print(f"   - {entity_set.name}: {entity_set.entity_type}")

    print(f"\nEntity Types ({len(schema.entities)}):")
    for entity in schema.entities:
        node = diagram.get_node(entity.name)
        keys = ', '.join(entity.keys) if entity.keys else '(no key)'
        color = f" [color {node.color_index} {node.color}]" if node else ""
        print(f"   - {entity.name}{color}  keys: {keys}  properties: {len(entity.properties)}")
        for nav in entity.navigation_properties:
            target = nav.target_type or '(unresolved)'
            print(f"       -> {nav.name}: {target} "
                  f"({nav.source_multiplicity or '?'} : {nav.target_multiplicity or '?'})")
            for mapping in nav.constraints:
                print(f"            {mapping.source_property} = {mapping.target_property}")

    if schema.complex_types:
        print(f"\nComplex Types ({len(schema.complex_types)}):")
        for complex_type in schema.complex_types:
            print(f"   - {complex_type.name}  properties: {len(complex_type.properties)}")

    print(f"\nDiagram Edges ({len(diagram.edges)}):")
    for edge in diagram.edges:
        print(f"   - {edge.source_label} -- {edge.target_label}  via {edge.navigation}")
    print("=" * 80)


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="OData metadata explorer: version detection, schema parsing and row queries",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument("--service", dest="service_via_flag", help="URL of the OData service (overrides positional argument and ODATA_URL env var)")
    parser.add_argument("service_url_pos", nargs='?', help="URL of the OData service (alternative to --service flag or env var)")
    parser.add_argument("--metadata-file", help="Parse metadata from a local EDMX file instead of fetching it")

    auth_group = parser.add_mutually_exclusive_group()
    auth_group.add_argument("-u", "--user", help="Username for basic authentication (overrides ODATA_USER env var)")
    auth_group.add_argument("--cookie-file", help="Path to cookie file in Netscape format")
    auth_group.add_argument("--cookie-string", help="Cookie string (key1=val1; key2=val2)")
    parser.add_argument("-p", "--password", help="Password for basic authentication (overrides ODATA_PASS env var)")

    parser.add_argument("-v", "--verbose", "--debug", dest="verbose", action="store_true", help="Enable verbose output to stderr")
    parser.add_argument("--dark", action="store_true", help="Use the dark palette for graph coloring")
    parser.add_argument("--timeout", type=float, default=30, help="HTTP timeout in seconds")

    parser.add_argument("--detect-only", action="store_true", help="Print the detected OData version and exit")
    parser.add_argument("--json", action="store_true", help="Print the parsed schema as JSON")
    parser.add_argument("--trace", action="store_true", help="Print a readable schema summary with colors and diagram edges")
    parser.add_argument("--query", metavar="ENTITYSET", help="Fetch rows from an entity set and print them as JSON")
    parser.add_argument("--top", type=int, default=20, help="Number of rows fetched by --query")

    args = parser.parse_args()

    service_url = resolve_service_url(args)
    if not service_url and not args.metadata_file:
        print("ERROR: OData service URL not provided.", file=sys.stderr)
        print("Provide it via the --service flag, as a positional argument, or ODATA_URL environment variable.", file=sys.stderr)
        parser.print_help(file=sys.stderr)
        sys.exit(1)

    auth = resolve_auth(args)
    metadata_parser = MetadataParser(service_url=service_url, auth=auth, verbose=args.verbose, timeout=args.timeout)

    try:
        if args.metadata_file:
            content = Path(args.metadata_file).read_bytes()
            schema = metadata_parser.parse(content)
            version = schema.version
            if version == ODataVersion.UNKNOWN:
                version = VersionDetector(verbose=args.verbose).detect(content.decode('utf-8', errors='replace'), is_content=True)
        else:
            version = VersionDetector(auth=auth, verbose=args.verbose, timeout=args.timeout).detect(service_url)
            if args.detect_only:
                print(version.value)
                sys.exit(0)
            schema = metadata_parser.fetch(service_url)
            if version == ODataVersion.UNKNOWN:
                version = schema.version
    except (ValueError, OSError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        if args.verbose:
            traceback.print_exc(file=sys.stderr)
        sys.exit(1)

    if args.detect_only:
        print(version.value)
        return

    if args.query:
        if not service_url:
            print("ERROR: --query needs a service URL.", file=sys.stderr)
            sys.exit(1)
        client = ODataClient(service_url, version=version, schema=schema, auth=auth,
                             verbose=args.verbose, timeout=args.timeout)
        try:
            rows = client.query(args.query, params={'$top': args.top})
        except ValueError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            sys.exit(1)
        print(json.dumps(rows, indent=2, default=str))
        return

    if args.json:
        print(schema.model_dump_json(indent=2))
    else:
        print_trace_info(schema, version, is_dark=args.dark)


if __name__ == "__main__":
    main()
