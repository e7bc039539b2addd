#!/usr/bin/env python3
"""
Unit tests for diagram node/edge construction.
"""

import unittest

from odata_explorer_lib import ParsedSchema, build_diagram, get_color, parse_metadata_to_schema
from sample_metadata import V2_METADATA, V4_METADATA


class TestBuildDiagram(unittest.TestCase):

    def test_v2_nodes_and_single_edge_per_pair(self):
        schema = parse_metadata_to_schema(V2_METADATA)
        diagram = build_diagram(schema)

        self.assertEqual([node.id for node in diagram.nodes], ["Customer", "Order", "Employee", "Empty"])
        # Customer->Order and Order->Customer collapse into one edge; self and broken links are dropped
        self.assertEqual(len(diagram.edges), 1)
        edge = diagram.edges[0]
        self.assertEqual((edge.source, edge.target, edge.navigation), ("Customer", "Order", "Orders"))
        self.assertEqual(edge.id, "Customer-Order-Orders")
        self.assertEqual(edge.source_label, "Customer (1")
        self.assertEqual(edge.target_label, "*) Order")

    def test_colors_follow_graph_coloring(self):
        schema = parse_metadata_to_schema(V2_METADATA)
        diagram = build_diagram(schema)
        customer = diagram.get_node("Customer")
        order = diagram.get_node("Order")

        self.assertEqual(customer.color_index, diagram.color_map["Customer"])
        self.assertNotEqual(customer.color_index, order.color_index)
        self.assertEqual(customer.color, get_color(customer.color_index))
        self.assertEqual(diagram.edges[0].source_color, customer.color)
        self.assertEqual(diagram.edges[0].target_color, order.color)

    def test_constraint_fields_are_tinted(self):
        diagram = build_diagram(parse_metadata_to_schema(V2_METADATA))
        customer = diagram.get_node("Customer")
        order = diagram.get_node("Order")
        self.assertEqual(customer.field_colors, {"CustomerID": customer.color})
        self.assertEqual(order.field_colors, {"CustomerRef": order.color})
        self.assertEqual(customer.keys, ["CustomerID"])
        self.assertEqual(customer.property_count, 3)
        self.assertEqual(order.navigation_count, 2)

    def test_v4_missing_multiplicity_labels_and_dark_palette(self):
        schema = parse_metadata_to_schema(V4_METADATA)
        diagram = build_diagram(schema, is_dark=True)

        self.assertEqual(len(diagram.edges), 1)
        edge = diagram.edges[0]
        self.assertEqual(edge.source_label, "Person (?")
        self.assertEqual(edge.target_label, "*) Order")

        person = diagram.get_node("Person")
        order = diagram.get_node("Order")
        self.assertEqual(person.color, get_color(person.color_index, is_dark=True))
        # Constraint tint comes from Order.Owner even though its pair edge was already emitted
        self.assertEqual(order.field_colors, {"OwnerName": order.color})
        self.assertEqual(person.field_colors, {"UserName": person.color})

    def test_empty_schema(self):
        diagram = build_diagram(ParsedSchema())
        self.assertEqual(diagram.nodes, [])
        self.assertEqual(diagram.edges, [])
        self.assertIsNone(diagram.get_node("Anything"))


if __name__ == "__main__":
    unittest.main()
