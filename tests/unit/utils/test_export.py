# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Unit tests for result flattening and export formats."""

import unittest

import pandas as pd

from dataverse_query.models.metadata import RelationshipType
from dataverse_query.models.query_graph import QueryGraph, QueryNode, SelectedColumn
from dataverse_query.utils.export import (
    column_headers,
    export_rows,
    export_value,
    is_numeric_cell,
    to_csv,
    to_dataframe,
    to_spreadsheet_xml,
)

from fixtures.test_data import ACCOUNT, CONTACT, SAMPLE_CONTACT_RECORDS, SYSTEMUSER


def _graph():
    return QueryGraph.for_entity(CONTACT).with_join(
        QueryNode("acc", ACCOUNT, "main", "contact_customer_accounts", RelationshipType.MANY_TO_ONE, "parentcustomerid")
    )


COLUMNS = [
    SelectedColumn("main", "fullname", "Full Name", "fullname", "String"),
    SelectedColumn("main", "_owninguser_value", "Owning User", "owninguser", "Lookup"),
    SelectedColumn("main", "numberofchildren", "No. of Children", "numberofchildren", "Integer"),
    SelectedColumn("main", "telephone1", "Business Phone", "telephone1", "String"),
    SelectedColumn("acc", "name", "Account Name", "name", "String"),
    SelectedColumn("main", "contactid", "Contact", "contactid", "Uniqueidentifier"),
]


class TestExportValue(unittest.TestCase):
    def setUp(self):
        self.graph = _graph()
        self.first, self.second = SAMPLE_CONTACT_RECORDS

    def test_plain_value(self):
        self.assertEqual(export_value(self.first, COLUMNS[0], self.graph), "Yvonne McKay")

    def test_formatted_value_preferred(self):
        self.assertEqual(export_value(self.first, COLUMNS[1], self.graph), "Dana Admin")
        self.assertEqual(export_value(self.first, COLUMNS[2], self.graph), "2")

    def test_joined_column_walks_navigation(self):
        self.assertEqual(export_value(self.first, COLUMNS[4], self.graph), "Contoso, Ltd")

    def test_missing_values_are_empty(self):
        self.assertEqual(export_value(self.second, COLUMNS[1], self.graph), "")
        self.assertEqual(export_value(self.second, COLUMNS[4], self.graph), "")

    def test_lookup_key_fallback(self):
        col = SelectedColumn("main", "owninguser", "Owner", "owninguser", "Lookup")
        self.assertEqual(export_value({"_owninguser_value": "u-1"}, col), "u-1")

    def test_one_to_many_values_joined(self):
        graph = QueryGraph.for_entity(ACCOUNT).with_join(
            QueryNode("c", CONTACT, "main", "contact_customer_accounts", RelationshipType.ONE_TO_MANY, "contact_customer_accounts")
        )
        record = {
            "accountid": "a-1",
            "contact_customer_accounts": [{"fullname": "Ann"}, {"fullname": None}, {"fullname": "Bob"}],
        }
        col = SelectedColumn("c", "fullname", "Contact Name", "fullname", "String")
        self.assertEqual(export_value(record, col, graph), "Ann; Bob")

    def test_booleans_and_objects(self):
        col = SelectedColumn("main", "flag", "Flag")
        self.assertEqual(export_value({"flag": True}, col), "true")
        self.assertEqual(export_value({"flag": {"a": 1}}, col), '{"a": 1}')


class TestExportFormats(unittest.TestCase):
    def setUp(self):
        self.graph = _graph()

    def test_export_rows_keyed_by_display_name(self):
        rows = list(export_rows(SAMPLE_CONTACT_RECORDS, COLUMNS, self.graph))
        self.assertEqual(list(rows[0].keys()), [c.display_name for c in COLUMNS])
        self.assertEqual(rows[1]["Account Name"], "")

    def test_to_dataframe(self):
        df = to_dataframe(SAMPLE_CONTACT_RECORDS, COLUMNS, self.graph)
        self.assertIsInstance(df, pd.DataFrame)
        self.assertEqual(list(df.columns), [c.display_name for c in COLUMNS])
        self.assertEqual(df.iloc[0]["Account Name"], "Contoso, Ltd")
        self.assertEqual(len(df), 2)

    def test_to_dataframe_keeps_header_without_rows(self):
        df = to_dataframe([], COLUMNS, self.graph)
        self.assertEqual(list(df.columns), [c.display_name for c in COLUMNS])
        self.assertEqual(len(df), 0)

    def test_raw_dataframe_strips_annotations(self):
        df = to_dataframe(SAMPLE_CONTACT_RECORDS)
        self.assertIn("fullname", df.columns)
        self.assertFalse(any("@" in c for c in df.columns))

    def test_to_csv(self):
        text = to_csv(SAMPLE_CONTACT_RECORDS, COLUMNS[:1] + COLUMNS[4:5], self.graph)
        lines = text.split("\r\n")
        self.assertEqual(lines[0], "Full Name,Account Name")
        self.assertEqual(lines[1], 'Yvonne McKay,"Contoso, Ltd"')
        self.assertEqual(lines[2], "Susanna Stubberod,")

    def test_spreadsheet_xml(self):
        xml = to_spreadsheet_xml(
            SAMPLE_CONTACT_RECORDS, COLUMNS, self.graph, sheet_name="Contacts", base_url="https://org.example.com/"
        )
        self.assertTrue(xml.startswith('<?xml version="1.0" encoding="UTF-8"?>'))
        self.assertIn('<Worksheet ss:Name="Contacts">', xml)
        self.assertIn('<Data ss:Type="String">Contoso, Ltd</Data>', xml)
        self.assertIn('<Data ss:Type="Number">2</Data>', xml)
        self.assertIn('<Data ss:Type="String">4255550101</Data>', xml)
        self.assertIn(
            'ss:HRef="https://org.example.com/main.aspx?etn=contact&amp;id=11111111-2222-3333-4444-555555555555&amp;pagetype=entityrecord"',
            xml,
        )
        self.assertIn("etn=systemuser&amp;id=99999999-0000-0000-0000-000000000001", xml)

    def test_spreadsheet_xml_escapes_text(self):
        col = SelectedColumn("main", "fullname", "Name <&>")
        xml = to_spreadsheet_xml([{"fullname": "O'Neil & \"Sons\""}], [col])
        self.assertIn("Name &lt;&amp;&gt;", xml)
        self.assertIn("O&apos;Neil &amp; &quot;Sons&quot;", xml)
        self.assertNotIn("ss:HRef", xml)


class TestRepeatedDisplayNames(unittest.TestCase):
    """A root column and a joined column can share a display name."""

    def setUp(self):
        self.graph = QueryGraph.for_entity(CONTACT).with_join(
            QueryNode("own", SYSTEMUSER, "main", "user_contact", RelationshipType.MANY_TO_ONE, "owninguser")
        )
        self.columns = [
            SelectedColumn("main", "fullname", "Full Name", "fullname", "String"),
            SelectedColumn("main", "contactid", "Contact", "contactid", "Uniqueidentifier"),
            SelectedColumn("own", "fullname", "Full Name", "fullname", "String"),
            SelectedColumn("own", "systemuserid", "User", "systemuserid", "Uniqueidentifier"),
        ]
        self.records = [
            {"contactid": "c1", "fullname": "Yvonne", "owninguser": {"systemuserid": "u1", "fullname": "Dana"}},
        ]

    def test_csv_keeps_each_value_in_its_own_column(self):
        text = to_csv(self.records, self.columns, self.graph)
        self.assertEqual(text, "Full Name,Contact,Full Name,User\r\nYvonne,c1,Dana,u1\r\n")

    def test_dataframe_fills_by_position(self):
        df = to_dataframe(self.records, self.columns, self.graph)
        self.assertEqual(list(df.columns), ["Full Name", "Contact", "Full Name", "User"])
        self.assertEqual(list(df.iloc[0]), ["Yvonne", "c1", "Dana", "u1"])

    def test_export_rows_uses_unique_headers(self):
        self.assertEqual(column_headers(self.columns), ["Full Name", "Contact", "Full Name (own)", "User"])
        row = next(export_rows(self.records, self.columns, self.graph))
        self.assertEqual(row["Full Name"], "Yvonne")
        self.assertEqual(row["Full Name (own)"], "Dana")

    def test_spreadsheet_keeps_both_values(self):
        xml = to_spreadsheet_xml(self.records, self.columns, self.graph)
        self.assertIn('<Data ss:Type="String">Yvonne</Data>', xml)
        self.assertIn('<Data ss:Type="String">Dana</Data>', xml)


class TestNumericCells(unittest.TestCase):
    def test_numbers(self):
        self.assertTrue(is_numeric_cell("42", "Count"))
        self.assertTrue(is_numeric_cell("3.14", "Ratio"))

    def test_text_kept(self):
        self.assertFalse(is_numeric_cell("", "Count"))
        self.assertFalse(is_numeric_cell("555-0100", "Business Phone"))
        self.assertFalse(is_numeric_cell("4255550101", "Mobile Phone"))
        self.assertFalse(is_numeric_cell("123456789012", "Account Number"))
        self.assertFalse(is_numeric_cell("+15", "Offset"))
        self.assertFalse(is_numeric_cell("abc", "Count"))
        self.assertFalse(is_numeric_cell("nan", "Count"))


if __name__ == "__main__":
    unittest.main()
