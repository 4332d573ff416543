# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Unit tests for the query compiler."""

import datetime
import unittest
import uuid
from urllib.parse import unquote

from dataverse_query.data._compiler import (
    build_expand,
    compile_condition,
    compile_filter,
    compile_query,
    format_literal,
)
from dataverse_query.data._metadata import MetadataResolver
from dataverse_query.data._view_parser import ViewImporter
from dataverse_query.models.filters import FilterCondition, FilterGroup, new_filter_tree
from dataverse_query.models.metadata import RelationshipType
from dataverse_query.models.operators import OPERATORS
from dataverse_query.models.query_graph import QueryGraph, QueryNode, SelectedColumn

from fixtures.test_data import (
    ACCOUNT,
    CONTACT,
    END_TO_END_FETCHXML,
    END_TO_END_QUERY,
    StubMetadataSource,
)


def _graph():
    graph = QueryGraph.for_entity(CONTACT)
    graph = graph.with_join(
        QueryNode("acc", ACCOUNT, "main", "contact_customer_accounts", RelationshipType.MANY_TO_ONE, "parentcustomerid")
    )
    return graph.with_join(
        QueryNode("pc", CONTACT, "acc", "account_primary_contact", RelationshipType.MANY_TO_ONE, "primarycontactid")
    )


def _cond(attribute, operator, value=None, alias="main"):
    return FilterCondition(alias, attribute, operator, value)


class TestEndToEnd(unittest.TestCase):
    """Imported views compile to the expected query string."""

    def setUp(self):
        self.importer = ViewImporter(MetadataResolver(StubMetadataSource()))

    def test_end_to_end_example(self):
        result = self.importer.import_fetchxml(END_TO_END_FETCHXML, CONTACT)
        query = compile_query(result.query_graph, result.columns, result.filter_tree)
        self.assertEqual(unquote(query), END_TO_END_QUERY)
        self.assertTrue(query.endswith("&$filter=statecode%20eq%200"))

    def test_compilation_is_deterministic(self):
        result = self.importer.import_fetchxml(END_TO_END_FETCHXML, CONTACT)
        first = compile_query(result.query_graph, result.columns, result.filter_tree)
        second = compile_query(result.query_graph, result.columns, result.filter_tree)
        self.assertEqual(first, second)

    def test_lookup_condition_from_view(self):
        xml = (
            '<fetch><entity name="contact"><attribute name="fullname"/><filter>'
            '<condition attribute="parentcustomerid" operator="eq" value="aaaaaaaa-0000-0000-0000-000000000001"/>'
            "</filter></entity></fetch>"
        )
        result = self.importer.import_fetchxml(xml, CONTACT)
        query = compile_query(result.query_graph, result.columns, result.filter_tree)
        self.assertEqual(
            unquote(query),
            "contacts?$select=fullname,contactid&$filter=_parentcustomerid_value eq aaaaaaaa-0000-0000-0000-000000000001",
        )


class TestSelectAndExpand(unittest.TestCase):
    def setUp(self):
        self.graph = _graph()

    def test_primary_id_always_selected(self):
        query = compile_query(QueryGraph.for_entity(CONTACT), [], None)
        self.assertEqual(query, "contacts?$select=contactid")

    def test_nested_expand(self):
        columns = [
            SelectedColumn("main", "fullname", "Full Name"),
            SelectedColumn("acc", "name", "Account Name"),
            SelectedColumn("pc", "emailaddress1", "Email"),
        ]
        expand = build_expand(self.graph, columns, "main")
        self.assertEqual(
            expand,
            "parentcustomerid($select=name,accountid;$expand=primarycontactid($select=emailaddress1,contactid))",
        )

    def test_many_to_one_expands_referencing_property(self):
        query = compile_query(self.graph, [SelectedColumn("acc", "name", "Account Name")], None)
        self.assertIn("$expand=parentcustomerid(", query)
        self.assertNotIn("contact_customer_accounts", query)

    def test_commas_stay_literal(self):
        columns = [SelectedColumn("main", "fullname", "n"), SelectedColumn("main", "emailaddress1", "e")]
        query = compile_query(QueryGraph.for_entity(CONTACT), columns, None)
        self.assertEqual(query, "contacts?$select=fullname,emailaddress1,contactid")

    def test_no_filter_clause_for_empty_tree(self):
        query = compile_query(QueryGraph.for_entity(CONTACT), [], new_filter_tree())
        self.assertNotIn("$filter", query)


class TestFilterCompilation(unittest.TestCase):
    def setUp(self):
        self.graph = _graph()

    def test_single_child_group_collapses(self):
        cond = _cond("statecode", "eq", 0)
        self.assertEqual(compile_filter(FilterGroup("and", (cond,)), self.graph), compile_filter(cond, self.graph))
        self.assertEqual(compile_filter(FilterGroup("and", (cond,)), self.graph), "statecode eq 0")

    def test_empty_group_contributes_nothing(self):
        tree = FilterGroup("or", (FilterGroup("and"), _cond("statecode", "eq", 0)))
        self.assertEqual(compile_filter(tree, self.graph), "statecode eq 0")
        self.assertEqual(compile_filter(FilterGroup("and"), self.graph), "")

    def test_nested_groups(self):
        tree = FilterGroup(
            "and",
            (
                _cond("statecode", "eq", 0),
                FilterGroup("or", (_cond("fullname", "startswith", "A"), _cond("fullname", "endswith", "z"))),
            ),
        )
        self.assertEqual(
            compile_filter(tree, self.graph),
            "(statecode eq 0 and (startswith(fullname, 'A') or endswith(fullname, 'z')))",
        )

    def test_path_across_joins(self):
        self.assertEqual(compile_condition(_cond("name", "eq", "Contoso", "acc"), self.graph), "parentcustomerid/name eq 'Contoso'")
        self.assertEqual(
            compile_condition(_cond("fullname", "null", alias="pc"), self.graph),
            "parentcustomerid/primarycontactid/fullname eq null",
        )

    def test_incomplete_conditions_dropped(self):
        tree = FilterGroup(
            "and",
            (
                FilterCondition(),
                _cond("fullname", ""),
                _cond("fullname", "between", 1),
                _cond("fullname", "eq", None),
                _cond("name", "eq", "x", "ghost"),
                _cond("statecode", "eq", 0),
            ),
        )
        self.assertEqual(compile_filter(tree, self.graph), "statecode eq 0")

    def test_every_operator_renders_or_drops(self):
        for name, op in OPERATORS.items():
            value = 3 if op.needs_value else None
            rendered = compile_condition(_cond("createdon", name, value), self.graph)
            self.assertIsInstance(rendered, str)
            self.assertNotIn("None", rendered, name)
            if rendered:
                self.assertIn("createdon", rendered, name)

    def test_string_functions(self):
        self.assertEqual(compile_condition(_cond("fullname", "contains", "Ann")), "contains(fullname, 'Ann')")
        self.assertEqual(compile_condition(_cond("fullname", "not contains", "Ann")), "not contains(fullname, 'Ann')")

    def test_null_checks(self):
        self.assertEqual(compile_condition(_cond("birthdate", "null")), "birthdate eq null")
        self.assertEqual(compile_condition(_cond("birthdate", "not null")), "birthdate ne null")

    def test_query_functions(self):
        self.assertEqual(
            compile_condition(_cond("createdon", "today")),
            "Microsoft.Dynamics.CRM.Today(PropertyName='createdon')",
        )
        self.assertEqual(
            compile_condition(_cond("createdon", "last-x-days", 7)),
            "Microsoft.Dynamics.CRM.LastXDays(PropertyName='createdon',PropertyValue=7)",
        )
        self.assertEqual(
            compile_condition(_cond("createdon", "older-than-x-months", "6")),
            "Microsoft.Dynamics.CRM.OlderThanXMonths(PropertyName='createdon',PropertyValue=6)",
        )
        self.assertEqual(
            compile_condition(_cond("createdon", "this-fiscal-year")),
            "Microsoft.Dynamics.CRM.ThisFiscalYear(PropertyName='createdon')",
        )
        self.assertEqual(
            compile_condition(_cond("createdon", "on-or-after", datetime.date(2024, 1, 31))),
            "Microsoft.Dynamics.CRM.OnOrAfter(PropertyName='createdon',PropertyValue='2024-01-31')",
        )

    def test_query_function_path_across_joins(self):
        self.assertEqual(
            compile_condition(_cond("createdon", "next-x-weeks", 2, "acc"), self.graph),
            "Microsoft.Dynamics.CRM.NextXWeeks(PropertyName='parentcustomerid/createdon',PropertyValue=2)",
        )

    def test_lookup_guid_unquoted(self):
        guid = "aaaaaaaa-0000-0000-0000-000000000001"
        self.assertEqual(
            compile_condition(_cond("_parentcustomerid_value", "eq", guid)),
            f"_parentcustomerid_value eq {guid}",
        )
        self.assertEqual(
            compile_condition(_cond("name", "ne", uuid.UUID(guid), "acc"), self.graph),
            f"parentcustomerid/name ne {guid}",
        )
        self.assertEqual(compile_condition(_cond("_owninguser_value", "null")), "_owninguser_value eq null")
        self.assertEqual(compile_condition(_cond("fullname", "eq", guid)), f"fullname eq '{guid}'")
        self.assertEqual(compile_condition(_cond("_owninguser_value", "eq", "me")), "_owninguser_value eq 'me'")

    def test_non_integer_count_dropped(self):
        self.assertEqual(compile_condition(_cond("createdon", "last-x-days", "soon")), "")
        self.assertEqual(compile_condition(_cond("createdon", "last-x-days", 1.5)), "")

    def test_filter_is_percent_encoded(self):
        tree = FilterGroup("and", (_cond("fullname", "eq", "O'Neil & Sons"), _cond("statecode", "eq", 0)))
        query = compile_query(QueryGraph.for_entity(CONTACT), [], tree)
        encoded = query.split("&$filter=", 1)[1]
        self.assertNotIn(" ", encoded)
        self.assertNotIn("&", encoded)
        self.assertEqual(unquote(encoded), "(fullname eq 'O''Neil & Sons' and statecode eq 0)")


class TestFormatLiteral(unittest.TestCase):
    def test_literals(self):
        self.assertEqual(format_literal("it's"), "'it''s'")
        self.assertEqual(format_literal(5), "5")
        self.assertEqual(format_literal(2.5), "2.5")
        self.assertEqual(format_literal(True), "true")
        self.assertEqual(format_literal(False), "false")
        self.assertEqual(format_literal(None), "null")
        self.assertEqual(format_literal(datetime.datetime(2024, 5, 1, 8, 30)), "2024-05-01T08:30:00")


if __name__ == "__main__":
    unittest.main()
