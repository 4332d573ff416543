# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Unit tests for filter tree edits."""

import unittest
from dataclasses import replace

from dataverse_query.core.errors import ValidationError
from dataverse_query.models.filters import (
    ROOT_FILTER_ID,
    FilterCondition,
    FilterGroup,
    new_filter_tree,
)


class TestFilterTreeEdits(unittest.TestCase):
    """Edits rebuild the tree and leave earlier roots untouched."""

    def setUp(self):
        self.tree = new_filter_tree()

    def test_new_tree_is_empty_root_group(self):
        self.assertEqual(self.tree.id, ROOT_FILTER_ID)
        self.assertEqual(self.tree.logical_operator, "and")
        self.assertTrue(self.tree.is_empty)

    def test_add_condition_returns_new_tree(self):
        tree = self.tree.add_condition(ROOT_FILTER_ID)
        self.assertEqual(len(tree.children), 1)
        self.assertTrue(self.tree.is_empty)
        cond = tree.children[0]
        self.assertIsInstance(cond, FilterCondition)
        self.assertEqual(cond.entity_alias, "main")
        self.assertEqual(cond.operator, "eq")

    def test_add_group_under_nested_group(self):
        tree = self.tree.add_group(ROOT_FILTER_ID, "or")
        group = tree.children[0]
        self.assertIsInstance(group, FilterGroup)
        self.assertEqual(group.logical_operator, "or")
        self.assertEqual(len(group.children), 1)

        tree = tree.add_condition(group.id, FilterCondition(attribute_name="fullname", value="x"))
        self.assertEqual(len(tree.find(group.id).children), 2)

    def test_add_to_condition_is_rejected(self):
        tree = self.tree.add_condition(ROOT_FILTER_ID)
        with self.assertRaises(ValidationError):
            tree.add_condition(tree.children[0].id)

    def test_without_node_removes_subtree(self):
        tree = self.tree.add_group(ROOT_FILTER_ID).add_condition(ROOT_FILTER_ID)
        group_id = tree.children[0].id
        nested_id = tree.children[0].children[0].id

        pruned = tree.without_node(group_id)
        self.assertEqual(len(pruned.children), 1)
        self.assertIsNone(pruned.find(nested_id))
        self.assertIsNotNone(tree.find(nested_id))

    def test_root_cannot_be_removed(self):
        with self.assertRaises(ValidationError):
            self.tree.without_node(ROOT_FILTER_ID)

    def test_unknown_node(self):
        with self.assertRaises(ValidationError):
            self.tree.with_node("missing", lambda n: n)
        with self.assertRaises(ValidationError):
            self.tree.without_node("missing")

    def test_changing_attribute_resets_operator_and_value(self):
        tree = self.tree.add_condition(
            ROOT_FILTER_ID,
            FilterCondition(attribute_name="revenue", operator="gt", value=1000),
        )
        cond_id = tree.children[0].id
        tree = tree.set_condition_attribute(cond_id, "acc", "name")
        cond = tree.find(cond_id)
        self.assertEqual((cond.entity_alias, cond.attribute_name), ("acc", "name"))
        self.assertEqual(cond.operator, "eq")
        self.assertIsNone(cond.value)

    def test_set_condition_operator(self):
        tree = self.tree.add_condition(ROOT_FILTER_ID, FilterCondition(attribute_name="createdon"))
        cond_id = tree.children[0].id
        tree = tree.set_condition_operator(cond_id, "last-x-days", 7)
        self.assertEqual(tree.find(cond_id).operator, "last-x-days")
        self.assertEqual(tree.find(cond_id).value, 7)
        with self.assertRaises(ValidationError):
            tree.set_condition_operator(cond_id, "between")

    def test_set_logical_operator(self):
        tree = self.tree.set_logical_operator(ROOT_FILTER_ID, "or")
        self.assertEqual(tree.logical_operator, "or")
        self.assertEqual(tree.id, ROOT_FILTER_ID)

    def test_invalid_logical_operator(self):
        with self.assertRaises(ValidationError):
            FilterGroup("xor")

    def test_equality_ignores_ids(self):
        a = FilterGroup("and", (FilterCondition(attribute_name="name", value="x"),))
        b = FilterGroup("and", [FilterCondition(attribute_name="name", value="x")])
        self.assertEqual(a, b)
        self.assertNotEqual(a.children[0].id, b.children[0].id)

    def test_iter_conditions_depth_first(self):
        tree = FilterGroup(
            "and",
            (
                FilterCondition(attribute_name="a"),
                FilterGroup("or", (FilterCondition(attribute_name="b"), FilterCondition(attribute_name="c"))),
            ),
        )
        self.assertEqual([c.attribute_name for c in tree.iter_conditions()], ["a", "b", "c"])

    def test_with_node_replace(self):
        tree = self.tree.add_condition(ROOT_FILTER_ID)
        cond_id = tree.children[0].id
        tree = tree.with_node(cond_id, lambda c: replace(c, attribute_name="name", operator="contains", value="Con"))
        self.assertEqual(tree.find(cond_id).value, "Con")

    def test_with_node_root_must_stay_group(self):
        with self.assertRaises(ValidationError) as ctx:
            self.tree.with_node(ROOT_FILTER_ID, lambda g: FilterCondition("main", "fullname", "eq", "x"))
        self.assertEqual(ctx.exception.subcode, "validation_root_node")

        tree = self.tree.with_node(ROOT_FILTER_ID, lambda g: replace(g, logical_operator="or"))
        self.assertIsInstance(tree, FilterGroup)
        self.assertEqual(tree.logical_operator, "or")
        self.assertEqual(tree.id, ROOT_FILTER_ID)


if __name__ == "__main__":
    unittest.main()
