# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Unit tests for QueryPage parsing."""

import unittest

from dataverse_query.core.results import QueryPage


class TestQueryPage(unittest.TestCase):
    def test_from_api_response(self):
        page = QueryPage.from_api_response({"value": [{"a": 1}, "junk"], "@odata.nextLink": "https://next"})
        self.assertEqual(page.records, [{"a": 1}])
        self.assertEqual(page.next_link, "https://next")
        self.assertTrue(page.has_more)
        self.assertEqual(len(page), 1)
        self.assertEqual(list(page), [{"a": 1}])

    def test_legacy_next_link_key(self):
        page = QueryPage.from_api_response({"value": [], "odata.nextLink": "https://next"})
        self.assertEqual(page.next_link, "https://next")

    def test_last_page(self):
        page = QueryPage.from_api_response({"value": []})
        self.assertIsNone(page.next_link)
        self.assertFalse(page.has_more)

    def test_non_dict_body(self):
        self.assertEqual(QueryPage.from_api_response(None), QueryPage())


if __name__ == "__main__":
    unittest.main()
