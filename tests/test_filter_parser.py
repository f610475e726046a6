import unittest

from portal.filtering.parser import (
    FilterTerm,
    JoinClause,
    Operator,
    extract_filter_params,
    parse_filter_param,
    parse_filter_params,
)


class FilterParserTests(unittest.TestCase):
    def test_key_without_underscore_defaults_to_eq(self):
        term = parse_filter_param("name", "Acme")
        self.assertEqual(term, FilterTerm("name", Operator.EQ, "Acme"))

    def test_operator_is_taken_after_last_underscore(self):
        term = parse_filter_param("created_at_gt", "2025-01-01")
        self.assertEqual(term.field, "created_at")
        self.assertIs(term.operator, Operator.GT)
        self.assertEqual(term.value, "2025-01-01")

    def test_operator_token_is_case_insensitive(self):
        term = parse_filter_param("status_EQ", "PAID")
        self.assertIs(term.operator, Operator.EQ)
        self.assertEqual(term.field, "status")

    def test_snake_case_key_without_operator_defaults_to_eq(self):
        self.assertEqual(parse_filter_param("client_id", "5"), FilterTerm("client_id", Operator.EQ, "5"))
        self.assertEqual(
            parse_filter_param("invoice_number", "INV-1"),
            FilterTerm("invoice_number", Operator.EQ, "INV-1"),
        )
        # "gte" is not an operator, so the whole key names the field
        self.assertEqual(parse_filter_param("amount_gte", "10"), FilterTerm("amount_gte", Operator.EQ, "10"))

    def test_operator_without_field_is_dropped(self):
        self.assertIsNone(parse_filter_param("_eq", "x"))
        self.assertIsNone(parse_filter_param("_in", "a,b"))

    def test_empty_value_is_skipped(self):
        self.assertIsNone(parse_filter_param("status_eq", ""))
        self.assertIsNone(parse_filter_param("status_eq", None))

    def test_in_splits_on_comma_without_trimming(self):
        term = parse_filter_param("status_in", "PAID, SENT")
        self.assertEqual(term.value, ("PAID", " SENT"))

    def test_between_requires_exactly_two_bounds(self):
        self.assertEqual(parse_filter_param("amount_between", "10,20").value, ("10", "20"))
        self.assertIsNone(parse_filter_param("amount_between", "10"))
        self.assertIsNone(parse_filter_param("amount_between", "10,20,30"))

    def test_join_value_becomes_structured_clause(self):
        term = parse_filter_param("client_join", "name:like:acme")
        self.assertIs(term.operator, Operator.JOIN)
        self.assertEqual(term.field, "client")
        self.assertEqual(term.value, JoinClause(field="name", operator="like", value="acme"))

    def test_join_with_wrong_part_count_is_dropped(self):
        self.assertIsNone(parse_filter_param("client_join", "name:acme"))
        self.assertIsNone(parse_filter_param("client_join", "name:eq:a:b"))

    def test_extract_keeps_only_prefixed_keys(self):
        params = [("filter_status_eq", "PAID"), ("page", "2"), ("filter_", "x"), ("sortBy", "id")]
        self.assertEqual(extract_filter_params(params, "filter_"), {"status_eq": "PAID"})

    def test_extract_accepts_mapping(self):
        self.assertEqual(
            extract_filter_params({"filter_name": "a", "other": "b"}, "filter_"),
            {"name": "a"},
        )

    def test_parse_filter_params_skips_dropped_keys(self):
        terms = parse_filter_params(
            {
                "status_eq": "PAID",
                "amount_between": "1",
                "notes_isnull": "true",
            }
        )
        self.assertEqual([t.field for t in terms], ["status", "notes"])
        self.assertEqual([t.operator for t in terms], [Operator.EQ, Operator.ISNULL])
