from datetime import datetime, time
from decimal import Decimal

from portal.filtering.builder import SpecificationBuilder, build_specification
from portal.filtering.compiler import apply_predicate, compile_python
from portal.filtering.errors import AttributeNotFoundError, FilterValueError
from portal.filtering.expressions import And, Between, Eq, Gt, In, IsNull, Join, Like, Neq
from portal.models.client import Client
from portal.models.invoice import Invoice, InvoiceStatus
from portal.models.time_entry import TimeEntry
from tests.base import PortalDataTestBase


class SpecificationBuilderTests(PortalDataTestBase):
    def _invoice_numbers(self, params):
        expr = build_specification(Invoice, params)
        with self.SessionLocal() as db:
            rows = apply_predicate(db.query(Invoice), Invoice, expr).all()
            from_sql = sorted(row.invoice_number for row in rows)
            # The in-memory compiler must agree with the SQL one on the same data.
            matches = compile_python(expr)
            in_memory = sorted(row.invoice_number for row in db.query(Invoice).all() if matches(row))
        self.assertEqual(from_sql, in_memory)
        return from_sql

    def test_status_and_amount_scenario(self):
        expr = build_specification(Invoice, {"status_eq": "PAID", "amount_gt": "50.00"})
        self.assertIsInstance(expr, And)
        eq, gt = expr.operands
        self.assertEqual(eq, Eq(eq.attribute, InvoiceStatus.PAID))
        self.assertEqual(eq.attribute.dotted, "status")
        self.assertEqual(gt, Gt(gt.attribute, Decimal("50.00")))
        self.assertEqual(gt.attribute.dotted, "amount")

        self.assertEqual(
            self._invoice_numbers({"status_eq": "PAID", "amount_gt": "50.00"}),
            ["INV-001", "INV-005"],
        )

    def test_created_at_between_is_inclusive_of_whole_last_day(self):
        expr = build_specification(Invoice, {"created_at_between": "2025-01-01,2025-01-31"})
        self.assertIsInstance(expr, Between)
        self.assertEqual(expr.lower, datetime(2025, 1, 1))
        self.assertEqual(expr.upper, datetime.combine(datetime(2025, 1, 31).date(), time.max))
        self.assertEqual(
            self._invoice_numbers({"created_at_between": "2025-01-01,2025-01-31"}),
            ["INV-001", "INV-002", "INV-005"],
        )

    def test_unknown_field_fails_without_partial_predicate(self):
        builder = SpecificationBuilder(Invoice)
        with self.assertRaises(AttributeNotFoundError) as ctx:
            builder.build({"status_eq": "PAID", "unknownField_eq": "x"})
        self.assertEqual(ctx.exception.segment, "unknownField")
        self.assertEqual(ctx.exception.status_code, 400)

    def test_join_like_on_client_name(self):
        expr = build_specification(Invoice, {"client_join": "name:like:ACME"})
        self.assertIsInstance(expr, Join)
        self.assertEqual(expr.relation.dotted, "client")
        self.assertIsInstance(expr.predicate, Like)
        self.assertEqual(expr.predicate.pattern, "%acme%")
        self.assertEqual(self._invoice_numbers({"client_join": "name:like:acme"}), ["INV-001", "INV-003"])

    def test_join_eq_coerces_related_value(self):
        expr = build_specification(Invoice, {"client_join": f"id:eq:{self.globex_id}"})
        self.assertEqual(expr.predicate.value, self.globex_id)
        self.assertEqual(self._invoice_numbers({"client_join": f"id:eq:{self.globex_id}"}), ["INV-002", "INV-004"])

    def test_join_with_other_operator_falls_back_to_eq(self):
        expr = build_specification(Invoice, {"client_join": "name:gt:Globex"})
        self.assertEqual(expr.predicate, Eq(expr.predicate.attribute, "Globex"))

    def test_join_unknown_related_attribute_raises(self):
        with self.assertRaises(AttributeNotFoundError):
            build_specification(Invoice, {"client_join": "nickname:eq:x"})

    def test_join_on_scalar_raises(self):
        with self.assertRaises(FilterValueError):
            build_specification(Invoice, {"amount_join": "name:eq:x"})

    def test_join_on_relation_attribute_raises(self):
        for clause in ("company:like:acme", "company:eq:1", "freelancer:like:a"):
            with self.subTest(clause=clause):
                with self.assertRaises(FilterValueError) as ctx:
                    build_specification(Invoice, {"client_join": clause})
                self.assertIn(ctx.exception.field, ("company", "freelancer"))

    def test_snake_case_field_without_operator_is_eq(self):
        expr = build_specification(Invoice, {"client_id": str(self.globex_id)})
        self.assertEqual(expr, Eq(expr.attribute, self.globex_id))
        self.assertEqual(self._invoice_numbers({"client_id": str(self.globex_id)}), ["INV-002", "INV-004"])
        self.assertEqual(self._invoice_numbers({"invoice_number": "INV-003"}), ["INV-003"])
        with self.assertRaises(AttributeNotFoundError):
            build_specification(Invoice, {"status_bogus": "x"})

    def test_nested_path_filters_through_two_relations(self):
        self.assertEqual(
            self._invoice_numbers({"client.company.name_like": "holdings"}),
            ["INV-001", "INV-003"],
        )

    def test_result_does_not_depend_on_parameter_order(self):
        first = {"status_eq": "PAID", "amount_gt": "50", "client_join": "name:like:a"}
        second = dict(reversed(list(first.items())))
        expr_a = build_specification(Invoice, first)
        expr_b = build_specification(Invoice, second)
        self.assertEqual(set(expr_a.operands), set(expr_b.operands))
        self.assertEqual(self._invoice_numbers(first), self._invoice_numbers(second))

    def test_boolean_eq(self):
        expr = build_specification(TimeEntry, {"billable_eq": "true"})
        self.assertEqual(expr.value, True)
        with self.SessionLocal() as db:
            rows = apply_predicate(db.query(TimeEntry), TimeEntry, expr).all()
            self.assertEqual(len(rows), 3)
            self.assertTrue(all(row.billable for row in rows))
        with self.assertRaises(FilterValueError):
            build_specification(TimeEntry, {"billable_eq": "yes"})

    def test_malformed_between_is_dropped(self):
        self.assertIsNone(build_specification(Invoice, {"amount_between": "10"}))
        self.assertEqual(len(self._invoice_numbers({"amount_between": "10"})), 5)

    def test_no_filters_matches_everything(self):
        self.assertIsNone(build_specification(Invoice, {}))
        self.assertEqual(len(self._invoice_numbers({})), 5)

    def test_neq_is_coerced(self):
        expr = build_specification(Invoice, {"status_neq": "PAID"})
        self.assertEqual(expr, Neq(expr.attribute, InvoiceStatus.PAID))
        self.assertEqual(self._invoice_numbers({"status_neq": "PAID"}), ["INV-003", "INV-004"])

    def test_lt_on_date(self):
        self.assertEqual(self._invoice_numbers({"issue_date_lt": "2025-01-15"}), ["INV-001", "INV-004"])

    def test_gt_and_lt_reject_enum_and_bool(self):
        with self.assertRaises(FilterValueError):
            build_specification(Invoice, {"status_gt": "PAID"})
        with self.assertRaises(FilterValueError):
            build_specification(TimeEntry, {"billed_lt": "true"})

    def test_like_is_case_insensitive_substring(self):
        self.assertEqual(self._invoice_numbers({"invoice_number_like": "inv-00"}), ["INV-001", "INV-002", "INV-003", "INV-004", "INV-005"])
        self.assertEqual(self._invoice_numbers({"notes_like": "LAT"}), ["INV-004"])

    def test_like_wildcards_in_value_match_literally(self):
        self.assertEqual(Like(None, "50%_off\\").pattern, "%50\\%\\_off\\\\%")
        self.assertEqual(self._invoice_numbers({"invoice_number_like": "inv_00"}), [])
        self.assertEqual(self._invoice_numbers({"invoice_number_like": "%"}), [])
        self.assertEqual(self._invoice_numbers({"notes_like": "l_te"}), [])
        self.assertEqual(self._invoice_numbers({"notes_like": "late"}), ["INV-004"])

    def test_like_on_non_string_is_rejected(self):
        with self.assertRaises(FilterValueError):
            build_specification(Invoice, {"amount_like": "12"})

    def test_in_uses_raw_strings(self):
        expr = build_specification(Invoice, {"status_in": "SENT,DRAFT"})
        self.assertEqual(expr, In(expr.attribute, ("SENT", "DRAFT")))
        self.assertEqual(self._invoice_numbers({"status_in": "SENT,DRAFT"}), ["INV-003", "INV-004"])

    def test_in_on_boolean_agrees_with_in_memory(self):
        cases = {"true": 3, "false": 1, "true,false": 4, "1": 0, "TRUE": 0}
        for raw, expected in cases.items():
            expr = build_specification(TimeEntry, {"billable_in": raw})
            with self.subTest(raw=raw), self.SessionLocal() as db:
                from_sql = sorted(row.id for row in apply_predicate(db.query(TimeEntry), TimeEntry, expr).all())
                matches = compile_python(expr)
                in_memory = sorted(row.id for row in db.query(TimeEntry).all() if matches(row))
                self.assertEqual(len(from_sql), expected)
                self.assertEqual(from_sql, in_memory)

    def test_isnull_and_notnull(self):
        self.assertEqual(self._invoice_numbers({"project_id_isnull": "1"}), ["INV-002", "INV-004"])
        self.assertEqual(self._invoice_numbers({"notes_notnull": "anything"}), ["INV-001", "INV-004"])

    def test_isnull_on_relation(self):
        expr = build_specification(TimeEntry, {"invoice_isnull": "true"})
        self.assertIsInstance(expr, IsNull)
        with self.SessionLocal() as db:
            rows = apply_predicate(db.query(TimeEntry), TimeEntry, expr).all()
            self.assertEqual(len(rows), 3)
            self.assertTrue(all(row.invoice_id is None for row in rows))

    def test_numeric_between(self):
        self.assertEqual(self._invoice_numbers({"amount_between": "40,120"}), ["INV-001", "INV-002", "INV-004"])

    def test_bad_value_names_field(self):
        with self.assertRaises(FilterValueError) as ctx:
            build_specification(Invoice, {"amount_gt": "fifty"})
        self.assertEqual(ctx.exception.field, "amount")

    def test_builder_accepts_schema_or_model(self):
        self.assertEqual(SpecificationBuilder(Client).schema.name, "Client")
