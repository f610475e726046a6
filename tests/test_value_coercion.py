import os
import unittest
from datetime import date, datetime
from decimal import Decimal

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from portal.filtering.attributes import resolve_path, schema_for
from portal.filtering.coercion import coerce_value
from portal.filtering.errors import FilterError, FilterValueError
from portal.models.invoice import Invoice, InvoiceStatus
from portal.models.time_entry import TimeEntry


def _attr(model, path):
    return resolve_path(schema_for(model), path)


class ValueCoercionTests(unittest.TestCase):
    def test_boolean_accepts_true_false_case_insensitive(self):
        billable = _attr(TimeEntry, "billable")
        self.assertIs(coerce_value(billable, "true"), True)
        self.assertIs(coerce_value(billable, "FALSE"), False)

    def test_boolean_rejects_other_words(self):
        billable = _attr(TimeEntry, "billable")
        for raw in ("yes", "1", "0", ""):
            with self.subTest(raw=raw):
                with self.assertRaises(FilterValueError) as ctx:
                    coerce_value(billable, raw)
                self.assertEqual(ctx.exception.field, "billable")
                self.assertEqual(ctx.exception.status_code, 400)

    def test_enum_requires_exact_member_name(self):
        status = _attr(Invoice, "status")
        self.assertIs(coerce_value(status, "PAID"), InvoiceStatus.PAID)
        with self.assertRaises(FilterValueError):
            coerce_value(status, "paid")
        with self.assertRaises(FilterValueError):
            coerce_value(status, "UNKNOWN")

    def test_integer_parse_is_ascii_only(self):
        client_id = _attr(Invoice, "client_id")
        self.assertEqual(coerce_value(client_id, "42"), 42)
        self.assertEqual(coerce_value(client_id, "-7"), -7)
        for raw in ("1_000", "4.2", "١٢", "1,000"):
            with self.subTest(raw=raw):
                with self.assertRaises(FilterValueError):
                    coerce_value(client_id, raw)

    def test_integer_is_limited_to_64_bits(self):
        invoice_id = _attr(Invoice, "id")
        self.assertEqual(coerce_value(invoice_id, "9223372036854775807"), 2**63 - 1)
        self.assertEqual(coerce_value(invoice_id, "-9223372036854775808"), -(2**63))
        for raw in ("9223372036854775808", "-9223372036854775809", "99999999999999999999999"):
            with self.subTest(raw=raw):
                with self.assertRaises(FilterValueError) as ctx:
                    coerce_value(invoice_id, raw)
                self.assertEqual(ctx.exception.field, "id")

    def test_decimal_and_float(self):
        self.assertEqual(coerce_value(_attr(Invoice, "amount"), "50.00"), Decimal("50.00"))
        self.assertAlmostEqual(coerce_value(_attr(TimeEntry, "hours"), "1.5"), 1.5)
        with self.assertRaises(FilterValueError):
            coerce_value(_attr(Invoice, "amount"), "NaN")
        with self.assertRaises(FilterValueError):
            coerce_value(_attr(TimeEntry, "hours"), "1e999")

    def test_date_requires_iso_day(self):
        issue_date = _attr(Invoice, "issue_date")
        self.assertEqual(coerce_value(issue_date, "2025-01-31"), date(2025, 1, 31))
        for raw in ("31.01.2025", "2025-02-30", "2025-01-31T10:00:00"):
            with self.subTest(raw=raw):
                with self.assertRaises(FilterValueError):
                    coerce_value(issue_date, raw)

    def test_datetime_accepts_date_and_local_datetime(self):
        start_time = _attr(TimeEntry, "start_time")
        self.assertEqual(coerce_value(start_time, "2025-01-01T09:30:00"), datetime(2025, 1, 1, 9, 30))
        self.assertEqual(coerce_value(start_time, "2025-01-01"), datetime(2025, 1, 1))
        with self.assertRaises(FilterValueError):
            coerce_value(start_time, "2025-01-01 09:30")

    def test_string_is_returned_verbatim(self):
        number = _attr(Invoice, "invoice_number")
        self.assertEqual(coerce_value(number, " INV-1 "), " INV-1 ")

    def test_relation_target_is_rejected(self):
        with self.assertRaises(FilterError):
            coerce_value(_attr(Invoice, "client"), "1")

    def test_error_message_names_field_and_value(self):
        with self.assertRaises(FilterValueError) as ctx:
            coerce_value(_attr(Invoice, "amount"), "lots")
        self.assertIn('"lots"', ctx.exception.detail)
        self.assertIn('"amount"', ctx.exception.detail)
