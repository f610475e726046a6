from datetime import date, datetime, time
from decimal import Decimal

from portal.filtering.compiler import apply_predicate
from portal.filtering.expressions import And, Between, Gte, IsNull, Lte
from portal.models.invoice import Invoice, InvoiceStatus
from portal.models.time_entry import TimeEntry
from portal.specifications import invoices as invoice_specs
from portal.specifications import time_entries as time_entry_specs
from tests.base import PortalDataTestBase


class InvoiceSpecificationTests(PortalDataTestBase):
    def _numbers(self, expr):
        with self.SessionLocal() as db:
            rows = apply_predicate(db.query(Invoice), Invoice, expr).order_by(Invoice.invoice_number).all()
            return [row.invoice_number for row in rows]

    def test_none_arguments_add_no_constraint(self):
        self.assertIsNone(invoice_specs.has_client_id(None))
        self.assertIsNone(invoice_specs.issue_date_between(None, None))
        self.assertIsNone(invoice_specs.invoice_number_contains(""))
        self.assertIsNone(invoice_specs.combine(invoice_specs.has_status(None), invoice_specs.amount_at_least(None)))

    def test_issue_date_between_is_open_ended(self):
        self.assertIsInstance(invoice_specs.issue_date_between(date(2025, 1, 1), None), Gte)
        self.assertIsInstance(invoice_specs.issue_date_between(None, date(2025, 1, 1)), Lte)
        self.assertIsInstance(invoice_specs.issue_date_between(date(2025, 1, 1), date(2025, 1, 31)), Between)
        self.assertEqual(
            self._numbers(invoice_specs.issue_date_between(date(2025, 1, 10), date(2025, 1, 20))),
            ["INV-001", "INV-002", "INV-005"],
        )

    def test_combined_helpers(self):
        expr = invoice_specs.combine(
            invoice_specs.has_freelancer(self.alice_id),
            invoice_specs.has_client_id(self.acme_id),
            invoice_specs.has_status(InvoiceStatus.SENT),
        )
        self.assertIsInstance(expr, And)
        self.assertEqual(self._numbers(expr), ["INV-003"])

    def test_amount_bounds_are_inclusive(self):
        expr = invoice_specs.combine(
            invoice_specs.amount_at_least(Decimal("75.50")),
            invoice_specs.amount_at_most(Decimal("300")),
        )
        self.assertEqual(self._numbers(expr), ["INV-001", "INV-003", "INV-004"])

    def test_project_and_number_helpers(self):
        self.assertEqual(self._numbers(invoice_specs.has_project_id(self.website_id)), ["INV-001", "INV-003"])
        self.assertEqual(self._numbers(invoice_specs.invoice_number_contains("INV-00")), ["INV-001", "INV-002", "INV-003", "INV-004", "INV-005"])

    def test_is_overdue_excludes_paid_and_cancelled(self):
        self.assertEqual(self._numbers(invoice_specs.is_overdue(date(2025, 3, 1))), ["INV-004"])
        self.assertEqual(self._numbers(invoice_specs.is_overdue(date(2025, 4, 1))), ["INV-003", "INV-004"])


class TimeEntrySpecificationTests(PortalDataTestBase):
    def _descriptions(self, expr):
        with self.SessionLocal() as db:
            rows = apply_predicate(db.query(TimeEntry), TimeEntry, expr).order_by(TimeEntry.id).all()
            return [row.description for row in rows]

    def test_date_range_covers_whole_days(self):
        expr = time_entry_specs.date_range_between(date(2025, 1, 2), date(2025, 1, 3))
        self.assertEqual(expr.lower, datetime.combine(date(2025, 1, 2), time.min))
        self.assertEqual(expr.upper, datetime.combine(date(2025, 1, 3), time.max))
        self.assertEqual(
            self._descriptions(time_entry_specs.combine(expr, time_entry_specs.has_user_id(self.alice_id))),
            ["Landing page layout", "Checkout flow"],
        )

    def test_date_range_open_ended(self):
        self.assertEqual(
            self._descriptions(time_entry_specs.date_range_between(date(2025, 1, 4), None)),
            ["Internal sync"],
        )
        self.assertEqual(len(self._descriptions(time_entry_specs.date_range_between(None, date(2025, 1, 2)))), 2)

    def test_unbilled_helpers(self):
        expr = time_entry_specs.combine(
            time_entry_specs.has_user_id(self.alice_id),
            time_entry_specs.billable_but_not_billed(),
            time_entry_specs.not_invoiced(),
        )
        self.assertEqual(self._descriptions(expr), ["Landing page layout"])

    def test_not_invoiced_is_a_null_check_on_the_relation(self):
        self.assertIsInstance(time_entry_specs.not_invoiced(), IsNull)
        self.assertEqual(len(self._descriptions(time_entry_specs.not_invoiced())), 3)

    def test_flag_and_text_helpers(self):
        self.assertEqual(self._descriptions(time_entry_specs.is_billable(False)), ["Internal sync"])
        self.assertEqual(self._descriptions(time_entry_specs.is_billed(True)), ["Checkout flow"])
        self.assertEqual(self._descriptions(time_entry_specs.description_contains("FLOW")), ["Checkout flow"])
        self.assertEqual(self._descriptions(time_entry_specs.has_project_id(self.mobile_id)), ["Internal sync"])
        self.assertEqual(
            self._descriptions(time_entry_specs.has_invoice_id(self.invoice_ids["INV-001"])),
            ["Checkout flow"],
        )
        self.assertIsNone(time_entry_specs.is_billable(None))
