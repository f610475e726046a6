import os
import unittest
from datetime import date
from decimal import Decimal
from types import SimpleNamespace

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from portal.filtering.attributes import resolve_path, schema_for
from portal.filtering.builder import build_specification
from portal.filtering.compiler import compile_python
from portal.filtering.expressions import Between, Eq, Gte, IsNull, Join, Lt, Lte, NotNull, and_
from portal.models.invoice import Invoice, InvoiceStatus
from portal.models.payment import PaymentStatus


def _attr(path):
    return resolve_path(schema_for(Invoice), path)


def _invoice(**overrides):
    values = {
        "invoice_number": "INV-1",
        "status": InvoiceStatus.SENT,
        "amount": Decimal("100.00"),
        "issue_date": date(2025, 1, 10),
        "notes": None,
        "client": SimpleNamespace(name="Acme Corp", company=None),
        "payments": [],
    }
    values.update(overrides)
    return SimpleNamespace(**values)


class PythonCompilerTests(unittest.TestCase):
    def test_none_matches_everything(self):
        self.assertTrue(compile_python(None)(object()))

    def test_comparisons_with_none_are_false(self):
        row = _invoice(amount=None)
        for expr in (Eq(_attr("amount"), None), Lt(_attr("amount"), Decimal("5")), Gte(_attr("amount"), Decimal("0"))):
            with self.subTest(expr=type(expr).__name__):
                self.assertFalse(compile_python(expr)(row))

    def test_mismatched_types_do_not_raise(self):
        self.assertFalse(compile_python(Lt(_attr("amount"), "cheap"))(_invoice()))

    def test_and_requires_every_operand(self):
        expr = and_(Eq(_attr("status"), InvoiceStatus.SENT), Lte(_attr("amount"), Decimal("50")))
        self.assertFalse(compile_python(expr)(_invoice()))
        self.assertTrue(compile_python(expr)(_invoice(amount=Decimal("10"))))

    def test_missing_relation_ends_the_path(self):
        matches = compile_python(build_specification(Invoice, {"client.company.name_like": "acme"}))
        self.assertFalse(matches(_invoice()))
        self.assertFalse(matches(_invoice(client=None)))
        self.assertTrue(matches(_invoice(client=SimpleNamespace(name="x", company=SimpleNamespace(name="ACME Ltd")))))

    def test_isnull_through_missing_relation(self):
        expr = IsNull(_attr("client.company.name"))
        self.assertTrue(compile_python(expr)(_invoice()))
        self.assertTrue(compile_python(expr)(_invoice(client=None)))
        self.assertFalse(compile_python(NotNull(_attr("client.company.name")))(_invoice()))

    def test_collection_join_matches_any_element(self):
        expr = build_specification(Invoice, {"payments_join": "status:eq:COMPLETED"})
        self.assertIsInstance(expr, Join)
        paid = _invoice(payments=[SimpleNamespace(status=PaymentStatus.FAILED), SimpleNamespace(status=PaymentStatus.COMPLETED)])
        unpaid = _invoice(payments=[SimpleNamespace(status=PaymentStatus.FAILED)])
        self.assertTrue(compile_python(expr)(paid))
        self.assertFalse(compile_python(expr)(unpaid))
        self.assertFalse(compile_python(expr)(_invoice()))

    def test_in_and_like_use_text_form(self):
        self.assertTrue(compile_python(build_specification(Invoice, {"status_in": "SENT,PAID"}))(_invoice()))
        self.assertFalse(compile_python(build_specification(Invoice, {"status_in": "sent"}))(_invoice()))
        self.assertTrue(compile_python(build_specification(Invoice, {"invoice_number_like": "inv"}))(_invoice()))

    def test_between_bounds_are_inclusive(self):
        expr = Between(_attr("issue_date"), date(2025, 1, 1), date(2025, 1, 10))
        self.assertTrue(compile_python(expr)(_invoice()))
        self.assertFalse(compile_python(expr)(_invoice(issue_date=date(2025, 1, 11))))
