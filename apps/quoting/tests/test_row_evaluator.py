from decimal import Decimal

from django.test import SimpleTestCase

from apps.quoting.helpers import to_decimal
from apps.quoting.quote import default_columns
from apps.quoting.services.row_evaluator import evaluate_cell, row_values, stored_value
from apps.quoting.tests.factories import item, number_column, text_column


class RowEvaluatorTest(SimpleTestCase):
    def setUp(self):
        self.qty = number_column("col_qty", "Qty")
        self.total = number_column("col_total", "Total", row_formula="col_qty * unitPrice")
        self.double = number_column("col_double", "Double", row_formula="col_total * 2")
        self.note = text_column("col_note", "Note")
        self.columns = default_columns() + [self.qty, self.total, self.double, self.note]
        self.item = item(
            "Widget", 100, col_qty=3, col_total=0, col_double=0, col_note="hello"
        )

    def column(self, column_id):
        return next(column for column in self.columns if column.id == column_id)

    def test_stored_values(self):
        self.assertEqual(stored_value(self.item, self.column("unitPrice")), Decimal("100"))
        self.assertEqual(stored_value(self.item, self.column("description")), "Widget")
        self.assertEqual(stored_value(self.item, self.qty), 3)

    def test_plain_number_column(self):
        self.assertEqual(evaluate_cell(self.item, self.qty, self.columns), Decimal("3"))

    def test_row_formula(self):
        self.assertEqual(evaluate_cell(self.item, self.total, self.columns), Decimal("300"))

    def test_row_formulas_read_stored_values_only(self):
        """col_double sees the stored 0 of col_total, not its formula value"""
        self.assertEqual(evaluate_cell(self.item, self.double, self.columns), Decimal("0"))

    def test_negative_operands(self):
        negative = item("Refund", 100, col_qty=-2)
        self.assertEqual(evaluate_cell(negative, self.total, self.columns), Decimal("-200"))

    def test_row_formula_on_unit_price(self):
        columns = [number_column("unitPrice", "Unit Price", row_formula="col_qty * 10")] + [
            self.qty
        ]
        self.assertEqual(evaluate_cell(self.item, columns[0], columns), Decimal("30"))

    def test_broken_formula_yields_zero(self):
        broken = number_column("col_broken", "Broken", row_formula="col_qty +")
        with self.assertLogs("apps.quoting.services.row_evaluator", level="DEBUG") as logs:
            value = evaluate_cell(self.item, broken, self.columns + [broken])
        self.assertEqual(value, Decimal("0"))
        self.assertIn("col_broken", logs.output[0])

    def test_self_reference_yields_zero(self):
        looping = number_column("col_loop", "Loop", row_formula="col_loop + 1")
        self.assertEqual(
            evaluate_cell(self.item, looping, self.columns + [looping]), Decimal("0")
        )

    def test_text_values_count_as_zero(self):
        self.assertEqual(evaluate_cell(self.item, self.note, self.columns), Decimal("0"))

    def test_row_values_covers_number_columns(self):
        values = row_values(self.item, self.columns)
        self.assertEqual(
            values,
            {
                "unitPrice": Decimal("100"),
                "col_qty": Decimal("3"),
                "col_total": Decimal("300"),
                "col_double": Decimal("0"),
            },
        )


class ToDecimalTest(SimpleTestCase):
    def test_numbers(self):
        self.assertEqual(to_decimal(5), Decimal("5"))
        self.assertEqual(to_decimal(0.1), Decimal("0.1"))
        self.assertEqual(to_decimal(Decimal("2.50")), Decimal("2.50"))

    def test_strings(self):
        self.assertEqual(to_decimal(" 1,234.5 "), Decimal("1234.5"))
        self.assertEqual(to_decimal("$20"), Decimal("20"))

    def test_non_numbers_are_zero(self):
        for value in [None, "", "abc", True, float("nan"), float("inf"), "NaN", [1]]:
            with self.subTest(value=value):
                self.assertEqual(to_decimal(value), Decimal("0"))

    def test_out_of_float_range_is_zero(self):
        for value in ["1e9999999", "-1e400", Decimal("1E+309"), 10 ** 400, "1e-400"]:
            with self.subTest(value=value):
                self.assertEqual(to_decimal(value), Decimal("0"))
        self.assertEqual(to_decimal("1e308"), Decimal("1e308"))
