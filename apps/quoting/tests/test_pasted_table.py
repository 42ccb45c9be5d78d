from decimal import Decimal

from django.test import SimpleTestCase

from apps.quoting.enums import ValueType
from apps.quoting.exceptions import TableImportError
from apps.quoting.importers.pasted_table import (
    apply_pasted_table,
    import_pasted_table,
    infer_value_type,
    parse_date,
    parse_number,
)
from apps.quoting.tests.factories import build_quote, item, simple_quote


def counter_ids():
    count = iter(range(1, 100))
    return lambda: f"col_{next(count):08x}"


class ParseNumberTest(SimpleTestCase):
    def test_accepted_formats(self):
        for text, expected in [
            ("12", "12"),
            ("8,000.5", "8000.5"),
            ("8.000,5", "8000.5"),
            ("1,5", "1.5"),
            ("1.000", "1000"),
            ("12,500", "12500"),
            ("1.000.000", "1000000"),
            ("0.125", "0.125"),
            (".5", "0.5"),
            ("-3", "-3"),
            ("5 (ngày)", "5"),
            (" 7 ", "7"),
        ]:
            with self.subTest(text=text):
                self.assertEqual(parse_number(text), Decimal(expected))

    def test_rejected_values(self):
        for text in ["", "abc", "1.2.3", "1,000.5.5", "12a", "1e5", "2024-01-15", None]:
            with self.subTest(text=text):
                self.assertIsNone(parse_number(text))


class TypeInferenceTest(SimpleTestCase):
    def test_number_needs_every_value(self):
        self.assertEqual(infer_value_type(["1", "", "2,5"]), ValueType.NUMBER)
        self.assertEqual(infer_value_type(["1", "two"]), ValueType.TEXT)

    def test_date_threshold(self):
        three_of_four = ["2024-01-15", "01/02/2024", "15/03/2024", "soon"]
        self.assertEqual(infer_value_type(three_of_four), ValueType.DATE)
        two_of_three = ["2024-01-15", "01/02/2024", "soon"]
        self.assertEqual(infer_value_type(two_of_three), ValueType.TEXT)

    def test_blank_column_is_text(self):
        self.assertEqual(infer_value_type(["", ""]), ValueType.TEXT)

    def test_parse_date(self):
        self.assertEqual(parse_date("01/02/2024").isoformat(), "2024-01-02")
        self.assertEqual(parse_date("25/12/2024").isoformat(), "2024-12-25")
        self.assertIsNone(parse_date("1850-01-01"))
        self.assertIsNone(parse_date("2024/01/15"))


class ImportPastedTableTest(SimpleTestCase):
    def test_description_quantity_unit_price(self):
        table = import_pasted_table(
            "Description\tQuantity\tUnit Price\nWidget\t2\t1,500\nGadget\t3\t250.5\n",
            id_factory=counter_ids(),
        )

        self.assertEqual(
            [(c.id, c.name, c.value_type) for c in table.columns],
            [
                ("description", "Description", ValueType.TEXT),
                ("quantity", "Quantity", ValueType.NUMBER),
                ("unitPrice", "Unit Price", ValueType.NUMBER),
            ],
        )
        widget, gadget = table.items
        self.assertEqual(widget.description, "Widget")
        self.assertEqual(widget.unit_price, Decimal("1500"))
        self.assertEqual(widget.custom_fields, {"quantity": Decimal("2")})
        self.assertEqual(gadget.unit_price, Decimal("250.5"))
        self.assertNotEqual(widget.id, gadget.id)

    def test_first_column_is_the_fallback_description(self):
        table = import_pasted_table("Code\tAmount\nX1\t10", id_factory=counter_ids())
        self.assertEqual([c.id for c in table.columns], ["description", "unitPrice"])
        self.assertEqual(table.columns[0].name, "Code")
        self.assertEqual(table.items[0].description, "X1")
        self.assertEqual(table.items[0].unit_price, Decimal("10"))

    def test_text_price_column_is_not_the_unit_price(self):
        table = import_pasted_table("Item\tPrice\nA\tcall us", id_factory=counter_ids())
        self.assertEqual(table.columns[1].id, "col_00000001")
        self.assertEqual(table.items[0].custom_fields, {"col_00000001": "call us"})

    def test_other_separators(self):
        table = import_pasted_table("Item;Price\nA;8.000,5", id_factory=counter_ids())
        self.assertEqual(table.items[0].unit_price, Decimal("8000.5"))

        table = import_pasted_table("Item,Qty\r\nA,4\r\n", id_factory=counter_ids())
        self.assertEqual(table.items[0].custom_fields, {"quantity": Decimal("4")})

    def test_dates_are_normalised(self):
        table = import_pasted_table(
            "Task\tStart\nA\t2024-01-15\nB\t01/02/2024\nC\t15/03/2024\nD\tsoon",
            id_factory=counter_ids(),
        )
        start = table.columns[1]
        self.assertEqual(start.value_type, ValueType.DATE)
        self.assertEqual(
            [i.custom_fields[start.id] for i in table.items],
            ["2024-01-15", "2024-01-02", "2024-03-15", "soon"],
        )

    def test_day_counts(self):
        table = import_pasted_table("Task\tDays\nA\t5 (ngày)\nB\t3", id_factory=counter_ids())
        self.assertEqual(table.columns[1].value_type, ValueType.NUMBER)
        self.assertEqual(table.items[0].custom_fields["col_00000001"], Decimal("5"))

    def test_duplicate_names_and_quantity_ids(self):
        table = import_pasted_table(
            "Name\tQty\tSL\tNote\tNote\nA\t1\t2\tx\ty", id_factory=counter_ids()
        )
        self.assertEqual(
            [(c.id, c.name) for c in table.columns],
            [
                ("description", "Name"),
                ("quantity", "Qty"),
                ("quantity_1", "SL"),
                ("col_00000001", "Note"),
                ("col_00000002", "Note (1)"),
            ],
        )

    def test_ragged_and_blank_rows(self):
        table = import_pasted_table(
            "Name\tA\tB\nx\t1\n\n\t\t\ny\t2\tz", id_factory=counter_ids()
        )
        self.assertEqual(len(table.items), 2)
        self.assertEqual(table.items[0].custom_fields["col_00000002"], "")
        self.assertEqual(table.items[1].custom_fields["col_00000002"], "z")

    def test_unusable_input(self):
        for text in ["", "   \n  ", "Name\tPrice\n\n", "Name\tPrice\n\t\n"]:
            with self.subTest(text=text):
                with self.assertRaises(TableImportError):
                    import_pasted_table(text)

    def test_to_dict(self):
        data = import_pasted_table("Item\tPrice\nA\t2.5", id_factory=counter_ids()).to_dict()
        self.assertEqual(data["columns"][1], {
                "id": "unitPrice",
                "name": "Price",
                "type": "number",
                "calculation": {"type": "sum"},
            })
        self.assertEqual(data["items"][0]["unitPrice"], 2.5)


class ApplyPastedTableTest(SimpleTestCase):
    def setUp(self):
        self.quote = build_quote(
            [item("Old", 5, colQty=1)],
            [item("Other", 7, colQty=2)],
            extra_columns=simple_quote().columns[2:],
        )

    def test_replace_first_section_installs_schema(self):
        table = import_pasted_table("Name\tQty\nA\t2\nB\t3", id_factory=counter_ids())
        updated = apply_pasted_table(self.quote, 0, table, "replace")

        self.assertEqual(
            [c.id for c in updated.columns], ["description", "unitPrice", "quantity"]
        )
        self.assertEqual([i.description for i in updated.sections[0].items], ["A", "B"])
        # Other sections follow the new schema
        self.assertEqual(
            updated.sections[1].items[0].custom_fields, {"quantity": 0}
        )
        self.assertEqual(self.quote.sections[0].items[0].description, "Old")

    def test_replace_later_section_maps_by_position(self):
        table = import_pasted_table("Name\tPrice\tCount\nA\t9\t4", id_factory=counter_ids())
        updated = apply_pasted_table(self.quote, 1, table, "replace")

        self.assertEqual([c.id for c in updated.columns], ["description", "unitPrice", "colQty"])
        new_item = updated.sections[1].items[0]
        self.assertEqual(new_item.description, "A")
        self.assertEqual(new_item.unit_price, Decimal("9"))
        self.assertEqual(new_item.custom_fields, {"colQty": Decimal("4")})

    def test_add_rows(self):
        table = import_pasted_table("Name\tPrice\tCount\nA\t9\t4", id_factory=counter_ids())
        updated = apply_pasted_table(self.quote, 0, table, "add-rows")
        self.assertEqual([i.description for i in updated.sections[0].items], ["Old", "A"])

    def test_add_rows_needs_matching_columns(self):
        table = import_pasted_table("Name\tPrice\nA\t9", id_factory=counter_ids())
        with self.assertRaisesMessage(TableImportError, "same number of columns"):
            apply_pasted_table(self.quote, 0, table, "add-rows")

    def test_add_columns(self):
        table = import_pasted_table("Description\tHours\nA\t4", id_factory=counter_ids())
        updated = apply_pasted_table(
            self.quote, 1, table, "add-columns", id_factory=lambda: "col_added"
        )

        self.assertEqual(
            [(c.id, c.name) for c in updated.columns[3:]],
            [("col_added", "Description (1)"), ("col_00000001", "Hours")],
        )
        old_item = updated.sections[0].items[0]
        self.assertEqual(old_item.custom_fields["col_added"], "")
        self.assertEqual(old_item.custom_fields["col_00000001"], 0)
        new_item = updated.sections[1].items[-1]
        self.assertEqual(new_item.custom_fields["col_added"], "A")
        self.assertEqual(new_item.custom_fields["col_00000001"], Decimal("4"))

    def test_missing_section(self):
        table = import_pasted_table("Name\nA")
        with self.assertRaises(TableImportError):
            apply_pasted_table(self.quote, 5, table, "replace")

    def test_first_paste_into_an_empty_quote(self):
        table = import_pasted_table("Item\tPrice\nA\t2", id_factory=counter_ids())
        updated = apply_pasted_table(build_quote(), 0, table, "replace")
        self.assertEqual(len(updated.sections), 1)
        self.assertEqual(updated.sections[0].items[0].unit_price, Decimal("2"))
