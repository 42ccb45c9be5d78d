from django.contrib.auth import get_user_model
from django.test import SimpleTestCase
from rest_framework import status
from rest_framework.test import APIRequestFactory, force_authenticate

from apps.quoting.tests.factories import simple_quote
from apps.quoting.views.quote_engine_views import (
    PasteApplyView,
    PastePreviewView,
    QuoteColumnView,
    QuoteRecomputeView,
)

User = get_user_model()


class QuoteEngineViewTestCase(SimpleTestCase):
    def setUp(self):
        self.factory = APIRequestFactory()
        self.user = User(username="estimator")
        self.quote = simple_quote().to_dict()

    def post(self, view_class, path, data, authenticate=True):
        request = self.factory.post(path, data, format="json")
        if authenticate:
            force_authenticate(request, user=self.user)
        return view_class.as_view()(request)


class QuoteRecomputeViewTest(QuoteEngineViewTestCase):
    path = "/quoting/rest/quote/recompute/"

    def test_recompute(self):
        response = self.post(
            QuoteRecomputeView,
            self.path,
            {
                "quote": self.quote,
                "collaboratorQuotes": [
                    {"sections": [{"items": [{"description": "Partner", "unitPrice": 50}]}]}
                ],
            },
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["grandTotal"], 350.0)
        self.assertEqual(response.data["netTotal"], 300.0)

    def test_formula_fallback_is_reported(self):
        response = self.post(
            QuoteRecomputeView,
            self.path,
            {"quote": self.quote, "grandTotalFormula": "{GrandTotalBogus}"},
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["grandTotal"], 350.0)
        self.assertIn("GrandTotalBogus", response.data["grandTotalError"])

    def test_huge_exponent_cell_does_not_break_recompute(self):
        self.quote["sections"][0]["items"][0]["customFields"]["colQty"] = "1e9999999"
        response = self.post(QuoteRecomputeView, self.path, {"quote": self.quote})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["grandTotal"], 350.0)
        results = {row["id"]: row["result"] for row in response.data["calculationResults"]}
        self.assertEqual(results["colQty"], 3.0)

    def test_browser_float_prices_are_accepted(self):
        items = self.quote["sections"][0]["items"]
        items[0]["unitPrice"] = 0.1 + 0.2
        items[1]["unitPrice"] = 1e25
        response = self.post(QuoteRecomputeView, self.path, {"quote": self.quote})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertAlmostEqual(response.data["priceSum"], 1e25)
        cells = response.data["cellValues"]["section-0"]["item-1"]
        self.assertEqual(cells["unitPrice"], 0.30000000000000004)

    def test_invalid_payload(self):
        response = self.post(QuoteRecomputeView, self.path, {"grandTotalFormula": "1"})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("quote", response.data)

    def test_requires_authentication(self):
        response = self.post(
            QuoteRecomputeView, self.path, {"quote": self.quote}, authenticate=False
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class QuoteColumnViewTest(QuoteEngineViewTestCase):
    path = "/quoting/rest/quote/columns/"

    def test_add_column(self):
        response = self.post(
            QuoteColumnView,
            self.path,
            {
                "quote": self.quote,
                "action": "add",
                "name": "Line Total",
                "type": "number",
                "calculation": {"type": "max"},
                "rowFormula": "colQty * unitPrice",
            },
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        column = response.data["quote"]["columns"][-1]
        self.assertEqual(column["name"], "Line Total")
        self.assertEqual(column["calculation"], {"type": "max"})
        self.assertEqual(response.data["summary"]["calculationResults"][-1]["result"], 750.0)

    def test_move_column(self):
        response = self.post(
            QuoteColumnView,
            self.path,
            {"quote": self.quote, "action": "move", "index": 2, "direction": "left"},
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(
            [c["id"] for c in response.data["quote"]["columns"]],
            ["description", "colQty", "unitPrice"],
        )

    def test_update_calculation(self):
        response = self.post(
            QuoteColumnView,
            self.path,
            {
                "quote": self.quote,
                "action": "calculation",
                "columnId": "colQty",
                "calculation": {"type": "custom", "formula": "colQty * 2"},
            },
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        results = response.data["summary"]["calculationResults"]
        self.assertEqual(results[1]["result"], 10.0)

    def test_refused_edit_is_a_bad_request(self):
        response = self.post(
            QuoteColumnView,
            self.path,
            {"quote": self.quote, "action": "delete", "columnId": "unitPrice"},
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("reserved", response.data["error"])

    def test_missing_action_fields(self):
        response = self.post(
            QuoteColumnView, self.path, {"quote": self.quote, "action": "move"}
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("index", response.data)
        self.assertIn("direction", response.data)


class PasteViewTest(QuoteEngineViewTestCase):
    text = "Description\tQuantity\tUnit Price\nWidget\t2\t100\nGadget\t3\t250"

    def test_preview(self):
        response = self.post(
            PastePreviewView, "/quoting/rest/quote/paste/preview/", {"text": self.text}
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(
            [c["id"] for c in response.data["columns"]],
            ["description", "quantity", "unitPrice"],
        )
        self.assertEqual(len(response.data["items"]), 2)

    def test_preview_without_rows(self):
        response = self.post(
            PastePreviewView, "/quoting/rest/quote/paste/preview/", {"text": "Name\tPrice"}
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("error", response.data)

    def test_apply(self):
        response = self.post(
            PasteApplyView,
            "/quoting/rest/quote/paste/apply/",
            {"quote": self.quote, "text": self.text, "sectionIndex": 0, "mode": "replace"},
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["summary"]["priceSum"], 350.0)
        self.assertEqual(
            [c["id"] for c in response.data["quote"]["columns"]],
            ["description", "quantity", "unitPrice"],
        )

    def test_apply_to_missing_section(self):
        response = self.post(
            PasteApplyView,
            "/quoting/rest/quote/paste/apply/",
            {"quote": self.quote, "text": self.text, "sectionIndex": 4},
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
