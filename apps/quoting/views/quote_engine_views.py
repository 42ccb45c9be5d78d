"""
Quote Engine REST Views

Stateless endpoints for the quote table: every request carries the quote,
every response carries the recomputed result. Nothing is persisted.

Views only validate input and delegate to the service layer; domain errors
come back as 400s, anything unexpected is logged and returned as a 500.
"""

import logging

from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.quoting.exceptions import SchemaEditError, TableImportError
from apps.quoting.importers.pasted_table import apply_pasted_table, import_pasted_table
from apps.quoting.quote import Calculation, Column, Quote
from apps.quoting.serializers.quote_engine_serializers import (
    ColumnActionSerializer,
    PasteApplySerializer,
    PastePreviewSerializer,
    RecomputeRequestSerializer,
)
from apps.quoting.services import schema_editor
from apps.quoting.services.quote_engine_service import recompute

logger = logging.getLogger(__name__)


def _quote_response(quote: Quote) -> Response:
    return Response(
        {"quote": quote.to_dict(), "summary": recompute(quote).to_dict()},
        status=status.HTTP_200_OK,
    )


class QuoteRecomputeView(APIView):
    """
    Recompute cell values, summary rows and totals of a quote.

    POST /quoting/rest/quote/recompute/
    """

    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = RecomputeRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        data = serializer.validated_data
        try:
            quote = Quote.from_dict(data["quote"])
            collaborator_quotes = [
                Quote.from_dict(collab) for collab in data["collaboratorQuotes"]
            ]
            summary = recompute(
                quote,
                grand_total_formula=data.get("grandTotalFormula"),
                collaborator_quotes=collaborator_quotes,
            )
            return Response(summary.to_dict(), status=status.HTTP_200_OK)

        except Exception as e:
            logger.error(f"Error recomputing quote: {str(e)}", exc_info=True)
            return Response(
                {"error": f"Failed to recompute quote: {str(e)}"},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )


class QuoteColumnView(APIView):
    """
    Apply one schema edit (add, edit, delete, move, calculation) to a quote.

    POST /quoting/rest/quote/columns/
    """

    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = ColumnActionSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        data = serializer.validated_data
        action = data["action"]
        try:
            quote = Quote.from_dict(data["quote"])
            updated = self._apply(quote, action, data)
            return _quote_response(updated)

        except SchemaEditError as e:
            logger.info(f"Column {action} refused: {str(e)}")
            return Response({"error": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        except Exception as e:
            logger.error(f"Error applying column {action}: {str(e)}", exc_info=True)
            return Response(
                {"error": f"Failed to apply column {action}: {str(e)}"},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

    def _apply(self, quote, action, data):
        if action == "add":
            return schema_editor.add_column(
                quote,
                name=data["name"],
                value_type=data["type"],
                calculation=Calculation.from_dict(data.get("calculation")),
                row_formula=data.get("rowFormula"),
                date_format=data.get("dateFormat"),
            )
        if action == "edit":
            return schema_editor.edit_column(quote, Column.from_dict(data["column"]))
        if action == "delete":
            return schema_editor.delete_column(quote, data["columnId"])
        if action == "move":
            return schema_editor.move_column(quote, data["index"], data["direction"])
        return schema_editor.update_column_calculation(
            quote, data["columnId"], Calculation.from_dict(data.get("calculation"))
        )


class PastePreviewView(APIView):
    """
    Parse pasted spreadsheet text and return the detected columns and rows.

    POST /quoting/rest/quote/paste/preview/
    """

    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = PastePreviewSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            table = import_pasted_table(serializer.validated_data["text"])
            return Response(table.to_dict(), status=status.HTTP_200_OK)

        except TableImportError as e:
            return Response({"error": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        except Exception as e:
            logger.error(f"Error parsing pasted table: {str(e)}", exc_info=True)
            return Response(
                {"error": f"Failed to parse pasted data: {str(e)}"},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )


class PasteApplyView(APIView):
    """
    Merge pasted spreadsheet text into a section of the quote.

    POST /quoting/rest/quote/paste/apply/
    """

    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = PasteApplySerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        data = serializer.validated_data
        try:
            quote = Quote.from_dict(data["quote"])
            table = import_pasted_table(data["text"])
            updated = apply_pasted_table(
                quote, data["sectionIndex"], table, data["mode"]
            )
            return _quote_response(updated)

        except TableImportError as e:
            return Response({"error": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        except Exception as e:
            logger.error(f"Error applying pasted table: {str(e)}", exc_info=True)
            return Response(
                {"error": f"Failed to apply pasted data: {str(e)}"},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
