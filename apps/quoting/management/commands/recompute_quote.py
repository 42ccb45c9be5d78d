import json
from pathlib import Path

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from apps.quoting.helpers import DecimalEncoder
from apps.quoting.quote import Quote
from apps.quoting.services.quote_engine_service import recompute


def load_quote(path):
    """Read a quote saved as JSON in the dashboard's camelCase shape."""
    file_path = Path(path)
    if not file_path.is_absolute():
        file_path = Path(settings.BASE_DIR) / file_path
    if not file_path.exists():
        raise CommandError(f"Quote file not found at {file_path}")

    try:
        data = json.loads(file_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise CommandError(f"Could not read quote file {file_path}: {e}") from e

    if not isinstance(data, dict):
        raise CommandError(f"Quote file {file_path} must contain a JSON object")
    try:
        return Quote.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        raise CommandError(f"Invalid quote in {file_path}: {e}") from e


class Command(BaseCommand):
    help = "Recompute the summary rows, Grand Total and Net Total of a quote JSON file"

    def add_arguments(self, parser):
        parser.add_argument("path", type=str, help="Path to the quote JSON file")
        parser.add_argument(
            "--formula",
            type=str,
            default=None,
            help="Grand Total formula to use instead of the one saved in the quote",
        )
        parser.add_argument(
            "--collab",
            action="append",
            default=[],
            metavar="PATH",
            help="Collaborator quote JSON file (repeatable)",
        )
        parser.add_argument(
            "--json",
            action="store_true",
            help="Print the full summary as JSON",
        )

    def handle(self, *args, **options):
        quote = load_quote(options["path"])
        collaborator_quotes = [load_quote(path) for path in options["collab"]]

        summary = recompute(
            quote,
            grand_total_formula=options["formula"],
            collaborator_quotes=collaborator_quotes,
        )

        if options["json"]:
            self.stdout.write(json.dumps(summary.to_dict(), indent=2, cls=DecimalEncoder))
            return

        item_count = sum(len(section.items) for section in quote.sections)
        self.stdout.write(
            f"Quote {quote.id or '(no id)'}: {len(quote.sections)} sections, "
            f"{item_count} items, {len(quote.columns)} columns"
        )
        for result in summary.calculation_results:
            self.stdout.write(
                f"  {result.name} ({result.calculation_label}): {result.result}"
            )

        self.stdout.write(f"  Price sum: {summary.price_sum}")
        if collaborator_quotes:
            self.stdout.write(f"  Collaborator sum: {summary.collab_sum}")

        for warning in summary.warnings:
            self.stdout.write(self.style.WARNING(f"Warning: {warning}"))
        if summary.grand_total_error:
            self.stdout.write(
                self.style.WARNING(
                    f"Grand total formula fell back to the price sum: {summary.grand_total_error}"
                )
            )

        self.stdout.write(self.style.SUCCESS(f"Grand total: {summary.grand_total}"))
        self.stdout.write(self.style.SUCCESS(f"Net total: {summary.net_total}"))
