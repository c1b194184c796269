"""Downloadable exports of stored architectures."""

import csv
import io

from .pricing import from_cents, generate_pricing_breakdown
from .templates import coerce_service_lines
from .types import ArchitectureRecord

CSV_HEADER = ("Service", "Monthly Cost (USD)", "Description")


def render_pricing_csv(architecture: ArchitectureRecord) -> str:
    """Render the pricing breakdown as CSV with a trailing Total row.

    The Total row repeats the stored total (cents / 100), which is the
    model's stated figure and not necessarily the sum of the rows above it.
    """
    breakdown = generate_pricing_breakdown(coerce_service_lines(architecture["services"]))

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for item in breakdown.items:
        writer.writerow((item.service, f"${item.cost:.2f}", item.details))
    writer.writerow(
        ("Total", f"${from_cents(architecture['total_cost']):.2f}", "Total monthly cost")
    )
    return buffer.getvalue()
