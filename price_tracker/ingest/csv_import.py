"""Bulk import of tracked items from CSV.

Format: url,productCode,checkIntervalMinutes,priceAlertThreshold

Either url or productCode is required per row. The header line is optional.
"""

import csv
import logging
from dataclasses import dataclass, field
from typing import Optional

from price_tracker.config import settings
from price_tracker.errors import ValidationError
from price_tracker.ingest.price_parser import is_valid_url
from price_tracker.metrics import csv_import_rows_total

logger = logging.getLogger(__name__)

CSV_HEADER = "url,productCode,checkIntervalMinutes,priceAlertThreshold"


@dataclass
class CsvImportRow:
    url: Optional[str] = None
    product_code: Optional[str] = None
    check_interval_minutes: Optional[int] = None
    price_alert_threshold: Optional[int] = None
    row: int = 0


@dataclass
class CsvImportResult:
    total: int = 0
    successful: int = 0
    failed: int = 0
    errors: list[dict] = field(default_factory=list)

    @property
    def message(self) -> str:
        return f"Imported {self.successful} of {self.total} products successfully"

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "successful": self.successful,
            "failed": self.failed,
            "errors": self.errors,
            "message": self.message,
        }


def _parse_int(value: str, default: int) -> Optional[int]:
    """Blank -> default, unparseable -> None (rejected later by validation)."""
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return None


def _is_header(line: str) -> bool:
    return "url" in line.lower()


def parse_csv(content: str, keep_incomplete: bool = False) -> list[CsvImportRow]:
    """
    Parse CSV text into rows.

    Args:
        content: Raw CSV text
        keep_incomplete: Keep rows that have neither URL nor product code so
                         validation can report them

    Returns:
        Rows numbered from 1 in file order (header and blank lines excluded)
    """
    lines = [line for line in content.strip().splitlines() if line.strip()]
    if not lines:
        return []

    if _is_header(lines[0]):
        lines = lines[1:]

    records = list(csv.reader(lines))

    rows = []
    for cells in records:
        cells = [cell.strip() for cell in cells] + [""] * 4
        row = CsvImportRow(
            url=cells[0] or None,
            product_code=cells[1] or None,
            check_interval_minutes=_parse_int(cells[2], settings.default_check_interval_minutes),
            price_alert_threshold=_parse_int(cells[3], settings.default_alert_threshold_percent),
        )
        if not (row.url or row.product_code) and not keep_incomplete:
            continue
        row.row = len(rows) + 1
        rows.append(row)
    return rows


def validate_row(row: CsvImportRow) -> Optional[str]:
    """Return an error message for an invalid row, None when it is valid."""
    if not row.url and not row.product_code:
        return "Either URL or product code must be provided"
    if row.url and not is_valid_url(row.url):
        return "Invalid URL format"
    if row.product_code and not row.product_code.isdigit():
        return "Product code must be numeric"

    interval = row.check_interval_minutes
    if interval is None or not 1 <= interval <= 1440:
        return "Check interval must be between 1 and 1440 minutes"

    threshold = row.price_alert_threshold
    if threshold is None or not 0 <= threshold <= 100:
        return "Alert threshold must be between 0 and 100 percent"
    return None


def validate_rows(rows: list[CsvImportRow]) -> list[dict]:
    errors = []
    for row in rows:
        error = validate_row(row)
        if error:
            errors.append({"row": row.row, "error": error})
    return errors


async def import_from_csv(content: str, item_service=None) -> CsvImportResult:
    """
    Validate every row, then add each one independently.

    Raises:
        ValidationError: The file has no rows, or any row is invalid. Nothing
                         is created in that case.

    Returns:
        Per-row outcome; a failing row never stops the rest
    """
    if item_service is None:
        from price_tracker.services.items import item_service

    rows = parse_csv(content, keep_incomplete=True)
    if not rows:
        raise ValidationError("CSV file is empty or has no valid product rows")

    errors = validate_rows(rows)
    if errors:
        details = "; ".join(f"Row {e['row']}: {e['error']}" for e in errors)
        raise ValidationError(
            f"CSV validation failed: {details}",
            errors=[f"Row {e['row']}: {e['error']}" for e in errors],
        )

    result = CsvImportResult(total=len(rows))
    for row in rows:
        try:
            await item_service.add_item(
                row.url or row.product_code,
                check_interval_minutes=row.check_interval_minutes,
                price_alert_threshold=row.price_alert_threshold,
                product_code=row.product_code,
            )
        except Exception as e:
            logger.warning(f"CSV row {row.row} failed: {e}")
            result.failed += 1
            result.errors.append({"row": row.row, "error": str(e)})
            csv_import_rows_total.labels(status="failed").inc()
        else:
            result.successful += 1
            csv_import_rows_total.labels(status="imported").inc()

    logger.info(result.message)
    return result


def format_row(row: CsvImportRow) -> str:
    """Render a row back into CSV form."""
    return ",".join(
        [
            row.url or "",
            row.product_code or "",
            str(row.check_interval_minutes or settings.default_check_interval_minutes),
            str(
                settings.default_alert_threshold_percent
                if row.price_alert_threshold is None
                else row.price_alert_threshold
            ),
        ]
    )


def generate_sample_csv() -> str:
    return "\n".join(
        [
            CSV_HEADER,
            "https://morele.net/laptop-lenovo-ideapad-5-10751839/,10751839,60,10",
            "https://morele.net/monitor-dell-s2721ds-10751840/,10751840,120,15",
            ",10751841,60,10",
            "https://morele.net/karta-graficzna-rtx-4070-1792417/,,90,5",
        ]
    )
