"""Tests for CSV parsing, validation and import."""

import pytest

from price_tracker.errors import ValidationError
from price_tracker.ingest.csv_import import (
    CsvImportRow,
    format_row,
    generate_sample_csv,
    import_from_csv,
    parse_csv,
    validate_row,
)


class RecordingItemService:
    def __init__(self, fail_on=()):
        self.fail_on = set(fail_on)
        self.added = []

    async def add_item(
        self, url_or_code, check_interval_minutes=None, price_alert_threshold=None, product_code=None
    ):
        if url_or_code in self.fail_on:
            raise RuntimeError("This product is already being tracked.")
        self.added.append((url_or_code, check_interval_minutes, price_alert_threshold, product_code))


def test_parse_with_header_and_defaults():
    rows = parse_csv(
        "url,productCode,checkIntervalMinutes,priceAlertThreshold\r\n"
        "https://morele.net/a-1/,1,30,5\r\n"
        "\r\n"
        ",2,,\r\n"
    )

    assert len(rows) == 2
    assert rows[0].url == "https://morele.net/a-1/"
    assert rows[0].check_interval_minutes == 30
    assert rows[0].price_alert_threshold == 5
    assert rows[1].url is None
    assert rows[1].product_code == "2"
    assert rows[1].check_interval_minutes == 60
    assert rows[1].price_alert_threshold == 10
    assert [r.row for r in rows] == [1, 2]


def test_parse_without_header():
    rows = parse_csv("https://morele.net/a-1/\n10751839")
    assert [r.url for r in rows] == ["https://morele.net/a-1/", "10751839"]


def test_header_detected_by_url_token():
    rows = parse_csv("product_url,sku,interval,threshold\n,10751839,60,10")
    assert len(rows) == 1
    assert rows[0].product_code == "10751839"


def test_parse_drops_rows_without_url_or_code():
    content = "https://morele.net/a-1/\n,,60,10\n,3"
    assert len(parse_csv(content)) == 2
    assert len(parse_csv(content, keep_incomplete=True)) == 3


def test_unparseable_numbers_fail_validation():
    row = parse_csv("https://morele.net/a-1/,,abc,10")[0]
    assert row.check_interval_minutes is None
    assert validate_row(row) == "Check interval must be between 1 and 1440 minutes"


@pytest.mark.parametrize(
    "row, error",
    [
        (CsvImportRow(), "Either URL or product code must be provided"),
        (CsvImportRow(url="morele.net/a-1"), "Invalid URL format"),
        (CsvImportRow(product_code="1", check_interval_minutes=0, price_alert_threshold=10),
         "Check interval must be between 1 and 1440 minutes"),
        (CsvImportRow(product_code="1", check_interval_minutes=60, price_alert_threshold=101),
         "Alert threshold must be between 0 and 100 percent"),
        (CsvImportRow(product_code="1", check_interval_minutes=60, price_alert_threshold=0), None),
    ],
)
def test_validate_row(row, error):
    assert validate_row(row) == error


@pytest.mark.asyncio
async def test_invalid_row_rejects_whole_file():
    service = RecordingItemService()
    content = (
        "url,productCode,checkIntervalMinutes,priceAlertThreshold\n"
        "https://morele.net/a-1/,1,60,10\n"
        "https://morele.net/b-2/,2,60,10\n"
        ",,60,10\n"
    )

    with pytest.raises(ValidationError) as exc_info:
        await import_from_csv(content, item_service=service)

    assert exc_info.value.errors == ["Row 3: Either URL or product code must be provided"]
    assert str(exc_info.value).startswith("CSV validation failed: Row 3:")
    assert service.added == []


@pytest.mark.asyncio
async def test_empty_file_is_rejected():
    with pytest.raises(ValidationError, match="CSV file is empty"):
        await import_from_csv("url,productCode\n", item_service=RecordingItemService())


@pytest.mark.asyncio
async def test_partial_failure_is_reported_per_row():
    service = RecordingItemService(fail_on={"https://morele.net/b-2/"})
    content = "\n".join(
        [
            "https://morele.net/a-1/,1,60,10",
            "https://morele.net/b-2/,2,60,10",
            ",3,120,15",
            "https://morele.net/d-4/,,90,5",
        ]
    )

    result = await import_from_csv(content, item_service=service)

    assert result.to_dict() == {
        "total": 4,
        "successful": 3,
        "failed": 1,
        "errors": [{"row": 2, "error": "This product is already being tracked."}],
        "message": "Imported 3 of 4 products successfully",
    }
    assert ("3", 120, 15, "3") in service.added


def test_sample_csv_is_importable():
    rows = parse_csv(generate_sample_csv())
    assert len(rows) == 4
    assert all(validate_row(row) is None for row in rows)


def test_format_row():
    assert format_row(CsvImportRow(product_code="7")) == ",7,60,10"
    assert format_row(
        CsvImportRow(url="https://morele.net/a-1/", check_interval_minutes=30, price_alert_threshold=0)
    ) == "https://morele.net/a-1/,,30,0"


@pytest.mark.asyncio
async def test_row_product_code_is_passed_to_add_item():
    service = RecordingItemService()

    await import_from_csv("https://morele.net/laptop-lenovo/,10751839,60,10", item_service=service)

    assert service.added == [("https://morele.net/laptop-lenovo/", 60, 10, "10751839")]
