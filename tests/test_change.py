"""Tests for change computation and alert thresholds."""

from price_tracker.detect.change import compute_change, evaluate_alert, should_alert


def test_compute_change_without_previous_price():
    assert compute_change(None, 54900) == 0
    assert compute_change(0, 54900) == 0


def test_compute_change_basis_points():
    assert compute_change(100000, 90000) == -1000
    assert compute_change(100000, 110000) == 1000
    assert compute_change(3, 2) == -3333
    assert compute_change(54900, 54900) == 0


def test_compute_change_rounds_half_up():
    assert compute_change(40000, 40002) == 1


def test_alert_threshold_is_inclusive():
    assert should_alert(-1000, 10)
    assert not should_alert(-999, 10)


def test_rises_never_alert():
    assert not should_alert(1000, 10)
    assert not should_alert(0, 0)


def test_zero_threshold_alerts_on_any_drop():
    assert should_alert(-1, 0)


def test_evaluate_alert_builds_payload():
    alert = evaluate_alert(7, "Laptop", 100000, 90000, 10, url="https://morele.net/l-1/")
    assert alert is not None
    assert alert.drop_percent == 1000
    assert alert.to_payload() == {
        "productId": 7,
        "productName": "Laptop",
        "oldPrice": 100000,
        "newPrice": 90000,
        "dropPercent": 1000,
    }


def test_evaluate_alert_below_threshold():
    assert evaluate_alert(7, "Laptop", 100000, 90100, 10) is None
    assert evaluate_alert(7, "Laptop", None, 90000, 10) is None
