"""Prometheus metrics for the price drop tracker."""

from prometheus_client import Counter, Gauge, Histogram, Info

# Application info
app_info = Info("price_tracker", "Price drop tracker application info")
app_info.info({"version": "0.1.0", "name": "price-drop-tracker"})

# Scrape metrics
scrapes_total = Counter(
    "price_scrapes_total",
    "Total number of product page scrapes",
    ["status"],
)

scrape_duration_seconds = Histogram(
    "price_scrape_duration_seconds",
    "Time spent rendering and parsing a product page",
    buckets=[1.0, 2.0, 5.0, 10.0, 20.0, 30.0, 60.0],
)

browser_pages_in_use = Gauge(
    "browser_pages_in_use",
    "Pages currently open in the shared browser",
)

# Price change metrics
price_changes_total = Counter(
    "price_changes_total",
    "Total number of price changes detected",
    ["direction"],
)

# Alert metrics
price_alerts_total = Counter(
    "price_alerts_total",
    "Total number of price drop alerts raised",
)

notifications_sent_total = Counter(
    "notifications_sent_total",
    "Notification deliveries by channel",
    ["channel", "status"],
)

# Tracking metrics
tracked_items = Gauge(
    "tracked_items",
    "Number of items with a live tracking schedule",
)

manual_checks_total = Counter(
    "manual_price_checks_total",
    "Manual price check requests",
    ["status"],
)

# Job metrics
job_executions_total = Counter(
    "job_executions_total",
    "Scheduled job executions",
    ["job_type", "status"],
)

job_execution_duration_seconds = Histogram(
    "job_execution_duration_seconds",
    "Job execution duration",
    ["job_type"],
    buckets=[0.1, 0.5, 1.0, 5.0, 30.0, 120.0, 600.0],
)

# CSV import metrics
csv_import_rows_total = Counter(
    "csv_import_rows_total",
    "Rows processed by the CSV importer",
    ["status"],
)
