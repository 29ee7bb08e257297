from prometheus_client import Counter, Gauge, Histogram

endpoint_up = Gauge(
    "sitewatch_endpoint_up",
    "Current health of monitored endpoints (1=responding, 0=down)",
    ["site", "application_path"],
)

endpoint_response_time_seconds = Histogram(
    "sitewatch_endpoint_response_time_seconds",
    "Response time of successful endpoint checks in seconds",
    ["site", "application_path"],
    buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0],
)

endpoint_checks_total = Counter(
    "sitewatch_endpoint_checks_total",
    "Total number of endpoint health checks",
    ["site", "application_path", "status"],
)

poll_cycles_total = Counter(
    "sitewatch_poll_cycles_total",
    "Number of poll cycles run, by result",
    ["result"],
)

inventory_failures_total = Counter(
    "sitewatch_inventory_failures_total",
    "Number of failed inventory reads",
)
