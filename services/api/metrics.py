"""Prometheus metrics for the document service.

Exposes key metrics for monitoring:
- Request counts by endpoint and status
- Request duration histograms
- Rendered document counts, durations and sizes
- Asset fetch failures

Based on Prometheus best practices:
https://prometheus.io/docs/practices/naming/
"""

from prometheus_client import Counter, Histogram, generate_latest
from prometheus_client.openmetrics.exposition import CONTENT_TYPE_LATEST

# Request metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# Rendering metrics
documents_rendered_total = Counter(
    "documents_rendered_total",
    "Total document renders",
    ["kind", "status"],  # status: success, invalid, failed
)

document_render_duration_seconds = Histogram(
    "document_render_duration_seconds",
    "Document render duration in seconds",
    ["renderer"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

document_size_bytes = Histogram(
    "document_size_bytes",
    "Rendered document size in bytes",
    buckets=(1024, 10240, 51200, 102400, 512000, 1048576),  # 1KB to 1MB
)

asset_fetch_failures_total = Counter(
    "asset_fetch_failures_total",
    "Documents rendered without a configured image",
    ["asset"],  # logo, signature
)

# Billing metrics
summaries_computed_total = Counter(
    "summaries_computed_total",
    "Total financial summaries computed",
)


def get_metrics() -> tuple[bytes, str]:
    """Generate Prometheus metrics in text format.

    Returns:
        Tuple of (metrics bytes, content type)
    """
    return generate_latest(), CONTENT_TYPE_LATEST
