"""Prometheus metrics for LinkVault."""

import time

from prometheus_client import Counter, Gauge, Histogram, Info

# Application info
app_info = Info("linkvault", "LinkVault application info")
app_info.info({"version": "0.1.0", "name": "linkvault"})

# Detection metrics
platform_detections_total = Counter(
    "platform_detections_total",
    "Total number of platform detections",
    ["platform"],
)

# Extraction metrics
product_extractions_total = Counter(
    "product_extractions_total",
    "Total number of product extraction attempts",
    ["platform", "status"],
)

product_extraction_duration_seconds = Histogram(
    "product_extraction_duration_seconds",
    "Time spent fetching and parsing product pages",
    ["platform"],
    buckets=[0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 15.0],
)

# Validation metrics
link_validations_total = Counter(
    "link_validations_total",
    "Total number of link validations",
    ["status"],
)

link_validation_duration_seconds = Histogram(
    "link_validation_duration_seconds",
    "Time spent validating links",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0],
)

# Health check metrics
links_deactivated_total = Counter(
    "links_deactivated_total",
    "Total number of links deactivated by health checks",
)

health_sweeps_total = Counter(
    "health_sweeps_total",
    "Total number of health sweeps",
    ["status"],
)

health_sweep_last_run_timestamp = Gauge(
    "health_sweep_last_run_timestamp",
    "Timestamp of last health sweep",
)

# Short URL metrics
short_code_collisions_total = Counter(
    "short_code_collisions_total",
    "Total number of short code collisions",
)

short_urls_created_total = Counter(
    "short_urls_created_total",
    "Total number of short URLs created",
)

# Rotation metrics
rotation_selections_total = Counter(
    "rotation_selections_total",
    "Total number of rotation selections",
    ["strategy"],
)


def record_detection(platform: str):
    """Record a platform detection."""
    platform_detections_total.labels(platform=platform).inc()


def record_extraction(platform: str, success: bool, duration: float):
    """Record a product extraction attempt."""
    status = "success" if success else "error"
    product_extractions_total.labels(platform=platform, status=status).inc()
    product_extraction_duration_seconds.labels(platform=platform).observe(duration)


def record_validation(valid: bool, duration: float):
    """Record a link validation."""
    status = "valid" if valid else "invalid"
    link_validations_total.labels(status=status).inc()
    link_validation_duration_seconds.observe(duration)


def record_deactivation(count: int = 1):
    """Record links deactivated by a health check."""
    links_deactivated_total.inc(count)


def record_health_sweep(success: bool):
    """Record a health sweep run."""
    status = "success" if success else "error"
    health_sweeps_total.labels(status=status).inc()
    health_sweep_last_run_timestamp.set(time.time())


def record_short_code_collision():
    """Record a short code collision."""
    short_code_collisions_total.inc()


def record_short_url_created():
    """Record a short URL being created."""
    short_urls_created_total.inc()


def record_rotation(strategy: str):
    """Record a rotation selection."""
    rotation_selections_total.labels(strategy=strategy).inc()
