"""LinkVault: affiliate link ingestion, health monitoring, rotation and reporting."""

__version__ = "0.1.0"
