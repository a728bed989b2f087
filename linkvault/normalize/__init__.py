"""Value normalization helpers."""
