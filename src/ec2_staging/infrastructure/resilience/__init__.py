"""Resilience helpers."""

from ec2_staging.infrastructure.resilience.retry import build_retrying

__all__: list[str] = ["build_retrying"]
