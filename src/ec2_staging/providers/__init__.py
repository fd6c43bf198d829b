"""Concrete gateways and probes."""
