"""Gatekeeper: per-request access-control decisions for HTTP traffic."""
