"""Fixture analysis job orchestration."""
