"""Pydantic models for API validation and service-layer state."""
