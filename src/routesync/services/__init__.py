"""Tracking services: metrics, session control, external sources and pagination."""
