"""Data models and persistence for routesync."""
