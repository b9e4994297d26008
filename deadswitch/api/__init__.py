"""DEADSWITCH HTTP API - ping ingestion and health checks."""
