"""Configuration, persistence and cross-cutting infrastructure."""
