"""Helpers shared across schema-spine tests."""
