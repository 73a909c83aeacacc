"""Test doubles and sample payloads shared across test modules."""
