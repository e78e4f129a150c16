"""Shared helpers for athena_stream."""
