"""Shared helpers: encoding handling and progress estimation."""
