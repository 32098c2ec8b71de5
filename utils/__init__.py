"""Shared helpers: responses, validation, slots, audit, time."""
