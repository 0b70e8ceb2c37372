"""Service layer for the restaurant booking wizard."""
