"""Shared utilities for the purchase kernel."""
