"""Shared utilities for GLOBEMARK."""
