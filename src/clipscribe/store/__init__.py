"""Persistence layer: settings cache and clip records."""
