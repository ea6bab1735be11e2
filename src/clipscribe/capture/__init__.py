"""Hotkey, clipboard and capture cycle orchestration."""
