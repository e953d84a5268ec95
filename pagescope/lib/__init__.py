"""Shared helper libraries available to modules through ``require``."""
