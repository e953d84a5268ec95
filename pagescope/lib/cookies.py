"""Cookie header parsing helpers."""

from typing import Dict, List


def header_value(headers: Dict[str, str], name: str) -> str:
    """Case-insensitive header lookup; empty string when absent."""
    name = name.lower()
    for key, value in headers.items():
        if key.lower() == name:
            return value
    return ""


def parse_cookie_header(value: str) -> List[str]:
    """Cookie names from a ``Cookie`` request header."""
    names = []
    for pair in value.split(";"):
        pair = pair.strip()
        if pair:
            names.append(pair.split("=", 1)[0].strip())
    return names


def parse_set_cookie_header(value: str) -> List[str]:
    """Cookie names from a ``Set-Cookie`` header.

    Playwright joins repeated ``Set-Cookie`` headers with newlines.
    """
    names = []
    for line in value.splitlines():
        line = line.strip()
        if line:
            names.append(line.split(";", 1)[0].split("=", 1)[0].strip())
    return names
