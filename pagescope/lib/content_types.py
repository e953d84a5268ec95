"""Classification of responses by their Content-Type header."""

from typing import Optional

HTML = "html"
CSS = "css"
JS = "js"
JSON = "json"
IMAGE = "image"
WEBFONT = "webfont"
BASE64 = "base64"
OTHER = "other"

ASSET_TYPES = (HTML, CSS, JS, JSON, IMAGE, WEBFONT, BASE64, OTHER)

_MIME_TYPES = {
    "text/html": HTML,
    "application/xhtml+xml": HTML,
    "text/css": CSS,
    "application/javascript": JS,
    "application/x-javascript": JS,
    "text/javascript": JS,
    "application/json": JSON,
    "font/woff": WEBFONT,
    "font/woff2": WEBFONT,
    "font/ttf": WEBFONT,
    "font/otf": WEBFONT,
    "application/font-woff": WEBFONT,
    "application/x-font-woff": WEBFONT,
    "application/vnd.ms-fontobject": WEBFONT,
}


def mime_type(content_type: Optional[str]) -> str:
    """Strip parameters (``; charset=...``) and normalize case."""
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def classify(content_type: Optional[str], url: str = "") -> str:
    """Asset type for a response."""
    if url.startswith("data:"):
        return BASE64

    mime = mime_type(content_type)
    if mime in _MIME_TYPES:
        return _MIME_TYPES[mime]
    if mime.startswith("image/"):
        return IMAGE
    if mime.startswith("font/"):
        return WEBFONT
    return OTHER
