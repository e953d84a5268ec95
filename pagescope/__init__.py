"""pagescope - browser-driven page instrumentation harness.

Loads a single page in a Playwright-controlled browser, lets instrumentation
modules observe its lifecycle and network traffic, and renders one aggregated
metrics report once the page has settled.
"""

__version__ = "0.3.0"
