"""Built-in instrumentation modules.

Every non-private module in this package is discovered automatically and
must expose a ``module`` attribute holding an ``InstrumentationModule``.
"""
