"""
httpobs - in-process HTTP observability pipeline.

Composable ASGI interceptors for access logging, trace-context propagation
and label-consistent metrics, plus the wiring that bundles them.
"""

__version__ = "1.0.0"
