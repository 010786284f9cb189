"""Observability: request/run context, JSON event logging, in-process metrics
and the ASGI timing middleware."""

__all__ = [
    "middleware",
    "metrics",
    "logger",
    "context",
]
