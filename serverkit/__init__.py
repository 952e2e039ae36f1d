"""Timers, a thread pool, an HTTP connection handler and small event-driven servers."""

__version__ = "0.1.0"