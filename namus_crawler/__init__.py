"""Bounded-concurrency crawler for the NamUs case-set API."""

__version__ = "0.1.0"
