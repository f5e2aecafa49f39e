"""Concurrency-safe seat claims against a relational store."""

__version__ = "1.0.0"
