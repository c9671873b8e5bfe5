"""Core logic for bar storage, indicators, patterns and signal evaluation.

This package contains pure business logic with no I/O dependencies
(no network access). The live scanner in app/ feeds it bars and
publishes the signals it returns.
"""
