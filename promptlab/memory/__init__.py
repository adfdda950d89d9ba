# FILE: promptlab/memory/__init__.py
"""Conversation memory: ORM models, history loading, exchange persistence."""
