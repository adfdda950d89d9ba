# FILE: promptlab/__init__.py
"""
PromptLab - prompt execution pipeline.

Accepts a prompt (plus optional context files and conversation history),
routes it to a language-model backend, and records the exchange with token
usage, cost and latency under a per-caller request budget.
"""

__version__ = "0.4.0"
