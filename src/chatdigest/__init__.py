"""Summarize RingCentral team chats over a date window into markdown reports."""

__version__ = "0.1.0"
