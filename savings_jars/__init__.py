"""Savings Jars: jar tracking, persistence, import/export and the widget snapshot it feeds."""

__version__ = "1.0.0"
