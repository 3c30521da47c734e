"""
Discount Analytics Platform

Captures per-line-item discount facts from fulfilled orders and serves
current, historical and summary discount reports.
"""

__version__ = "1.0.0"
