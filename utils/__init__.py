"""
utils/ - Shared Helpers
=======================
Logging setup and small conversion helpers used by every layer.
"""
