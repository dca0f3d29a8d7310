"""
models/ - Domain Models
=======================
Plain dataclasses returned by the repositories. No database access lives here.
"""
