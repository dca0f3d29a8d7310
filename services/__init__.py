"""
services/ - Business Logic Layer
================================
Input validation and multi-step workflows built on top of the repositories.
"""
