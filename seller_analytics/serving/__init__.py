"""
Serving Layer

HTTP API and report caching.
"""
