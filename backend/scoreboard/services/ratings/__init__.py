"""Rating domain services: points, wins, recompute and membership.

This package holds the rating aggregation engine and the operations that
invalidate it. HTTP routes and CLI commands import from here; nothing in
this package knows about request objects or status codes beyond the
``status_code`` carried by the service errors.
"""
