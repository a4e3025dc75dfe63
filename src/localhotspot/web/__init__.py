"""
localhotspot Web API.

Provides a JSON interface for monitoring and controlling the access point.
"""

from localhotspot.web.app import app, run_server

__all__ = ["app", "run_server"]
