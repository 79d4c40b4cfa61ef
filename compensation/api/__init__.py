"""
Admin HTTP API.
"""

from compensation.api.app import create_app, error_middleware


__all__ = ["create_app", "error_middleware"]
