"""REST facade over the Solar.web client."""

from .main import create_app, verify_api_token

__all__ = ["create_app", "verify_api_token"]
