"""
Authentication package.

Exports the BearerAuth dependency class and token parsing utilities
for use by FastAPI route handlers.

CHANGELOG:
- 2026-10-19: Initial creation
"""

from dashboard.src.auth.bearer import BearerAuth, parse_api_tokens, verify_bearer_token

__all__ = ["BearerAuth", "parse_api_tokens", "verify_bearer_token"]
