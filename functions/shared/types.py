"""
Shared Type Definitions for Lambda Handlers.
"""

from typing import TypedDict


class LambdaResponse(TypedDict):
    """Standard Lambda response structure."""

    statusCode: int
    headers: dict[str, str]
    body: str
