"""
Adapters package for the data-sync layer.

Contains the HTTP client wrapper for the console API. It encapsulates:

- Base URL, timeouts and the shared cookie jar
- Decoding of the success/failure response envelope
- Error mapping to shared errors

Keep adapters thin and side-effect free outside of explicit calls.
"""

from .api_client import ApiClient, ApiResult

__all__ = [
    "ApiClient",
    "ApiResult",
]
