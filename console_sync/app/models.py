"""
Data model for the console data-sync layer.

The remote API wraps every response in an envelope whose ``success`` flag is
authoritative over the HTTP status:

    {"success": true,  "data": ..., "message": "...", "meta": ..., "timestamp": "..."}
    {"success": false, "message": "...", "errors": ..., "code": "...", "timestamp": "..."}
"""

import hashlib
import json
import time
from dataclasses import dataclass, replace
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict


class SuccessResponse(BaseModel):
    """Successful response envelope."""

    model_config = ConfigDict(extra="allow")

    success: Literal[True] = True
    message: Optional[str] = ""
    data: Any = None
    meta: Optional[Any] = None
    timestamp: Any = None


class ErrorEnvelope(BaseModel):
    """Failure response envelope."""

    model_config = ConfigDict(extra="allow")

    success: Literal[False] = False
    message: Optional[str] = ""
    errors: Any = None
    code: Any = None
    timestamp: Any = None



class CacheEntry(BaseModel):
    """A cached response snapshot plus its freshness metadata."""

    payload: Dict[str, Any]
    stored_at: float
    ttl: float
    etag: Optional[str] = None
    last_modified: Optional[str] = None

    @property
    def expires_at(self) -> float:
        return self.stored_at + self.ttl

    def is_fresh(self, now: Optional[float] = None) -> bool:
        """Fresh iff ``stored_at + ttl >= now``."""
        if now is None:
            now = time.time()
        return self.expires_at >= now

    def validator_headers(self) -> Dict[str, str]:
        """Conditional request headers derived from the stored validators."""
        headers: Dict[str, str] = {}
        if self.etag:
            headers["If-None-Match"] = self.etag
        if self.last_modified:
            headers["If-Modified-Since"] = self.last_modified
        return headers


def canonical_json(value: Any) -> str:
    """Serialize ``value`` deterministically (sorted keys, no whitespace)."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


@dataclass(frozen=True)
class RequestDescriptor:
    """Identity of a remote resource: method, url and optional body."""

    url: str
    method: str = "GET"
    body: Any = None

    def body_fingerprint(self) -> Optional[str]:
        """SHA-256 of the canonical JSON body, or None without a body."""
        if self.body is None:
            return None
        return hashlib.sha256(canonical_json(self.body).encode("utf-8")).hexdigest()

    def cache_key(self, namespace: str, version: str) -> str:
        parts = [namespace, version, self.method.upper(), self.url]
        fingerprint = self.body_fingerprint()
        if fingerprint:
            parts.append(fingerprint)
        return ":".join(parts)


@dataclass
class FetchState:
    """Consumer-visible state of one resource."""

    data: Any = None
    loading: bool = False
    error: Optional[Exception] = None

    def snapshot(self) -> "FetchState":
        return replace(self)
