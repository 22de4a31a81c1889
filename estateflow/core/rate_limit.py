"""
Simple in-memory rate limiting for API endpoints
"""
from functools import wraps
from fastapi import HTTPException, status, Request
from typing import Callable, Optional
from datetime import timedelta
from collections import defaultdict
import logging
import threading

from estateflow.core.config import get_settings
from estateflow.utils.clock import utcnow

logger = logging.getLogger(__name__)

# In-memory store for rate limiting
# Format: {identifier: [timestamp, ...]}
_rate_limit_store = defaultdict(list)
_rate_limit_lock = threading.Lock()

# Cleanup old entries every 5 minutes
_last_cleanup = utcnow()
_cleanup_interval = timedelta(minutes=5)


def _cleanup_old_entries():
    """Remove entries older than the time window"""
    global _last_cleanup

    now = utcnow()
    if now - _last_cleanup < _cleanup_interval:
        return

    with _rate_limit_lock:
        _last_cleanup = now
        cutoff_time = now - timedelta(hours=1)  # Keep last hour of data

        for key in list(_rate_limit_store.keys()):
            _rate_limit_store[key] = [ts for ts in _rate_limit_store[key] if ts > cutoff_time]
            if not _rate_limit_store[key]:
                del _rate_limit_store[key]


def reset_rate_limits():
    with _rate_limit_lock:
        _rate_limit_store.clear()


def client_ip(request: Optional[Request], trust_proxy: Optional[bool] = None) -> str:
    """
    Caller address for rate limiting and view logs. X-Forwarded-For is
    client-controlled, so it is read only when TRUST_PROXY_HEADERS is on.
    """
    if request is None:
        return "unknown"
    if trust_proxy is None:
        trust_proxy = get_settings().TRUST_PROXY_HEADERS
    if trust_proxy:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def rate_limit(max_requests: int = 5, window_seconds: int = 300, identifier_func: Callable = None):
    """
    Rate limiting decorator for FastAPI endpoints, keyed by client IP and endpoint.
    The endpoint must declare a `request: Request` parameter.

    Usage:
        @router.post("/endpoint")
        @rate_limit(max_requests=5, window_seconds=300)
        def my_endpoint(request: Request, ...):
            ...
    """
    def decorator(func: Callable):
        @wraps(func)
        def wrapper(*args, **kwargs):
            if not get_settings().RATE_LIMIT_ENABLED:
                return func(*args, **kwargs)

            request = kwargs.get("request")
            if request is None:
                request = next((arg for arg in args if isinstance(arg, Request)), None)

            if identifier_func:
                identifier = identifier_func(request)
            else:
                identifier = f"{func.__name__}:{client_ip(request)}"

            _cleanup_old_entries()

            now = utcnow()
            window_start = now - timedelta(seconds=window_seconds)

            with _rate_limit_lock:
                recent_requests = [ts for ts in _rate_limit_store[identifier] if ts > window_start]
                if len(recent_requests) >= max_requests:
                    logger.warning("[RATE_LIMIT] %s exceeded %s requests per %ss", identifier, max_requests, window_seconds)
                    raise HTTPException(
                        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                        detail=f"Rate limit exceeded: {max_requests} requests per {window_seconds} seconds. Please try again later.",
                    )
                _rate_limit_store[identifier] = recent_requests + [now]

            return func(*args, **kwargs)

        return wrapper
    return decorator
