"""Sliding-window rate limits for sign-in, password reset and profile edits.

Limits are keyed per client IP by default. The OTP endpoints are also keyed
per email address, so one account cannot be flooded with codes, or have its
code guessed, from many addresses.
"""

import os
import math
import time
import logging
from collections import defaultdict
from typing import Awaitable, Callable, Dict, List

from fastapi import Request, HTTPException, status

logger = logging.getLogger(__name__)

DEFAULT_DETAIL = "Too many requests. Please try again later."


def client_ip(request: Request) -> str:
    """Client IP, preferring the first X-Forwarded-For hop when behind a proxy."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    return request.client.host if request.client else "127.0.0.1"


async def ip_key(request: Request) -> str:
    return f"ip:{client_ip(request)}"


async def email_key(request: Request) -> str:
    """Key on the lower-cased `email` of a JSON body; requests without one fall back to the IP."""
    try:
        body = await request.json()
    except ValueError:
        body = None

    email = body.get("email") if isinstance(body, dict) else None
    if isinstance(email, str) and email.strip():
        return f"email:{email.strip().lower()}"
    return await ip_key(request)


class RateLimiter:
    """Route dependency allowing `requests_limit` requests per key within `time_window` seconds."""

    def __init__(
        self,
        name: str,
        requests_limit: int,
        time_window: int,
        key: Callable[[Request], Awaitable[str]] = ip_key,
        detail: str = DEFAULT_DETAIL,
    ):
        self.name = name
        self.requests_limit = requests_limit
        self.time_window = time_window
        self.key = key
        self.detail = detail
        self.requests: Dict[str, List[float]] = defaultdict(list)
        self.cleanup_interval = 600
        self.last_cleanup = time.time()

    async def __call__(self, request: Request):
        key = await self.key(request)
        current_time = time.time()

        if current_time - self.last_cleanup > self.cleanup_interval:
            self._cleanup(current_time)
            self.last_cleanup = current_time

        request_times = [t for t in self.requests[key] if current_time - t < self.time_window]
        self.requests[key] = request_times

        if len(request_times) >= self.requests_limit:
            retry_after = max(1, math.ceil(self.time_window - (current_time - request_times[0])))
            logger.warning(f"Rate limit '{self.name}' hit for {key}")
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=self.detail,
                headers={"Retry-After": str(retry_after)}
            )

        request_times.append(current_time)
        return True

    def _cleanup(self, current_time: float):
        stale = [
            key for key, timestamps in self.requests.items()
            if not timestamps or current_time - timestamps[-1] > self.time_window
        ]
        for key in stale:
            del self.requests[key]


# Signup, login and Google sign-in
auth_rate_limiter = RateLimiter(
    "auth",
    requests_limit=int(os.getenv("AUTH_RATE_LIMIT", "5")),
    time_window=60
)

# validate-email, verify-otp and reset-password, per client
password_reset_rate_limiter = RateLimiter(
    "password-reset",
    requests_limit=int(os.getenv("PASSWORD_RESET_RATE_LIMIT", "10")),
    time_window=3600
)

# OTP issue and verification, per target account
otp_email_rate_limiter = RateLimiter(
    "otp-email",
    requests_limit=int(os.getenv("OTP_EMAIL_RATE_LIMIT", "5")),
    time_window=3600,
    key=email_key,
    detail="Too many OTP requests for this email. Please try again later."
)

# Profile edits and image uploads
profile_update_rate_limiter = RateLimiter(
    "profile-update",
    requests_limit=int(os.getenv("PROFILE_UPDATE_RATE_LIMIT", "5")),
    time_window=60
)
