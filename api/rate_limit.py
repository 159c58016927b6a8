# api/rate_limit.py
import os

from dotenv import load_dotenv
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from fastapi import FastAPI

load_dotenv()
API_RATE_LIMIT = os.getenv("API_RATE_LIMIT", "120/minute")

limiter = Limiter(key_func=get_remote_address)


def register_rate_limit(app: FastAPI):
    """
    Attach the slowapi limiter to the app and answer 429 when it trips.

    Catalog routes are decorated with ``limiter.limit(API_RATE_LIMIT)``.
    Must be called during application initialization before adding routes.
    """
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
