"""Shared rate limiter; ``main.create_app`` switches it on or off from settings."""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)
