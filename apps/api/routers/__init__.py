"""Routers package."""

from . import (
    health,
    analyze,
)
