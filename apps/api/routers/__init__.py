"""Routers package."""

from . import (
    health,
    jobs,
    metrics,
)
