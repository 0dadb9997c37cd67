"""Moderation package integration helpers exposed to the application."""

from celestia.moderation.api import router
from celestia.moderation.domain.container import configure, configure_postgres

__all__ = ["router", "configure", "configure_postgres"]
