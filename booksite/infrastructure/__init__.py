"""Infrastructure layer: service wiring."""

from .container import ServiceContainer, configure_services

__all__ = ["ServiceContainer", "configure_services"]
