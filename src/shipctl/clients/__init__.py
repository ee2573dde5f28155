"""Clients for external tooling."""

from shipctl.clients.platform import PlatformClient

__all__ = ["PlatformClient"]
