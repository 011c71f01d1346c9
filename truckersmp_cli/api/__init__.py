"""
TruckersMP API Layer.

This package handles all communication with the TruckersMP update servers.
"""

from .client import ContentTransport, RemoteResource, TruckersMPClient

__all__ = ["ContentTransport", "RemoteResource", "TruckersMPClient"]
