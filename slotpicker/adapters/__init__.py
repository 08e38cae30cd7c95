"""
Adapters layer - External integrations (Microsoft Graph API, ICS feeds).
"""

from .graph_authenticator import GraphAuthenticator
from .graph_client import GraphClient
from .ics_feed import IcsFeedSource
from .mock_graph_client import MockGraphClient

__all__ = ["GraphAuthenticator", "GraphClient", "IcsFeedSource", "MockGraphClient"]
