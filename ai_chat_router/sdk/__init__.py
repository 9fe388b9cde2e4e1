"""
Clients for external collaborators.

Provides the upstream inference client and the identity provider contract.
"""

from .identity import IdentityProvider, StaticTokenIdentityProvider
from .openai_client import Completion, UpstreamClient

__all__ = ["Completion", "IdentityProvider", "StaticTokenIdentityProvider", "UpstreamClient"]
