"""Adapters over the external systems the engine drives.

Each adapter reports failures as ``{"success": False, "error": ...}``
dictionaries; only programmer errors are raised.
"""

from ff1agent.collaborators.addresses import validate_addresses
from ff1agent.collaborators.device import DeviceClient
from ff1agent.collaborators.document import build_dp1_playlist, slugify
from ff1agent.collaborators.domains import DomainResolver
from ff1agent.collaborators.feed import FeedClient
from ff1agent.collaborators.indexer import IndexerClient
from ff1agent.collaborators.publisher import FeedPublisher
from ff1agent.collaborators.signer import sign_playlist
from ff1agent.collaborators.verifier import validate_dp1_playlist, verify_playlist_file

__all__ = [
    "DeviceClient",
    "DomainResolver",
    "FeedClient",
    "FeedPublisher",
    "IndexerClient",
    "build_dp1_playlist",
    "sign_playlist",
    "slugify",
    "validate_addresses",
    "validate_dp1_playlist",
    "verify_playlist_file",
]
