"""The collaborator bundle an engine run talks to."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Any

import httpx

from ff1agent.collaborators import (
    DeviceClient,
    DomainResolver,
    FeedClient,
    FeedPublisher,
    IndexerClient,
)
from ff1agent.config.schema import Config
from ff1agent.utils.atomic_io import AtomicFileWriter, get_atomic_writer


@dataclass
class Services:
    """External adapters plus the config they were built from."""

    config: Config
    indexer: IndexerClient
    domains: DomainResolver
    feed: FeedClient
    device: DeviceClient
    publisher: FeedPublisher
    writer: AtomicFileWriter = field(default_factory=get_atomic_writer)
    rng: random.Random = field(default_factory=random.Random)

    @classmethod
    def from_config(
        cls,
        config: Config,
        transport: httpx.AsyncBaseTransport | None = None,
        rng: random.Random | None = None,
        **kwargs: Any,
    ) -> "Services":
        """Wire every adapter from *config*; *transport* is shared by all of them (tests)."""
        rng = rng or random.Random()
        http: dict[str, Any] = {"transport": transport} if transport else {}
        return cls(
            config=config,
            indexer=IndexerClient(config.indexer, rng=rng, **http),
            domains=DomainResolver(config.domains, **http),
            feed=FeedClient(config.feed.search_urls(), rng=rng, **http),
            device=DeviceClient(config.ff1_devices.devices, **http),
            publisher=FeedPublisher(**http),
            rng=rng,
            **kwargs,
        )
