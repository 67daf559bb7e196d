"""Configuration schema using Pydantic."""

from __future__ import annotations

from pydantic import BaseModel, Field

DEFAULT_FEED_URL = "https://dp1-feed-operator-api-prod.autonomy-system.workers.dev/api/v1"
DEFAULT_INDEXER_ENDPOINT = "https://indexer.autonomy.io/v2/graphql"


class ModelConfig(BaseModel):
    """One named chat model (OpenAI-compatible endpoint or litellm model id)."""
    api_key: str = ""
    base_url: str = ""
    model: str = ""
    timeout: float = 30.0
    max_retries: int = 3
    temperature: float = 0.3
    max_tokens: int = 4000
    supports_function_calling: bool = True


def _default_models() -> dict[str, ModelConfig]:
    return {
        "grok": ModelConfig(base_url="https://api.x.ai/v1", model="grok-beta"),
        "gpt": ModelConfig(base_url="https://api.openai.com/v1", model="gpt-4.1"),
        "gemini": ModelConfig(
            base_url="https://generativelanguage.googleapis.com/v1beta/openai/",
            model="gemini-2.5-flash",
        ),
    }


class FeedServerConfig(BaseModel):
    base_url: str
    api_key: str = ""


class FeedConfig(BaseModel):
    """Feed servers searched for playlists and used as publish targets."""
    base_urls: list[str] = Field(default_factory=lambda: [DEFAULT_FEED_URL])
    api_key: str = ""
    servers: list[FeedServerConfig] = Field(default_factory=list)

    def all_servers(self) -> list[FeedServerConfig]:
        """Explicit servers win; otherwise every base URL shares the feed API key."""
        if self.servers:
            return list(self.servers)
        return [FeedServerConfig(base_url=url, api_key=self.api_key) for url in self.base_urls]

    def search_urls(self) -> list[str]:
        return [s.base_url.rstrip("/") for s in self.all_servers()]


class PlaylistConfig(BaseModel):
    private_key: str = ""


class DeviceConfig(BaseModel):
    host: str = ""
    name: str = ""
    api_key: str = ""
    topic_id: str = ""


class DevicesConfig(BaseModel):
    devices: list[DeviceConfig] = Field(default_factory=list)


class IndexerConfig(BaseModel):
    endpoint: str = DEFAULT_INDEXER_ENDPOINT
    concurrency: int = 10
    owner_limit: int = 100
    timeout: float = 30.0


class DomainsConfig(BaseModel):
    ens_api_url: str = "https://api.ensideas.com/ens/resolve"
    tns_api_url: str = "https://api.tezos.domains/graphql"
    timeout: float = 10.0


class AgentConfig(BaseModel):
    """Bounds for the two model conversations."""
    max_iterations: int = 20
    max_verification_retries: int = 3
    max_lookup_depth: int = 3
    max_items_per_requirement: int | None = None
    max_total_items: int | None = None
    output_path: str = "playlist.json"


class Config(BaseModel):
    """Root configuration for ff1agent."""
    default_model: str = "grok"
    models: dict[str, ModelConfig] = Field(default_factory=_default_models)
    default_duration: int = 10
    feed: FeedConfig = Field(default_factory=FeedConfig)
    playlist: PlaylistConfig = Field(default_factory=PlaylistConfig)
    ff1_devices: DevicesConfig = Field(default_factory=DevicesConfig)
    indexer: IndexerConfig = Field(default_factory=IndexerConfig)
    domains: DomainsConfig = Field(default_factory=DomainsConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)

    def get_model(self, name: str | None = None) -> ModelConfig | None:
        """Get the named model config, or the default one when *name* is empty."""
        return self.models.get(name or self.default_model)

    def list_devices(self) -> dict:
        """Device list with API keys stripped, in the shape the model sees."""
        devices = [d for d in self.ff1_devices.devices if d.host]
        if not devices:
            return {"success": False, "devices": [], "error": "No FF1 devices configured"}
        return {
            "success": True,
            "devices": [
                {"name": d.name or d.host, "host": d.host, "topicID": d.topic_id}
                for d in devices
            ],
        }

    def list_feed_servers(self) -> dict:
        return {
            "servers": [
                {"baseUrl": s.base_url, "apiKey": s.api_key or None}
                for s in self.feed.all_servers()
            ]
        }
