"""Typed request model: requirements, quantities and playlist settings.

Everything the model emits arrives as loosely-typed JSON (numbers as strings,
the literal string ``"null"``, ``"all"`` mixed with integers).  The parsers in
this module are the single place where that JSON becomes strict types; the
orchestrator only ever sees the dataclasses below.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Any, ClassVar, Union

from loguru import logger

from ff1agent.errors import RequirementValidationError

DEFAULT_FEED_QUANTITY = 5
DEFAULT_CONTRACT_SAMPLE = 5

_CHAIN_ALIASES = {
    "eth": "ethereum",
    "ethereum": "ethereum",
    "tez": "tezos",
    "tezos": "tezos",
}


# ---------------------------------------------------------------------------
# Quantity
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Exact:
    count: int

    def to_wire(self) -> int:
        return self.count

    def limit(self, size: int) -> int:
        return min(self.count, size)


@dataclass(frozen=True)
class All:
    def to_wire(self) -> str:
        return "all"

    def limit(self, size: int) -> int:
        return size


ALL = All()
Quantity = Union[Exact, All]


def is_null(value: Any) -> bool:
    """True for ``None``, empty strings and the literal string ``"null"``."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == "" or value.strip().lower() in {"null", "none", "undefined"}
    return False


def clean_optional_str(value: Any) -> str | None:
    if is_null(value):
        return None
    return str(value).strip()


def parse_quantity(value: Any) -> Quantity | None:
    """Parse a model-supplied quantity into ``Exact``/``All``/``None``.

    Raises ``ValueError`` for anything that is not a positive integer or "all".
    """
    if is_null(value):
        return None
    if isinstance(value, bool):
        raise ValueError(f"quantity must be a positive integer or 'all', got {value!r}")
    if isinstance(value, str):
        text = value.strip().lower()
        if text == "all":
            return ALL
        if not text.isdigit():
            raise ValueError(f"quantity must be a positive integer or 'all', got {value!r}")
        value = int(text)
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"quantity must be a whole number, got {value!r}")
        value = int(value)
    if not isinstance(value, int) or value <= 0:
        raise ValueError(f"quantity must be a positive integer or 'all', got {value!r}")
    return Exact(value)


# ---------------------------------------------------------------------------
# Requirements
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ByContract:
    """Tokens from one contract, either listed explicitly or sampled by quantity."""

    type: ClassVar[str] = "build_playlist"

    chain: str
    contract_address: str
    token_ids: tuple[str, ...] = ()
    quantity: Quantity | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": self.type,
            "blockchain": self.chain,
            "contractAddress": self.contract_address,
        }
        if self.token_ids:
            data["tokenIds"] = list(self.token_ids)
        if self.quantity is not None:
            data["quantity"] = self.quantity.to_wire()
        return data

    def describe(self) -> str:
        if self.token_ids:
            return f"{self.chain} - {len(self.token_ids)} tokens from {self.contract_address}"
        count = self.quantity.to_wire() if self.quantity else DEFAULT_CONTRACT_SAMPLE
        return f"{self.chain} - {count} tokens sampled from {self.contract_address}"


@dataclass(frozen=True)
class ByOwner:
    """Tokens owned by a wallet address or a .eth/.tez domain."""

    type: ClassVar[str] = "query_address"

    owner_address: str
    quantity: Quantity = ALL

    @property
    def is_domain(self) -> bool:
        lowered = self.owner_address.lower()
        return lowered.endswith(".eth") or lowered.endswith(".tez")

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "ownerAddress": self.owner_address,
            "quantity": self.quantity.to_wire(),
        }

    def describe(self) -> str:
        if isinstance(self.quantity, Exact):
            return f"Query {self.quantity.count} random tokens from address {self.owner_address}"
        return f"Query all tokens from address {self.owner_address}"


@dataclass(frozen=True)
class ByFeedName:
    """Items sampled from a feed playlist found by (fuzzy) name."""

    type: ClassVar[str] = "fetch_feed"

    playlist_name: str
    quantity: Quantity = Exact(DEFAULT_FEED_QUANTITY)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "playlistName": self.playlist_name,
            "quantity": self.quantity.to_wire(),
        }

    def describe(self) -> str:
        return f'Fetch {self.quantity.to_wire()} items from playlist "{self.playlist_name}"'


Requirement = Union[ByContract, ByOwner, ByFeedName]

REQUIREMENT_TYPES = (ByContract.type, ByOwner.type, ByFeedName.type)


def parse_requirement(raw: Any, index: int = 0) -> Requirement:
    """Turn one wire-format requirement into its typed variant.

    ``index`` is zero-based and only used for error messages.
    """
    label = f"Requirement {index + 1}"
    if not isinstance(raw, dict):
        raise RequirementValidationError(f"{label}: must be an object")

    req_type = raw.get("type")
    if not req_type:
        raise RequirementValidationError(f"{label}: type is required")

    try:
        quantity = parse_quantity(raw.get("quantity"))
    except ValueError as exc:
        raise RequirementValidationError(f"{label}: {exc}") from None

    if req_type == ByContract.type:
        chain = clean_optional_str(raw.get("blockchain") or raw.get("chain"))
        contract = clean_optional_str(raw.get("contractAddress"))
        if not chain:
            raise RequirementValidationError(f"{label}: blockchain is required for build_playlist")
        if not contract:
            raise RequirementValidationError(
                f"{label}: contractAddress is required for build_playlist"
            )
        token_ids = raw.get("tokenIds") or []
        if not isinstance(token_ids, list):
            raise RequirementValidationError(f"{label}: tokenIds must be an array of strings")
        tokens = tuple(str(t).strip() for t in token_ids if not is_null(t))
        if not tokens and quantity is None:
            quantity = Exact(DEFAULT_CONTRACT_SAMPLE)
        chain_key = chain.lower()
        return ByContract(
            chain=_CHAIN_ALIASES.get(chain_key, chain_key),
            contract_address=contract,
            token_ids=tokens,
            quantity=quantity,
        )

    if req_type == ByOwner.type:
        owner = clean_optional_str(raw.get("ownerAddress"))
        if not owner:
            raise RequirementValidationError(f"{label}: ownerAddress is required for query_address")
        return ByOwner(owner_address=owner, quantity=quantity or ALL)

    if req_type == ByFeedName.type:
        name = clean_optional_str(raw.get("playlistName"))
        if not name:
            raise RequirementValidationError(f"{label}: playlistName is required for fetch_feed")
        if quantity is ALL:
            raise RequirementValidationError(
                f"{label}: fetch_feed quantity must be a number, not 'all'"
            )
        return ByFeedName(playlist_name=name, quantity=quantity or Exact(DEFAULT_FEED_QUANTITY))

    raise RequirementValidationError(f'{label}: invalid type "{req_type}"')


def parse_requirements(raw: Any) -> list[Requirement]:
    if not isinstance(raw, list):
        raise RequirementValidationError("Requirements must be an array")
    if not raw:
        raise RequirementValidationError("At least one requirement is needed")
    return [parse_requirement(item, i) for i, item in enumerate(raw)]


def apply_quantity_caps(
    requirements: list[Requirement],
    per_requirement: int | None = None,
    total: int | None = None,
) -> list[Requirement]:
    """Cap quantities per requirement and scale them down to fit a total budget.

    Requirements that list explicit token ids are left untouched.  When the
    summed exact quantities exceed ``total`` every capped requirement but the
    last is scaled proportionally (minimum 1) and the last takes the remainder.
    """
    capped: list[Requirement] = []
    for req in requirements:
        if isinstance(req, ByContract) and req.token_ids:
            capped.append(req)
            continue
        quantity = req.quantity
        if per_requirement:
            if quantity is None or isinstance(quantity, All):
                quantity = Exact(per_requirement)
            else:
                quantity = Exact(min(quantity.count, per_requirement))
        capped.append(replace(req, quantity=quantity) if quantity != req.quantity else req)

    if not total:
        return capped

    scalable = [
        i for i, req in enumerate(capped)
        if isinstance(req.quantity, Exact) and not (isinstance(req, ByContract) and req.token_ids)
    ]
    requested = sum(capped[i].quantity.count for i in scalable)  # type: ignore[union-attr]
    if requested <= total:
        return capped

    logger.warning(
        f"Total requested items ({requested}) exceeds maximum ({total}), reducing proportionally"
    )
    scale = total / requested
    allocated = 0
    for position, i in enumerate(scalable):
        req = capped[i]
        if position == len(scalable) - 1:
            count = max(1, total - allocated)
        else:
            count = max(1, math.floor(req.quantity.count * scale))  # type: ignore[union-attr]
            allocated += count
        capped[i] = replace(req, quantity=Exact(count))
    return capped


# ---------------------------------------------------------------------------
# Settings and terminal payloads
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FeedServer:
    base_url: str
    api_key: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"baseUrl": self.base_url}
        if self.api_key:
            data["apiKey"] = self.api_key
        return data


def parse_feed_server(raw: Any) -> FeedServer | None:
    if is_null(raw):
        return None
    if isinstance(raw, str):
        return FeedServer(base_url=raw.rstrip("/"))
    if not isinstance(raw, dict):
        raise RequirementValidationError("feedServer must be an object with a baseUrl")
    base_url = clean_optional_str(raw.get("baseUrl") or raw.get("base_url"))
    if not base_url:
        raise RequirementValidationError("feedServer.baseUrl is required")
    return FeedServer(
        base_url=base_url.rstrip("/"),
        api_key=clean_optional_str(raw.get("apiKey") or raw.get("api_key")),
    )


@dataclass(frozen=True)
class PlaylistSettings:
    duration_per_item: int
    preserve_order: bool = True
    title: str | None = None
    slug: str | None = None
    device_requested: bool = False
    # None together with device_requested means "first configured device"
    device_name: str | None = None
    feed_server: FeedServer | None = None

    @property
    def shuffle(self) -> bool:
        return not self.preserve_order


def parse_settings(raw: Any, default_duration: int) -> PlaylistSettings:
    if is_null(raw):
        raw = {}
    if not isinstance(raw, dict):
        raise RequirementValidationError("playlistSettings must be an object")

    duration = raw.get("durationPerItem")
    if is_null(duration):
        duration = default_duration
    try:
        duration = int(float(duration))
    except (TypeError, ValueError):
        raise RequirementValidationError(
            f"durationPerItem must be a number of seconds, got {duration!r}"
        ) from None
    if duration < 1:
        raise RequirementValidationError("durationPerItem must be at least 1 second")

    preserve = raw.get("preserveOrder")
    if isinstance(preserve, str):
        preserve = preserve.strip().lower() not in {"false", "no", "0"}
    preserve_order = True if preserve is None else bool(preserve)

    device_requested = "deviceName" in raw and raw.get("deviceName") != ""
    return PlaylistSettings(
        duration_per_item=duration,
        preserve_order=preserve_order,
        title=clean_optional_str(raw.get("title")),
        slug=clean_optional_str(raw.get("slug")),
        device_requested=device_requested,
        device_name=clean_optional_str(raw.get("deviceName")) if device_requested else None,
        feed_server=parse_feed_server(raw.get("feedServer")),
    )


@dataclass(frozen=True)
class RequirementSet:
    """A validated build request, ready for the orchestrator."""

    requirements: tuple[Requirement, ...]
    settings: PlaylistSettings

    def to_dict(self) -> dict[str, Any]:
        settings: dict[str, Any] = {
            "durationPerItem": self.settings.duration_per_item,
            "preserveOrder": self.settings.preserve_order,
            "title": self.settings.title,
            "slug": self.settings.slug,
        }
        if self.settings.device_requested:
            settings["deviceName"] = self.settings.device_name
        if self.settings.feed_server:
            settings["feedServer"] = self.settings.feed_server.to_dict()
        return {
            "requirements": [r.to_dict() for r in self.requirements],
            "playlistSettings": settings,
        }


@dataclass(frozen=True)
class SendConfirmation:
    file_path: str
    playlist: dict[str, Any] = field(repr=False)
    device_name: str | None = None


@dataclass(frozen=True)
class PublishConfirmation:
    file_path: str
    feed_server: FeedServer
