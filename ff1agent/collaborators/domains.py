"""Blockchain domain resolution (.eth via an ENS HTTP resolver, .tez via Tezos Domains)."""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
from loguru import logger

from ff1agent.collaborators.http import HttpCollaborator
from ff1agent.config.schema import DomainsConfig


def domain_type(domain: str) -> str | None:
    lowered = domain.strip().lower()
    if lowered.endswith(".eth"):
        return "ens"
    if lowered.endswith(".tez"):
        return "tns"
    return None


def is_domain(value: str) -> bool:
    return bool(value) and domain_type(value) is not None


class DomainResolver(HttpCollaborator):
    """Resolves ENS and Tezos domain names to wallet addresses."""

    def __init__(self, config: DomainsConfig | None = None, **kwargs: Any):
        self.config = config or DomainsConfig()
        kwargs.setdefault("timeout", self.config.timeout)
        super().__init__(**kwargs)

    async def _resolve_ens(self, domain: str) -> str | None:
        url = f"{self.config.ens_api_url.rstrip('/')}/{domain.lower()}"
        data = await self._get(url)
        return (data or {}).get("address") or None

    async def _resolve_tns(self, domain: str) -> str | None:
        query = f'{{ domain(name: "{domain.lower()}") {{ address }} }}'
        data = await self._get(self.config.tns_api_url, params={"query": query})
        if data.get("errors"):
            logger.debug(f"TNS API returned errors for {domain}: {data['errors']}")
            return None
        found = (data.get("data") or {}).get("domain") or {}
        return found.get("address") or None

    async def resolve(self, domain: str) -> dict[str, Any]:
        """Resolve one name; returns ``{domain, address, resolved, error?}``."""
        name = (domain or "").strip()
        kind = domain_type(name)
        if not kind:
            return {"domain": name, "address": None, "resolved": False,
                    "error": f"Invalid or unsupported domain: {name}"}
        try:
            if kind == "ens":
                address = await self._resolve_ens(name)
            else:
                address = await self._resolve_tns(name)
        except httpx.HTTPStatusError as e:
            logger.debug(f"Domain resolution HTTP error for {name}: {e}")
            if e.response.status_code == 404:
                address = None
            else:
                return {"domain": name, "address": None, "resolved": False,
                        "error": f"Resolver error: {e.response.status_code}"}
        except httpx.HTTPError as e:
            logger.debug(f"Domain resolution failed for {name}: {e}")
            return {"domain": name, "address": None, "resolved": False, "error": str(e)}

        if not address:
            return {"domain": name, "address": None, "resolved": False,
                    "error": f"Could not resolve {name}"}
        logger.debug(f"Resolved {name} → {address}")
        return {"domain": name, "address": address, "resolved": True}

    async def resolve_batch(self, domains: list[str]) -> dict[str, Any]:
        """Resolve names concurrently; partial failure is reported, not raised."""
        if not domains:
            return {"success": False, "resolutions": [], "domainMap": {},
                    "errors": ["No domains provided for resolution"]}

        resolutions = await asyncio.gather(*(self.resolve(d) for d in domains))
        domain_map: dict[str, str] = {}
        errors: list[str] = []
        for res in resolutions:
            if res["resolved"]:
                domain_map[res["domain"]] = res["address"]
            elif res.get("error"):
                errors.append(f"{res['domain']}: {res['error']}")

        resolved = len(domain_map)
        logger.debug(f"Batch resolution complete: {resolved}/{len(domains)} successful")
        return {
            "success": resolved > 0,
            "resolutions": list(resolutions),
            "domainMap": domain_map,
            "errors": errors,
        }
