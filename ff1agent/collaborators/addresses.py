"""Structural validation of wallet addresses and blockchain domain names.

Only the *shape* of an address is checked here.  Ethereum addresses are
normalized to lowercase; EIP-55 checksums are not verified.
"""

from __future__ import annotations

import re
from typing import Any

_BASE58 = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"

_ETH_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
_TEZ_USER_RE = re.compile(rf"^tz[1-3][{_BASE58}]{{30,}}$")
_TEZ_CONTRACT_RE = re.compile(rf"^KT1[{_BASE58}]{{30,}}$")
_ENS_RE = re.compile(r"^[a-z0-9-]+\.eth$", re.IGNORECASE)
_TEZ_DOMAIN_RE = re.compile(r"^[a-z0-9-]+\.tez$", re.IGNORECASE)


def validate_ethereum_address(address: Any) -> dict[str, Any]:
    if not address or not isinstance(address, str):
        return {"valid": False, "error": "Address must be a non-empty string"}
    if not _ETH_RE.match(address):
        return {
            "valid": False,
            "error": "Invalid Ethereum address format. Must be 0x followed by 40 hex characters",
        }
    return {"valid": True, "normalized": address.lower()}


def validate_tezos_address(address: Any) -> dict[str, Any]:
    if not address or not isinstance(address, str):
        return {"valid": False, "error": "Address must be a non-empty string"}
    if _TEZ_USER_RE.match(address):
        return {"valid": True, "type": "user"}
    if _TEZ_CONTRACT_RE.match(address):
        return {"valid": True, "type": "contract"}
    return {
        "valid": False,
        "error": "Invalid Tezos address format. Must start with tz1/tz2/tz3 (user) or KT1 (contract)",
    }


def _check_one(address: str) -> tuple[dict[str, Any], str | None]:
    """Validate one trimmed address; returns the result row and an error line."""
    if address.startswith("0x"):
        res = validate_ethereum_address(address)
        if res["valid"]:
            return {"address": address, "valid": True, "type": "ethereum",
                    "normalized": res["normalized"]}, None
        return (
            {"address": address, "valid": False, "type": "ethereum", "error": res["error"]},
            f'Invalid Ethereum address "{address}": {res["error"]}',
        )

    if address.startswith("tz") or address.startswith("KT1"):
        res = validate_tezos_address(address)
        if res["valid"]:
            return {"address": address, "valid": True, "type": res["type"]}, None
        return (
            {"address": address, "valid": False, "type": "tezos", "error": res["error"]},
            f'Invalid Tezos address "{address}": {res["error"]}',
        )

    if address.lower().endswith(".eth"):
        if _ENS_RE.match(address):
            return {"address": address, "valid": True, "type": "ens"}, None
        return (
            {"address": address, "valid": False, "type": "ens",
             "error": "Invalid ENS domain format"},
            f'Invalid ENS domain "{address}". Must be alphanumeric with hyphens ending in .eth',
        )

    if address.lower().endswith(".tez"):
        if _TEZ_DOMAIN_RE.match(address):
            return {"address": address, "valid": True, "type": "tezos-domain"}, None
        return (
            {"address": address, "valid": False, "type": "tezos-domain",
             "error": "Invalid Tezos domain format"},
            f'Invalid Tezos domain "{address}". Must be alphanumeric with hyphens ending in .tez',
        )

    return (
        {
            "address": address,
            "valid": False,
            "type": "unknown",
            "error": "Must be Ethereum (0x...), Tezos (tz1/tz2/tz3/KT1), ENS (.eth), "
                     "or Tezos domain (.tez)",
        },
        f'Unknown address format "{address}". Must be 0x... (Ethereum), tz/KT1 (Tezos), '
        f".eth (ENS), or .tez (Tezos domain)",
    )


def validate_addresses(addresses: Any) -> dict[str, Any]:
    """Validate a batch of owner identifiers.

    Returns ``{"valid", "results", "errors"}``; ``valid`` is true only when
    every entry passed.
    """
    results: list[dict[str, Any]] = []
    errors: list[str] = []

    if not isinstance(addresses, list):
        return {"valid": False, "results": results,
                "errors": ["Input must be an array of addresses"]}
    if not addresses:
        return {"valid": False, "results": results,
                "errors": ["At least one address is required for validation"]}

    for address in addresses:
        if not isinstance(address, str):
            errors.append(f"Invalid input: {address!r} is not a string")
            results.append({"address": str(address), "valid": False, "type": "unknown",
                            "error": "Address must be a string"})
            continue
        row, error = _check_one(address.strip())
        results.append(row)
        if error:
            errors.append(error)

    return {"valid": all(r["valid"] for r in results), "results": results, "errors": errors}
