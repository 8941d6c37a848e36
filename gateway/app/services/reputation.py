"""
IP reputation lookups.

Each checker asks an external service about an address and turns the
answer into an allow/deny verdict. Lookup failures raise ``UpstreamError``:
a request whose client IP cannot be classified is refused, never admitted.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

from gateway.app.core.errors import UpstreamError

logger = logging.getLogger("gateway.reputation")


@dataclass
class ReputationVerdict:
    allowed: bool
    reason: str | None = None


class ReputationChecker(Protocol):
    provider_id: str

    async def check(self, ip_address: str) -> ReputationVerdict:
        ...


class _HTTPReputationChecker:
    provider_id = "base"
    default_base_url = ""

    def __init__(
        self,
        base_url: str | None = None,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = (base_url or self.default_base_url).rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._client = client or httpx.AsyncClient(timeout=self.timeout_seconds)

    def _lookup_request(self, ip_address: str) -> tuple[str, dict]:
        raise NotImplementedError

    def _classify(self, payload: dict) -> ReputationVerdict:
        raise NotImplementedError

    async def _lookup(self, ip_address: str) -> dict:
        url, params = self._lookup_request(ip_address)
        try:
            response = await self._client.get(url, params=params)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error(
                "Reputation lookup failed",
                extra={"provider": self.provider_id, "error_type": type(exc).__name__},
            )
            raise UpstreamError(code="REPUTATION_UNAVAILABLE") from exc
        if not isinstance(payload, dict):
            logger.error("Reputation lookup returned non-object payload", extra={"provider": self.provider_id})
            raise UpstreamError(code="REPUTATION_UNAVAILABLE")
        return payload

    async def check(self, ip_address: str) -> ReputationVerdict:
        payload = await self._lookup(ip_address)
        verdict = self._classify(payload)
        if not verdict.allowed:
            logger.info(
                "IP rejected by reputation lookup",
                extra={"provider": self.provider_id, "reason": verdict.reason},
            )
        return verdict

    async def aclose(self) -> None:
        await self._client.aclose()


class IpApiChecker(_HTTPReputationChecker):
    """ip-api.com: ``status == "fail"`` covers private, reserved and invalid ranges.

    ip-api has no separate VPN field; VPN exits are reported through ``proxy``
    or ``hosting``.
    """

    provider_id = "ip-api"
    default_base_url = "http://ip-api.com"

    def _lookup_request(self, ip_address: str) -> tuple[str, dict]:
        return f"{self.base_url}/json/{ip_address}", {"fields": "status,message,proxy,hosting,query"}

    def _classify(self, payload: dict) -> ReputationVerdict:
        if not payload:
            return ReputationVerdict(allowed=False, reason="empty")
        if payload.get("status") == "fail":
            return ReputationVerdict(allowed=False, reason="bogon")
        for flag in ("proxy", "hosting"):
            if payload.get(flag):
                return ReputationVerdict(allowed=False, reason=flag)
        return ReputationVerdict(allowed=True)


class IpInfoChecker(_HTTPReputationChecker):
    """ipinfo.io: ``bogon`` at the top level, anonymizer flags under ``privacy``.

    ``privacy.service`` names a known anonymizing provider and is rejected
    whenever it is non-empty.
    """

    provider_id = "ipinfo"
    default_base_url = "https://ipinfo.io"
    privacy_flags = ("vpn", "proxy", "tor", "relay", "hosting")

    def __init__(self, token: str = "", **kwargs):
        super().__init__(**kwargs)
        self.token = token

    def _lookup_request(self, ip_address: str) -> tuple[str, dict]:
        params = {"token": self.token} if self.token else {}
        return f"{self.base_url}/{ip_address}/json", params

    def _classify(self, payload: dict) -> ReputationVerdict:
        if not payload:
            return ReputationVerdict(allowed=False, reason="empty")
        if payload.get("bogon"):
            return ReputationVerdict(allowed=False, reason="bogon")
        privacy = payload.get("privacy") or {}
        for flag in self.privacy_flags:
            if privacy.get(flag):
                return ReputationVerdict(allowed=False, reason=flag)
        if privacy.get("service"):
            return ReputationVerdict(allowed=False, reason="service")
        return ReputationVerdict(allowed=True)


class AllowAllChecker:
    """Used when reputation checks are disabled (local development)."""

    provider_id = "disabled"

    async def check(self, ip_address: str) -> ReputationVerdict:
        return ReputationVerdict(allowed=True)

    async def aclose(self) -> None:
        return None


def build_reputation_checker(settings) -> ReputationChecker:
    if not settings.reputation_enabled:
        return AllowAllChecker()
    kwargs = {
        "base_url": settings.reputation_base_url or None,
        "timeout_seconds": settings.reputation_timeout_seconds,
    }
    if settings.reputation_provider == "ipinfo":
        return IpInfoChecker(token=settings.ipinfo_token, **kwargs)
    return IpApiChecker(**kwargs)
