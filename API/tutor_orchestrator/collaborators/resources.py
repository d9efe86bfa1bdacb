"""Reference-material lookup for the concept being taught, backed by the Tavily search API."""
from __future__ import annotations

import httpx

from tutor_orchestrator.core.logging import DOMAIN_COLLABORATOR, get_domain_logger
from tutor_orchestrator.core.settings import settings
from tutor_orchestrator.runtime.session_context import TeachingResource

logger = get_domain_logger(__name__, DOMAIN_COLLABORATOR)

EDUCATIONAL_DOMAINS = ["youtube.com", "khanacademy.org", "coursera.org", "wikipedia.org", "edu"]


def classify_resource_url(url: str) -> str:
    if "youtube" in url or "youtu.be" in url:
        return "video"
    if ".pdf" in url:
        return "doc"
    return "article"


class ResourceFetcher:
    def __init__(
        self,
        api_key: str | None = None,
        *,
        api_url: str | None = None,
        max_results: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = settings.tavily_api_key if api_key is None else api_key
        self.api_url = api_url or settings.tavily_api_url
        self.max_results = max_results or settings.resource_max_results
        self._transport = transport

    async def fetch(self, concept: str, topic: str) -> list[TeachingResource]:
        """Return up to `max_results` resources; any failure yields an empty list."""
        if not self.api_key:
            logger.warning("Tavily API key not configured; skipping resource lookup")
            return []

        payload = {
            "api_key": self.api_key,
            "query": f"{topic} {concept} educational resources",
            "search_depth": "basic",
            "include_domains": EDUCATIONAL_DOMAINS,
            "max_results": self.max_results,
        }
        try:
            async with httpx.AsyncClient(timeout=settings.collaborator_timeout_seconds, transport=self._transport) as client:
                response = await client.post(self.api_url, json=payload)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Resource lookup failed for concept=%s: %s", concept, exc)
            return []
        if not isinstance(data, dict):
            return []

        resources: list[TeachingResource] = []
        for result in (data.get("results") or [])[: self.max_results]:
            url = str(result.get("url") or "")
            if not url:
                continue
            content = result.get("content") or ""
            resources.append(
                TeachingResource(
                    title=str(result.get("title") or url),
                    url=url,
                    type=classify_resource_url(url),
                    snippet=content[:200] or None,
                )
            )
        return resources
