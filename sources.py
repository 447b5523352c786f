"""Async client for the Guardian content API.

Fetches candidate articles section by section and turns them into
SourceArticle objects for the ingestion pipeline.

Features:
    - One date-bounded search per section (newest first, body text included)
    - Stub filtering: only articles with a substantial body are kept
    - Tag-based fallback query for the opinion section
    - Shuffle before truncation so no section is favoured by query order

Error Handling Strategy:
    - A failing section is logged and contributes zero articles
    - Non-200 responses and transport errors surface as ExternalApiError
    - Unparseable payloads surface as FetchError
    - fetch_single() never raises; it returns None on any error
"""

import asyncio
import logging
import math
import random
import ssl
from datetime import datetime, timedelta, timezone
from typing import Any

import aiohttp
import certifi

from config import Config
from errors import ExternalApiError, FetchError
from models.article import SourceArticle

logger = logging.getLogger(__name__)

USER_AGENT = "newsbrief/0.1 (+https://github.com/newsbrief)"

OPINION_SECTION = "opinion"
OPINION_FALLBACK_TAG = "tone/comment"
SHOW_FIELDS = "thumbnail,bodyText"


def _ssl_context() -> ssl.SSLContext:
    """SSL context verified against the certifi bundle."""
    return ssl.create_default_context(cafile=certifi.where())


def _date_days_ago(days: int) -> str:
    """UTC date N days ago in YYYY-MM-DD form."""
    return (datetime.now(timezone.utc) - timedelta(days=days)).strftime("%Y-%m-%d")


class SourceFetcher:
    """Fetches candidate articles from the content API.

    Example:
        >>> fetcher = SourceFetcher(config)
        >>> articles = await fetcher.fetch_articles(40)
        >>> len(articles) <= 40
        True
    """

    def __init__(self, config: Config):
        """Initialize the fetcher.

        Args:
            config: Application configuration with API key, URL and limits
        """
        self.config = config
        self.base_url = config.guardian_api_url.rstrip("/")
        self.sections = dict(config.sections)

    def _session(self) -> aiohttp.ClientSession:
        return aiohttp.ClientSession(
            headers={"User-Agent": USER_AGENT},
            timeout=aiohttp.ClientTimeout(total=self.config.fetch_timeout_seconds),
        )

    def _search_params(self, page_size: int) -> dict[str, Any]:
        return {
            "api-key": self.config.guardian_api_key,
            "show-fields": SHOW_FIELDS,
            "page-size": page_size,
            "order-by": "newest",
            "from-date": _date_days_ago(self.config.fetch_lookback_days),
        }

    async def _get(
        self,
        session: aiohttp.ClientSession,
        path: str,
        params: dict[str, Any],
    ) -> dict[str, Any]:
        """GET a content API path and return the 'response' object.

        Raises:
            ExternalApiError: On transport errors, timeouts or non-200 status
            FetchError: If the body is not the expected JSON envelope
        """
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            async with session.get(url, params=params, ssl=_ssl_context()) as resp:
                if resp.status != 200:
                    raise ExternalApiError(f"Content API HTTP {resp.status}", status=resp.status)
                payload = await resp.json(content_type=None)
        except asyncio.TimeoutError:
            raise ExternalApiError(
                f"Content API timed out after {self.config.fetch_timeout_seconds}s"
            ) from None
        except aiohttp.ClientError as e:
            raise ExternalApiError(f"Content API request failed: {type(e).__name__}: {e}") from e
        except ValueError as e:
            raise FetchError(f"Content API returned invalid JSON: {e}") from e

        response = payload.get("response") if isinstance(payload, dict) else None
        if not isinstance(response, dict):
            raise FetchError("Content API payload has no 'response' object")
        return response

    async def _search(
        self,
        session: aiohttp.ClientSession,
        params: dict[str, Any],
    ) -> list[dict[str, Any]]:
        """Run one search query and return its raw results.

        A response whose status is not 'ok' yields no results.
        """
        response = await self._get(session, "search", params)
        results = response.get("results") or []
        logger.debug(
            "Search response | status=%s total=%s results=%d",
            response.get("status"), response.get("total"), len(results),
        )
        if response.get("status") != "ok":
            return []
        return results

    def _keep(self, results: list[dict[str, Any]], section: str) -> list[SourceArticle]:
        """Drop stub articles and relabel the rest with our section name."""
        articles = []
        for item in results:
            body = (item.get("fields") or {}).get("bodyText") or ""
            if len(body) <= self.config.fetch_min_body_chars:
                continue
            try:
                articles.append(SourceArticle.from_api(item, section=section))
            except (KeyError, ValueError) as e:
                logger.debug("Skipping malformed result | id=%s error=%s", item.get("id"), e)
        return articles

    async def _fetch_section(
        self,
        session: aiohttp.ClientSession,
        section: str,
        api_section: str,
        page_size: int,
    ) -> list[SourceArticle]:
        """Fetch one section, falling back to a tag query for opinion."""
        params = self._search_params(page_size)
        params["section"] = api_section
        try:
            return self._keep(await self._search(session, params), section)
        except Exception as e:
            if section != OPINION_SECTION:
                raise
            logger.info("Section query failed, trying tag fallback | section=%s error=%s", section, e)
            alt_params = self._search_params(page_size)
            alt_params["tag"] = OPINION_FALLBACK_TAG
            try:
                return self._keep(await self._search(session, alt_params), section)
            except Exception as alt_error:
                logger.warning("Fallback query failed | section=%s error=%s", section, alt_error)
            raise

    async def fetch_articles(self, count: int) -> list[SourceArticle]:
        """Fetch up to `count` candidate articles across all sections.

        The count is split evenly (rounded up) across sections. Sections are
        queried one after another; a failing section is logged and skipped.

        Args:
            count: Target number of articles

        Returns:
            Shuffled list of at most `count` articles
        """
        per_section = math.ceil(count / len(self.sections))
        collected: list[SourceArticle] = []
        errors = 0

        async with self._session() as session:
            for section, api_section in self.sections.items():
                try:
                    articles = await self._fetch_section(session, section, api_section, per_section)
                except Exception as e:
                    errors += 1
                    logger.warning(
                        "Section fetch failed | section=%s type=%s error=%s",
                        section, type(e).__name__, e,
                    )
                    continue
                logger.info("Section fetched | section=%s articles=%d", section, len(articles))
                collected.extend(articles)

        random.shuffle(collected)
        logger.info(
            "Articles fetched | total=%d requested=%d sections=%d errors=%d",
            len(collected), count, len(self.sections), errors,
        )
        return collected[:count]

    def _section_label(self, item: dict[str, Any]) -> str:
        """Map the API's section id back to our label where we know it."""
        section_id = item.get("sectionId")
        for label, api_section in self.sections.items():
            if api_section == section_id:
                return label
        return (item.get("sectionName") or section_id or "").lower()

    async def fetch_single(self, article_id: str) -> SourceArticle | None:
        """Fetch one article by its external id.

        Returns:
            The article, or None if it is missing or the request failed
        """
        params = {"api-key": self.config.guardian_api_key, "show-fields": SHOW_FIELDS}
        try:
            async with self._session() as session:
                response = await self._get(session, article_id, params)
        except Exception as e:
            logger.warning("Single fetch failed | id=%s error=%s", article_id, e)
            return None

        if response.get("status") != "ok":
            return None
        item = response.get("content")
        if not item:
            results = response.get("results") or []
            item = results[0] if results else None
        if not item:
            return None
        try:
            return SourceArticle.from_api(item, section=self._section_label(item))
        except (KeyError, ValueError) as e:
            logger.warning("Single fetch returned malformed item | id=%s error=%s", article_id, e)
            return None
