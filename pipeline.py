"""Ingestion orchestration for the newsbrief pipeline.

This module drives articles from the content API into stored summaries.

Per-article flow:
    1. SKIP: Marker already exists (fast path)
    2. CLAIM: Insert the dedupe marker; losing the insert race also skips
    3. STORE: Normalize the body and persist the source article
    4. PROCESS: Create the summary record in PROCESSING
    5. SUMMARIZE: Call the summarizer, assign a slug, persist COMPLETED
    6. FAIL: Any summarization error persists FAILED with the error text

The marker from step 2 is never removed, so an article that fails is not
picked up again by later runs. Failed or interrupted articles are retried
only through reprocess().

Failures never escape the article boundary: each one is counted and
recorded as "Article {id}: {message}" in the run result.
"""

import asyncio
import logging
import time
import uuid
from typing import Any

from agents.summarizer import SummarizerAgent
from config import Config
from database import Database
from errors import (
    DuplicateArticleError,
    PipelineError,
    SlugConflictError,
    SlugExhaustedError,
)
from ledger import JobLedger
from models.article import ArticleStatus, SourceArticle
from models.job import AdminAction, RunResult, RunType
from models.summary import ProcessingStatus, SummaryResult
from observability.logging import (
    clear_article_context,
    clear_context,
    set_article_context,
    set_run_context,
)
from observability.tracing import setup_tracing, trace_operation
from slugs import SlugAssigner
from sources import SourceFetcher
from text import NormalizedText, count_characters, count_words, normalize

logger = logging.getLogger(__name__)

# Slug writes retried after a unique index violation
SLUG_WRITE_ATTEMPTS = 3

STALE_ERROR = "processing interrupted"


class Pipeline:
    """Article ingestion and summarization pipeline.

    Components are created from the config unless passed in. All of them
    share the same Database.

    Components:
        - SourceFetcher: Content API client
        - SummarizerAgent: Structured summaries via PydanticAI + OpenAI
        - SlugAssigner: Collision-free URL slugs
        - JobLedger: One ledger row per run
    """

    def __init__(
        self,
        config: Config,
        db: Database | None = None,
        fetcher: SourceFetcher | None = None,
        summarizer: SummarizerAgent | None = None,
        slugs: SlugAssigner | None = None,
        ledger: JobLedger | None = None,
    ):
        """Initialize pipeline with all components.

        Args:
            config: Application configuration
            db: Store shared by every component (opened from config.db_path if omitted)
            fetcher: Content API client
            summarizer: Summarization client
            slugs: Slug assigner bound to the same store
            ledger: Job ledger bound to the same store
        """
        self.config = config
        self.db = db if db is not None else Database(config.db_path)
        self.fetcher = fetcher or SourceFetcher(config)
        self._summarizer = summarizer
        self.slugs = slugs or SlugAssigner(
            self.db,
            max_length=config.slug_max_length,
            max_suffix=config.slug_max_suffix,
        )
        self.ledger = ledger or JobLedger(self.db)

        # Optional: Distributed tracing
        if config.enable_logfire:
            setup_tracing(enabled=True, service_name="newsbrief", token=config.logfire_token)

    @property
    def summarizer(self) -> SummarizerAgent:
        """Summarization client, created on first use."""
        if self._summarizer is None:
            self._summarizer = SummarizerAgent(self.config)
        return self._summarizer

    def _default_count(self, run_type: RunType) -> int:
        if run_type == RunType.MANUAL:
            return self.config.manual_fetch_count
        return self.config.default_fetch_count

    async def run_once(
        self,
        count: int | None = None,
        run_type: RunType = RunType.SCHEDULED,
        requested_by: str = "",
    ) -> RunResult:
        """Execute one complete ingestion run.

        Steps:
            1. Open a ledger entry (RUNNING)
            2. Fetch candidates from the content API
            3. Process each candidate through the per-article flow
            4. Close the ledger entry with the final counters

        A fetch failure marks the run failed. Ledger errors propagate.
        Operator-issued runs are recorded in the admin log separately, see
        record_manual_fetch().

        Args:
            count: Target number of candidates (defaults per run type)
            run_type: SCHEDULED or MANUAL
            requested_by: Operator name, used in log context

        Returns:
            RunResult with counters and per-article errors
        """
        if count is None:
            count = self._default_count(run_type)

        set_run_context(uuid.uuid4().hex[:8])
        start = time.time()

        try:
            handle = self.ledger.start_run(run_type, count)

            logger.info(
                "Pipeline started | type=%s count=%d requested_by=%s",
                run_type.value, count, requested_by or "-",
            )
            with trace_operation("pipeline.run", {"run_type": run_type.value, "count": count}) as span:
                try:
                    articles = await self.fetcher.fetch_articles(count)
                except Exception as e:
                    logger.error("Fetch failed | type=%s error=%s", type(e).__name__, e, exc_info=True)
                    result = RunResult(success=False, errors=[f"Fetch failed: {e}"])
                else:
                    result = await self.process_candidates(articles)

                result.duration = time.time() - start
                span.update(
                    found=result.articles_found,
                    processed=result.articles_processed,
                    failed=result.articles_failed,
                )

            self.ledger.finish_run(handle, result)
            logger.info(
                "Pipeline done | duration=%.1fs found=%d processed=%d failed=%d skipped=%d tokens=%d cost=%.4f",
                result.duration, result.articles_found, result.articles_processed,
                result.articles_failed, result.articles_skipped, result.tokens_used, result.cost_usd,
            )
            return result
        finally:
            clear_context()

    def record_manual_fetch(self, count: int | None, requested_by: str) -> int:
        """Write the admin log entry for an operator-issued run.

        Scheduler-issued runs, including ones flagged manual, only appear in
        the job ledger.

        Returns:
            The count that was recorded
        """
        if count is None:
            count = self.config.manual_fetch_count
        self.db.log_admin_action(
            AdminAction.MANUAL_FETCH.value, {"requestedCount": count}, requested_by,
        )
        return count

    async def process_candidates(self, articles: list[SourceArticle]) -> RunResult:
        """Run a batch of fetched articles through the per-article flow.

        Articles are processed one at a time, in order.

        Returns:
            RunResult where articles_found is the batch size before dedupe
        """
        result = RunResult(success=True, articles_found=len(articles))

        for article in articles:
            set_article_context(article.id)
            try:
                with trace_operation("pipeline.article", {"article_id": article.id}):
                    summary = await self._process_article(article)
            except Exception as e:
                result.articles_failed += 1
                result.errors.append(f"Article {article.id}: {e}")
                logger.warning("Article failed | type=%s error=%s", type(e).__name__, e)
            else:
                if summary is None:
                    result.articles_skipped += 1
                else:
                    result.articles_processed += 1
                    result.tokens_used += summary.tokens_used
                    result.cost_usd += summary.estimated_cost_usd
            finally:
                clear_article_context()

        logger.info(
            "Batch complete | found=%d processed=%d failed=%d skipped=%d",
            result.articles_found, result.articles_processed,
            result.articles_failed, result.articles_skipped,
        )
        return result

    async def _process_article(self, article: SourceArticle) -> SummaryResult | None:
        """Process one candidate.

        Returns:
            The stored summary, or None if the article was skipped

        Raises:
            Exception: Any failure after the marker was claimed
        """
        if self.db.is_processed(article.id):
            logger.debug("Article skipped | reason=processed")
            return None
        try:
            self.db.claim_id(article.id)
        except DuplicateArticleError:
            logger.info("Article skipped | reason=claimed_by_other_run")
            return None

        normalized = normalize(article.body_text)
        self.db.save_article(article, normalized)
        self.db.mark_processing(article.id)

        try:
            result = await self.summarizer.summarize(normalized.text, article.section)
            slug = self._store_summary(article.id, result, normalized)
        except Exception as e:
            self.db.fail_summary(article.id, str(e))
            raise

        logger.info("Article processed | section=%s slug=%s", article.section, slug)
        return result

    def _store_summary(
        self,
        article_id: str,
        result: SummaryResult,
        normalized: NormalizedText,
    ) -> str:
        """Assign a slug and persist a COMPLETED summary.

        A slug taken between assignment and write (unique index violation)
        is re-assigned a bounded number of times.

        Returns:
            The slug that was stored
        """
        body = result.summary.summary
        for attempt in range(1, SLUG_WRITE_ATTEMPTS + 1):
            slug = self.slugs.assign(result.summary.heading, exclude_id=article_id)
            try:
                self.db.complete_summary(
                    article_id,
                    result,
                    slug,
                    word_count_original=normalized.word_count,
                    character_count_original=normalized.character_count,
                    word_count_summary=count_words(body),
                    character_count_summary=count_characters(body),
                )
                return slug
            except SlugConflictError:
                logger.warning("Slug taken at write | slug=%s attempt=%d", slug, attempt)

        raise SlugExhaustedError(
            f"Slug for '{result.summary.heading}' kept colliding after {SLUG_WRITE_ATTEMPTS} attempts"
        )

    async def ingest_ids(self, article_ids: list[str], requested_by: str = "") -> RunResult:
        """Fetch specific articles by id and run them through the normal flow.

        Ids already processed are skipped like any other duplicate. Ids the
        content API cannot return are counted as failed.
        """
        self.db.log_admin_action(
            AdminAction.MANUAL_FETCH.value, {"articleIds": article_ids}, requested_by,
        )
        articles: list[SourceArticle] = []
        missing: list[str] = []
        for article_id in article_ids:
            article = await self.fetcher.fetch_single(article_id)
            if article is None:
                missing.append(article_id)
            else:
                articles.append(article)

        result = await self.process_candidates(articles)
        result.articles_found = len(article_ids)
        for article_id in missing:
            result.articles_failed += 1
            result.errors.append(f"Article {article_id}: not found")
        return result

    async def reprocess(self, article_id: str, requested_by: str = "") -> SummaryResult:
        """Re-summarize a stored article on explicit request.

        The stored clean body is summarized again and overwrites the summary
        content. The article keeps its own slug if the new heading maps to
        it. A COMPLETED summary is left intact if the new attempt fails.

        Raises:
            PipelineError: If the article is missing or deleted, or the
                new summary could not be produced or stored
        """
        article = self.db.get_article(article_id)
        if article is None:
            raise PipelineError(f"Article {article_id} not found")
        if article["deleted_at"] is not None:
            raise PipelineError(f"Article {article_id} is deleted")

        set_article_context(article_id)
        try:
            self.db.log_admin_action(
                AdminAction.REPROCESS.value, {"articleId": article_id}, requested_by,
            )
            existing = self.db.get_summary(article_id)
            keep_existing = (
                existing is not None and existing["status"] == ProcessingStatus.COMPLETED.value
            )
            if not keep_existing:
                self.db.mark_processing(article_id)

            normalized = NormalizedText(
                text=article["body_text"],
                word_count=article["word_count"],
                character_count=article["character_count"],
            )
            try:
                result = await self.summarizer.summarize(normalized.text, article["section"])
                slug = self._store_summary(article_id, result, normalized)
            except Exception as e:
                if not keep_existing:
                    self.db.fail_summary(article_id, str(e))
                logger.warning("Reprocess failed | error=%s", e)
                raise

            logger.info("Article reprocessed | slug=%s", slug)
            return result
        finally:
            clear_article_context()

    def recover_stale(self, max_age_minutes: int | None = None, requested_by: str = "") -> list[str]:
        """Mark summaries stuck in PROCESSING as FAILED.

        A summary is stuck when it has not been updated for max_age_minutes,
        which happens when a run is killed mid-article. Recovered articles
        are not retried; use reprocess().

        Returns:
            Ids of the summaries that were marked FAILED
        """
        minutes = max_age_minutes if max_age_minutes is not None else self.config.stale_processing_minutes
        cutoff = int(time.time()) - minutes * 60
        stale = self.db.stale_processing(cutoff)
        if not stale:
            logger.info("No stale summaries | max_age_minutes=%d", minutes)
            return []

        recovered = self.db.expire_processing(stale, STALE_ERROR)
        self.db.log_admin_action(
            AdminAction.RECOVER_STALE.value,
            {"articleIds": recovered, "maxAgeMinutes": minutes},
            requested_by,
        )
        logger.warning("Stale summaries failed | count=%d max_age_minutes=%d", len(recovered), minutes)
        return recovered

    def backfill_slugs(self) -> int:
        """Assign slugs to COMPLETED summaries that have none.

        Returns:
            Number of slugs assigned
        """
        rows = self.db.summaries_missing_slug()
        assigned = 0
        for row in rows:
            try:
                slug = self.slugs.assign(row["heading"], exclude_id=row["article_id"])
                self.db.set_slug(row["article_id"], slug)
            except (SlugConflictError, SlugExhaustedError) as e:
                logger.warning("Slug backfill failed | id=%s error=%s", row["article_id"], e)
                continue
            assigned += 1
            logger.debug("Slug backfilled | id=%s slug=%s", row["article_id"], slug)

        logger.info("Slug backfill done | candidates=%d assigned=%d", len(rows), assigned)
        return assigned

    def delete_articles(self, article_ids: list[str], requested_by: str = "") -> int:
        """Soft delete articles and their summaries. Markers are kept.

        Returns:
            Number of articles newly marked deleted
        """
        action = AdminAction.BULK_DELETE if len(article_ids) > 1 else AdminAction.DELETE_ARTICLE
        unknown = sorted(set(article_ids) - self.db.existing_articles(article_ids))
        if unknown:
            logger.warning("Delete requested for unknown articles | ids=%s", unknown)

        self.db.log_admin_action(
            action.value, {"articleIds": article_ids, "count": len(article_ids)}, requested_by,
        )
        return self.db.soft_delete(article_ids)

    def set_publication(self, article_ids: list[str], published: bool, requested_by: str = "") -> int:
        """Publish or unpublish articles. Returns the number of rows changed."""
        action = AdminAction.PUBLISH if published else AdminAction.UNPUBLISH
        status = ArticleStatus.PUBLISHED if published else ArticleStatus.UNPUBLISHED
        self.db.log_admin_action(action.value, {"articleIds": article_ids}, requested_by)
        changed = self.db.set_status(article_ids, status)
        logger.info("Articles %s | count=%d", status.value.lower(), changed)
        return changed

    async def run_continuous(self, count: int | None = None) -> None:
        """Run scheduled ingestion continuously with polling.

        Args:
            count: Target candidates per run (defaults to config)
        """
        run_count = 0
        total_processed = 0
        total_failed = 0

        logger.info("Starting continuous mode | interval=%ds", self.config.poll_interval_seconds)

        try:
            while True:
                run_count += 1
                try:
                    result = await self.run_once(count=count, run_type=RunType.SCHEDULED)
                    total_processed += result.articles_processed
                    total_failed += result.articles_failed
                except Exception as e:
                    logger.error("Run failed | run=%d error=%s", run_count, e, exc_info=True)
                    total_failed += 1

                logger.info(
                    "Run complete | run=%d total_processed=%d total_failed=%d",
                    run_count, total_processed, total_failed,
                )
                await asyncio.sleep(self.config.poll_interval_seconds)

        except asyncio.CancelledError:
            logger.info(
                "Pipeline stopped | runs=%d total_processed=%d total_failed=%d",
                run_count, total_processed, total_failed,
            )
            raise

    def close(self) -> None:
        """Clean up resources."""
        self.db.close()


async def run_once(
    config: Config,
    count: int | None = None,
    run_type: RunType = RunType.SCHEDULED,
    requested_by: str = "",
) -> dict[str, Any]:
    """Run pipeline once and return the result dict.

    Args:
        config: Application configuration
        count: Target candidates (defaults per run type)
        run_type: SCHEDULED or MANUAL
        requested_by: Operator name for manual runs
    """
    pipeline = Pipeline(config)
    try:
        if run_type == RunType.MANUAL:
            count = pipeline.record_manual_fetch(count, requested_by)
        result = await pipeline.run_once(count=count, run_type=run_type, requested_by=requested_by)
        return result.to_dict()
    finally:
        pipeline.close()


async def run_continuous(config: Config, count: int | None = None) -> None:
    """Run pipeline continuously.

    Args:
        config: Application configuration
        count: Target candidates per run
    """
    pipeline = Pipeline(config)
    try:
        await pipeline.run_continuous(count=count)
    finally:
        pipeline.close()
