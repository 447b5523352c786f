"""Database operations for the newsbrief ingestion pipeline.

This module provides SQLite-based storage for fetched articles, their AI
summaries, the permanent dedupe markers, the job ledger and the admin log.

Database Schema:
    processed_ids table:
        - id (TEXT, PK): External article id. Never deleted.

    source_articles table:
        - id (TEXT, PK): External article id
        - type, section, published_at, url, thumbnail
        - body_text (TEXT): Cleaned body text
        - word_count, character_count (INTEGER)
        - status (TEXT): PUBLISHED / UNPUBLISHED
        - created_at, deleted_at (INTEGER): Unix epoch; deleted_at is a soft delete

    article_summaries table (1:1 with source_articles):
        - article_id (TEXT, PK)
        - heading, category, summary (TEXT)
        - tldr, faqs (TEXT): JSON arrays
        - slug (TEXT, UNIQUE): NULL until COMPLETED
        - word/character counts for original and summary
        - tokens_used (INTEGER), cost_usd (REAL)
        - status (TEXT): PENDING / PROCESSING / COMPLETED / FAILED
        - error (TEXT), created_at, updated_at, deleted_at

    job_runs table: append-only ledger, one row per run
    admin_log table: append-only record of admin actions

Uniqueness is enforced here, not in the application:
    - claim_id() inserts into processed_ids and maps a primary key violation
      to DuplicateArticleError
    - writes of a slug map a unique index violation to SlugConflictError
"""

import json
import logging
import sqlite3
import time
from pathlib import Path
from typing import Any, Iterable

from errors import DuplicateArticleError, SlugConflictError, StoreError
from models.article import ArticleStatus, SourceArticle
from models.job import RunHandle, RunResult, RunStatus, RunType
from models.summary import ProcessingStatus, SummaryResult
from text import NormalizedText

logger = logging.getLogger(__name__)


def _now() -> int:
    return int(time.time())


def _placeholders(values: list[Any]) -> str:
    return ",".join("?" * len(values))


class Database:
    """SQLite store shared by every pipeline component.

    Components receive a Database instance explicitly; nothing in the
    pipeline opens its own connection.

    Example:
        >>> with Database("newsbrief.db") as db:
        ...     db.claim_id(article.id)
        ...     db.save_article(article, normalize(article.body_text))
    """

    SCHEMA = """
    -- Permanent dedupe tombstones: existence means "never ingest again"
    CREATE TABLE IF NOT EXISTS processed_ids (
        id TEXT PRIMARY KEY,
        claimed_at INTEGER NOT NULL
    );

    CREATE TABLE IF NOT EXISTS source_articles (
        id TEXT PRIMARY KEY,
        type TEXT NOT NULL,
        section TEXT NOT NULL,
        published_at INTEGER NOT NULL,
        url TEXT,
        thumbnail TEXT,
        body_text TEXT NOT NULL,
        word_count INTEGER NOT NULL DEFAULT 0,
        character_count INTEGER NOT NULL DEFAULT 0,
        status TEXT NOT NULL DEFAULT 'PUBLISHED',
        created_at INTEGER NOT NULL,
        deleted_at INTEGER
    );

    CREATE INDEX IF NOT EXISTS idx_articles_published ON source_articles(published_at);

    CREATE TABLE IF NOT EXISTS article_summaries (
        article_id TEXT PRIMARY KEY REFERENCES source_articles(id),
        heading TEXT NOT NULL DEFAULT '',
        category TEXT NOT NULL DEFAULT '',
        summary TEXT NOT NULL DEFAULT '',
        tldr TEXT NOT NULL DEFAULT '[]',
        faqs TEXT NOT NULL DEFAULT '[]',
        slug TEXT UNIQUE,
        word_count_original INTEGER NOT NULL DEFAULT 0,
        word_count_summary INTEGER NOT NULL DEFAULT 0,
        character_count_original INTEGER NOT NULL DEFAULT 0,
        character_count_summary INTEGER NOT NULL DEFAULT 0,
        tokens_used INTEGER NOT NULL DEFAULT 0,
        cost_usd REAL NOT NULL DEFAULT 0,
        status TEXT NOT NULL DEFAULT 'PENDING',
        error TEXT,
        created_at INTEGER NOT NULL,
        updated_at INTEGER NOT NULL,
        deleted_at INTEGER
    );

    -- Stale PROCESSING sweep and dashboard counts
    CREATE INDEX IF NOT EXISTS idx_summaries_status ON article_summaries(status, updated_at);

    CREATE TABLE IF NOT EXISTS job_runs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        run_type TEXT NOT NULL,
        status TEXT NOT NULL,
        articles_found INTEGER NOT NULL DEFAULT 0,
        articles_processed INTEGER NOT NULL DEFAULT 0,
        articles_failed INTEGER NOT NULL DEFAULT 0,
        manual_count INTEGER,
        started_at INTEGER NOT NULL,
        finished_at INTEGER,
        error TEXT
    );

    CREATE INDEX IF NOT EXISTS idx_runs_started ON job_runs(started_at);

    CREATE TABLE IF NOT EXISTS admin_log (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        action TEXT NOT NULL,
        details TEXT NOT NULL DEFAULT '{}',
        actor TEXT NOT NULL DEFAULT '',
        created_at INTEGER NOT NULL
    );
    """

    path: Path
    conn: sqlite3.Connection

    def __init__(self, path: Path | str):
        """Open (and create if needed) the database.

        Args:
            path: Path to SQLite database file, or ':memory:'
        """
        self.path = Path(path)
        # Calls are serialized on the event loop, which may not be the opening thread
        self.conn = sqlite3.connect(str(self.path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row

        # WAL mode allows concurrent readers during writes
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.executescript(self.SCHEMA)
        self.conn.commit()
        logger.debug("Database initialized | path=%s", self.path)

    # === Dedupe markers ===

    def is_processed(self, article_id: str) -> bool:
        """Fast-path check for an existing marker."""
        cursor = self.conn.execute("SELECT 1 FROM processed_ids WHERE id = ?", (article_id,))
        return cursor.fetchone() is not None

    def claim_id(self, article_id: str) -> None:
        """Atomically create the dedupe marker for an article.

        Committed immediately: once this returns, the id is claimed for
        the lifetime of the database.

        Raises:
            DuplicateArticleError: If the marker already exists
        """
        try:
            self.conn.execute(
                "INSERT INTO processed_ids (id, claimed_at) VALUES (?, ?)",
                (article_id, _now()),
            )
            self.conn.commit()
        except sqlite3.IntegrityError:
            self.conn.rollback()
            raise DuplicateArticleError(article_id) from None
        logger.debug("Article claimed | id=%s", article_id)

    # === Source articles ===

    def save_article(self, article: SourceArticle, normalized: NormalizedText) -> None:
        """Persist a fetched article with its cleaned body and counts.

        Raises:
            StoreError: If the article row already exists
        """
        try:
            self.conn.execute(
                """
                INSERT INTO source_articles
                (id, type, section, published_at, url, thumbnail, body_text,
                 word_count, character_count, status, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    article.id,
                    article.type,
                    article.section,
                    int(article.published_at.timestamp()),
                    article.url,
                    article.thumbnail,
                    normalized.text,
                    normalized.word_count,
                    normalized.character_count,
                    ArticleStatus.PUBLISHED.value,
                    _now(),
                ),
            )
            self.conn.commit()
        except sqlite3.IntegrityError as e:
            self.conn.rollback()
            raise StoreError(f"Article {article.id} already stored: {e}") from e
        logger.debug("Article saved | id=%s words=%d", article.id, normalized.word_count)

    def get_article(self, article_id: str) -> dict[str, Any] | None:
        cursor = self.conn.execute("SELECT * FROM source_articles WHERE id = ?", (article_id,))
        row = cursor.fetchone()
        return dict(row) if row else None

    def set_status(self, article_ids: list[str], status: ArticleStatus) -> int:
        """Publish or unpublish articles. Returns the number of rows changed.

        Deleted articles stay UNPUBLISHED.
        """
        if not article_ids:
            return 0
        cursor = self.conn.execute(
            f"UPDATE source_articles SET status = ? "
            f"WHERE id IN ({_placeholders(article_ids)}) AND deleted_at IS NULL",
            [status.value, *article_ids],
        )
        self.conn.commit()
        return cursor.rowcount

    def soft_delete(self, article_ids: list[str]) -> int:
        """Soft delete articles and their summaries.

        Articles are unpublished and stamped with deleted_at; summaries are
        stamped in the same transaction. Markers are left in place so the
        ids are never ingested again.

        Returns:
            Number of articles marked deleted
        """
        if not article_ids:
            return 0
        now = _now()
        marks = _placeholders(article_ids)
        with self.conn:
            cursor = self.conn.execute(
                f"""
                UPDATE source_articles SET deleted_at = ?, status = ?
                WHERE id IN ({marks}) AND deleted_at IS NULL
                """,
                [now, ArticleStatus.UNPUBLISHED.value, *article_ids],
            )
            self.conn.execute(
                f"""
                UPDATE article_summaries SET deleted_at = ?
                WHERE article_id IN ({marks}) AND deleted_at IS NULL
                """,
                [now, *article_ids],
            )
        logger.info("Articles soft deleted | count=%d", cursor.rowcount)
        return cursor.rowcount

    # === Summaries ===

    def mark_processing(self, article_id: str) -> None:
        """Create the summary shell, or move an existing one to PROCESSING."""
        now = _now()
        self.conn.execute(
            """
            INSERT INTO article_summaries (article_id, status, created_at, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(article_id) DO UPDATE SET
                status = excluded.status,
                error = NULL,
                updated_at = excluded.updated_at
            """,
            (article_id, ProcessingStatus.PROCESSING.value, now, now),
        )
        self.conn.commit()

    def complete_summary(
        self,
        article_id: str,
        result: SummaryResult,
        slug: str,
        word_count_original: int,
        character_count_original: int,
        word_count_summary: int,
        character_count_summary: int,
    ) -> None:
        """Store a generated summary and its slug and mark it COMPLETED.

        Raises:
            SlugConflictError: If another summary already owns the slug
            StoreError: If no summary shell exists for the article
        """
        summary = result.summary
        try:
            cursor = self.conn.execute(
                """
                UPDATE article_summaries SET
                    heading = ?, category = ?, summary = ?, tldr = ?, faqs = ?,
                    slug = ?,
                    word_count_original = ?, word_count_summary = ?,
                    character_count_original = ?, character_count_summary = ?,
                    tokens_used = ?, cost_usd = ?,
                    status = ?, error = NULL, updated_at = ?
                WHERE article_id = ?
                """,
                (
                    summary.heading,
                    summary.category,
                    summary.summary,
                    json.dumps(summary.tldr, ensure_ascii=False),
                    json.dumps([faq.model_dump() for faq in summary.faqs], ensure_ascii=False),
                    slug,
                    word_count_original,
                    word_count_summary,
                    character_count_original,
                    character_count_summary,
                    result.tokens_used,
                    result.estimated_cost_usd,
                    ProcessingStatus.COMPLETED.value,
                    _now(),
                    article_id,
                ),
            )
        except sqlite3.IntegrityError as e:
            self.conn.rollback()
            if "slug" in str(e):
                raise SlugConflictError(slug) from e
            raise StoreError(str(e)) from e
        if cursor.rowcount == 0:
            self.conn.rollback()
            raise StoreError(f"No summary record for article {article_id}")
        self.conn.commit()
        logger.debug("Summary completed | id=%s slug=%s", article_id, slug)

    def fail_summary(self, article_id: str, error: str) -> None:
        """Mark a summary FAILED, creating the record if it is missing."""
        now = _now()
        self.conn.execute(
            """
            INSERT INTO article_summaries (article_id, status, error, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(article_id) DO UPDATE SET
                status = excluded.status,
                error = excluded.error,
                slug = NULL,
                updated_at = excluded.updated_at
            """,
            (article_id, ProcessingStatus.FAILED.value, error, now, now),
        )
        self.conn.commit()
        logger.debug("Summary failed | id=%s error=%s", article_id, error)

    def get_summary(self, article_id: str) -> dict[str, Any] | None:
        """Get a summary record with tldr and faqs decoded."""
        cursor = self.conn.execute(
            "SELECT * FROM article_summaries WHERE article_id = ?", (article_id,)
        )
        row = cursor.fetchone()
        if not row:
            return None
        record = dict(row)
        record["tldr"] = json.loads(record["tldr"] or "[]")
        record["faqs"] = json.loads(record["faqs"] or "[]")
        return record

    def slug_owner(self, slug: str) -> str | None:
        """Return the article id that owns a slug, or None if it is free."""
        cursor = self.conn.execute(
            "SELECT article_id FROM article_summaries WHERE slug = ?", (slug,)
        )
        row = cursor.fetchone()
        return row["article_id"] if row else None

    def set_slug(self, article_id: str, slug: str) -> None:
        """Assign a slug to an existing summary.

        Raises:
            SlugConflictError: If another summary already owns the slug
        """
        try:
            self.conn.execute(
                "UPDATE article_summaries SET slug = ?, updated_at = ? WHERE article_id = ?",
                (slug, _now(), article_id),
            )
            self.conn.commit()
        except sqlite3.IntegrityError as e:
            self.conn.rollback()
            raise SlugConflictError(slug) from e

    def summaries_missing_slug(self) -> list[dict[str, Any]]:
        """COMPLETED summaries with a heading but no slug (legacy rows)."""
        cursor = self.conn.execute(
            """
            SELECT article_id, heading FROM article_summaries
            WHERE slug IS NULL AND heading != '' AND status = ?
            ORDER BY created_at
            """,
            (ProcessingStatus.COMPLETED.value,),
        )
        return [dict(row) for row in cursor.fetchall()]

    def stale_processing(self, cutoff: int) -> list[str]:
        """Ids of PROCESSING summaries not updated since cutoff (Unix epoch)."""
        cursor = self.conn.execute(
            """
            SELECT article_id FROM article_summaries
            WHERE status = ? AND updated_at < ?
            ORDER BY updated_at
            """,
            (ProcessingStatus.PROCESSING.value, cutoff),
        )
        return [row["article_id"] for row in cursor.fetchall()]

    def expire_processing(self, article_ids: list[str], error: str) -> list[str]:
        """Mark the given summaries FAILED if they are still PROCESSING.

        Rows that finished between the stale query and this call are left
        alone.

        Returns:
            Ids of the rows that were changed
        """
        if not article_ids:
            return []
        cursor = self.conn.execute(
            f"""
            UPDATE article_summaries SET status = ?, error = ?, slug = NULL, updated_at = ?
            WHERE article_id IN ({_placeholders(article_ids)}) AND status = ?
            RETURNING article_id
            """,
            [
                ProcessingStatus.FAILED.value,
                error,
                _now(),
                *article_ids,
                ProcessingStatus.PROCESSING.value,
            ],
        )
        expired = [row["article_id"] for row in cursor.fetchall()]
        self.conn.commit()
        return expired

    # === Job ledger ===

    def start_run(self, run_type: RunType, manual_count: int | None = None) -> RunHandle:
        """Insert a RUNNING ledger row."""
        started_at = _now()
        cursor = self.conn.execute(
            """
            INSERT INTO job_runs (run_type, status, manual_count, started_at)
            VALUES (?, ?, ?, ?)
            """,
            (run_type.value, RunStatus.RUNNING.value, manual_count, started_at),
        )
        self.conn.commit()
        return RunHandle(id=cursor.lastrowid, run_type=run_type, started_at=started_at)

    def finish_run(self, run_id: int, result: RunResult) -> bool:
        """Write final counters to a RUNNING ledger row.

        Returns:
            False if the row does not exist or was already finished
        """
        cursor = self.conn.execute(
            """
            UPDATE job_runs SET
                status = ?, articles_found = ?, articles_processed = ?,
                articles_failed = ?, finished_at = ?, error = ?
            WHERE id = ? AND status = ?
            """,
            (
                result.status.value,
                result.articles_found,
                result.articles_processed,
                result.articles_failed,
                _now(),
                result.error_summary,
                run_id,
                RunStatus.RUNNING.value,
            ),
        )
        self.conn.commit()
        return cursor.rowcount == 1

    def get_run(self, run_id: int) -> dict[str, Any] | None:
        cursor = self.conn.execute("SELECT * FROM job_runs WHERE id = ?", (run_id,))
        row = cursor.fetchone()
        return dict(row) if row else None

    def recent_runs(self, limit: int = 10) -> list[dict[str, Any]]:
        cursor = self.conn.execute(
            "SELECT * FROM job_runs ORDER BY started_at DESC, id DESC LIMIT ?", (limit,)
        )
        return [dict(row) for row in cursor.fetchall()]

    # === Admin log ===

    def log_admin_action(self, action: str, details: dict[str, Any], actor: str = "") -> None:
        self.conn.execute(
            "INSERT INTO admin_log (action, details, actor, created_at) VALUES (?, ?, ?, ?)",
            (action, json.dumps(details, ensure_ascii=False), actor, _now()),
        )
        self.conn.commit()
        logger.info("Admin action | action=%s actor=%s details=%s", action, actor or "-", details)

    def admin_actions(self, limit: int = 50) -> list[dict[str, Any]]:
        cursor = self.conn.execute(
            "SELECT * FROM admin_log ORDER BY id DESC LIMIT ?", (limit,)
        )
        return [dict(row) for row in cursor.fetchall()]

    # === Statistics ===

    def stats(self) -> dict[str, Any]:
        """Dashboard counters over non-deleted rows.

        Returns:
            Dictionary with article, summary, cost and token totals
        """
        articles = self.conn.execute(
            """
            SELECT COUNT(*) AS total,
                   SUM(CASE WHEN status = 'PUBLISHED' THEN 1 ELSE 0 END) AS published
            FROM source_articles WHERE deleted_at IS NULL
            """
        ).fetchone()
        summaries = self.conn.execute(
            """
            SELECT COUNT(*) AS total,
                   SUM(CASE WHEN status = 'COMPLETED' THEN 1 ELSE 0 END) AS completed,
                   SUM(CASE WHEN status = 'FAILED' THEN 1 ELSE 0 END) AS failed,
                   SUM(CASE WHEN status = 'PROCESSING' THEN 1 ELSE 0 END) AS processing,
                   SUM(cost_usd) AS cost,
                   SUM(tokens_used) AS tokens
            FROM article_summaries WHERE deleted_at IS NULL
            """
        ).fetchone()
        markers = self.conn.execute("SELECT COUNT(*) AS total FROM processed_ids").fetchone()
        last_run = self.conn.execute("SELECT MAX(started_at) AS started FROM job_runs").fetchone()

        return {
            "total_articles": articles["total"] or 0,
            "published_articles": articles["published"] or 0,
            "total_summaries": summaries["total"] or 0,
            "completed_summaries": summaries["completed"] or 0,
            "failed_summaries": summaries["failed"] or 0,
            "processing_summaries": summaries["processing"] or 0,
            "total_cost_usd": round(summaries["cost"] or 0.0, 6),
            "total_tokens": summaries["tokens"] or 0,
            "processed_ids": markers["total"] or 0,
            "last_run_started": last_run["started"],
        }

    def existing_articles(self, article_ids: Iterable[str]) -> set[str]:
        """Which of the given ids have a stored article row."""
        ids = list(article_ids)
        if not ids:
            return set()
        cursor = self.conn.execute(
            f"SELECT id FROM source_articles WHERE id IN ({_placeholders(ids)})", ids
        )
        return {row["id"] for row in cursor.fetchall()}

    def close(self) -> None:
        """Close the database connection."""
        self.conn.close()

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
