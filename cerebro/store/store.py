"""SQLite-backed helpdesk store: schema init, seed data, and CRUD.

One connection per store, opened with check_same_thread=False so the API
event loop and scheduler executor threads can share it. A single re-entrant
lock serialises every operation, which also keeps the ticket counter
consistent. The default path is ":memory:", so all state is volatile and the
seed data is recreated on every process start.
"""

import json
import logging
import sqlite3
import threading
from datetime import UTC, datetime
from uuid import uuid4

from cerebro.store.models import KBArticle, LogAnalysis, Message, MessageRole, Ticket, TicketStatus
from cerebro.store.seed import DEMO_TICKETS, KB_ARTICLES

logger = logging.getLogger(__name__)

DEFAULT_TICKET_NUMBER_SEED = 48200
MAX_DESCRIPTION_LENGTH = 500
MAX_SIMILAR_TICKETS = 3
MIN_KEYWORD_LENGTH = 4
# SQLite INTEGER is a signed 64-bit value.
MAX_SQLITE_INTEGER = 2**63 - 1

_SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS tickets (
    seq            INTEGER PRIMARY KEY AUTOINCREMENT,
    id             TEXT NOT NULL UNIQUE,
    ticket_number  INTEGER NOT NULL UNIQUE,
    user_id        TEXT NOT NULL,
    user_name      TEXT NOT NULL,
    application    TEXT NOT NULL,
    description    TEXT NOT NULL,
    error_code     TEXT,
    status         TEXT NOT NULL DEFAULT 'new',
    severity       TEXT NOT NULL DEFAULT 'medium',
    created_at     TEXT NOT NULL,
    updated_at     TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS messages (
    seq             INTEGER PRIMARY KEY AUTOINCREMENT,
    id              TEXT NOT NULL UNIQUE,
    ticket_id       TEXT,
    conversation_id TEXT NOT NULL,
    role            TEXT NOT NULL,
    content         TEXT NOT NULL,
    timestamp       TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_messages_conversation ON messages(conversation_id, seq);
CREATE INDEX IF NOT EXISTS idx_messages_ticket ON messages(ticket_id, seq);

CREATE TABLE IF NOT EXISTS kb_articles (
    seq          INTEGER PRIMARY KEY AUTOINCREMENT,
    id           TEXT NOT NULL UNIQUE,
    title        TEXT NOT NULL,
    application  TEXT NOT NULL,
    problem      TEXT NOT NULL,
    cause        TEXT NOT NULL,
    solution     TEXT NOT NULL,
    steps        TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS log_analyses (
    seq              INTEGER PRIMARY KEY AUTOINCREMENT,
    id               TEXT NOT NULL UNIQUE,
    ticket_id        TEXT NOT NULL,
    error_pattern    TEXT NOT NULL,
    root_cause       TEXT NOT NULL,
    suggested_fix    TEXT NOT NULL,
    log_excerpt      TEXT NOT NULL,
    correlated_event TEXT,
    created_at       TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_log_analyses_ticket ON log_analyses(ticket_id);

CREATE TABLE IF NOT EXISTS conversation_tickets (
    conversation_id TEXT PRIMARY KEY,
    ticket_id       TEXT NOT NULL
);
"""


def get_connection(db_path: str = ":memory:") -> sqlite3.Connection:
    """Open a SQLite connection usable from several threads.

    Args:
        db_path: Path to the database file, or ":memory:" for a volatile store.

    Returns:
        A new sqlite3.Connection with row_factory set to sqlite3.Row.
    """
    conn = sqlite3.connect(db_path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def init_schema(conn: sqlite3.Connection) -> None:
    """Create tables and indexes if they don't exist (idempotent)."""
    conn.executescript(_SCHEMA_SQL)


def _now() -> str:
    return datetime.now(UTC).isoformat()


def _new_id() -> str:
    return uuid4().hex


class HelpdeskStore:
    """Tickets, messages, KB articles, log analyses and conversation links."""

    def __init__(
        self,
        db_path: str = ":memory:",
        *,
        ticket_number_seed: int = DEFAULT_TICKET_NUMBER_SEED,
        seed: bool = True,
    ) -> None:
        self._lock = threading.RLock()
        self._conn = get_connection(db_path)
        init_schema(self._conn)

        row = self._conn.execute("SELECT MAX(ticket_number) AS n FROM tickets").fetchone()
        self._ticket_counter = max(ticket_number_seed, row["n"] or 0)

        if seed:
            self._seed()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # ------------------------------------------------------------------
    # Seed data
    # ------------------------------------------------------------------

    def _seed(self) -> None:
        with self._lock:
            kb_count = self._conn.execute("SELECT COUNT(*) AS n FROM kb_articles").fetchone()["n"]
            if kb_count == 0:
                for article in KB_ARTICLES:
                    self._conn.execute(
                        """INSERT INTO kb_articles
                           (id, title, application, problem, cause, solution, steps)
                           VALUES (?, ?, ?, ?, ?, ?, ?)""",
                        (
                            _new_id(),
                            article["title"],
                            article["application"],
                            article["problem"],
                            article["cause"],
                            article["solution"],
                            json.dumps(article["steps"]),
                        ),
                    )
                self._conn.commit()
                logger.info("Seeded %d KB articles", len(KB_ARTICLES))

            ticket_count = self._conn.execute("SELECT COUNT(*) AS n FROM tickets").fetchone()["n"]
            if ticket_count == 0:
                for ticket in DEMO_TICKETS:
                    self.create_ticket(
                        user_id=ticket["user_id"],
                        user_name=ticket["user_name"],
                        application=ticket["application"],
                        description=ticket["description"],
                        error_code=ticket["error_code"],
                        status=TicketStatus(ticket["status"]),
                        severity=ticket["severity"],
                    )
                logger.info("Seeded %d demo tickets", len(DEMO_TICKETS))

    # ------------------------------------------------------------------
    # Tickets
    # ------------------------------------------------------------------

    def create_ticket(
        self,
        *,
        user_id: str,
        user_name: str,
        application: str,
        description: str,
        error_code: str | None = None,
        status: TicketStatus = TicketStatus.NEW,
        severity: str = "medium",
    ) -> Ticket:
        """Create a ticket with the next ticket number."""
        with self._lock:
            self._ticket_counter += 1
            ticket_number = self._ticket_counter
            ticket_id = _new_id()
            now = _now()
            self._conn.execute(
                """INSERT INTO tickets
                   (id, ticket_number, user_id, user_name, application, description,
                    error_code, status, severity, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    ticket_id,
                    ticket_number,
                    user_id,
                    user_name,
                    application,
                    description[:MAX_DESCRIPTION_LENGTH],
                    error_code,
                    str(status),
                    severity,
                    now,
                    now,
                ),
            )
            self._conn.commit()
            ticket = self.get_ticket(ticket_id)
        assert ticket is not None
        logger.info("Created ticket #%d (%s) for %s", ticket_number, application, user_name)
        return ticket

    def get_ticket(self, ticket_id: str) -> Ticket | None:
        with self._lock:
            row = self._conn.execute("SELECT * FROM tickets WHERE id = ?", (ticket_id,)).fetchone()
        return _row_to_ticket(row) if row is not None else None

    def get_ticket_by_number(self, ticket_number: int) -> Ticket | None:
        if not -MAX_SQLITE_INTEGER - 1 <= ticket_number <= MAX_SQLITE_INTEGER:
            return None
        with self._lock:
            row = self._conn.execute("SELECT * FROM tickets WHERE ticket_number = ?", (ticket_number,)).fetchone()
        return _row_to_ticket(row) if row is not None else None

    def get_tickets(self) -> list[Ticket]:
        """All tickets, newest first."""
        with self._lock:
            rows = self._conn.execute("SELECT * FROM tickets ORDER BY ticket_number DESC").fetchall()
        return [_row_to_ticket(r) for r in rows]

    def update_ticket_status(self, ticket_id: str, status: TicketStatus) -> Ticket | None:
        """Set a ticket's status. Returns None if the ticket doesn't exist."""
        with self._lock:
            cursor = self._conn.execute(
                "UPDATE tickets SET status = ?, updated_at = ? WHERE id = ?",
                (str(status), _now(), ticket_id),
            )
            self._conn.commit()
            if cursor.rowcount == 0:
                return None
            return self.get_ticket(ticket_id)

    def get_ticket_by_conversation_id(self, conversation_id: str) -> Ticket | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT ticket_id FROM conversation_tickets WHERE conversation_id = ?",
                (conversation_id,),
            ).fetchone()
            if row is None:
                return None
            return self.get_ticket(row["ticket_id"])

    def find_similar_tickets(self, description: str) -> list[Ticket]:
        """Up to 3 tickets sharing any word longer than 3 characters, in store order.

        Not ranked: the first matches in insertion order win.
        """
        keywords = [word for word in description.lower().split(" ") if len(word) >= MIN_KEYWORD_LENGTH]
        if not keywords:
            return []

        with self._lock:
            rows = self._conn.execute("SELECT * FROM tickets ORDER BY seq ASC").fetchall()

        similar: list[Ticket] = []
        for row in rows:
            ticket_desc = row["description"].lower()
            if any(keyword in ticket_desc for keyword in keywords):
                similar.append(_row_to_ticket(row))
                if len(similar) == MAX_SIMILAR_TICKETS:
                    break
        return similar

    # ------------------------------------------------------------------
    # Conversation ↔ ticket links
    # ------------------------------------------------------------------

    def link_conversation_to_ticket(self, conversation_id: str, ticket_id: str) -> None:
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO conversation_tickets (conversation_id, ticket_id) VALUES (?, ?)",
                (conversation_id, ticket_id),
            )
            self._conn.commit()

    def get_conversation_id_by_ticket(self, ticket_id: str) -> str | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT conversation_id FROM conversation_tickets WHERE ticket_id = ?",
                (ticket_id,),
            ).fetchone()
        return row["conversation_id"] if row is not None else None

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def create_message(
        self,
        *,
        conversation_id: str,
        role: MessageRole,
        content: str,
        ticket_id: str | None = None,
    ) -> Message:
        """Append a message. Returns the stored record."""
        message_id = _new_id()
        with self._lock:
            self._conn.execute(
                """INSERT INTO messages (id, ticket_id, conversation_id, role, content, timestamp)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (message_id, ticket_id, conversation_id, str(role), content, _now()),
            )
            self._conn.commit()
            row = self._conn.execute("SELECT * FROM messages WHERE id = ?", (message_id,)).fetchone()
        return _row_to_message(row)

    def get_messages(self, conversation_id: str) -> list[Message]:
        """Messages for a conversation in arrival order."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM messages WHERE conversation_id = ? ORDER BY seq ASC",
                (conversation_id,),
            ).fetchall()
        return [_row_to_message(r) for r in rows]

    def get_ticket_messages(self, ticket_id: str) -> list[Message]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM messages WHERE ticket_id = ? ORDER BY seq ASC",
                (ticket_id,),
            ).fetchall()
        return [_row_to_message(r) for r in rows]

    # ------------------------------------------------------------------
    # Knowledge base
    # ------------------------------------------------------------------

    def search_kb(self, query: str, application: str | None = None) -> list[KBArticle]:
        """Case-insensitive substring search over title, problem and cause.

        Args:
            query: Text to look for. An empty query matches every article.
            application: Exact match on the owning application, if given.

        Returns:
            Matching articles in seed order.
        """
        with self._lock:
            if application:
                rows = self._conn.execute(
                    "SELECT * FROM kb_articles WHERE application = ? ORDER BY seq ASC",
                    (application,),
                ).fetchall()
            else:
                rows = self._conn.execute("SELECT * FROM kb_articles ORDER BY seq ASC").fetchall()

        needle = query.lower()
        return [
            _row_to_article(r)
            for r in rows
            if needle in r["title"].lower() or needle in r["problem"].lower() or needle in r["cause"].lower()
        ]

    def get_kb_article(self, article_id: str) -> KBArticle | None:
        with self._lock:
            row = self._conn.execute("SELECT * FROM kb_articles WHERE id = ?", (article_id,)).fetchone()
        return _row_to_article(row) if row is not None else None

    # ------------------------------------------------------------------
    # Log analyses
    # ------------------------------------------------------------------

    def create_log_analysis(
        self,
        *,
        ticket_id: str,
        error_pattern: str,
        root_cause: str,
        suggested_fix: str,
        log_excerpt: str,
        correlated_event: str | None = None,
    ) -> LogAnalysis:
        analysis_id = _new_id()
        with self._lock:
            self._conn.execute(
                """INSERT INTO log_analyses
                   (id, ticket_id, error_pattern, root_cause, suggested_fix,
                    log_excerpt, correlated_event, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    analysis_id,
                    ticket_id,
                    error_pattern,
                    root_cause,
                    suggested_fix,
                    log_excerpt,
                    correlated_event,
                    _now(),
                ),
            )
            self._conn.commit()
            row = self._conn.execute("SELECT * FROM log_analyses WHERE id = ?", (analysis_id,)).fetchone()
        return _row_to_analysis(row)

    def get_log_analysis_by_ticket_id(self, ticket_id: str) -> LogAnalysis | None:
        """The most recent analysis for a ticket."""
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM log_analyses WHERE ticket_id = ? ORDER BY seq DESC LIMIT 1",
                (ticket_id,),
            ).fetchone()
        return _row_to_analysis(row) if row is not None else None

    # ------------------------------------------------------------------
    # Counts (health endpoint)
    # ------------------------------------------------------------------

    def count(self, table: str) -> int:
        if table not in ("tickets", "messages", "kb_articles", "log_analyses"):
            msg = f"Unknown table: {table}"
            raise ValueError(msg)
        with self._lock:
            return self._conn.execute(f"SELECT COUNT(*) AS n FROM {table}").fetchone()["n"]


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_ticket(row: sqlite3.Row) -> Ticket:
    return Ticket(
        id=row["id"],
        ticket_number=row["ticket_number"],
        user_id=row["user_id"],
        user_name=row["user_name"],
        application=row["application"],
        description=row["description"],
        error_code=row["error_code"],
        status=row["status"],
        severity=row["severity"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_message(row: sqlite3.Row) -> Message:
    return Message(
        id=row["id"],
        ticket_id=row["ticket_id"],
        conversation_id=row["conversation_id"],
        role=row["role"],
        content=row["content"],
        timestamp=row["timestamp"],
    )


def _row_to_article(row: sqlite3.Row) -> KBArticle:
    return KBArticle(
        id=row["id"],
        title=row["title"],
        application=row["application"],
        problem=row["problem"],
        cause=row["cause"],
        solution=row["solution"],
        steps=json.loads(row["steps"]),
    )


def _row_to_analysis(row: sqlite3.Row) -> LogAnalysis:
    return LogAnalysis(
        id=row["id"],
        ticket_id=row["ticket_id"],
        error_pattern=row["error_pattern"],
        root_cause=row["root_cause"],
        suggested_fix=row["suggested_fix"],
        log_excerpt=row["log_excerpt"],
        correlated_event=row["correlated_event"],
        created_at=row["created_at"],
    )
