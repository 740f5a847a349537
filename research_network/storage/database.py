"""
SQLite record store.

The schema is fixed and shared with the browser tooling that reads the same
file, so table and column names must not change. Sessions are stored as rows
of `conversations`, findings and task notes as rows of `messages`.

Writes are committed one statement at a time, except for a session's
citations, which land in a single transaction. A crash between steps can
still leave a session with findings but no citations;
`sessions_missing_citations` finds those.

Calls are serialized on one lock so the store can be used from worker
threads (`asyncio.to_thread`) as well as the event loop thread.
"""

import json
import logging
import os
import sqlite3
import threading
from typing import Any, Dict, Iterable, List, Optional

from research_network.core.logger import log_db_operation
from research_network.core.types import Citation, Finding, WorkerDescriptor

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS agents (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    personality_type TEXT NOT NULL,
    color TEXT NOT NULL,
    topics TEXT NOT NULL,
    style TEXT NOT NULL,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS conversations (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    topic TEXT NOT NULL,
    agent1_id INTEGER NOT NULL,
    agent2_id INTEGER NOT NULL,
    start_time DATETIME DEFAULT CURRENT_TIMESTAMP,
    end_time DATETIME,
    status TEXT DEFAULT 'active',
    FOREIGN KEY (agent1_id) REFERENCES agents (id),
    FOREIGN KEY (agent2_id) REFERENCES agents (id)
);

CREATE TABLE IF NOT EXISTS messages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    conversation_id INTEGER NOT NULL,
    speaker_id INTEGER NOT NULL,
    message TEXT NOT NULL,
    timestamp DATETIME DEFAULT CURRENT_TIMESTAMP,
    message_type TEXT DEFAULT 'text',
    FOREIGN KEY (conversation_id) REFERENCES conversations (id),
    FOREIGN KEY (speaker_id) REFERENCES agents (id)
);

CREATE TABLE IF NOT EXISTS agent_memory (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    agent_id INTEGER NOT NULL,
    memory_type TEXT NOT NULL,
    content TEXT NOT NULL,
    importance REAL DEFAULT 1.0,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
    last_accessed DATETIME DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (agent_id) REFERENCES agents (id)
);

CREATE TABLE IF NOT EXISTS network_connections (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    agent1_id INTEGER NOT NULL,
    agent2_id INTEGER NOT NULL,
    strength REAL DEFAULT 1.0,
    last_interaction DATETIME DEFAULT CURRENT_TIMESTAMP,
    interaction_count INTEGER DEFAULT 0,
    FOREIGN KEY (agent1_id) REFERENCES agents (id),
    FOREIGN KEY (agent2_id) REFERENCES agents (id)
);

CREATE TABLE IF NOT EXISTS citations (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id INTEGER NOT NULL,
    finding_id INTEGER NOT NULL,
    source_url TEXT,
    source_title TEXT,
    citation_text TEXT NOT NULL,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
);
"""

TABLES = ("agents", "conversations", "messages", "agent_memory", "network_connections", "citations")

# Sessions have no pair of speakers; rows point at the first two roster agents.
DEFAULT_SPEAKERS = (1, 2)

# Strength added to a collaboration edge per shared session.
CONNECTION_STEP = 0.1


class RecordStore:
    """Thin sqlite3 wrapper. Raises sqlite3.Error; callers decide whether a write is best effort."""

    def __init__(self, path: str = "data/agents.db"):
        self.path = path
        if path != ":memory:":
            directory = os.path.dirname(path)
            if directory:
                os.makedirs(directory, exist_ok=True)
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self.initialize()

    def initialize(self) -> None:
        with self._lock:
            self._conn.executescript(SCHEMA)
            self._conn.commit()
        log_db_operation("initialize", "*", "success", details=self.path)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def _execute(self, sql: str, params: Iterable[Any] = ()) -> sqlite3.Cursor:
        with self._lock:
            cursor = self._conn.execute(sql, tuple(params))
            self._conn.commit()
        return cursor

    def _rows(self, sql: str, params: Iterable[Any] = ()) -> List[Dict[str, Any]]:
        with self._lock:
            return [dict(row) for row in self._conn.execute(sql, tuple(params)).fetchall()]

    # Agents
    def seed_agents(self, roster: Iterable[WorkerDescriptor]) -> int:
        """Insert roster personas that are not stored yet. Returns the number inserted."""
        existing = {row["id"] for row in self._rows("SELECT id FROM agents")}
        inserted = 0
        for worker in roster:
            if worker.id in existing:
                continue
            self._execute(
                "INSERT INTO agents (id, name, personality_type, color, topics, style) VALUES (?, ?, ?, ?, ?, ?)",
                (worker.id, worker.name, worker.expertise, worker.color,
                 json.dumps([worker.expertise.replace("_", " ")]), worker.personality),
            )
            inserted += 1
        log_db_operation("seed", "agents", "success", details=f"{inserted} inserted")
        return inserted

    def list_agents(self) -> List[Dict[str, Any]]:
        agents = self._rows("SELECT * FROM agents ORDER BY id")
        for agent in agents:
            try:
                agent["topics"] = json.loads(agent["topics"])
            except (TypeError, ValueError):
                agent["topics"] = []
        return agents

    def get_agent(self, agent_id: int) -> Optional[Dict[str, Any]]:
        rows = self._rows("SELECT * FROM agents WHERE id = ?", (agent_id,))
        return rows[0] if rows else None

    def get_agent_messages(self, agent_id: int, limit: int = 10) -> List[Dict[str, Any]]:
        """An agent's most recent messages across all sessions, newest first."""
        return self._rows(
            "SELECT m.id, m.conversation_id, m.message, m.timestamp, m.message_type, "
            "a.name AS speaker_name, a.color AS speaker_color "
            "FROM messages m JOIN agents a ON m.speaker_id = a.id "
            "WHERE m.speaker_id = ? ORDER BY m.timestamp DESC, m.id DESC LIMIT ?",
            (agent_id, limit),
        )

    def count_agent_messages(self, agent_id: int) -> int:
        with self._lock:
            return self._conn.execute(
                "SELECT COUNT(*) FROM messages WHERE speaker_id = ?", (agent_id,)
            ).fetchone()[0]

    # Sessions
    def create_session(self, topic: str) -> int:
        cursor = self._execute(
            "INSERT INTO conversations (topic, agent1_id, agent2_id, status) VALUES (?, ?, ?, 'active')",
            (topic, *DEFAULT_SPEAKERS),
        )
        log_db_operation("insert", "conversations", "success", details=f"id={cursor.lastrowid}")
        return cursor.lastrowid

    def update_session_status(self, record_id: int, status: str, finished: bool = False) -> None:
        if finished:
            self._execute(
                "UPDATE conversations SET status = ?, end_time = CURRENT_TIMESTAMP WHERE id = ?",
                (status, record_id),
            )
        else:
            self._execute("UPDATE conversations SET status = ? WHERE id = ?", (status, record_id))
        log_db_operation("update", "conversations", "success", details=f"id={record_id} status={status}")

    def get_session(self, record_id: int) -> Optional[Dict[str, Any]]:
        rows = self._rows("SELECT * FROM conversations WHERE id = ?", (record_id,))
        return rows[0] if rows else None

    def list_sessions(self, limit: int = 50) -> List[Dict[str, Any]]:
        return self._rows("SELECT * FROM conversations ORDER BY id DESC LIMIT ?", (limit,))

    # Messages
    def add_message(self, record_id: int, speaker_id: int, message: str, message_type: str = "text") -> int:
        cursor = self._execute(
            "INSERT INTO messages (conversation_id, speaker_id, message, message_type) VALUES (?, ?, ?, ?)",
            (record_id, speaker_id, message, message_type),
        )
        return cursor.lastrowid

    def save_finding(self, record_id: int, finding: Finding) -> int:
        row_id = self.add_message(record_id, finding.agent_id, finding.content, "finding")
        log_db_operation("insert", "messages", "success", details=f"finding agent={finding.agent_id}")
        return row_id

    def get_messages(self, record_id: int, message_type: Optional[str] = None) -> List[Dict[str, Any]]:
        if message_type:
            return self._rows(
                "SELECT * FROM messages WHERE conversation_id = ? AND message_type = ? ORDER BY id",
                (record_id, message_type),
            )
        return self._rows("SELECT * FROM messages WHERE conversation_id = ? ORDER BY id", (record_id,))

    # Agent memory
    def remember(self, agent_id: int, memory_type: str, content: str, importance: float = 1.0) -> int:
        cursor = self._execute(
            "INSERT INTO agent_memory (agent_id, memory_type, content, importance) VALUES (?, ?, ?, ?)",
            (agent_id, memory_type, content, importance),
        )
        return cursor.lastrowid

    def recall(self, agent_id: int, limit: int = 10) -> List[Dict[str, Any]]:
        rows = self._rows(
            "SELECT * FROM agent_memory WHERE agent_id = ? ORDER BY importance DESC, id DESC LIMIT ?",
            (agent_id, limit),
        )
        if rows:
            self._execute(
                f"UPDATE agent_memory SET last_accessed = CURRENT_TIMESTAMP WHERE id IN ({','.join('?' * len(rows))})",
                [row["id"] for row in rows],
            )
        return rows

    # Network connections
    def record_collaboration(self, agent_ids: Iterable[int]) -> None:
        """Strengthen the edge between every pair of agents that worked on one session."""
        ids = sorted(set(agent_ids))
        for i, first in enumerate(ids):
            for second in ids[i + 1:]:
                rows = self._rows(
                    "SELECT id FROM network_connections WHERE agent1_id = ? AND agent2_id = ?",
                    (first, second),
                )
                if rows:
                    self._execute(
                        "UPDATE network_connections SET strength = MIN(strength + ?, 10.0), "
                        "interaction_count = interaction_count + 1, last_interaction = CURRENT_TIMESTAMP "
                        "WHERE id = ?",
                        (CONNECTION_STEP, rows[0]["id"]),
                    )
                else:
                    self._execute(
                        "INSERT INTO network_connections (agent1_id, agent2_id, interaction_count) VALUES (?, ?, 1)",
                        (first, second),
                    )
        log_db_operation("upsert", "network_connections", "success", details=f"agents={ids}")

    def list_connections(self) -> List[Dict[str, Any]]:
        return self._rows("SELECT * FROM network_connections ORDER BY agent1_id, agent2_id")

    # Citations
    def save_citations(self, session_key: Any, citations: Iterable[Citation]) -> int:
        """Insert all of a session's citations in one transaction: all rows or none."""
        rows = [
            (session_key, citation.finding_id, citation.source_url,
             citation.source_title, citation.citation_text)
            for citation in citations
        ]
        with self._lock:
            # The connection context manager commits, or rolls back on error.
            with self._conn:
                self._conn.executemany(
                    "INSERT INTO citations (session_id, finding_id, source_url, source_title, citation_text) "
                    "VALUES (?, ?, ?, ?, ?)",
                    rows,
                )
        log_db_operation("insert", "citations", "success", details=f"{len(rows)} rows")
        return len(rows)

    def get_citations(self, session_key: Any) -> List[Dict[str, Any]]:
        return self._rows("SELECT * FROM citations WHERE session_id = ? ORDER BY id", (session_key,))

    def sessions_missing_citations(self) -> List[Dict[str, Any]]:
        """
        Sessions with stored findings but no citations that did not fail.

        Covers completed sessions whose citation write was lost as well as
        sessions interrupted mid-pipeline, whose last stored status is
        'executing' or 'synthesizing'. A session still running in this process
        also matches until its citations are written, so check at startup.
        """
        return self._rows(
            "SELECT c.* FROM conversations c "
            "WHERE c.status != 'failed' "
            "AND EXISTS (SELECT 1 FROM messages m WHERE m.conversation_id = c.id AND m.message_type = 'finding') "
            "AND NOT EXISTS (SELECT 1 FROM citations ci WHERE ci.session_id = c.id) "
            "ORDER BY c.id"
        )

    def counts(self) -> Dict[str, int]:
        with self._lock:
            return {table: self._conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0] for table in TABLES}
