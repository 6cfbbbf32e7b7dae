"""
Persistent Vibe Store — SQLite backing for results and the lexicon.

Two tables:
  - vibe_cache: term → embedding, axes, neighbors, narrative
  - lexicon:    term → frequency, embedding (neighbor search corpus)

The in-memory ResultCache sits in front of vibe_cache; this store only
adds durability beyond the process lifetime. Writes are single-row
upserts.
"""

from __future__ import annotations

import json
import sqlite3
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional, Sequence

from vibescope.errors import ProviderError
from vibescope.neighbors import Neighbor, NeighborStore, rank_neighbors


class PersistentStore(ABC):
    """Durable term → result storage."""

    @abstractmethod
    def upsert(
        self,
        term: str,
        embedding: Sequence[float],
        axes: dict[str, float],
        neighbors: list[Neighbor],
    ) -> None:
        ...

    @abstractmethod
    def get(self, term: str) -> Optional[dict]:
        """Return {term, embedding, axes, neighbors, narrative} or None."""
        ...

    @abstractmethod
    def set_narrative(self, term: str, narrative: str) -> None:
        ...


class SQLiteVibeStore(PersistentStore):
    """Vibe results and lexicon backed by SQLite."""

    def __init__(self, db_path: str = "vibescope.db"):
        self.db_path = db_path
        self._lock = threading.Lock()
        self._init_db()

    def _init_db(self):
        with self._get_conn() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS vibe_cache (
                    term TEXT PRIMARY KEY,
                    embedding TEXT NOT NULL,
                    axes TEXT NOT NULL,
                    neighbors TEXT NOT NULL,
                    narrative TEXT,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS lexicon (
                    term TEXT PRIMARY KEY,
                    freq REAL NOT NULL DEFAULT 1.0,
                    embedding TEXT
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_lexicon_freq
                ON lexicon(freq)
            """)
            conn.commit()

    def _get_conn(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    # --- vibe_cache ---

    def upsert(
        self,
        term: str,
        embedding: Sequence[float],
        axes: dict[str, float],
        neighbors: list[Neighbor],
    ) -> None:
        with self._lock:
            with self._get_conn() as conn:
                conn.execute(
                    """INSERT INTO vibe_cache (term, embedding, axes, neighbors, updated_at)
                       VALUES (?, ?, ?, ?, ?)
                       ON CONFLICT(term) DO UPDATE SET
                           embedding = excluded.embedding,
                           axes = excluded.axes,
                           neighbors = excluded.neighbors,
                           updated_at = excluded.updated_at""",
                    (
                        term,
                        json.dumps(list(embedding)),
                        json.dumps(axes),
                        json.dumps([n.to_dict() for n in neighbors]),
                        datetime.now(timezone.utc).isoformat(),
                    ),
                )
                conn.commit()

    def get(self, term: str) -> Optional[dict]:
        try:
            with self._get_conn() as conn:
                row = conn.execute(
                    """SELECT term, embedding, axes, neighbors, narrative
                       FROM vibe_cache WHERE term = ?""",
                    (term,),
                ).fetchone()
        except sqlite3.Error as e:
            raise ProviderError(f"Vibe store read failed: {e}") from e
        if row is None:
            return None
        return {
            "term": row[0],
            "embedding": json.loads(row[1]),
            "axes": json.loads(row[2]),
            "neighbors": [Neighbor.from_dict(n) for n in json.loads(row[3])],
            "narrative": row[4],
        }

    def set_narrative(self, term: str, narrative: str) -> None:
        with self._lock:
            with self._get_conn() as conn:
                conn.execute(
                    "UPDATE vibe_cache SET narrative = ? WHERE term = ?",
                    (narrative, term),
                )
                conn.commit()

    def get_count(self) -> int:
        with self._get_conn() as conn:
            row = conn.execute("SELECT COUNT(*) FROM vibe_cache").fetchone()
            return row[0] if row else 0

    # --- lexicon ---

    def upsert_lexicon_term(
        self,
        term: str,
        embedding: Optional[Sequence[float]] = None,
        freq: float = 1.0,
    ) -> None:
        with self._lock:
            with self._get_conn() as conn:
                conn.execute(
                    """INSERT INTO lexicon (term, freq, embedding) VALUES (?, ?, ?)
                       ON CONFLICT(term) DO UPDATE SET
                           freq = excluded.freq,
                           embedding = COALESCE(excluded.embedding, lexicon.embedding)""",
                    (term, freq, json.dumps(list(embedding)) if embedding is not None else None),
                )
                conn.commit()

    def set_lexicon_embedding(self, term: str, embedding: Sequence[float]) -> None:
        """Attach an embedding to an existing lexicon term (frequency untouched)."""
        with self._lock:
            with self._get_conn() as conn:
                conn.execute(
                    "UPDATE lexicon SET embedding = ? WHERE term = ?",
                    (json.dumps(list(embedding)), term),
                )
                conn.commit()

    def terms_missing_embeddings(self, limit: int = 100) -> list[str]:
        """Most frequent lexicon terms that still have no embedding."""
        with self._get_conn() as conn:
            rows = conn.execute(
                """SELECT term FROM lexicon WHERE embedding IS NULL
                   ORDER BY freq DESC LIMIT ?""",
                (limit,),
            ).fetchall()
        return [r[0] for r in rows]

    def iter_lexicon(self, min_frequency: Optional[float] = None):
        """Yield (term, embedding) for every embedded lexicon term."""
        with self._get_conn() as conn:
            if min_frequency is None:
                rows = conn.execute(
                    "SELECT term, embedding FROM lexicon WHERE embedding IS NOT NULL"
                ).fetchall()
            else:
                rows = conn.execute(
                    """SELECT term, embedding FROM lexicon
                       WHERE embedding IS NOT NULL AND freq >= ?""",
                    (min_frequency,),
                ).fetchall()
        for term, embedding in rows:
            yield term, json.loads(embedding)

    def lexicon_count(self) -> int:
        with self._get_conn() as conn:
            row = conn.execute("SELECT COUNT(*) FROM lexicon").fetchone()
            return row[0] if row else 0


class SQLiteLexicon(NeighborStore):
    """Brute-force L2 neighbor search over the SQLite lexicon table."""

    def __init__(self, store: SQLiteVibeStore):
        self._store = store

    async def nearest_neighbors(
        self,
        embedding: Sequence[float],
        limit: int,
        min_frequency: Optional[float] = None,
    ) -> list[Neighbor]:
        try:
            candidates = list(self._store.iter_lexicon(min_frequency))
        except sqlite3.Error as e:
            raise ProviderError(f"Lexicon lookup failed: {e}") from e
        return rank_neighbors(embedding, candidates, limit)
