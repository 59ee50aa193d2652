"""Persistence layer for cached historical games and tuned scoring models."""

from __future__ import annotations

import os
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional

from showdown.models import HistoricalGame, TunedModel


_DB_PATH_ENV = "SHOWDOWN_DB_PATH"


class ShowdownStore:
    """Simple SQLite-backed key-value store for games and models.

    Every write is an upsert keyed by id, so repeating one is harmless and
    writes to different ids need no ordering.
    """

    def __init__(self, db_path: Path | str):
        self._use_uri = False
        env_db = os.getenv(_DB_PATH_ENV)
        if env_db:
            if env_db.startswith("file:"):
                self.db_path: Path | str = env_db
                self._use_uri = True
            else:
                self.db_path = Path(env_db)
        elif isinstance(db_path, str) and db_path.startswith("file:"):
            self.db_path = db_path
            self._use_uri = True
        else:
            self.db_path = Path(db_path)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        if isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self.db_path)
        else:
            conn = sqlite3.connect(self.db_path, uri=self._use_uri)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            self._create_schema(conn)

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS games (
                id TEXT PRIMARY KEY,
                description TEXT NOT NULL,
                payload_json TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS models (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                validation_mae REAL,
                created_at TEXT NOT NULL,
                payload_json TEXT NOT NULL
            )
            """
        )
        conn.commit()

    # --- Historical games -------------------------------------------------

    def get_game(self, game_id: str) -> Optional[HistoricalGame]:
        with self._connect() as conn:
            row = conn.execute("SELECT payload_json FROM games WHERE id = ?", (game_id,)).fetchone()
        if row is None:
            return None
        return HistoricalGame.model_validate_json(row["payload_json"])

    def put_game(self, game: HistoricalGame) -> None:
        now_iso = datetime.now(timezone.utc).isoformat()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO games (id, description, payload_json, created_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    description = excluded.description,
                    payload_json = excluded.payload_json
                """,
                (game.game_id, game.description, game.model_dump_json(), now_iso),
            )
            conn.commit()

    def delete_game(self, game_id: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM games WHERE id = ?", (game_id,))
            conn.commit()

    def count_games(self) -> int:
        with self._connect() as conn:
            row = conn.execute("SELECT COUNT(*) AS total FROM games").fetchone()
        return int(row["total"])

    def list_game_ids(self) -> List[str]:
        with self._connect() as conn:
            rows = conn.execute("SELECT id FROM games ORDER BY id").fetchall()
        return [row["id"] for row in rows]

    def iter_games(self) -> Iterator[HistoricalGame]:
        with self._connect() as conn:
            rows = conn.execute("SELECT payload_json FROM games ORDER BY id").fetchall()
        for row in rows:
            yield HistoricalGame.model_validate_json(row["payload_json"])

    def list_games(self) -> List[HistoricalGame]:
        return list(self.iter_games())

    # --- Tuned models -----------------------------------------------------

    def get_model(self, model_id: str) -> Optional[TunedModel]:
        with self._connect() as conn:
            row = conn.execute("SELECT payload_json FROM models WHERE id = ?", (model_id,)).fetchone()
        if row is None:
            return None
        return TunedModel.model_validate_json(row["payload_json"])

    def put_model(self, model: TunedModel) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO models (id, name, validation_mae, created_at, payload_json)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name,
                    validation_mae = excluded.validation_mae,
                    created_at = excluded.created_at,
                    payload_json = excluded.payload_json
                """,
                (
                    model.id,
                    model.name,
                    model.performance.validation_mae,
                    model.created_at.isoformat(),
                    model.model_dump_json(),
                ),
            )
            conn.commit()

    def delete_model(self, model_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM models WHERE id = ?", (model_id,))
            conn.commit()
        return cursor.rowcount > 0

    def list_models(self, limit: int | None = None) -> List[TunedModel]:
        """Models by validation MAE ascending (unvalidated last), newest first on ties."""

        query = (
            "SELECT payload_json FROM models "
            "ORDER BY validation_mae IS NULL, validation_mae ASC, created_at DESC"
        )
        params: tuple = ()
        if limit is not None:
            query += " LIMIT ?"
            params = (limit,)
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [TunedModel.model_validate_json(row["payload_json"]) for row in rows]
