"""SQLite tournament store.

The ``rounds`` table and its triggers follow the persisted round contract:
the seven lifecycle statuses plus the legacy ``upcoming`` value, one round
number per tournament, and triggers that stamp ``completed_at`` and
``verified_at`` and advance ``tournaments.current_round``.
"""

# Swiss Arbiter
# Copyright (C) 2025  Swiss Arbiter developers
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <http://www.gnu.org/licenses/>.

import json
import sqlite3
import threading
from collections import defaultdict
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional

from dateutil.parser import isoparse

from swissarbiter.exceptions import (
    ConcurrencyConflictError,
    NotFoundError,
    ValidationError,
)
from swissarbiter.models import (
    AuditRecord,
    Game,
    Player,
    PlayerStatus,
    ResultType,
    ResultValue,
    Round,
    RoundStatus,
    Tournament,
    TournamentConfig,
)
from swissarbiter.storage.base import TournamentStore
from swissarbiter.utils import setup_logger

logger = setup_logger(__name__)


def _in_list(values) -> str:
    return ", ".join(f"'{v}'" for v in values)


ROUND_STATUSES = [s.value for s in RoundStatus] + ["upcoming"]

SCHEMA = f"""
CREATE TABLE IF NOT EXISTS tournaments (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    total_rounds INTEGER NOT NULL CHECK (total_rounds > 0),
    current_round INTEGER NOT NULL DEFAULT 0,
    pairing_system TEXT NOT NULL,
    config TEXT NOT NULL,
    results_version INTEGER NOT NULL DEFAULT 0,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS players (
    id TEXT PRIMARY KEY,
    tournament_id TEXT NOT NULL,
    name TEXT NOT NULL,
    rating INTEGER NOT NULL CHECK (rating BETWEEN 100 AND 4000),
    status TEXT NOT NULL CHECK (status IN ({_in_list(s.value for s in PlayerStatus)}))
        DEFAULT 'active',
    FOREIGN KEY (tournament_id) REFERENCES tournaments(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS rounds (
    id TEXT PRIMARY KEY,
    tournament_id TEXT NOT NULL,
    round_number INTEGER NOT NULL,
    status TEXT NOT NULL CHECK (status IN ({_in_list(ROUND_STATUSES)})) DEFAULT 'planned',
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
    completed_at DATETIME,
    verified_at DATETIME,
    verified_by TEXT,
    FOREIGN KEY (tournament_id) REFERENCES tournaments(id) ON DELETE CASCADE,
    UNIQUE(tournament_id, round_number)
);

CREATE TABLE IF NOT EXISTS games (
    id TEXT PRIMARY KEY,
    tournament_id TEXT NOT NULL,
    round_id TEXT NOT NULL,
    round_number INTEGER NOT NULL,
    board_number INTEGER NOT NULL CHECK (board_number > 0),
    white_player_id TEXT NOT NULL,
    black_player_id TEXT,
    result TEXT CHECK (result IS NULL OR result IN ({_in_list(v.value for v in ResultValue)})),
    result_type TEXT CHECK (
        result_type IS NULL OR result_type IN ({_in_list(t.value for t in ResultType)})
    ),
    result_reason TEXT,
    arbiter_notes TEXT,
    approved BOOLEAN NOT NULL DEFAULT FALSE,
    approved_by TEXT,
    last_updated DATETIME,
    FOREIGN KEY (tournament_id) REFERENCES tournaments(id) ON DELETE CASCADE,
    FOREIGN KEY (round_id) REFERENCES rounds(id) ON DELETE CASCADE,
    UNIQUE(round_id, board_number)
);

CREATE TABLE IF NOT EXISTS game_result_audit (
    id TEXT PRIMARY KEY,
    tournament_id TEXT NOT NULL,
    game_id TEXT NOT NULL,
    sequence INTEGER NOT NULL,
    old_result TEXT,
    new_result TEXT,
    old_result_type TEXT,
    new_result_type TEXT,
    reason TEXT,
    changed_by TEXT NOT NULL,
    changed_at DATETIME NOT NULL,
    approved BOOLEAN NOT NULL DEFAULT FALSE,
    FOREIGN KEY (game_id) REFERENCES games(id) ON DELETE CASCADE,
    UNIQUE(tournament_id, sequence)
);

CREATE INDEX IF NOT EXISTS idx_players_tournament_id ON players(tournament_id);
CREATE INDEX IF NOT EXISTS idx_rounds_tournament_id ON rounds(tournament_id);
CREATE INDEX IF NOT EXISTS idx_rounds_status ON rounds(tournament_id, status);
CREATE INDEX IF NOT EXISTS idx_games_round ON games(tournament_id, round_number);
CREATE INDEX IF NOT EXISTS idx_game_result_audit_game_id ON game_result_audit(game_id);

CREATE TRIGGER IF NOT EXISTS update_tournament_current_round
AFTER UPDATE OF status ON rounds
WHEN NEW.status = 'completed' AND OLD.status != 'completed'
BEGIN
    UPDATE tournaments
    SET current_round = NEW.round_number
    WHERE id = NEW.tournament_id AND current_round < NEW.round_number;
END;

CREATE TRIGGER IF NOT EXISTS set_round_verified_timestamp
AFTER UPDATE OF status ON rounds
WHEN NEW.status = 'verified' AND OLD.status != 'verified'
BEGIN
    UPDATE rounds
    SET verified_at = CURRENT_TIMESTAMP
    WHERE id = NEW.id AND verified_at IS NULL;
END;

CREATE TRIGGER IF NOT EXISTS set_round_completed_timestamp
AFTER UPDATE OF status ON rounds
WHEN (NEW.status = 'completed' OR NEW.status = 'verified')
     AND (OLD.status != 'completed' AND OLD.status != 'verified')
BEGIN
    UPDATE rounds
    SET completed_at = CURRENT_TIMESTAMP
    WHERE id = NEW.id AND completed_at IS NULL;
END;

CREATE TRIGGER IF NOT EXISTS game_result_audit_no_update
BEFORE UPDATE ON game_result_audit
BEGIN
    SELECT RAISE(ABORT, 'audit records are append-only');
END;

CREATE TRIGGER IF NOT EXISTS game_result_audit_no_delete
BEFORE DELETE ON game_result_audit
BEGIN
    SELECT RAISE(ABORT, 'audit records are append-only');
END;
"""


def _timestamp(value: Optional[str]) -> Optional[datetime]:
    return isoparse(value) if value else None


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class SqliteStore(TournamentStore):
    """Store backed by a single SQLite connection.

    Args:
        path: Database file, or ``":memory:"``
    """

    def __init__(self, path: str = ":memory:"):
        self.path = path
        # Autocommit; transaction() issues BEGIN/COMMIT itself
        self._conn = sqlite3.connect(path, check_same_thread=False, isolation_level=None)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON;")
        if path != ":memory:":
            self._conn.execute("PRAGMA journal_mode = WAL;")
        self._conn.executescript(SCHEMA)
        self._lock = threading.RLock()
        self._writers: Dict[str, threading.RLock] = defaultdict(threading.RLock)
        self._tx_depth = 0
        logger.debug(f"Connected to database: {path}")

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def _execute(self, sql: str, params: Any = ()) -> sqlite3.Cursor:
        with self._lock:
            return self._conn.execute(sql, params)

    def _one(self, sql: str, params: Any = ()) -> Optional[sqlite3.Row]:
        with self._lock:
            return self._conn.execute(sql, params).fetchone()

    def _all(self, sql: str, params: Any = ()) -> List[sqlite3.Row]:
        with self._lock:
            return self._conn.execute(sql, params).fetchall()

    # ========== Concurrency ==========

    def writer(self, tournament_id: str):
        with self._lock:
            return self._writers[tournament_id]

    @contextmanager
    def transaction(self, tournament_id: str) -> Iterator[None]:
        with self.writer(tournament_id), self._lock:
            outermost = self._tx_depth == 0
            if outermost:
                self._conn.execute("BEGIN IMMEDIATE")
            self._tx_depth += 1
            try:
                yield
            except BaseException:
                self._tx_depth -= 1
                if outermost:
                    self._conn.execute("ROLLBACK")
                    logger.warning(f"Rolled back transaction for tournament {tournament_id}")
                raise
            self._tx_depth -= 1
            if outermost:
                self._conn.execute("COMMIT")

    def results_version(self, tournament_id: str) -> int:
        row = self._one("SELECT results_version FROM tournaments WHERE id = ?", (tournament_id,))
        if row is None:
            raise NotFoundError("Tournament", tournament_id)
        return row["results_version"]

    def bump_results_version(self, tournament_id: str) -> int:
        with self._lock:
            self._execute(
                "UPDATE tournaments SET results_version = results_version + 1 WHERE id = ?",
                (tournament_id,),
            )
            return self.results_version(tournament_id)

    # ========== Tournaments ==========

    def add_tournament(self, tournament: Tournament) -> None:
        try:
            self._execute(
                "INSERT INTO tournaments (id, name, total_rounds, current_round, "
                "pairing_system, config, created_at) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    tournament.id,
                    tournament.name,
                    tournament.total_rounds,
                    tournament.current_round,
                    tournament.pairing_system,
                    json.dumps(tournament.config.to_dict()),
                    _iso(tournament.created_at),
                ),
            )
        except sqlite3.IntegrityError as e:
            raise ValidationError(f"Cannot add tournament: {e}", field="id") from e

    def get_tournament(self, tournament_id: str) -> Tournament:
        row = self._one("SELECT * FROM tournaments WHERE id = ?", (tournament_id,))
        if row is None:
            raise NotFoundError("Tournament", tournament_id)
        return Tournament(
            id=row["id"],
            name=row["name"],
            total_rounds=row["total_rounds"],
            config=TournamentConfig.from_dict(json.loads(row["config"])),
            pairing_system=row["pairing_system"],
            current_round=row["current_round"],
            created_at=_timestamp(row["created_at"]),
        )

    def advance_current_round(self, tournament_id: str, round_number: int) -> bool:
        cursor = self._execute(
            "UPDATE tournaments SET current_round = ? WHERE id = ? AND current_round < ?",
            (round_number, tournament_id, round_number),
        )
        return cursor.rowcount > 0

    # ========== Players ==========

    def add_player(self, player: Player) -> None:
        try:
            self._execute(
                "INSERT INTO players (id, tournament_id, name, rating, status) "
                "VALUES (?, ?, ?, ?, ?)",
                (player.id, player.tournament_id, player.name, player.rating, player.status.value),
            )
        except sqlite3.IntegrityError as e:
            raise ValidationError(f"Cannot add player: {e}") from e

    @staticmethod
    def _player(row: sqlite3.Row) -> Player:
        return Player.from_dict(dict(row))

    def get_player(self, player_id: str) -> Player:
        row = self._one("SELECT * FROM players WHERE id = ?", (player_id,))
        if row is None:
            raise NotFoundError("Player", player_id)
        return self._player(row)

    def list_players(self, tournament_id: str) -> List[Player]:
        rows = self._all(
            "SELECT * FROM players WHERE tournament_id = ? ORDER BY rowid", (tournament_id,)
        )
        return [self._player(row) for row in rows]

    def update_player_status(self, player_id: str, status: PlayerStatus) -> Player:
        with self._lock:
            cursor = self._execute(
                "UPDATE players SET status = ? WHERE id = ?",
                (PlayerStatus(status).value, player_id),
            )
            if cursor.rowcount == 0:
                raise NotFoundError("Player", player_id)
            return self.get_player(player_id)

    # ========== Rounds ==========

    def add_round(self, round_: Round) -> None:
        try:
            self._execute(
                "INSERT INTO rounds (id, tournament_id, round_number, status, created_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (
                    round_.id,
                    round_.tournament_id,
                    round_.round_number,
                    round_.status.value,
                    _iso(round_.created_at),
                ),
            )
        except sqlite3.IntegrityError as e:
            raise ValidationError(
                f"Round {round_.round_number} already exists in tournament "
                f"{round_.tournament_id!r}",
                field="round_number",
            ) from e

    @staticmethod
    def _round(row: sqlite3.Row) -> Round:
        return Round(
            id=row["id"],
            tournament_id=row["tournament_id"],
            round_number=row["round_number"],
            status=RoundStatus.parse(row["status"]),
            created_at=_timestamp(row["created_at"]),
            completed_at=_timestamp(row["completed_at"]),
            verified_at=_timestamp(row["verified_at"]),
            verified_by=row["verified_by"],
        )

    def get_round(self, round_id: str) -> Round:
        row = self._one("SELECT * FROM rounds WHERE id = ?", (round_id,))
        if row is None:
            raise NotFoundError("Round", round_id)
        return self._round(row)

    def find_round(self, tournament_id: str, round_number: int) -> Optional[Round]:
        row = self._one(
            "SELECT * FROM rounds WHERE tournament_id = ? AND round_number = ?",
            (tournament_id, round_number),
        )
        return self._round(row) if row else None

    def list_rounds(self, tournament_id: str) -> List[Round]:
        rows = self._all(
            "SELECT * FROM rounds WHERE tournament_id = ? ORDER BY round_number",
            (tournament_id,),
        )
        return [self._round(row) for row in rows]

    def compare_and_set_round(self, round_: Round, expected_status: RoundStatus) -> Round:
        with self._lock:
            # Legacy 'upcoming' rows are still 'planned'
            expected = [expected_status.value]
            if expected_status is RoundStatus.PLANNED:
                expected.append("upcoming")
            placeholders = ", ".join("?" for _ in expected)
            cursor = self._execute(
                "UPDATE rounds SET status = ?, completed_at = ?, verified_at = ?, "
                f"verified_by = ? WHERE id = ? AND status IN ({placeholders})",
                (
                    round_.status.value,
                    _iso(round_.completed_at),
                    _iso(round_.verified_at),
                    round_.verified_by,
                    round_.id,
                    *expected,
                ),
            )
            if cursor.rowcount == 0:
                stored = self.get_round(round_.id)
                raise ConcurrencyConflictError(
                    f"Round {stored.round_number} is '{stored.status.value}', "
                    f"not '{expected_status.value}'",
                    expected=expected_status,
                    actual=stored.status,
                )
            return self.get_round(round_.id)

    # ========== Games ==========

    @staticmethod
    def _game_params(game: Game) -> Dict[str, Any]:
        data = game.to_dict()
        data.pop("requires_approval")
        data["approved"] = int(game.approved)
        return data

    def add_games(self, games: List[Game]) -> None:
        if not games:
            return
        rows = [self._game_params(g) for g in games]
        columns = list(rows[0])
        sql = (
            f"INSERT INTO games ({', '.join(columns)}) "
            f"VALUES ({', '.join(':' + c for c in columns)})"
        )
        try:
            with self._lock:
                self._conn.executemany(sql, rows)
        except sqlite3.IntegrityError as e:
            raise ValidationError(f"Cannot add games: {e}", field="board_number") from e

    @staticmethod
    def _game(row: sqlite3.Row) -> Game:
        data = dict(row)
        data["approved"] = bool(data["approved"])
        return Game.from_dict(data)

    def get_game(self, game_id: str) -> Game:
        row = self._one("SELECT * FROM games WHERE id = ?", (game_id,))
        if row is None:
            raise NotFoundError("Game", game_id)
        return self._game(row)

    def list_games(self, tournament_id: str, round_number: Optional[int] = None) -> List[Game]:
        if round_number is None:
            rows = self._all(
                "SELECT * FROM games WHERE tournament_id = ? "
                "ORDER BY round_number, board_number",
                (tournament_id,),
            )
        else:
            rows = self._all(
                "SELECT * FROM games WHERE tournament_id = ? AND round_number = ? "
                "ORDER BY board_number",
                (tournament_id, round_number),
            )
        return [self._game(row) for row in rows]

    def save_game(self, game: Game) -> None:
        params = self._game_params(game)
        assignments = ", ".join(f"{c} = :{c}" for c in params if c != "id")
        cursor = self._execute(f"UPDATE games SET {assignments} WHERE id = :id", params)
        if cursor.rowcount == 0:
            raise NotFoundError("Game", game.id)

    # ========== Audit trail ==========

    def append_audit(self, tournament_id: str, record: AuditRecord) -> None:
        data = record.to_dict()
        data["tournament_id"] = tournament_id
        data["approved"] = int(record.approved)
        columns = list(data)
        self._execute(
            f"INSERT INTO game_result_audit ({', '.join(columns)}) "
            f"VALUES ({', '.join(':' + c for c in columns)})",
            data,
        )

    def list_audit(self, game_id: str) -> List[AuditRecord]:
        rows = self._all(
            "SELECT * FROM game_result_audit WHERE game_id = ? ORDER BY sequence", (game_id,)
        )
        return [AuditRecord.from_dict(dict(row)) for row in rows]

    def audit_length(self, tournament_id: str) -> int:
        row = self._one(
            "SELECT COUNT(*) AS n FROM game_result_audit WHERE tournament_id = ?",
            (tournament_id,),
        )
        return row["n"]
