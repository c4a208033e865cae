"""
PostgreSQL persistence layer for Timbre Service.
"""

from contextlib import asynccontextmanager
from dataclasses import fields
from typing import Any, AsyncIterator, List, Optional, Sequence, Tuple

import asyncpg
from shared.logging import get_logger
from shared.errors import AccessLayerException
from ..models import TimbreRecord, VoiceCloneRecord, TrainStatus


TIMBRE_COLUMNS = [f.name for f in fields(TimbreRecord)]

# Columns an update may touch; identity and audit-of-creation stay fixed
UPDATABLE_COLUMNS = [
    c for c in TIMBRE_COLUMNS
    if c not in ("id", "creator", "create_date", "update_date")
]


def _rows_affected(status: str) -> int:
    """Parse the row count out of a command status such as 'DELETE 3'."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (ValueError, AttributeError):
        return 0


class PostgreSQLPersistence:
    """Owns the connection pool and transaction boundaries."""

    def __init__(self, dsn: str, min_size: int = 2, max_size: int = 10, command_timeout: float = 30):
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self.command_timeout = command_timeout
        self.logger = get_logger("timbre.persistence.postgres")
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self):
        """Start the persistence layer."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=self.min_size,
                max_size=self.max_size,
                command_timeout=self.command_timeout
            )

            await self._create_tables()

            self.logger.info("PostgreSQL persistence started")

        except Exception as e:
            self.logger.error("Failed to start PostgreSQL persistence", error=str(e))
            raise AccessLayerException("POSTGRES_START_FAILED", str(e))

    async def stop(self):
        """Stop the persistence layer."""
        if self.pool:
            await self.pool.close()
            self.logger.info("PostgreSQL persistence stopped")

    async def _create_tables(self):
        """Create database tables."""
        async with self.pool.acquire() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS ai_tts_voice (
                    id VARCHAR(32) PRIMARY KEY,
                    tts_model_id VARCHAR(32) NOT NULL,
                    name VARCHAR(64) NOT NULL,
                    tts_voice VARCHAR(64),
                    languages VARCHAR(255),
                    remark VARCHAR(255),
                    reference_audio VARCHAR(500),
                    reference_text VARCHAR(500),
                    sort INTEGER NOT NULL DEFAULT 0,
                    voice_demo VARCHAR(500),
                    creator BIGINT,
                    create_date TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),
                    updater BIGINT,
                    update_date TIMESTAMP WITH TIME ZONE
                );
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_tts_voice_model ON ai_tts_voice(tts_model_id);
            """)

    @asynccontextmanager
    async def connection(self, conn: Optional[asyncpg.Connection] = None) -> AsyncIterator[asyncpg.Connection]:
        """Yield ``conn`` when given, otherwise a pooled connection."""
        if conn is not None:
            yield conn
            return
        async with self.pool.acquire() as pooled:
            yield pooled

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """Yield a connection inside a transaction; any exception rolls it back."""
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield conn

    async def health_check(self) -> bool:
        """Check database health."""
        try:
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
                return True
        except Exception:
            return False


class TimbreRepository:
    """Queries against the ai_tts_voice table."""

    def __init__(self, persistence: PostgreSQLPersistence):
        self.persistence = persistence
        self.logger = get_logger("timbre.persistence.timbres")

    @staticmethod
    def _filters(tts_model_id: str, name: Optional[str] = None,
                 tts_voice: Optional[str] = None) -> Tuple[str, List[Any]]:
        clauses = ["tts_model_id = $1"]
        args: List[Any] = [tts_model_id]
        if tts_voice is not None:
            args.append(tts_voice)
            clauses.append(f"tts_voice = ${len(args)}")
        if name:
            args.append(name)
            clauses.append(f"name LIKE '%' || ${len(args)} || '%'")
        return " AND ".join(clauses), args

    async def page(self, page: int, limit: int, tts_model_id: str,
                   name: Optional[str] = None) -> Tuple[List[TimbreRecord], int]:
        """Fetch one page of timbres plus the total matching count."""
        where, args = self._filters(tts_model_id, name)
        offset = (page - 1) * limit
        async with self.persistence.connection() as conn:
            total = await conn.fetchval(f"SELECT COUNT(*) FROM ai_tts_voice WHERE {where}", *args)
            rows = await conn.fetch(
                f"SELECT * FROM ai_tts_voice WHERE {where} "
                f"ORDER BY sort ASC, id ASC LIMIT ${len(args) + 1} OFFSET ${len(args) + 2}",
                *args, limit, offset
            )
        return [self._row_to_record(row) for row in rows], total or 0

    async def select_by_id(self, timbre_id: str, conn=None) -> Optional[TimbreRecord]:
        async with self.persistence.connection(conn) as c:
            row = await c.fetchrow("SELECT * FROM ai_tts_voice WHERE id = $1", timbre_id)
        return self._row_to_record(row) if row else None

    async def select_list(self, tts_model_id: str, name: Optional[str] = None,
                          tts_voice: Optional[str] = None, conn=None) -> List[TimbreRecord]:
        where, args = self._filters(tts_model_id, name, tts_voice)
        async with self.persistence.connection(conn) as c:
            rows = await c.fetch(f"SELECT * FROM ai_tts_voice WHERE {where} ORDER BY sort ASC, id ASC", *args)
        return [self._row_to_record(row) for row in rows]

    async def insert(self, record: TimbreRecord, conn=None):
        columns = [c for c in TIMBRE_COLUMNS if c not in ("create_date", "update_date")]
        placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
        async with self.persistence.connection(conn) as c:
            await c.execute(
                f"INSERT INTO ai_tts_voice ({', '.join(columns)}, create_date, update_date) "
                f"VALUES ({placeholders}, NOW(), NOW())",
                *[getattr(record, col) for col in columns]
            )
        self.logger.info("Timbre inserted", timbre_id=record.id, tts_model_id=record.tts_model_id)

    async def update_by_id(self, record: TimbreRecord, conn=None) -> int:
        """Update the non-null fields of ``record``; returns rows affected."""
        assignments = []
        args: List[Any] = [record.id]
        for col in UPDATABLE_COLUMNS:
            value = getattr(record, col)
            if value is None:
                continue
            args.append(value)
            assignments.append(f"{col} = ${len(args)}")
        assignments.append("update_date = NOW()")

        async with self.persistence.connection(conn) as c:
            status = await c.execute(
                f"UPDATE ai_tts_voice SET {', '.join(assignments)} WHERE id = $1",
                *args
            )
        affected = _rows_affected(status)
        self.logger.info("Timbre updated", timbre_id=record.id, rows=affected)
        return affected

    async def delete_batch_ids(self, ids: Sequence[str], conn=None) -> int:
        if not ids:
            return 0
        async with self.persistence.connection(conn) as c:
            status = await c.execute("DELETE FROM ai_tts_voice WHERE id = ANY($1::varchar[])", list(ids))
        affected = _rows_affected(status)
        self.logger.info("Timbres deleted", ids=list(ids), rows=affected)
        return affected

    @staticmethod
    def _row_to_record(row) -> TimbreRecord:
        """Convert database row to TimbreRecord."""
        return TimbreRecord(**{col: row[col] for col in TIMBRE_COLUMNS})


class VoiceCloneRepository:
    """Read-only queries against the ai_voice_clone table."""

    def __init__(self, persistence: PostgreSQLPersistence):
        self.persistence = persistence

    async def select_by_id(self, clone_id: str, conn=None) -> Optional[VoiceCloneRecord]:
        async with self.persistence.connection(conn) as c:
            row = await c.fetchrow("""
                SELECT id, name, model_id, voice_id, languages, user_id, train_status, train_error
                FROM ai_voice_clone WHERE id = $1
            """, clone_id)
        return self._row_to_record(row) if row else None

    async def get_train_success(self, model_id: Optional[str], user_id: int, conn=None) -> List[VoiceCloneRecord]:
        """Clones owned by ``user_id`` for ``model_id`` that finished training."""
        async with self.persistence.connection(conn) as c:
            rows = await c.fetch("""
                SELECT id, name, model_id, voice_id, languages, user_id, train_status, train_error
                FROM ai_voice_clone
                WHERE model_id = $1 AND user_id = $2 AND train_status = $3
            """, model_id, user_id, int(TrainStatus.SUCCESS))
        return [self._row_to_record(row) for row in rows]

    @staticmethod
    def _row_to_record(row) -> VoiceCloneRecord:
        return VoiceCloneRecord(
            id=row['id'],
            name=row['name'],
            model_id=row['model_id'],
            voice_id=row['voice_id'],
            languages=row['languages'],
            user_id=row['user_id'],
            train_status=TrainStatus(row['train_status']),
            train_error=row['train_error']
        )
