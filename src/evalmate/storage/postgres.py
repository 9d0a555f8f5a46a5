"""PostgreSQL-backed storage with automatic table migration."""

from __future__ import annotations

import json
import threading
import uuid
from datetime import UTC, datetime
from typing import Any

from evalmate.errors import DuplicatePaymentError
from evalmate.storage.models import EvaluationStatus, PaymentRecord, TaskRecord, UserProfile


class PostgresEvaluationStore:
    """Persist tasks, profiles, and payments in PostgreSQL.

    Owner scoping is applied in every query by ``user_id``.
    """

    def __init__(self, database_url: str) -> None:
        if not database_url:
            raise ValueError("EVALMATE_DATABASE_URL is required")
        self.database_url = database_url
        self._lock = threading.Lock()
        self._psycopg, self._dict_row, self._json_wrapper = self._load_psycopg()

    def migrate(self) -> None:
        with self._lock, self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS user_profiles (
                    user_id UUID PRIMARY KEY,
                    full_name TEXT,
                    avatar_url TEXT,
                    credits_balance INTEGER NOT NULL DEFAULT 0,
                    premium_user BOOLEAN NOT NULL DEFAULT FALSE,
                    premium_since TIMESTAMPTZ,
                    created_at TIMESTAMPTZ NOT NULL,
                    updated_at TIMESTAMPTZ NOT NULL
                )
                """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS tasks (
                    task_id UUID PRIMARY KEY,
                    user_id UUID NOT NULL,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL,
                    code_content TEXT,
                    language TEXT,
                    evaluation_status TEXT NOT NULL DEFAULT 'pending'
                        CHECK (evaluation_status IN ('pending', 'processing', 'completed', 'failed')),
                    ai_evaluation JSONB,
                    report_unlocked BOOLEAN NOT NULL DEFAULT FALSE,
                    created_at TIMESTAMPTZ NOT NULL,
                    updated_at TIMESTAMPTZ NOT NULL
                )
                """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_tasks_user_id
                ON tasks(user_id)
                """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_tasks_evaluation_status
                ON tasks(evaluation_status)
                """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS payments (
                    payment_id UUID PRIMARY KEY,
                    user_id UUID NOT NULL,
                    task_id UUID REFERENCES tasks(task_id) ON DELETE SET NULL,
                    gateway_payment_id TEXT NOT NULL UNIQUE,
                    amount INTEGER NOT NULL,
                    currency TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'pending'
                        CHECK (status IN ('pending', 'completed', 'failed', 'refunded')),
                    created_at TIMESTAMPTZ NOT NULL,
                    updated_at TIMESTAMPTZ NOT NULL
                )
                """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_payments_user_id
                ON payments(user_id)
                """)
            conn.commit()

    def create_task(
        self,
        *,
        user_id: str,
        title: str,
        description: str,
        code_content: str | None,
        language: str | None,
    ) -> TaskRecord:
        task_id = uuid.uuid4()
        now = datetime.now(tz=UTC)
        with self._lock, self._connect() as conn:
            row = conn.execute(
                """
                INSERT INTO tasks (
                    task_id,
                    user_id,
                    title,
                    description,
                    code_content,
                    language,
                    evaluation_status,
                    ai_evaluation,
                    report_unlocked,
                    created_at,
                    updated_at
                ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING *
                """,
                (
                    task_id,
                    user_id,
                    title,
                    description,
                    code_content,
                    language,
                    "pending",
                    None,
                    False,
                    now,
                    now,
                ),
            ).fetchone()
            conn.commit()
        if row is None:
            raise RuntimeError("Failed to persist task")
        return self._row_to_task(row)

    def get_task(self, task_id: str, *, user_id: str | None = None) -> TaskRecord | None:
        query = "SELECT * FROM tasks WHERE task_id::text = %s"
        params: tuple[Any, ...] = (task_id,)
        if user_id is not None:
            query += " AND user_id::text = %s"
            params = (task_id, user_id)
        with self._lock, self._connect() as conn:
            row = conn.execute(query, params).fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    def list_tasks(self, user_id: str) -> list[TaskRecord]:
        with self._lock, self._connect() as conn:
            rows = conn.execute(
                """
                SELECT *
                FROM tasks
                WHERE user_id::text = %s
                ORDER BY created_at DESC
                """,
                (user_id,),
            ).fetchall()
        return [self._row_to_task(row) for row in rows]

    def delete_task(self, task_id: str, *, user_id: str) -> bool:
        with self._lock, self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM tasks WHERE task_id::text = %s AND user_id::text = %s",
                (task_id, user_id),
            )
            conn.commit()
        return cursor.rowcount > 0

    def begin_evaluation(self, task_id: str, *, user_id: str) -> TaskRecord | None:
        with self._lock, self._connect() as conn:
            row = conn.execute(
                """
                UPDATE tasks
                SET evaluation_status = 'processing',
                    updated_at = %s
                WHERE task_id::text = %s
                  AND user_id::text = %s
                  AND evaluation_status <> 'processing'
                RETURNING *
                """,
                (datetime.now(tz=UTC), task_id, user_id),
            ).fetchone()
            conn.commit()
        if row is None:
            return None
        return self._row_to_task(row)

    def update_task(
        self,
        task_id: str,
        *,
        status: EvaluationStatus,
        evaluation: dict[str, Any] | None,
    ) -> TaskRecord:
        with self._lock, self._connect() as conn:
            row = conn.execute(
                """
                UPDATE tasks
                SET evaluation_status = %s,
                    ai_evaluation = %s,
                    updated_at = %s
                WHERE task_id::text = %s
                RETURNING *
                """,
                (
                    status,
                    self._json_wrapper(evaluation) if evaluation is not None else None,
                    datetime.now(tz=UTC),
                    task_id,
                ),
            ).fetchone()
            conn.commit()
        if row is None:
            raise KeyError(f"Task {task_id} does not exist")
        return self._row_to_task(row)

    def unlock_task_report(self, task_id: str, *, user_id: str) -> TaskRecord | None:
        with self._lock, self._connect() as conn:
            row = conn.execute(
                """
                UPDATE tasks
                SET report_unlocked = TRUE,
                    updated_at = %s
                WHERE task_id::text = %s
                  AND user_id::text = %s
                RETURNING *
                """,
                (datetime.now(tz=UTC), task_id, user_id),
            ).fetchone()
            conn.commit()
        if row is None:
            return None
        return self._row_to_task(row)

    def get_or_create_profile(self, user_id: str) -> UserProfile:
        with self._lock, self._connect() as conn:
            row = self._ensure_profile(conn, user_id)
            conn.commit()
        return self._row_to_profile(row)

    def update_profile(
        self,
        user_id: str,
        *,
        full_name: str | None,
        avatar_url: str | None,
    ) -> UserProfile:
        with self._lock, self._connect() as conn:
            self._ensure_profile(conn, user_id)
            row = conn.execute(
                """
                UPDATE user_profiles
                SET full_name = COALESCE(%s, full_name),
                    avatar_url = COALESCE(%s, avatar_url),
                    updated_at = %s
                WHERE user_id::text = %s
                RETURNING *
                """,
                (full_name, avatar_url, datetime.now(tz=UTC), user_id),
            ).fetchone()
            conn.commit()
        if row is None:
            raise KeyError(f"Profile {user_id} does not exist")
        return self._row_to_profile(row)

    def grant_premium(self, user_id: str, *, since: datetime) -> UserProfile:
        with self._lock, self._connect() as conn:
            self._ensure_profile(conn, user_id)
            row = conn.execute(
                """
                UPDATE user_profiles
                SET premium_user = TRUE,
                    premium_since = COALESCE(premium_since, %s),
                    updated_at = %s
                WHERE user_id::text = %s
                RETURNING *
                """,
                (since, datetime.now(tz=UTC), user_id),
            ).fetchone()
            conn.commit()
        if row is None:
            raise KeyError(f"Profile {user_id} does not exist")
        return self._row_to_profile(row)

    def insert_payment(
        self,
        *,
        user_id: str,
        task_id: str | None,
        gateway_payment_id: str,
        amount: int,
        currency: str,
    ) -> PaymentRecord:
        now = datetime.now(tz=UTC)
        with self._lock, self._connect() as conn:
            row = conn.execute(
                """
                INSERT INTO payments (
                    payment_id,
                    user_id,
                    task_id,
                    gateway_payment_id,
                    amount,
                    currency,
                    status,
                    created_at,
                    updated_at
                ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                ON CONFLICT (gateway_payment_id) DO NOTHING
                RETURNING *
                """,
                (
                    uuid.uuid4(),
                    user_id,
                    task_id,
                    gateway_payment_id,
                    amount,
                    currency,
                    "completed",
                    now,
                    now,
                ),
            ).fetchone()
            conn.commit()
        if row is None:
            raise DuplicatePaymentError(gateway_payment_id)
        return self._row_to_payment(row)

    def get_payment(self, gateway_payment_id: str) -> PaymentRecord | None:
        with self._lock, self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM payments WHERE gateway_payment_id = %s",
                (gateway_payment_id,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_payment(row)

    def list_payments(self, user_id: str) -> list[PaymentRecord]:
        with self._lock, self._connect() as conn:
            rows = conn.execute(
                """
                SELECT *
                FROM payments
                WHERE user_id::text = %s
                ORDER BY created_at DESC
                """,
                (user_id,),
            ).fetchall()
        return [self._row_to_payment(row) for row in rows]

    def _connect(self) -> Any:
        return self._psycopg.connect(self.database_url, row_factory=self._dict_row)

    @staticmethod
    def _ensure_profile(conn: Any, user_id: str) -> Any:
        now = datetime.now(tz=UTC)
        conn.execute(
            """
            INSERT INTO user_profiles (user_id, created_at, updated_at)
            VALUES (%s, %s, %s)
            ON CONFLICT (user_id) DO NOTHING
            """,
            (user_id, now, now),
        )
        return conn.execute(
            "SELECT * FROM user_profiles WHERE user_id::text = %s",
            (user_id,),
        ).fetchone()

    @staticmethod
    def _load_psycopg() -> tuple[Any, Any, Any]:
        try:
            import psycopg
            from psycopg.rows import dict_row
            from psycopg.types.json import Json
        except ImportError as exc:  # pragma: no cover
            raise RuntimeError(
                "PostgreSQL storage requires psycopg. "
                'Install with: python -m pip install "psycopg[binary]>=3.2,<4.0"'
            ) from exc
        return psycopg, dict_row, Json

    @staticmethod
    def _parse_json_optional(raw: Any) -> dict[str, Any] | None:
        if raw is None:
            return None
        if isinstance(raw, str):
            parsed = json.loads(raw)
        else:
            parsed = raw
        if isinstance(parsed, dict):
            return parsed
        return None

    @staticmethod
    def _parse_datetime(raw: Any) -> datetime:
        if isinstance(raw, datetime):
            return raw
        if isinstance(raw, str):
            return datetime.fromisoformat(raw)
        raise TypeError(f"Unsupported datetime value: {type(raw)!r}")

    @classmethod
    def _row_to_task(cls, row: Any) -> TaskRecord:
        return TaskRecord(
            task_id=str(row["task_id"]),
            user_id=str(row["user_id"]),
            title=row["title"],
            description=row["description"],
            code_content=row["code_content"],
            language=row["language"],
            evaluation_status=row["evaluation_status"],
            ai_evaluation=cls._parse_json_optional(row["ai_evaluation"]),
            report_unlocked=bool(row["report_unlocked"]),
            created_at=cls._parse_datetime(row["created_at"]),
            updated_at=cls._parse_datetime(row["updated_at"]),
        )

    @classmethod
    def _row_to_profile(cls, row: Any) -> UserProfile:
        premium_since = row.get("premium_since")
        return UserProfile(
            user_id=str(row["user_id"]),
            full_name=row["full_name"],
            avatar_url=row["avatar_url"],
            credits_balance=int(row["credits_balance"] or 0),
            premium_user=bool(row["premium_user"]),
            premium_since=cls._parse_datetime(premium_since) if premium_since else None,
            created_at=cls._parse_datetime(row["created_at"]),
            updated_at=cls._parse_datetime(row["updated_at"]),
        )

    @classmethod
    def _row_to_payment(cls, row: Any) -> PaymentRecord:
        task_id = row.get("task_id")
        return PaymentRecord(
            payment_id=str(row["payment_id"]),
            user_id=str(row["user_id"]),
            task_id=str(task_id) if task_id is not None else None,
            gateway_payment_id=row["gateway_payment_id"],
            amount=int(row["amount"]),
            currency=row["currency"],
            status=row["status"],
            created_at=cls._parse_datetime(row["created_at"]),
            updated_at=cls._parse_datetime(row["updated_at"]),
        )
