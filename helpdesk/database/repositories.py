from __future__ import annotations

import json
from collections.abc import Iterable
from typing import Any
from uuid import uuid4

from core.errors import ConflictError
from database.base import Database, DuplicateKeyError, placeholders
from database.models import (
    AnswerRecord,
    CategoryRecord,
    QuestionRecord,
    TicketComment,
    TicketRecord,
    UpgradeRequestRecord,
    UserRecord,
)
from utils.time import now_iso


def _json_load(value: str | None, default: Any) -> Any:
    if value is None:
        return default
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return default


def _json_dump(value: Any) -> str:
    return json.dumps(value, ensure_ascii=True, separators=(",", ":"))


def _unique(ids: Iterable[str | None]) -> list[str]:
    return sorted({item for item in ids if item})


def _set_clause(fields: dict[str, Any]) -> tuple[str, list[Any]]:
    assignments = [f"{column} = ?" for column in fields]
    assignments.append("updated_at = ?")
    return ", ".join(assignments), [*fields.values(), now_iso()]


class UserRepository:
    UPDATABLE = {"name", "email", "role", "language", "categories_of_interest"}

    def __init__(self, db: Database) -> None:
        self.db = db

    async def create(self, user: UserRecord) -> None:
        try:
            await self._insert(user)
        except DuplicateKeyError as exc:
            raise ConflictError("User with this email already exists") from exc

    async def _insert(self, user: UserRecord) -> None:
        await self.db.execute(
            """
            INSERT INTO users(
                id, name, email, password_hash, role, language,
                categories_of_interest_json, created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            [
                user.id,
                user.name,
                user.email,
                user.password_hash,
                user.role,
                user.language,
                _json_dump(user.categories_of_interest),
                user.created_at,
                user.updated_at,
            ],
        )

    async def get_by_id(self, user_id: str) -> UserRecord | None:
        row = await self.db.fetchone("SELECT * FROM users WHERE id = ?;", [user_id])
        if not row:
            return None
        return self._row_to_user(row)

    async def get_by_email(self, email: str) -> UserRecord | None:
        row = await self.db.fetchone("SELECT * FROM users WHERE email = ?;", [email])
        if not row:
            return None
        return self._row_to_user(row)

    async def get_many(self, user_ids: Iterable[str | None]) -> dict[str, UserRecord]:
        ids = _unique(user_ids)
        if not ids:
            return {}
        rows = await self.db.fetchall(
            f"SELECT * FROM users WHERE id IN ({placeholders(len(ids))});",
            ids,
        )
        return {row["id"]: self._row_to_user(row) for row in rows}

    async def list_all(self) -> list[UserRecord]:
        rows = await self.db.fetchall("SELECT * FROM users ORDER BY created_at ASC;")
        return [self._row_to_user(row) for row in rows]

    async def list_recent(self, limit: int = 5) -> list[UserRecord]:
        rows = await self.db.fetchall(
            "SELECT * FROM users ORDER BY created_at DESC LIMIT ?;",
            [limit],
        )
        return [self._row_to_user(row) for row in rows]

    async def list_by_roles(self, roles: Iterable[str]) -> list[UserRecord]:
        wanted = sorted(set(roles))
        rows = await self.db.fetchall(
            f"SELECT * FROM users WHERE role IN ({placeholders(len(wanted))}) ORDER BY name ASC;",
            wanted,
        )
        return [self._row_to_user(row) for row in rows]

    async def update_fields(self, user_id: str, fields: dict[str, Any]) -> bool:
        unknown = set(fields) - self.UPDATABLE
        if unknown:
            raise ValueError(f"Unsupported user fields: {sorted(unknown)}")
        columns = dict(fields)
        if "categories_of_interest" in columns:
            columns["categories_of_interest_json"] = _json_dump(columns.pop("categories_of_interest"))
        if not columns:
            return await self.get_by_id(user_id) is not None
        clause, params = _set_clause(columns)
        try:
            affected = await self.db.execute(
                f"UPDATE users SET {clause} WHERE id = ?;",
                [*params, user_id],
            )
        except DuplicateKeyError as exc:
            raise ConflictError("Email already in use") from exc
        return affected > 0

    async def set_password_hash(self, user_id: str, password_hash: str) -> bool:
        affected = await self.db.execute(
            "UPDATE users SET password_hash = ?, updated_at = ? WHERE id = ?;",
            [password_hash, now_iso(), user_id],
        )
        return affected > 0

    async def set_role_many(self, user_ids: list[str], role: str) -> int:
        return await self.db.execute(
            f"""
            UPDATE users
            SET role = ?, updated_at = ?
            WHERE id IN ({placeholders(len(user_ids))}) AND role <> ?;
            """,
            [role, now_iso(), *user_ids, role],
        )

    async def delete(self, user_id: str) -> bool:
        affected = await self.db.execute("DELETE FROM users WHERE id = ?;", [user_id])
        return affected > 0

    async def delete_many(self, user_ids: list[str]) -> int:
        return await self.db.execute(
            f"DELETE FROM users WHERE id IN ({placeholders(len(user_ids))});",
            user_ids,
        )

    async def count(self, role: str | None = None) -> int:
        if role is None:
            value = await self.db.fetchval("SELECT COUNT(*) AS count FROM users;")
        else:
            value = await self.db.fetchval("SELECT COUNT(*) AS count FROM users WHERE role = ?;", [role])
        return int(value or 0)

    def _row_to_user(self, row: dict[str, Any]) -> UserRecord:
        return UserRecord(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            password_hash=row["password_hash"],
            role=row["role"],
            language=row["language"],
            categories_of_interest=[str(x) for x in _json_load(row["categories_of_interest_json"], [])],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


class CategoryRepository:
    UPDATABLE = {"name", "description", "color"}

    def __init__(self, db: Database) -> None:
        self.db = db

    async def create(self, category: CategoryRecord) -> None:
        await self.db.execute(
            """
            INSERT INTO categories(id, name, description, color, created_by_id, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?);
            """,
            [
                category.id,
                category.name,
                category.description,
                category.color,
                category.created_by_id,
                category.created_at,
                category.updated_at,
            ],
        )

    async def get(self, category_id: str) -> CategoryRecord | None:
        row = await self.db.fetchone("SELECT * FROM categories WHERE id = ?;", [category_id])
        if not row:
            return None
        return self._row_to_category(row)

    async def get_many(self, category_ids: Iterable[str | None]) -> dict[str, CategoryRecord]:
        ids = _unique(category_ids)
        if not ids:
            return {}
        rows = await self.db.fetchall(
            f"SELECT * FROM categories WHERE id IN ({placeholders(len(ids))});",
            ids,
        )
        return {row["id"]: self._row_to_category(row) for row in rows}

    async def list_all(self) -> list[CategoryRecord]:
        rows = await self.db.fetchall("SELECT * FROM categories ORDER BY name ASC;")
        return [self._row_to_category(row) for row in rows]

    async def update_fields(self, category_id: str, fields: dict[str, Any]) -> bool:
        unknown = set(fields) - self.UPDATABLE
        if unknown:
            raise ValueError(f"Unsupported category fields: {sorted(unknown)}")
        if not fields:
            return await self.get(category_id) is not None
        clause, params = _set_clause(fields)
        affected = await self.db.execute(
            f"UPDATE categories SET {clause} WHERE id = ?;",
            [*params, category_id],
        )
        return affected > 0

    async def delete(self, category_id: str) -> bool:
        affected = await self.db.execute("DELETE FROM categories WHERE id = ?;", [category_id])
        return affected > 0

    async def count(self) -> int:
        return int(await self.db.fetchval("SELECT COUNT(*) AS count FROM categories;") or 0)

    def _row_to_category(self, row: dict[str, Any]) -> CategoryRecord:
        return CategoryRecord(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            color=row["color"],
            created_by_id=row["created_by_id"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


class TicketRepository:
    UPDATABLE = {"title", "description", "category_id", "priority", "tags"}

    def __init__(self, db: Database) -> None:
        self.db = db

    async def create(self, ticket: TicketRecord) -> None:
        await self.db.execute(
            """
            INSERT INTO tickets(
                id, title, description, category_id, priority, status, tags_json,
                created_by_id, assigned_to_id, assigned_at, created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            [
                ticket.id,
                ticket.title,
                ticket.description,
                ticket.category_id,
                ticket.priority,
                ticket.status,
                _json_dump(ticket.tags),
                ticket.created_by_id,
                ticket.assigned_to_id,
                ticket.assigned_at,
                ticket.created_at,
                ticket.updated_at,
            ],
        )

    async def get_by_id(self, ticket_id: str) -> TicketRecord | None:
        row = await self.db.fetchone("SELECT * FROM tickets WHERE id = ?;", [ticket_id])
        if not row:
            return None
        return self._row_to_ticket(row)

    async def list_all(self) -> list[TicketRecord]:
        rows = await self.db.fetchall("SELECT * FROM tickets ORDER BY created_at DESC;")
        return [self._row_to_ticket(row) for row in rows]

    async def list_by_creator(self, user_id: str) -> list[TicketRecord]:
        rows = await self.db.fetchall(
            "SELECT * FROM tickets WHERE created_by_id = ? ORDER BY created_at DESC;",
            [user_id],
        )
        return [self._row_to_ticket(row) for row in rows]

    async def list_assigned_to(self, user_id: str) -> list[TicketRecord]:
        rows = await self.db.fetchall(
            "SELECT * FROM tickets WHERE assigned_to_id = ? ORDER BY created_at DESC;",
            [user_id],
        )
        return [self._row_to_ticket(row) for row in rows]

    async def list_recent(self, limit: int = 5) -> list[TicketRecord]:
        rows = await self.db.fetchall(
            "SELECT * FROM tickets ORDER BY created_at DESC LIMIT ?;",
            [limit],
        )
        return [self._row_to_ticket(row) for row in rows]

    async def count_open_by_creator(self, user_id: str) -> int:
        value = await self.db.fetchval(
            "SELECT COUNT(*) AS count FROM tickets WHERE created_by_id = ? AND status <> 'closed';",
            [user_id],
        )
        return int(value or 0)

    async def count(self, status: str | None = None) -> int:
        if status is None:
            value = await self.db.fetchval("SELECT COUNT(*) AS count FROM tickets;")
        else:
            value = await self.db.fetchval("SELECT COUNT(*) AS count FROM tickets WHERE status = ?;", [status])
        return int(value or 0)

    async def claim(self, ticket_id: str, assignee_id: str) -> bool:
        stamp = now_iso()
        affected = await self.db.execute(
            """
            UPDATE tickets
            SET assigned_to_id = ?, assigned_at = ?, updated_at = ?
            WHERE id = ? AND assigned_to_id IS NULL AND status = 'open';
            """,
            [assignee_id, stamp, stamp, ticket_id],
        )
        return affected == 1

    async def release(self, ticket_id: str) -> bool:
        affected = await self.db.execute(
            """
            UPDATE tickets
            SET assigned_to_id = NULL, assigned_at = NULL, updated_at = ?
            WHERE id = ? AND assigned_to_id IS NOT NULL AND status <> 'closed';
            """,
            [now_iso(), ticket_id],
        )
        return affected == 1

    async def set_status(self, ticket_id: str, status: str) -> bool:
        affected = await self.db.execute(
            """
            UPDATE tickets
            SET status = ?, updated_at = ?
            WHERE id = ? AND status <> 'closed';
            """,
            [status, now_iso(), ticket_id],
        )
        return affected == 1

    async def update_fields(self, ticket_id: str, fields: dict[str, Any]) -> bool:
        unknown = set(fields) - self.UPDATABLE
        if unknown:
            raise ValueError(f"Unsupported ticket fields: {sorted(unknown)}")
        columns = dict(fields)
        if "tags" in columns:
            columns["tags_json"] = _json_dump(columns.pop("tags"))
        if not columns:
            return await self.get_by_id(ticket_id) is not None
        clause, params = _set_clause(columns)
        affected = await self.db.execute(
            f"UPDATE tickets SET {clause} WHERE id = ? AND status <> 'closed';",
            [*params, ticket_id],
        )
        return affected == 1

    async def delete(self, ticket_id: str) -> bool:
        affected = await self.db.execute("DELETE FROM tickets WHERE id = ?;", [ticket_id])
        return affected > 0

    def _row_to_ticket(self, row: dict[str, Any]) -> TicketRecord:
        return TicketRecord(
            id=row["id"],
            title=row["title"],
            description=row["description"],
            created_by_id=row["created_by_id"],
            category_id=row["category_id"],
            priority=row["priority"],
            status=row["status"],
            tags=[str(x) for x in _json_load(row["tags_json"], [])],
            assigned_to_id=row["assigned_to_id"],
            assigned_at=row["assigned_at"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


class CommentRepository:
    def __init__(self, db: Database) -> None:
        self.db = db

    async def add(self, comment: TicketComment) -> None:
        await self.db.execute(
            """
            INSERT INTO ticket_comments(id, ticket_id, author_id, content, is_internal, created_at)
            VALUES (?, ?, ?, ?, ?, ?);
            """,
            [
                comment.id,
                comment.ticket_id,
                comment.author_id,
                comment.content,
                1 if comment.is_internal else 0,
                comment.created_at,
            ],
        )

    async def list_for_ticket(self, ticket_id: str, include_internal: bool) -> list[TicketComment]:
        query = "SELECT * FROM ticket_comments WHERE ticket_id = ?"
        if not include_internal:
            query += " AND is_internal = 0"
        rows = await self.db.fetchall(query + " ORDER BY created_at ASC;", [ticket_id])
        return [
            TicketComment(
                id=row["id"],
                ticket_id=row["ticket_id"],
                author_id=row["author_id"],
                content=row["content"],
                is_internal=bool(row["is_internal"]),
                created_at=row["created_at"],
            )
            for row in rows
        ]

    async def delete_for_ticket(self, ticket_id: str) -> int:
        return await self.db.execute("DELETE FROM ticket_comments WHERE ticket_id = ?;", [ticket_id])


class QuestionRepository:
    UPDATABLE = {"title", "description", "category_id", "tags"}

    def __init__(self, db: Database) -> None:
        self.db = db

    async def create(self, question: QuestionRecord) -> None:
        await self.db.execute(
            """
            INSERT INTO questions(
                id, title, description, tags_json, category_id, created_by_id, created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?);
            """,
            [
                question.id,
                question.title,
                question.description,
                _json_dump(question.tags),
                question.category_id,
                question.created_by_id,
                question.created_at,
                question.updated_at,
            ],
        )

    async def get_by_id(self, question_id: str) -> QuestionRecord | None:
        row = await self.db.fetchone("SELECT * FROM questions WHERE id = ?;", [question_id])
        if not row:
            return None
        questions = await self._hydrate([row])
        return questions[0]

    async def list_all(self) -> list[QuestionRecord]:
        rows = await self.db.fetchall("SELECT * FROM questions ORDER BY created_at DESC;")
        return await self._hydrate(rows)

    async def update_fields(self, question_id: str, fields: dict[str, Any]) -> bool:
        unknown = set(fields) - self.UPDATABLE
        if unknown:
            raise ValueError(f"Unsupported question fields: {sorted(unknown)}")
        columns = dict(fields)
        if "tags" in columns:
            columns["tags_json"] = _json_dump(columns.pop("tags"))
        if not columns:
            return await self.get_by_id(question_id) is not None
        clause, params = _set_clause(columns)
        affected = await self.db.execute(
            f"UPDATE questions SET {clause} WHERE id = ?;",
            [*params, question_id],
        )
        return affected > 0

    async def delete(self, question_id: str) -> bool:
        affected = await self.db.execute("DELETE FROM questions WHERE id = ?;", [question_id])
        if affected:
            await self.db.execute("DELETE FROM question_answers WHERE question_id = ?;", [question_id])
            await self.db.execute("DELETE FROM question_votes WHERE question_id = ?;", [question_id])
        return affected > 0

    async def add_answer(self, answer: AnswerRecord) -> None:
        await self.db.execute(
            """
            INSERT INTO question_answers(id, question_id, author_id, content, created_at)
            VALUES (?, ?, ?, ?, ?);
            """,
            [answer.id, answer.question_id, answer.author_id, answer.content, answer.created_at],
        )

    async def cast_vote(self, question_id: str, user_id: str, direction: str) -> None:
        await self.db.execute(
            """
            INSERT INTO question_votes(question_id, user_id, direction, created_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(question_id, user_id) DO UPDATE SET direction = excluded.direction;
            """,
            [question_id, user_id, direction, now_iso()],
        )

    async def count(self) -> int:
        return int(await self.db.fetchval("SELECT COUNT(*) AS count FROM questions;") or 0)

    async def _hydrate(self, rows: list[dict[str, Any]]) -> list[QuestionRecord]:
        if not rows:
            return []
        ids = [row["id"] for row in rows]
        marks = placeholders(len(ids))
        vote_rows = await self.db.fetchall(
            f"""
            SELECT question_id, direction, COUNT(*) AS count
            FROM question_votes
            WHERE question_id IN ({marks})
            GROUP BY question_id, direction;
            """,
            ids,
        )
        answer_rows = await self.db.fetchall(
            f"""
            SELECT * FROM question_answers
            WHERE question_id IN ({marks})
            ORDER BY created_at ASC;
            """,
            ids,
        )
        votes: dict[str, dict[str, int]] = {}
        for row in vote_rows:
            votes.setdefault(row["question_id"], {})[row["direction"]] = int(row["count"])
        answers: dict[str, list[AnswerRecord]] = {}
        for row in answer_rows:
            answers.setdefault(row["question_id"], []).append(
                AnswerRecord(
                    id=row["id"],
                    question_id=row["question_id"],
                    author_id=row["author_id"],
                    content=row["content"],
                    created_at=row["created_at"],
                )
            )
        return [
            QuestionRecord(
                id=row["id"],
                title=row["title"],
                description=row["description"],
                created_by_id=row["created_by_id"],
                category_id=row["category_id"],
                tags=[str(x) for x in _json_load(row["tags_json"], [])],
                upvotes=votes.get(row["id"], {}).get("up", 0),
                downvotes=votes.get(row["id"], {}).get("down", 0),
                answers=answers.get(row["id"], []),
                created_at=row["created_at"],
                updated_at=row["updated_at"],
            )
            for row in rows
        ]


class UpgradeRequestRepository:
    def __init__(self, db: Database) -> None:
        self.db = db

    async def create(self, request: UpgradeRequestRecord) -> None:
        await self.db.execute(
            """
            INSERT INTO role_upgrade_requests(id, requester_id, requested_role, status, created_at)
            VALUES (?, ?, ?, ?, ?);
            """,
            [request.id, request.requester_id, request.requested_role, request.status, request.created_at],
        )

    async def get(self, request_id: str) -> UpgradeRequestRecord | None:
        row = await self.db.fetchone("SELECT * FROM role_upgrade_requests WHERE id = ?;", [request_id])
        if not row:
            return None
        return self._row_to_request(row)

    async def get_pending_for(self, requester_id: str) -> UpgradeRequestRecord | None:
        row = await self.db.fetchone(
            "SELECT * FROM role_upgrade_requests WHERE requester_id = ? AND status = 'pending';",
            [requester_id],
        )
        if not row:
            return None
        return self._row_to_request(row)

    async def list_all(self, status: str | None = None) -> list[UpgradeRequestRecord]:
        if status is None:
            rows = await self.db.fetchall("SELECT * FROM role_upgrade_requests ORDER BY created_at DESC;")
        else:
            rows = await self.db.fetchall(
                "SELECT * FROM role_upgrade_requests WHERE status = ? ORDER BY created_at DESC;",
                [status],
            )
        return [self._row_to_request(row) for row in rows]

    async def resolve(self, request_id: str, status: str, resolved_by_id: str) -> bool:
        affected = await self.db.execute(
            """
            UPDATE role_upgrade_requests
            SET status = ?, resolved_by_id = ?, resolved_at = ?
            WHERE id = ? AND status = 'pending';
            """,
            [status, resolved_by_id, now_iso(), request_id],
        )
        return affected == 1

    async def count(self, status: str | None = None) -> int:
        if status is None:
            value = await self.db.fetchval("SELECT COUNT(*) AS count FROM role_upgrade_requests;")
        else:
            value = await self.db.fetchval(
                "SELECT COUNT(*) AS count FROM role_upgrade_requests WHERE status = ?;",
                [status],
            )
        return int(value or 0)

    def _row_to_request(self, row: dict[str, Any]) -> UpgradeRequestRecord:
        return UpgradeRequestRecord(
            id=row["id"],
            requester_id=row["requester_id"],
            requested_role=row["requested_role"],
            status=row["status"],
            resolved_by_id=row["resolved_by_id"],
            resolved_at=row["resolved_at"],
            created_at=row["created_at"],
        )


class AuditRepository:
    def __init__(self, db: Database) -> None:
        self.db = db

    async def log(
        self,
        actor_id: str | None,
        action: str,
        target_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        await self.db.execute(
            """
            INSERT INTO audit_logs(id, actor_id, action, target_id, metadata_json, created_at)
            VALUES (?, ?, ?, ?, ?, ?);
            """,
            [str(uuid4()), actor_id, action, target_id, _json_dump(metadata or {}), now_iso()],
        )

    async def list_recent(self, limit: int = 50) -> list[dict[str, Any]]:
        rows = await self.db.fetchall(
            "SELECT * FROM audit_logs ORDER BY created_at DESC LIMIT ?;",
            [limit],
        )
        for row in rows:
            row["metadata"] = _json_load(row.pop("metadata_json", None), {})
        return rows


class AnalyticsRepository:
    def __init__(self, db: Database) -> None:
        self.db = db

    async def table_counts(self) -> list[dict[str, Any]]:
        stats: list[dict[str, Any]] = []
        for table in await self.db.list_tables():
            count = await self.db.fetchval(f"SELECT COUNT(*) AS count FROM {table};")
            stats.append(
                {
                    "name": table,
                    "count": int(count or 0),
                    "indexes": await self.db.count_indexes(table),
                }
            )
        return stats

    async def clear_tables(self, tables: list[str]) -> int:
        # Callers pass names from a fixed allow-list only.
        deleted = 0
        for table in tables:
            deleted += await self.db.execute(f"DELETE FROM {table};")
        return deleted
