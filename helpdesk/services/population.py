from __future__ import annotations

from typing import Any

from database.models import (
    CategoryRecord,
    QuestionRecord,
    TicketComment,
    TicketRecord,
    UpgradeRequestRecord,
    UserRecord,
)
from database.repositories import CategoryRepository, UserRepository


def _user_ref(users: dict[str, UserRecord], user_id: str | None) -> dict[str, Any] | None:
    user = users.get(user_id) if user_id else None
    return user.summary() if user else None


def _category_ref(categories: dict[str, CategoryRecord], category_id: str | None) -> dict[str, Any] | None:
    category = categories.get(category_id) if category_id else None
    return category.summary() if category else None


def ticket_payload(
    ticket: TicketRecord,
    users: dict[str, UserRecord],
    categories: dict[str, CategoryRecord],
) -> dict[str, Any]:
    return {
        "id": ticket.id,
        "title": ticket.title,
        "description": ticket.description,
        "category": _category_ref(categories, ticket.category_id),
        "priority": ticket.priority,
        "status": ticket.status,
        "tags": list(ticket.tags),
        "createdBy": _user_ref(users, ticket.created_by_id),
        "assignedTo": _user_ref(users, ticket.assigned_to_id),
        "assignedAt": ticket.assigned_at,
        "createdAt": ticket.created_at,
        "updatedAt": ticket.updated_at,
    }


def question_payload(
    question: QuestionRecord,
    users: dict[str, UserRecord],
    categories: dict[str, CategoryRecord],
) -> dict[str, Any]:
    return {
        "id": question.id,
        "title": question.title,
        "description": question.description,
        "category": _category_ref(categories, question.category_id),
        "tags": list(question.tags),
        "createdBy": _user_ref(users, question.created_by_id),
        "upvotes": question.upvotes,
        "downvotes": question.downvotes,
        "score": question.score,
        "answers": [
            {
                "id": answer.id,
                "content": answer.content,
                "author": _user_ref(users, answer.author_id),
                "createdAt": answer.created_at,
            }
            for answer in question.answers
        ],
        "createdAt": question.created_at,
        "updatedAt": question.updated_at,
    }


def comment_payload(comment: TicketComment, users: dict[str, UserRecord]) -> dict[str, Any]:
    return {
        "id": comment.id,
        "ticket": comment.ticket_id,
        "author": _user_ref(users, comment.author_id),
        "content": comment.content,
        "isInternal": comment.is_internal,
        "createdAt": comment.created_at,
    }


def upgrade_payload(request: UpgradeRequestRecord, users: dict[str, UserRecord]) -> dict[str, Any]:
    return {
        "id": request.id,
        "requester": _user_ref(users, request.requester_id),
        "requestedRole": request.requested_role,
        "status": request.status,
        "resolvedBy": _user_ref(users, request.resolved_by_id),
        "resolvedAt": request.resolved_at,
        "createdAt": request.created_at,
    }


class ReadJoiner:
    """Resolves user and category references with one batched lookup per collection."""

    def __init__(self, user_repo: UserRepository, category_repo: CategoryRepository) -> None:
        self.user_repo = user_repo
        self.category_repo = category_repo

    async def tickets(self, tickets: list[TicketRecord]) -> list[dict[str, Any]]:
        users = await self.user_repo.get_many(
            [t.created_by_id for t in tickets] + [t.assigned_to_id for t in tickets]
        )
        categories = await self.category_repo.get_many(t.category_id for t in tickets)
        return [ticket_payload(ticket, users, categories) for ticket in tickets]

    async def ticket(self, ticket: TicketRecord) -> dict[str, Any]:
        return (await self.tickets([ticket]))[0]

    async def questions(self, questions: list[QuestionRecord]) -> list[dict[str, Any]]:
        user_ids: list[str | None] = []
        for question in questions:
            user_ids.append(question.created_by_id)
            user_ids.extend(answer.author_id for answer in question.answers)
        users = await self.user_repo.get_many(user_ids)
        categories = await self.category_repo.get_many(q.category_id for q in questions)
        return [question_payload(question, users, categories) for question in questions]

    async def question(self, question: QuestionRecord) -> dict[str, Any]:
        return (await self.questions([question]))[0]

    async def comments(self, comments: list[TicketComment]) -> list[dict[str, Any]]:
        users = await self.user_repo.get_many(c.author_id for c in comments)
        return [comment_payload(comment, users) for comment in comments]

    async def upgrade_requests(self, requests: list[UpgradeRequestRecord]) -> list[dict[str, Any]]:
        users = await self.user_repo.get_many(
            [r.requester_id for r in requests] + [r.resolved_by_id for r in requests]
        )
        return [upgrade_payload(request, users) for request in requests]
