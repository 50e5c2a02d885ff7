from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class UserRecord:
    id: str
    name: str
    email: str
    password_hash: str
    role: str = "user"
    language: str = "en"
    categories_of_interest: list[str] = field(default_factory=list)
    created_at: str | None = None
    updated_at: str | None = None

    def public(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "language": self.language,
            "categoryInInterest": list(self.categories_of_interest),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    def summary(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "email": self.email}


@dataclass(slots=True)
class CategoryRecord:
    id: str
    name: str
    description: str = ""
    color: str = "#6b7280"
    created_by_id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    def public(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "color": self.color,
            "createdBy": self.created_by_id,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    def summary(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "color": self.color}


@dataclass(slots=True)
class TicketRecord:
    id: str
    title: str
    description: str
    created_by_id: str
    category_id: str | None = None
    priority: str = "medium"
    status: str = "open"
    tags: list[str] = field(default_factory=list)
    assigned_to_id: str | None = None
    assigned_at: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(slots=True)
class TicketComment:
    id: str
    ticket_id: str
    author_id: str
    content: str
    is_internal: bool = False
    created_at: str | None = None


@dataclass(slots=True)
class AnswerRecord:
    id: str
    question_id: str
    author_id: str
    content: str
    created_at: str | None = None


@dataclass(slots=True)
class QuestionRecord:
    id: str
    title: str
    description: str
    created_by_id: str
    category_id: str | None = None
    tags: list[str] = field(default_factory=list)
    upvotes: int = 0
    downvotes: int = 0
    answers: list[AnswerRecord] = field(default_factory=list)
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def score(self) -> int:
        return self.upvotes - self.downvotes


@dataclass(slots=True)
class UpgradeRequestRecord:
    id: str
    requester_id: str
    requested_role: str = "agent"
    status: str = "pending"
    resolved_by_id: str | None = None
    resolved_at: str | None = None
    created_at: str | None = None
