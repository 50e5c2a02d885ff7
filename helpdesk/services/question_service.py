from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any
from uuid import uuid4

from core.errors import NotFoundError, PermissionDeniedError, ValidationError
from database.models import AnswerRecord, QuestionRecord, UserRecord
from database.repositories import CategoryRepository, QuestionRepository
from services.population import ReadJoiner
from services.security_service import SecurityService
from services.ticket_service import is_admin
from utils.search import matches_search, matches_value
from utils.time import now_iso
from utils.validation import normalize_tags, optional_text, require_text, validate_vote

LOGGER = logging.getLogger(__name__)

QUESTION_SEARCH_FIELDS = ("title", "description", "tags")
MAX_PAGE_SIZE = 100


@dataclass(slots=True)
class QuestionPage:
    questions: list[dict[str, Any]]
    page: int
    limit: int
    total: int

    @property
    def pages(self) -> int:
        return max(math.ceil(self.total / self.limit), 1) if self.limit else 1

    def as_payload(self) -> dict[str, Any]:
        return {
            "questions": self.questions,
            "pagination": {
                "page": self.page,
                "limit": self.limit,
                "total": self.total,
                "pages": self.pages,
            },
        }


class QuestionService:
    def __init__(
        self,
        question_repo: QuestionRepository,
        category_repo: CategoryRepository,
        joiner: ReadJoiner,
        security: SecurityService,
    ) -> None:
        self.question_repo = question_repo
        self.category_repo = category_repo
        self.joiner = joiner
        self.security = security

    async def _get(self, question_id: str) -> QuestionRecord:
        question = await self.question_repo.get_by_id(question_id)
        if not question:
            raise NotFoundError("Question not found")
        return question

    async def _resolve_category(self, category_id: Any) -> str | None:
        cleaned = optional_text(category_id)
        if cleaned is None:
            return None
        if await self.category_repo.get(cleaned) is None:
            raise ValidationError(f"Unknown category: {cleaned}")
        return cleaned

    def _ensure_owner(self, actor: UserRecord, question: QuestionRecord) -> None:
        if question.created_by_id != actor.id and not is_admin(actor):
            raise PermissionDeniedError("Only the author or an admin can modify this question.")

    async def create_question(
        self,
        actor: UserRecord,
        title: Any,
        description: Any,
        category_id: Any = None,
        tags: list[Any] | None = None,
    ) -> dict[str, Any]:
        stamp = now_iso()
        question = QuestionRecord(
            id=str(uuid4()),
            title=require_text(title, "Title"),
            description=require_text(description, "Description"),
            created_by_id=actor.id,
            category_id=await self._resolve_category(category_id),
            tags=normalize_tags(tags),
            created_at=stamp,
            updated_at=stamp,
        )
        await self.question_repo.create(question)
        LOGGER.info("Question created. question_id=%s user=%s", question.id, actor.id)
        return await self.joiner.question(question)

    async def list_questions(
        self,
        search: str | None = None,
        category: str | None = None,
        tag: str | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> QuestionPage:
        page = max(page, 1)
        limit = min(max(limit, 1), MAX_PAGE_SIZE)
        wanted_tag = (tag or "").strip().lower() or None

        payloads = await self.joiner.questions(await self.question_repo.list_all())
        matched = [
            item
            for item in payloads
            if matches_search(item, search, QUESTION_SEARCH_FIELDS)
            and matches_value((item["category"] or {}).get("id"), category)
            and (wanted_tag is None or wanted_tag in item["tags"])
        ]
        start = (page - 1) * limit
        return QuestionPage(
            questions=matched[start : start + limit],
            page=page,
            limit=limit,
            total=len(matched),
        )

    async def get_question(self, question_id: str) -> dict[str, Any]:
        return await self.joiner.question(await self._get(question_id))

    async def update_question(self, actor: UserRecord, question_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        question = await self._get(question_id)
        self._ensure_owner(actor, question)
        fields: dict[str, Any] = {}
        if "title" in changes:
            fields["title"] = require_text(changes["title"], "Title")
        if "description" in changes:
            fields["description"] = require_text(changes["description"], "Description")
        if "category_id" in changes:
            fields["category_id"] = await self._resolve_category(changes["category_id"])
        if "tags" in changes:
            fields["tags"] = normalize_tags(changes["tags"])
        if not await self.question_repo.update_fields(question_id, fields):
            raise NotFoundError("Question not found")
        return await self.get_question(question_id)

    async def delete_question(self, actor: UserRecord, question_id: str) -> None:
        question = await self._get(question_id)
        self._ensure_owner(actor, question)
        if not await self.question_repo.delete(question_id):
            raise NotFoundError("Question not found")
        await self.security.audit_action(actor.id, "question_delete", question_id)
        LOGGER.info("Question deleted. question_id=%s actor=%s", question_id, actor.id)

    async def vote(self, actor: UserRecord, question_id: str, direction: Any) -> dict[str, Any]:
        vote_type = validate_vote(direction)
        await self._get(question_id)
        await self.question_repo.cast_vote(question_id, actor.id, vote_type)
        return await self.get_question(question_id)

    async def add_answer(self, actor: UserRecord, question_id: str, content: Any) -> dict[str, Any]:
        text = require_text(content, "Content")
        await self._get(question_id)
        await self.question_repo.add_answer(
            AnswerRecord(
                id=str(uuid4()),
                question_id=question_id,
                author_id=actor.id,
                content=text,
                created_at=now_iso(),
            )
        )
        return await self.get_question(question_id)
