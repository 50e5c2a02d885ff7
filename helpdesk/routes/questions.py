from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field

from core.app import HelpdeskApp
from core.auth import current_user, get_helpdesk
from database.models import UserRecord

router = APIRouter(prefix="/questions", tags=["questions"])


class QuestionCreate(BaseModel):
    title: str | None = None
    description: str | None = None
    category: str | None = None
    tags: list[str] | None = None


class QuestionUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str | None = None
    description: str | None = None
    category_id: str | None = Field(default=None, alias="category")
    tags: list[str] | None = None


class VoteBody(BaseModel):
    type: str | None = None


class AnswerBody(BaseModel):
    content: str | None = None


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_question(
    body: QuestionCreate,
    actor: UserRecord = Depends(current_user),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, Any]:
    question = await helpdesk.question_service.create_question(
        actor,
        title=body.title,
        description=body.description,
        category_id=body.category,
        tags=body.tags,
    )
    return {"question": question}


@router.get("")
async def list_questions(
    search: str | None = None,
    category: str | None = None,
    tag: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    _: UserRecord = Depends(current_user),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, Any]:
    result = await helpdesk.question_service.list_questions(
        search=search,
        category=category,
        tag=tag,
        page=page,
        limit=limit,
    )
    return result.as_payload()


@router.get("/{question_id}")
async def get_question(
    question_id: str,
    _: UserRecord = Depends(current_user),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, Any]:
    return {"question": await helpdesk.question_service.get_question(question_id)}


@router.put("/{question_id}")
async def update_question(
    question_id: str,
    body: QuestionUpdate,
    actor: UserRecord = Depends(current_user),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, Any]:
    changes = body.model_dump(exclude_unset=True)
    return {"question": await helpdesk.question_service.update_question(actor, question_id, changes)}


@router.delete("/{question_id}")
async def delete_question(
    question_id: str,
    actor: UserRecord = Depends(current_user),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, str]:
    await helpdesk.question_service.delete_question(actor, question_id)
    return {"message": "Question deleted successfully"}


@router.post("/{question_id}/vote")
async def vote(
    question_id: str,
    body: VoteBody,
    actor: UserRecord = Depends(current_user),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, Any]:
    question = await helpdesk.question_service.vote(actor, question_id, body.type)
    return {
        "question": question,
        "upvotes": question["upvotes"],
        "downvotes": question["downvotes"],
        "score": question["score"],
    }


@router.post("/{question_id}/answer", status_code=status.HTTP_201_CREATED)
async def add_answer(
    question_id: str,
    body: AnswerBody,
    actor: UserRecord = Depends(current_user),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, Any]:
    return {"question": await helpdesk.question_service.add_answer(actor, question_id, body.content)}
