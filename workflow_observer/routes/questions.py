from __future__ import annotations

from typing import Any, Callable, List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..errors import QuestionNotFoundError, SessionStateError
from ..models import AnswerQuestionRequest, ClarificationQuestion, QuestionStatus
from ..services.session import SessionManager, get_session_manager
from ._deps import resolve_session

router = APIRouter(prefix="/sessions/{session_id}/questions", tags=["questions"])


def _transition(
    action: Callable[..., ClarificationQuestion], question_id: str, **kwargs: Any
) -> ClarificationQuestion:
    try:
        return action(question_id, **kwargs)
    except QuestionNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown question: {question_id}") from exc
    except SessionStateError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc


@router.get("", response_model=List[ClarificationQuestion])
# List questions for the UI; pending ones by default
async def list_questions(
    session_id: str,
    question_status: QuestionStatus = Query(default=QuestionStatus.PENDING, alias="status"),
    manager: SessionManager = Depends(get_session_manager),
) -> List[ClarificationQuestion]:
    session = resolve_session(manager, session_id)
    return [question for question in session.throttler.questions if question.status == question_status]


@router.post("/{question_id}/answer", response_model=ClarificationQuestion)
async def answer_question(
    session_id: str,
    question_id: str,
    payload: AnswerQuestionRequest,
    manager: SessionManager = Depends(get_session_manager),
) -> ClarificationQuestion:
    session = resolve_session(manager, session_id)
    return _transition(
        session.answer_question,
        question_id,
        answer=payload.answer,
        starts_new_task=payload.starts_new_task,
    )


@router.post("/{question_id}/dismiss", response_model=ClarificationQuestion)
async def dismiss_question(
    session_id: str, question_id: str, manager: SessionManager = Depends(get_session_manager)
) -> ClarificationQuestion:
    session = resolve_session(manager, session_id)
    return _transition(session.dismiss_question, question_id)


@router.post("/{question_id}/defer", response_model=ClarificationQuestion)
async def defer_question(
    session_id: str, question_id: str, manager: SessionManager = Depends(get_session_manager)
) -> ClarificationQuestion:
    session = resolve_session(manager, session_id)
    return _transition(session.defer_question, question_id)


@router.post("/{question_id}/resurface", response_model=ClarificationQuestion)
async def resurface_question(
    session_id: str, question_id: str, manager: SessionManager = Depends(get_session_manager)
) -> ClarificationQuestion:
    session = resolve_session(manager, session_id)
    return _transition(session.resurface_question, question_id)
