"""
api/routes/questions.py -- Question bank endpoints.

Routes:
  GET    /questions                -- public
  POST   /questions                -- admin
  DELETE /questions                -- admin, removes every question
  PUT    /questions/{question_id}  -- admin, partial update
  DELETE /questions/{question_id}  -- admin

quiz/bank.py reports a missing id as None / False. This module is where that
becomes a 404 with the standard error envelope.
"""

from fastapi import APIRouter, Depends, Request

from api.models import BulkDeleteResponse, MessageResponse, QuestionCreate, QuestionResponse, QuestionUpdate
from auth.dependencies import get_claims
from auth.models import TokenClaims
from core.errors import NotFound
from quiz import bank
from quiz.store import QuizStore

# Auth policy:
# - GET /questions: public -- no token needed, any token sent is not inspected
# - everything else: valid token (get_claims) + admin role (enforced in quiz/bank.py)
router = APIRouter()


@router.get("/questions", response_model=list[QuestionResponse])
def list_questions(request: Request) -> list[QuestionResponse]:
    quiz_store: QuizStore = request.app.state.quiz_store
    return [QuestionResponse.from_question(q) for q in bank.list_questions(quiz_store)]


@router.post("/questions", response_model=QuestionResponse, status_code=201)
def create_question(
    request: Request,
    body: QuestionCreate,
    claims: TokenClaims = Depends(get_claims),
) -> QuestionResponse:
    quiz_store: QuizStore = request.app.state.quiz_store
    question = bank.create_question(quiz_store, claims, **body.model_dump())
    return QuestionResponse.from_question(question)


@router.delete("/questions", response_model=BulkDeleteResponse)
def delete_all_questions(request: Request, claims: TokenClaims = Depends(get_claims)) -> BulkDeleteResponse:
    quiz_store: QuizStore = request.app.state.quiz_store
    count = bank.delete_all_questions(quiz_store, claims)
    return BulkDeleteResponse(message="All questions have been deleted.", deleted=count)


@router.put("/questions/{question_id}", response_model=QuestionResponse)
def update_question(
    request: Request,
    question_id: int,
    body: QuestionUpdate,
    claims: TokenClaims = Depends(get_claims),
) -> QuestionResponse:
    """Merge the supplied fields over the stored question."""
    quiz_store: QuizStore = request.app.state.quiz_store
    updated = bank.update_question(quiz_store, claims, question_id, **body.model_dump(exclude_none=True))
    if updated is None:
        raise NotFound("Question not found.")
    return QuestionResponse.from_question(updated)


@router.delete("/questions/{question_id}", response_model=MessageResponse)
def delete_question(request: Request, question_id: int, claims: TokenClaims = Depends(get_claims)) -> MessageResponse:
    quiz_store: QuizStore = request.app.state.quiz_store
    if not bank.delete_question(quiz_store, claims, question_id):
        raise NotFound("Question not found.")
    return MessageResponse(message="Question deleted successfully.")
