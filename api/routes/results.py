"""
api/routes/results.py -- Result ledger endpoints.

Routes:
  POST   /results  -- record an attempt for the caller
  GET    /results  -- caller's own results; every result for an admin
  DELETE /results  -- admin, wipes the ledger
"""

from fastapi import APIRouter, Depends, Request

from api.models import BulkDeleteResponse, ResultCreate, ResultResponse
from auth.dependencies import get_claims
from auth.models import TokenClaims
from auth.store import UserStore
from quiz import ledger
from quiz.store import QuizStore

# Auth policy: every route requires a valid token. DELETE additionally
# requires admin (enforced in quiz/ledger.py).
router = APIRouter(dependencies=[Depends(get_claims)])


@router.post("/results", response_model=ResultResponse, status_code=201)
def submit_result(
    request: Request,
    body: ResultCreate,
    claims: TokenClaims = Depends(get_claims),
) -> ResultResponse:
    """Score and store one attempt. percentage and passed are computed server-side."""
    quiz_store: QuizStore = request.app.state.quiz_store
    user_store: UserStore = request.app.state.user_store
    result = ledger.record_result(quiz_store, user_store, claims, body.score, body.total_questions)
    return ResultResponse.from_entry(ledger.LedgerEntry(result=result))


@router.get("/results", response_model=list[ResultResponse])
def list_results(request: Request, claims: TokenClaims = Depends(get_claims)) -> list[ResultResponse]:
    quiz_store: QuizStore = request.app.state.quiz_store
    user_store: UserStore = request.app.state.user_store
    return [ResultResponse.from_entry(e) for e in ledger.list_results(quiz_store, user_store, claims)]


@router.delete("/results", response_model=BulkDeleteResponse)
def delete_all_results(request: Request, claims: TokenClaims = Depends(get_claims)) -> BulkDeleteResponse:
    quiz_store: QuizStore = request.app.state.quiz_store
    count = ledger.delete_all_results(quiz_store, claims)
    return BulkDeleteResponse(message="All results have been deleted.", deleted=count)
