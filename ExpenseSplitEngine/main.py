"""
ExpenseSplitEngine - FastAPI Web Backend

This module serves the split engine over HTTP for the app's add-expense
screen. Each split session owns one SplitEngine held in memory until it is
committed or abandoned.

Features:
    - Start a split from an explicit member list or a group's members
    - Edit total, strategy, selection, per-participant values and payer
    - Validate a split and preview who owes whom
    - Commit a split as a group expense in Firestore

Endpoints:
    POST /splits                                          - Start a split session
    POST /groups/{group_id}/splits                        - Start a split for a group's members
    GET  /splits/{split_id}                               - Current split
    PUT  /splits/{split_id}/total                         - Change total amount
    PUT  /splits/{split_id}/strategy                      - Change strategy
    POST /splits/{split_id}/participants/{pid}/toggle     - Include/exclude participant
    PUT  /splits/{split_id}/participants/{pid}            - Set a participant's value
    PUT  /splits/{split_id}/paid-by                       - Change who paid
    GET  /splits/{split_id}/explain                       - Per-participant breakdown
    GET  /splits/{split_id}/validate                      - Check split, preview settlements
    POST /splits/{split_id}/commit                        - Save as a group expense

Usage:
    uvicorn main:app --reload
"""

import logging
import uuid
from decimal import Decimal
from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from config.settings import configure_logging
from errors import InvalidInput, InvalidOperation, NoParticipants, NotFound, SplitMismatch
from expenses import commit_split
from participants import get_group_members
from settlement import calculate_expense_balances, optimize_settlements
from splitter import SplitEngine, initialize
from utils import explain_allocation, round_amount

logger = logging.getLogger(__name__)

# In-memory split sessions, keyed by split_id
SPLIT_SESSIONS: dict[str, SplitEngine] = {}


# =============================================================================
# Pydantic Models for Request/Response Validation
# =============================================================================

class SplitCreate(BaseModel):
    """Request model for starting a split from a member list."""
    total_amount: Decimal = Field(..., description="Expense total")
    members: list[dict] = Field(..., min_length=1, description="Members with id, displayName, isSelf")
    epsilon: Optional[Decimal] = Field(None, description="Tolerance for the commit check")


class GroupSplitCreate(BaseModel):
    """Request model for starting a split from a group's members."""
    total_amount: Decimal = Field(..., description="Expense total")
    current_user_id: Optional[str] = Field(None, description="Signed-in user, defaults to payer")


class TotalUpdate(BaseModel):
    """Request model for changing the total."""
    total_amount: Decimal = Field(..., description="New expense total")


class StrategyUpdate(BaseModel):
    """Request model for changing the strategy."""
    strategy: str = Field(..., description="EQUAL, EXACT, PERCENTAGE or SHARE")


class ValueUpdate(BaseModel):
    """Request model for setting one participant's value."""
    field: str = Field(..., description="exact_amount, percentage or shares")
    value: Decimal = Field(..., description="New value")


class PaidByUpdate(BaseModel):
    """Request model for changing the payer."""
    participant_id: str = Field(..., min_length=1)


class CommitRequest(BaseModel):
    """Request model for committing a split."""
    group_id: str = Field(..., min_length=1, description="Group to add the expense to")
    description: str = Field(..., min_length=1, description="What the expense was for")
    category: Optional[str] = Field(None, description="Optional category")
    date: Optional[str] = Field(None, pattern=r"^\d{4}-\d{2}-\d{2}$", description="Expense date (YYYY-MM-DD)")


class ParticipantResponse(BaseModel):
    """Response model for one participant of a split."""
    participant_id: str
    display_name: str
    is_self: bool
    selected: bool
    exact_amount: str
    percentage: str
    shares: str
    computed_amount: str


class SplitResponse(BaseModel):
    """Response model for a split session."""
    split_id: str
    total_amount: str
    strategy: str
    paid_by: str
    selected_sum: str
    participants: list[ParticipantResponse]


class ValidateResponse(BaseModel):
    """Response model for a successful validation."""
    allocation: list[dict]
    balances: dict
    settlements: list


class CommitResponse(BaseModel):
    """Response model for a committed split."""
    expense: dict
    balances: dict
    settlements: list


# =============================================================================
# FastAPI Application
# =============================================================================

configure_logging()

app = FastAPI(
    title="Expense Split Engine",
    description="Split an expense equally, by exact amounts, percentages or shares",
    version="1.0.0"
)


# =============================================================================
# Helper Functions
# =============================================================================

def _generate_split_id() -> str:
    """
    Generate a unique split session ID.

    Format: split_{short_uuid}
    """
    return f"split_{uuid.uuid4().hex[:8]}"


def _get_session(split_id: str) -> SplitEngine:
    """Look up a split session or answer 404."""
    engine = SPLIT_SESSIONS.get(split_id)
    if engine is None:
        raise HTTPException(status_code=404, detail=f"Split {split_id} not found")
    return engine


def _split_to_response(split_id: str, engine: SplitEngine) -> SplitResponse:
    """Convert a SplitEngine to its response model, amounts as 2-decimal strings."""
    return SplitResponse(
        split_id=split_id,
        total_amount=str(round_amount(engine.total_amount)),
        strategy=engine.strategy.value,
        paid_by=engine.paid_by,
        selected_sum=str(round_amount(engine.selected_sum())),
        participants=[
            ParticipantResponse(
                participant_id=p.participant_id,
                display_name=p.display_name,
                is_self=p.is_self,
                selected=p.selected,
                exact_amount=str(round_amount(p.exact_amount)),
                percentage=str(round_amount(p.percentage)),
                shares=f"{p.shares.normalize():f}",
                computed_amount=str(round_amount(p.computed_amount))
            )
            for p in engine.participants
        ]
    )


def _to_http_exception(e: Exception) -> HTTPException:
    """Map split engine and storage errors to HTTP errors."""
    if isinstance(e, SplitMismatch):
        return HTTPException(status_code=422, detail={
            "message": str(e),
            "sum_amount": str(e.sum_amount),
            "total_amount": str(e.total_amount)
        })
    if isinstance(e, NoParticipants):
        return HTTPException(status_code=422, detail=str(e))
    if isinstance(e, InvalidOperation):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, NotFound):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, (InvalidInput, ValueError)):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, RuntimeError):
        return HTTPException(status_code=503, detail=str(e))
    logger.exception("Unexpected error")
    return HTTPException(status_code=500, detail=str(e))


# =============================================================================
# API Endpoints
# =============================================================================

@app.post("/splits", response_model=SplitResponse, status_code=201)
async def create_split(split_data: SplitCreate):
    """
    Start a split session.

    Request flow:
        1. Validate members and total (SplitEngine)
        2. Store the session in memory
        3. Return the equal split
    """
    try:
        engine = initialize(split_data.total_amount, split_data.members, epsilon=split_data.epsilon)
    except Exception as e:
        raise _to_http_exception(e)

    split_id = _generate_split_id()
    SPLIT_SESSIONS[split_id] = engine
    return _split_to_response(split_id, engine)


@app.post("/groups/{group_id}/splits", response_model=SplitResponse, status_code=201)
def create_group_split(group_id: str, split_data: GroupSplitCreate):
    """
    Start a split session seeded with a group's members.

    Request flow:
        1. Fetch the group's members from Firestore (participants.py)
        2. Start the split with every member selected
    """
    try:
        members = get_group_members(group_id, split_data.current_user_id)
        if not members:
            raise HTTPException(status_code=404, detail=f"Group {group_id} has no members")
        engine = initialize(split_data.total_amount, members)
    except HTTPException:
        raise
    except Exception as e:
        raise _to_http_exception(e)

    split_id = _generate_split_id()
    SPLIT_SESSIONS[split_id] = engine
    return _split_to_response(split_id, engine)


@app.get("/splits/{split_id}", response_model=SplitResponse)
async def get_split(split_id: str):
    """Get the current state of a split session."""
    return _split_to_response(split_id, _get_session(split_id))


@app.put("/splits/{split_id}/total", response_model=SplitResponse)
async def update_total(split_id: str, update: TotalUpdate):
    """Change the expense total."""
    engine = _get_session(split_id)
    try:
        engine.set_total_amount(update.total_amount)
    except Exception as e:
        raise _to_http_exception(e)
    return _split_to_response(split_id, engine)


@app.put("/splits/{split_id}/strategy", response_model=SplitResponse)
async def update_strategy(split_id: str, update: StrategyUpdate):
    """Change how the total is split."""
    engine = _get_session(split_id)
    try:
        engine.set_strategy(update.strategy)
    except Exception as e:
        raise _to_http_exception(e)
    return _split_to_response(split_id, engine)


@app.post("/splits/{split_id}/participants/{participant_id}/toggle", response_model=SplitResponse)
async def toggle_participant(split_id: str, participant_id: str):
    """Include or exclude a participant."""
    engine = _get_session(split_id)
    try:
        engine.toggle_participant(participant_id)
    except Exception as e:
        raise _to_http_exception(e)
    return _split_to_response(split_id, engine)


@app.put("/splits/{split_id}/participants/{participant_id}", response_model=SplitResponse)
async def update_participant_value(split_id: str, participant_id: str, update: ValueUpdate):
    """Set a participant's exact amount, percentage or shares."""
    engine = _get_session(split_id)
    try:
        engine.set_participant_value(participant_id, update.field, update.value)
    except Exception as e:
        raise _to_http_exception(e)
    return _split_to_response(split_id, engine)


@app.put("/splits/{split_id}/paid-by", response_model=SplitResponse)
async def update_paid_by(split_id: str, update: PaidByUpdate):
    """Change who paid the expense."""
    engine = _get_session(split_id)
    try:
        engine.set_paid_by(update.participant_id)
    except Exception as e:
        raise _to_http_exception(e)
    return _split_to_response(split_id, engine)


@app.get("/splits/{split_id}/explain")
async def explain_split(split_id: str):
    """Per-participant breakdown of the current split."""
    explanations = explain_allocation(_get_session(split_id))
    for explanation in explanations:
        explanation["amount"] = str(explanation["amount"])
    return {"split_id": split_id, "explanations": explanations}


@app.get("/splits/{split_id}/validate", response_model=ValidateResponse)
async def validate_split(split_id: str):
    """
    Check the split against the total without committing it.

    Request flow:
        1. Validate the allocation (SplitEngine)
        2. Calculate balances and settlements for a preview (settlement.py)
    """
    engine = _get_session(split_id)
    try:
        allocation = engine.validate_for_commit()
    except Exception as e:
        raise _to_http_exception(e)

    balances = calculate_expense_balances(allocation, engine.paid_by, engine.total_amount)
    return ValidateResponse(
        allocation=[
            {"participant_id": a["participant_id"], "amount": str(round_amount(a["amount"]))}
            for a in allocation
        ],
        balances=balances,
        settlements=optimize_settlements(balances)
    )


@app.post("/splits/{split_id}/commit", response_model=CommitResponse, status_code=201)
def commit_split_session(split_id: str, commit: CommitRequest):
    """
    Save a split as a group expense.

    Request flow:
        1. Validate the split and write the expense, settlements and
           running balances in one batch (expenses.py)
        2. Discard the session
    """
    engine = _get_session(split_id)
    try:
        result = commit_split(
            group_id=commit.group_id,
            description=commit.description,
            engine=engine,
            category=commit.category,
            date=commit.date
        )
    except Exception as e:
        raise _to_http_exception(e)

    SPLIT_SESSIONS.pop(split_id, None)
    return CommitResponse(
        expense=result["expense"].to_dict(),
        balances=result["balances"],
        settlements=result["settlements"]
    )


# =============================================================================
# Health Check Endpoint
# =============================================================================

@app.get("/health")
async def health_check():
    """Health check endpoint to verify API is running."""
    return {"status": "healthy", "service": "Expense Split Engine"}


# =============================================================================
# Run with: python main.py
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="127.0.0.1", port=8000, reload=True)
