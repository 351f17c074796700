"""Upload transaction API routes."""

import logging
from dataclasses import asdict

from fastapi import APIRouter, Body, HTTPException, Request

from assetsync.core.exceptions import DuplicateTransaction, NoUploads, StoreError, SubmissionError
from assetsync.models.transactions import (
    CreateTransactionRequest,
    CreateTransactionResponse,
    TransactionStatusResponse,
)
from assetsync.services.uploader import TransactionTracker, UploadManager

router = APIRouter(prefix="/api/v1", tags=["transactions"])
logger = logging.getLogger(__name__)


def _manager(request: Request) -> UploadManager:
    manager = getattr(request.app.state, "upload_manager", None)
    if manager is None:
        raise HTTPException(status_code=503, detail="Upload manager not running")
    return manager


def _tracker(request: Request) -> TransactionTracker:
    return request.app.state.transaction_tracker


@router.post("/transactions", response_model=CreateTransactionResponse, status_code=202)
async def create_transaction(
    request: Request, body: CreateTransactionRequest = Body(...)
) -> CreateTransactionResponse:
    """Submit local assets as one upload transaction."""
    manager = _manager(request)
    try:
        transaction = await manager.upload_assets(
            body.items, body.transaction_id, _tracker(request)
        )
    except NoUploads as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DuplicateTransaction as e:
        raise HTTPException(status_code=409, detail=str(e))
    except SubmissionError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreError as e:
        logger.error(f"Upload queue unavailable: {e}")
        raise HTTPException(status_code=503, detail="Upload queue unavailable")

    return CreateTransactionResponse(
        transaction_id=transaction.transaction_id,
        uploads_total=transaction.uploads_total,
        upload_ids=transaction.member_ids,
    )


@router.get("/transactions/{transaction_id}", response_model=TransactionStatusResponse)
async def get_transaction(request: Request, transaction_id: str) -> TransactionStatusResponse:
    """Return the progress snapshot of a transaction."""
    snapshot = _tracker(request).get(transaction_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail=f"Transaction {transaction_id} not found")
    return TransactionStatusResponse(**asdict(snapshot))
