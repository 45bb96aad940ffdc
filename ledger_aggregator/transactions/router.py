"""
Transaction query API routes.

GET /transactions answers lookups by signature or by UTC day from the
in-memory store. GET /ingestion/status reports on the background poller.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
import logging

from ledger_aggregator.transactions.poller import TransactionPoller, get_poller
from ledger_aggregator.transactions.query import (
    InvalidQueryError,
    QueryService,
    parse_query,
)
from ledger_aggregator.transactions.store import RecordStore, get_record_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/transactions", tags=["transactions"])
ingestion_router = APIRouter(prefix="/ingestion", tags=["ingestion"])


def _encode(result: Any) -> Any:
    if result is None or isinstance(result, str):
        return result
    if isinstance(result, list):
        return [detail.model_dump() for detail in result]
    return result.model_dump()


@router.get("")
async def query_transactions(
    id: Optional[str] = None,
    day: Optional[str] = None,
    store: RecordStore = Depends(get_record_store),
):
    """
    Look up stored transactions.

    - `?id=<signature>`: the transaction, or null if it is not stored
    - `?day=DD/MM/YYYY`: every transaction of that UTC day
    - neither: the string "Invalid query parameters"
    """
    try:
        query = parse_query(id=id, day=day)
    except InvalidQueryError as e:
        logger.info(f"Rejected query on {e.parameter}: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "invalid_argument",
                "parameter": e.parameter,
                "message": e.message,
            },
        )

    result = QueryService(store).execute(query)
    return JSONResponse(content=_encode(result))


@ingestion_router.get("/status")
async def ingestion_status(
    poller: TransactionPoller = Depends(get_poller),
) -> Dict[str, Any]:
    """Current poller state, cursor, store size and recent cycle metrics."""
    return poller.get_status()
