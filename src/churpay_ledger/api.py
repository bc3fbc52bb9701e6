"""HTTP surface: the PayFast ITN webhook, health checks and an operator lookup."""

import os
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Depends, HTTPException
from fastapi.responses import PlainTextResponse
from sqlalchemy.ext.asyncio import AsyncSession

from . import __version__
from .auth import verify_api_key
from .config import get_settings
from .database import (
    init_db,
    close_db,
    get_db,
    get_session_factory,
    PaymentIntentRepository,
    TransactionRepository,
)
from .errors import ReconciliationError, ValidationError
from .notifications import Notifier, LoggingNotifier
from .reconciliation import ItnReconciliationService

logger = logging.getLogger(__name__)

BUILD = os.getenv("BUILD_ID", __version__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    try:
        yield
    finally:
        await close_db()


app = FastAPI(title="Churpay Ledger", version=__version__, lifespan=lifespan)


def get_notifier() -> Notifier:
    return LoggingNotifier()


def get_itn_service(notifier: Notifier = Depends(get_notifier)) -> ItnReconciliationService:
    return ItnReconciliationService(get_session_factory(), get_settings(), notifier=notifier)


@app.exception_handler(ReconciliationError)
async def reconciliation_error_handler(request: Request, exc: ReconciliationError):
    return PlainTextResponse(exc.detail, status_code=exc.status_code)


async def _process_itn(request: Request, service: ItnReconciliationService) -> PlainTextResponse:
    body = await request.body()
    try:
        raw_body = body.decode("utf-8")
    except UnicodeDecodeError:
        logger.warning("ITN body is not valid UTF-8")
        raise ValidationError("invalid notification")

    try:
        await service.handle(raw_body)
    except ReconciliationError:
        raise
    except Exception:
        logger.exception("Unexpected error while processing ITN")
        return PlainTextResponse("server error", status_code=500)
    return PlainTextResponse("OK")


@app.post("/webhooks/payfast/itn")
async def payfast_itn(request: Request, service: ItnReconciliationService = Depends(get_itn_service)):
    """
    PayFast Instant Transaction Notification.

    The body is read raw because the signature covers the exact bytes sent.
    Answers 200 ``OK`` for processed, duplicate and ignored notifications.
    """
    return await _process_itn(request, service)


@app.post("/api/payfast/itn", deprecated=True)
async def payfast_itn_legacy(request: Request, service: ItnReconciliationService = Depends(get_itn_service)):
    """Old notify_url still configured on some merchant accounts."""
    logger.warning("ITN received on deprecated /api/payfast/itn, update the PayFast notify_url")
    return await _process_itn(request, service)


@app.get("/webhooks/payfast/itn")
async def payfast_itn_reachable():
    """Confirms the webhook route is mounted. PayFast itself only POSTs."""
    return {"ok": True, "route": "webhooks/payfast/itn", "build": BUILD}


@app.get("/webhooks/build")
async def build_info():
    return {"ok": True, "build": BUILD}


@app.get("/health")
async def health():
    return {"status": "healthy", "service": "churpay-ledger"}


@app.get("/api/payment-intents/{intent_id}")
async def get_payment_intent(
    intent_id: str,
    db: AsyncSession = Depends(get_db),
    api_key: str = Depends(verify_api_key),
):
    """Look up a payment intent and its ledger row, if it has one."""
    intent = await PaymentIntentRepository(db).get_by_id(intent_id)
    if intent is None:
        raise HTTPException(status_code=404, detail="Payment intent not found")
    txn = await TransactionRepository(db).get_by_payment_intent_id(intent.id)
    return {
        "payment_intent": intent.to_dict(),
        "transaction": txn.to_dict() if txn else None,
    }
