from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.db.session import get_db
from app.schemas.billing import BillingErrorResponse
from app.services import webhook_service

router = APIRouter(prefix="/billing", tags=["Billing Webhook"])


@router.post(
    "/webhook",
    responses={
        400: {"model": BillingErrorResponse},
        500: {"model": BillingErrorResponse},
    },
)
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(None),
    db: Session = Depends(get_db),
):
    # Signature is computed over the raw body
    payload = await request.body()
    # Stripe and database calls block; keep them off the event loop
    return await run_in_threadpool(webhook_service.process_webhook, payload, stripe_signature, db)
