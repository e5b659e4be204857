"""
Queue webhook - QStash delivers published bulk tasks here
"""
import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from deadlines.api.deps import get_dispatcher, get_signature_verifier
from deadlines.database import get_db
from deadlines.exceptions import InvalidSignatureError, UnknownTaskError
from deadlines.services.queue import SignatureVerifier, TaskDispatcher
from deadlines.services.tasks import parse_task

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("")
async def receive_task(
    request: Request,
    db: AsyncSession = Depends(get_db),
    dispatcher: TaskDispatcher = Depends(get_dispatcher),
    verifier: SignatureVerifier = Depends(get_signature_verifier),
):
    """Verify the broker signature, then run the delivered task"""
    signature = request.headers.get("upstash-signature")
    body = (await request.body()).decode("utf-8")

    if not signature:
        raise HTTPException(status_code=401, detail="No signature")

    try:
        verifier.verify(signature, body)
    except InvalidSignatureError as e:
        logger.warning(f"Rejected queue delivery: {e}")
        raise HTTPException(status_code=401, detail="Invalid signature")

    if not body:
        raise HTTPException(status_code=400, detail="No body")

    try:
        task = parse_task(json.loads(body))
    except UnknownTaskError as e:
        logger.error(f"Rejected queue delivery: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except (json.JSONDecodeError, ValidationError) as e:
        logger.error(f"Malformed queue delivery: {e}")
        raise HTTPException(status_code=400, detail="Malformed task")

    result = await dispatcher.deliver(task, db)
    if not result.success:
        # Non-2xx lets the broker apply its own retry policy
        raise HTTPException(status_code=500, detail=result.error)

    return {"message": "Task processed", "affected": result.affected}
