"""
Task queue dispatcher - publishes deduplicated bulk jobs to QStash and routes
delivered jobs to the matching mutation processor.

Publish flow:
    bulk action -> TaskDispatcher.publish -> QueueClient.publish (HTTP)
Delivery flow:
    QStash -> POST /api/queue -> SignatureVerifier -> TaskDispatcher.deliver
    -> processor

The dispatcher never retries. Redelivery is the broker's business; it only
happens when the webhook answers with an error status.
"""
import logging
from dataclasses import dataclass
from typing import Optional

import httpx
from qstash import Receiver
from qstash.errors import SignatureError
from sqlalchemy.ext.asyncio import AsyncSession

from deadlines.config import Settings
from deadlines.exceptions import InvalidSignatureError, UnknownTaskError
from deadlines.schemas import confirmed_ids
from deadlines.services import processors
from deadlines.services.tasks import (
    DeleteTodosTask,
    ToggleCompletedTask,
    UpdateAssignedUserTask,
    UpdateDueDateTask,
    UpdateProjectTask,
    task_payload,
)

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/api/queue"


@dataclass(frozen=True)
class PublishResult:
    submitted: bool
    job_id: Optional[str] = None
    key: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class DeliveryResult:
    success: bool
    affected: int = 0
    error: Optional[str] = None


class QueueClient:
    """Thin QStash publish client"""

    def __init__(
        self,
        base_url: str,
        token: str,
        callback_url: str,
        bypass_secret: str = "",
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ):
        self.callback_url = callback_url
        self.bypass_secret = bypass_secret
        self._http = httpx.AsyncClient(
            base_url=base_url,
            headers={"Authorization": f"Bearer {token}"},
            transport=transport,
            timeout=timeout,
        )

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "QueueClient":
        return cls(
            base_url=settings.QSTASH_URL,
            token=settings.QSTASH_TOKEN,
            callback_url=settings.PUBLIC_BASE_URL.rstrip("/") + CALLBACK_PATH,
            bypass_secret=settings.PROTECTION_BYPASS_SECRET,
            **kwargs,
        )

    async def publish(self, body: dict, dedup_id: str) -> str:
        """Publish a JSON body to the callback URL, return the broker's message id"""
        headers = {"Upstash-Deduplication-Id": dedup_id}
        if self.bypass_secret:
            # Lets the broker reach protected preview deployments
            headers["Upstash-Forward-x-vercel-protection-bypass"] = self.bypass_secret

        response = await self._http.post(
            f"/v2/publish/{self.callback_url}",
            json=body,
            headers=headers,
        )
        response.raise_for_status()
        return response.json()["messageId"]

    async def aclose(self):
        await self._http.aclose()


class SignatureVerifier:
    """Checks the ``Upstash-Signature`` header against the current/next signing keys"""

    def __init__(self, current_signing_key: str, next_signing_key: str, url: Optional[str] = None):
        self.url = url
        self._receiver = Receiver(
            current_signing_key=current_signing_key,
            next_signing_key=next_signing_key,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "SignatureVerifier":
        return cls(
            settings.QSTASH_CURRENT_SIGNING_KEY,
            settings.QSTASH_NEXT_SIGNING_KEY,
            url=settings.PUBLIC_BASE_URL.rstrip("/") + CALLBACK_PATH,
        )

    def verify(self, signature: str, body: str):
        try:
            self._receiver.verify(signature=signature, body=body, url=self.url)
        except SignatureError as e:
            raise InvalidSignatureError(str(e)) from e


class TaskDispatcher:
    def __init__(self, queue: QueueClient):
        self.queue = queue

    async def publish(self, task) -> PublishResult:
        """
        Submit a bulk task without waiting for it to run.

        Client-only ids are dropped first; if nothing is left the task is not
        submitted and no request is made. Broker failures come back as an
        unsubmitted result rather than an exception.
        """
        valid_ids = confirmed_ids(task.ids)
        if not valid_ids:
            return PublishResult(submitted=False)

        task = task.with_ids(valid_ids)
        key = task.dedup_key()

        try:
            job_id = await self.queue.publish(task_payload(task), dedup_id=key)
        except httpx.HTTPError as e:
            logger.error(f"Failed to publish {task.type} task {key}: {e}")
            return PublishResult(submitted=False, key=key, error=f"Failed to publish {task.type} task")

        logger.info(f"Published {task.type} task {key} as {job_id}")
        return PublishResult(submitted=True, job_id=job_id, key=key)

    async def deliver(self, task, db: AsyncSession) -> DeliveryResult:
        """Run exactly one processor for a delivered task"""
        try:
            if isinstance(task, DeleteTodosTask):
                affected = await processors.delete_todos(db, task.team_id, task.ids)
            elif isinstance(task, ToggleCompletedTask):
                affected = await processors.set_completed(db, task.team_id, task.ids, task.completed)
            elif isinstance(task, UpdateDueDateTask):
                affected = await processors.set_due_date(db, task.team_id, task.ids, task.due_date)
            elif isinstance(task, UpdateProjectTask):
                affected = await processors.set_project(db, task.team_id, task.ids, task.project_id)
            elif isinstance(task, UpdateAssignedUserTask):
                affected = await processors.set_assigned_user(
                    db, task.team_id, task.ids, task.assigned_user_id
                )
            else:
                raise UnknownTaskError(getattr(task, "type", type(task).__name__))
        except UnknownTaskError as e:
            logger.error(str(e))
            return DeliveryResult(success=False, error=str(e))
        except Exception as e:
            await db.rollback()
            logger.error(f"Error processing {task.type} task {task.key}: {e}")
            return DeliveryResult(success=False, error="Failed to process task")

        logger.info(f"Processed {task.type} task {task.key} ({affected} todos)")
        return DeliveryResult(success=True, affected=affected)
