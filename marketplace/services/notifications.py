"""Return lifecycle emails

Sent in the background after the change they describe has been stored.
A mail that cannot be delivered is logged and dropped; it never undoes or
fails the return action.
"""

import asyncio
import html
import logging
from typing import Awaitable, Callable, List, Set

import aiosmtplib
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from marketplace.core.email import send_email
from marketplace.models.return_model import ReturnRequest
from marketplace.services.base import STAFF_ROLES

logger = logging.getLogger(__name__)

Mailer = Callable[..., Awaitable[None]]

# Strong references to running sends; the event loop only keeps weak ones
_in_flight: Set[asyncio.Task] = set()


def _html(title: str, lines: List[str]) -> str:
    paragraphs = "".join(f"<p>{html.escape(line)}</p>" for line in lines)
    return f"""
    <!DOCTYPE html>
    <html>
    <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
        <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
            <h2>{html.escape(title)}</h2>
            {paragraphs}
        </div>
    </body>
    </html>
    """


class ReturnNotifier:
    """Tells staff about new return requests and customers about decisions"""

    def __init__(self, db: AsyncIOMotorDatabase, send: Mailer = send_email):
        self.db = db
        self.send = send
        self._pending: Set[asyncio.Task] = set()

    def return_requested(self, ret: ReturnRequest):
        self._schedule(self._notify_staff(ret))

    def return_approved(self, ret: ReturnRequest):
        self._notify_customer(ret, "Your return was approved", [
            f"Your return request {ret.return_number} for order {ret.order_number} was approved.",
            "Please send the goods back so we can complete your refund.",
        ])

    def return_rejected(self, ret: ReturnRequest):
        self._notify_customer(ret, "Your return was rejected", [
            f"Your return request {ret.return_number} for order {ret.order_number} was rejected.",
            f"Reason: {ret.rejection_reason}",
        ])

    def return_completed(self, ret: ReturnRequest):
        self._notify_customer(ret, "Your return is complete", [
            f"Your return request {ret.return_number} for order {ret.order_number} is complete.",
            f"Refund amount: {ret.total_refund_amount:,} won",
        ])

    async def wait_idle(self):
        """Wait for every email scheduled so far"""
        while True:
            running = [task for task in self._pending if not task.done()]
            if not running:
                return
            await asyncio.gather(*running)

    def _schedule(self, coro):
        task = asyncio.create_task(coro)
        for tasks in (self._pending, _in_flight):
            tasks.add(task)
            task.add_done_callback(tasks.discard)

    def _notify_customer(self, ret: ReturnRequest, subject: str, lines: List[str]):
        if not ret.customer_email:
            logger.info(f"Return {ret.return_number}: no customer email on file, skipping '{subject}'")
            return
        self._schedule(self._deliver(ret.customer_email, subject, lines))

    async def _notify_staff(self, ret: ReturnRequest):
        try:
            recipients = await self._staff_emails()
        except PyMongoError as e:
            logger.error(f"Could not look up staff for return {ret.return_number}: {str(e)}")
            return

        lines = [
            f"New return request {ret.return_number}",
            f"Order number: {ret.order_number}, reason: {ret.reason_category.value}",
            ret.detailed_reason,
        ]
        for email in recipients:
            await self._deliver(email, f"New return request {ret.return_number}", lines)

    async def _staff_emails(self) -> List[str]:
        cursor = self.db.users.find(
            {"role": {"$in": list(STAFF_ROLES)}, "email": {"$nin": [None, ""]}, "active": {"$ne": False}},
            {"email": 1},
        )
        return [user["email"] async for user in cursor]

    async def _deliver(self, to_email: str, subject: str, lines: List[str]):
        try:
            await self.send(to_email, subject, _html(subject, lines), "\n".join(lines))
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.warning(f"Notification '{subject}' to {to_email} not delivered: {str(e)}")
