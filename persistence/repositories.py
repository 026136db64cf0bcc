from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from typing import Any, Mapping, Protocol, TypeVar

from pydantic import ValidationError

from . import collections as c
from .document_store import AsyncDocumentStore
from .ids import generate_id
from .records import (
    AttendanceRecord,
    ChatMessage,
    Complaint,
    ConsoleRecord,
    Expense,
    InventoryItem,
    MeetingMinutes,
    OnboardingRecord,
    PasswordChangeRequest,
    Paycheck,
    PaycheckStatus,
    Task,
    TaskTemplate,
    UserAccount,
)

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=ConsoleRecord)


class MirrorPusher(Protocol):
    async def push(self) -> bool: ...


def default_users() -> list[UserAccount]:
    """Accounts seeded into an empty `users` collection."""
    return [
        UserAccount(
            id="u-ceo",
            name="Chief Executive",
            role="CEO",
            username="ceo",
            password="password123",
        ),
        UserAccount(
            id="u-ict-1",
            name="ICT Manager",
            role="Staff",
            username="ict.manager",
            password="password123",
            position="ICT MANAGER",
            department="ICT",
            jobDescription="Keep the organization's systems, platforms and data running day to day.",
        ),
    ]


class ConsoleRepository:
    """
    Typed per-entity access over the document store.

    Every mutation awaits the local write, then schedules a background push
    to the remote mirror. The push is never awaited by the mutation and its
    failure never fails it. StorageFault from the store propagates as-is.
    """

    def __init__(self, store: AsyncDocumentStore, mirror: MirrorPusher | None = None) -> None:
        self._store = store
        self._mirror = mirror
        self._pending: set[asyncio.Task[bool]] = set()

    @property
    def store(self) -> AsyncDocumentStore:
        return self._store

    # ------------------------------------------------------------------
    # Generic helpers
    # ------------------------------------------------------------------

    async def _list(self, collection: str, model: type[RecordT]) -> list[RecordT]:
        return _validate_all(collection, model, await self._store.get_all(collection))

    async def _find(self, collection: str, model: type[RecordT], record_id: str | int) -> RecordT | None:
        return next((r for r in await self._list(collection, model) if str(r.id) == str(record_id)), None)

    async def _save(self, collection: str, model: type[RecordT], record: RecordT | Mapping[str, Any]) -> RecordT:
        validated = _coerce(model, record)
        await self._store.put(collection, validated.to_document())
        self._schedule_push()
        return validated

    async def _save_bulk(
        self, collection: str, model: type[RecordT], records: Iterable[RecordT | Mapping[str, Any]]
    ) -> list[RecordT]:
        validated = [_coerce(model, r) for r in records]
        await self._store.put_bulk(collection, [r.to_document() for r in validated])
        self._schedule_push()
        return validated

    async def _delete(self, collection: str, record_id: str | int) -> None:
        await self._store.delete(collection, record_id)
        self._schedule_push()

    def _schedule_push(self) -> None:
        if self._mirror is None:
            return
        task = asyncio.get_running_loop().create_task(self._push_in_background())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _push_in_background(self) -> bool:
        assert self._mirror is not None
        try:
            return await self._mirror.push()
        except Exception:
            # push() already swallows transport errors; anything else is a bug worth a traceback
            logger.exception("SYNC PUSH: background push crashed")
            return False

    async def wait_for_pending_pushes(self) -> None:
        """Await every background push scheduled so far."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def get_users(self) -> list[UserAccount]:
        docs = await self._store.get_all(c.USERS)
        if docs:
            return _validate_all(c.USERS, UserAccount, docs)
        seeded = default_users()
        await self._store.put_bulk(c.USERS, [u.to_document() for u in seeded])
        logger.info("USERS: seeded %d default account(s)", len(seeded))
        self._schedule_push()
        return seeded

    async def save_user(self, user: UserAccount | Mapping[str, Any]) -> UserAccount:
        return await self._save(c.USERS, UserAccount, user)

    async def delete_user(self, user_id: str) -> None:
        await self._delete(c.USERS, user_id)

    async def authenticate(self, username: str, password: str) -> UserAccount | None:
        """Sign-in check: exact username and password match against `users`."""
        if not username or not password:
            return None
        return next(
            (u for u in await self.get_users() if u.username == username and u.password == password),
            None,
        )

    # ------------------------------------------------------------------
    # Password requests
    # ------------------------------------------------------------------

    async def get_password_requests(self) -> list[PasswordChangeRequest]:
        return await self._list(c.PASSWORD_REQUESTS, PasswordChangeRequest)

    async def create_password_request(
        self, request: PasswordChangeRequest | Mapping[str, Any]
    ) -> PasswordChangeRequest:
        """
        File a password change. A CEO's own request is applied immediately.

        Requests filed as plain mappings without an id get a generated one.
        """
        if not isinstance(request, ConsoleRecord) and not request.get(c.ID_FIELD):
            request = {**request, c.ID_FIELD: generate_id("pwd-")}
        req = _coerce(PasswordChangeRequest, request)
        user = next((u for u in await self.get_users() if str(u.id) == str(req.userId)), None)
        if user is not None and user.role == "CEO":
            user.password = req.newPassword
            await self.save_user(user)
            req.status = "Approved"
        return await self._save(c.PASSWORD_REQUESTS, PasswordChangeRequest, req)

    async def process_password_request(self, request_id: str, approved: bool) -> PasswordChangeRequest | None:
        req = await self._find(c.PASSWORD_REQUESTS, PasswordChangeRequest, request_id)
        if req is None:
            return None
        if approved:
            user = next((u for u in await self.get_users() if str(u.id) == str(req.userId)), None)
            if user is not None:
                user.password = req.newPassword
                await self.save_user(user)
                req.status = "Approved"
        else:
            req.status = "Rejected"
        return await self._save(c.PASSWORD_REQUESTS, PasswordChangeRequest, req)

    async def delete_password_request(self, request_id: str) -> None:
        await self._delete(c.PASSWORD_REQUESTS, request_id)

    # ------------------------------------------------------------------
    # Tasks & templates
    # ------------------------------------------------------------------

    async def get_tasks(self) -> list[Task]:
        return await self._list(c.TASKS, Task)

    async def save_task(self, task: Task | Mapping[str, Any]) -> Task:
        return await self._save(c.TASKS, Task, task)

    async def delete_task(self, task_id: str) -> None:
        await self._delete(c.TASKS, task_id)

    async def get_templates(self) -> list[TaskTemplate]:
        return await self._list(c.TEMPLATES, TaskTemplate)

    async def save_template(self, template: TaskTemplate | Mapping[str, Any]) -> TaskTemplate:
        return await self._save(c.TEMPLATES, TaskTemplate, template)

    async def delete_template(self, template_id: str) -> None:
        await self._delete(c.TEMPLATES, template_id)

    # ------------------------------------------------------------------
    # Expenses
    # ------------------------------------------------------------------

    async def get_expenses(self) -> list[Expense]:
        return await self._list(c.EXPENSES, Expense)

    async def save_expense(self, expense: Expense | Mapping[str, Any]) -> Expense:
        return await self._save(c.EXPENSES, Expense, expense)

    async def delete_expense(self, expense_id: str) -> None:
        await self._delete(c.EXPENSES, expense_id)

    # ------------------------------------------------------------------
    # Payroll
    # ------------------------------------------------------------------

    async def get_payroll(self) -> list[Paycheck]:
        return await self._list(c.PAYROLL, Paycheck)

    async def save_paycheck(self, paycheck: Paycheck | Mapping[str, Any]) -> Paycheck:
        return await self._save(c.PAYROLL, Paycheck, paycheck)

    async def save_payroll(self, paychecks: Iterable[Paycheck | Mapping[str, Any]]) -> list[Paycheck]:
        """Store a generated payroll batch in one all-or-nothing write."""
        return await self._save_bulk(c.PAYROLL, Paycheck, paychecks)

    async def update_paycheck_status(self, paycheck_id: str, status: PaycheckStatus = "Paid") -> Paycheck | None:
        paycheck = await self._find(c.PAYROLL, Paycheck, paycheck_id)
        if paycheck is None:
            return None
        paycheck.status = status
        return await self._save(c.PAYROLL, Paycheck, paycheck)

    async def delete_paycheck(self, paycheck_id: str) -> None:
        await self._delete(c.PAYROLL, paycheck_id)

    # ------------------------------------------------------------------
    # Inventory
    # ------------------------------------------------------------------

    async def get_inventory(self) -> list[InventoryItem]:
        return await self._list(c.INVENTORY, InventoryItem)

    async def save_inventory_item(self, item: InventoryItem | Mapping[str, Any]) -> InventoryItem:
        return await self._save(c.INVENTORY, InventoryItem, item)

    async def save_inventory(self, items: Iterable[InventoryItem | Mapping[str, Any]]) -> list[InventoryItem]:
        """Store an inventory sheet in one all-or-nothing write."""
        return await self._save_bulk(c.INVENTORY, InventoryItem, items)

    async def delete_inventory_item(self, item_id: str) -> None:
        await self._delete(c.INVENTORY, item_id)

    # ------------------------------------------------------------------
    # Onboarding
    # ------------------------------------------------------------------

    async def get_onboarding_docs(self) -> list[OnboardingRecord]:
        return await self._list(c.ONBOARDING, OnboardingRecord)

    async def save_onboarding_doc(self, doc: OnboardingRecord | Mapping[str, Any]) -> OnboardingRecord:
        return await self._save(c.ONBOARDING, OnboardingRecord, doc)

    async def delete_onboarding_doc(self, doc_id: str) -> None:
        await self._delete(c.ONBOARDING, doc_id)

    # ------------------------------------------------------------------
    # Attendance
    # ------------------------------------------------------------------

    async def get_attendance(self) -> list[AttendanceRecord]:
        return await self._list(c.ATTENDANCE, AttendanceRecord)

    async def save_attendance_record(self, record: AttendanceRecord | Mapping[str, Any]) -> AttendanceRecord:
        return await self._save(c.ATTENDANCE, AttendanceRecord, record)

    async def delete_attendance_record(self, record_id: str) -> None:
        await self._delete(c.ATTENDANCE, record_id)

    # ------------------------------------------------------------------
    # Complaints
    # ------------------------------------------------------------------

    async def get_complaints(self) -> list[Complaint]:
        return await self._list(c.COMPLAINTS, Complaint)

    async def save_complaint(self, complaint: Complaint | Mapping[str, Any]) -> Complaint:
        return await self._save(c.COMPLAINTS, Complaint, complaint)

    async def resolve_complaint(self, complaint_id: str) -> Complaint | None:
        complaint = await self._find(c.COMPLAINTS, Complaint, complaint_id)
        if complaint is None:
            return None
        complaint.status = "Resolved"
        return await self._save(c.COMPLAINTS, Complaint, complaint)

    async def delete_complaint(self, complaint_id: str) -> None:
        await self._delete(c.COMPLAINTS, complaint_id)

    # ------------------------------------------------------------------
    # Meetings
    # ------------------------------------------------------------------

    async def get_meetings(self) -> list[MeetingMinutes]:
        return await self._list(c.MEETINGS, MeetingMinutes)

    async def save_meeting(self, meeting: MeetingMinutes | Mapping[str, Any]) -> MeetingMinutes:
        return await self._save(c.MEETINGS, MeetingMinutes, meeting)

    async def delete_meeting(self, meeting_id: str) -> None:
        await self._delete(c.MEETINGS, meeting_id)

    # ------------------------------------------------------------------
    # Chats
    # ------------------------------------------------------------------

    async def get_chats(self, *, channel_id: str | None = None) -> list[ChatMessage]:
        chats = await self._list(c.CHATS, ChatMessage)
        if channel_id is None:
            return chats
        return [m for m in chats if m.channelId == channel_id]

    async def save_chat(self, message: ChatMessage | Mapping[str, Any]) -> ChatMessage:
        return await self._save(c.CHATS, ChatMessage, message)

    async def delete_chat(self, message_id: str) -> None:
        await self._delete(c.CHATS, message_id)


def _coerce(model: type[RecordT], record: RecordT | Mapping[str, Any]) -> RecordT:
    if isinstance(record, model):
        return record
    if isinstance(record, ConsoleRecord):
        return model.model_validate(record.to_document())
    return model.model_validate(record)


def _validate_all(collection: str, model: type[RecordT], docs: list[dict[str, Any]]) -> list[RecordT]:
    # The store accepts any object with an id; documents the model cannot read are
    # left on disk untouched and skipped here.
    records: list[RecordT] = []
    for doc in docs:
        try:
            records.append(model.model_validate(doc))
        except ValidationError as e:
            logger.warning(
                "RECORDS: skipping %s document %r: %d validation error(s)",
                collection,
                doc.get(c.ID_FIELD),
                e.error_count(),
            )
    return records
