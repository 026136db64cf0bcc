from __future__ import annotations

import asyncio

import pytest

from persistence.errors import StorageFault
from persistence.records import Complaint, InventoryItem, PasswordChangeRequest, Paycheck, Task
from persistence.repositories import ConsoleRepository


class RecordingMirror:
    def __init__(self, *, result: bool = True, gate: asyncio.Event | None = None, boom: bool = False):
        self.calls = 0
        self.completed = 0
        self._result = result
        self._gate = gate
        self._boom = boom

    async def push(self) -> bool:
        self.calls += 1
        if self._gate is not None:
            await self._gate.wait()
        if self._boom:
            raise RuntimeError("mirror exploded")
        self.completed += 1
        return self._result


def test_save_user_twice_keeps_last_version(store):
    async def _run():
        repo = ConsoleRepository(store, RecordingMirror())
        await repo.save_user({"id": "u1", "name": "A"})
        await repo.save_user({"id": "u1", "name": "B"})

        users = await repo.get_users()
        assert [(u.id, u.name) for u in users] == [("u1", "B")]
        await repo.wait_for_pending_pushes()

    asyncio.run(_run())


def test_get_users_seeds_default_accounts_once(store):
    async def _run():
        mirror = RecordingMirror()
        repo = ConsoleRepository(store, mirror)

        users = await repo.get_users()
        assert {u.id for u in users} == {"u-ceo", "u-ict-1"}
        assert {u.role for u in users} == {"CEO", "Staff"}
        assert len(await store.get_all("users")) == 2

        await repo.wait_for_pending_pushes()
        assert mirror.calls == 1

        await repo.get_users()
        await repo.wait_for_pending_pushes()
        assert mirror.calls == 1

    asyncio.run(_run())


def test_save_does_not_wait_for_push(store):
    async def _run():
        gate = asyncio.Event()
        mirror = RecordingMirror(gate=gate)
        repo = ConsoleRepository(store, mirror)

        await repo.save_task({"id": "t1", "tasksForToday": "Ship report"})
        assert [t.id for t in await repo.get_tasks()] == ["t1"]
        assert mirror.completed == 0

        gate.set()
        await repo.wait_for_pending_pushes()
        assert mirror.completed == 1

    asyncio.run(_run())


def test_push_crash_never_fails_the_save(store):
    async def _run():
        repo = ConsoleRepository(store, RecordingMirror(boom=True))
        saved = await repo.save_expense({"id": "e1", "amount": 1200, "status": "Pending"})
        assert saved.amount == 1200
        await repo.wait_for_pending_pushes()
        assert [e.id for e in await repo.get_expenses()] == ["e1"]

    asyncio.run(_run())


def test_every_mutation_schedules_a_push(store):
    async def _run():
        mirror = RecordingMirror()
        repo = ConsoleRepository(store, mirror)

        await repo.save_meeting({"id": "m1", "agenda": "Budget", "attendance": ["u1"]})
        await repo.delete_meeting("m1")
        await repo.save_inventory([{"id": "i1", "product": "Toner", "in": 3}, {"id": "i2", "product": "Paper"}])
        await repo.save_payroll([Paycheck(id="p1", staffName="A", netPay=100, status="Generated")])
        await repo.wait_for_pending_pushes()
        assert mirror.calls == 4

    asyncio.run(_run())


def test_keyword_fields_survive_round_trip(store):
    async def _run():
        repo = ConsoleRepository(store)
        await repo.save_inventory_item(InventoryItem(id="i1", product="Toner", in_=5, out=2, balance=3))
        await repo.save_complaint({"id": "c1", "from": "Front desk", "text": "AC broken", "status": "Open"})

        assert await store.get_all("inventory") == [
            {"id": "i1", "product": "Toner", "in": 5, "out": 2, "balance": 3}
        ]
        complaint = (await repo.get_complaints())[0]
        assert complaint.from_ == "Front desk"

    asyncio.run(_run())


def test_unknown_fields_are_preserved(store):
    async def _run():
        repo = ConsoleRepository(store)
        await store.put("tasks", {"id": "t1", "customFlag": True, "skrc": {"status": "Ongoing", "extra": 1}})
        task = (await repo.get_tasks())[0]
        await repo.save_task(task)

        doc = (await store.get_all("tasks"))[0]
        assert doc["customFlag"] is True
        assert doc["skrc"]["extra"] == 1
        assert doc["skrc"]["status"] == "Ongoing"

    asyncio.run(_run())


def test_resolve_complaint_and_mark_paycheck_paid(store):
    async def _run():
        repo = ConsoleRepository(store)
        await repo.save_complaint(Complaint(id="c1", text="Leak", status="Open"))
        await repo.save_paycheck({"id": "p1", "staffName": "B", "status": "Generated"})

        resolved = await repo.resolve_complaint("c1")
        assert resolved is not None and resolved.status == "Resolved"
        assert (await repo.get_complaints())[0].status == "Resolved"

        paid = await repo.update_paycheck_status("p1", "Paid")
        assert paid is not None and paid.status == "Paid"
        assert (await repo.get_payroll())[0].status == "Paid"

        assert await repo.resolve_complaint("missing") is None
        assert await repo.update_paycheck_status("missing") is None

    asyncio.run(_run())


def test_password_requests(store):
    async def _run():
        repo = ConsoleRepository(store)
        await repo.get_users()

        # CEO requests apply immediately.
        ceo_req = await repo.create_password_request(
            PasswordChangeRequest(id="r1", userId="u-ceo", userName="CEO", newPassword="s3cret")
        )
        assert ceo_req.status == "Approved"
        assert await repo.authenticate("ceo", "s3cret") is not None

        staff_req = await repo.create_password_request(
            {"id": "r2", "userId": "u-ict-1", "userName": "ICT", "newPassword": "n3w"}
        )
        assert staff_req.status == "Pending"
        assert await repo.authenticate("ict.manager", "n3w") is None

        approved = await repo.process_password_request("r2", approved=True)
        assert approved is not None and approved.status == "Approved"
        assert await repo.authenticate("ict.manager", "n3w") is not None

        await repo.create_password_request({"id": "r3", "userId": "u-ict-1", "newPassword": "nope"})
        rejected = await repo.process_password_request("r3", approved=False)
        assert rejected is not None and rejected.status == "Rejected"
        assert await repo.authenticate("ict.manager", "nope") is None

        assert {r.id: r.status for r in await repo.get_password_requests()} == {
            "r1": "Approved",
            "r2": "Approved",
            "r3": "Rejected",
        }

    asyncio.run(_run())


def test_chats_filter_by_channel(store):
    async def _run():
        repo = ConsoleRepository(store)
        await repo.save_chat({"id": "m1", "channelId": "global", "text": "hi"})
        await repo.save_chat({"id": "m2", "channelId": "ict", "text": "server down"})
        assert [m.id for m in await repo.get_chats(channel_id="ict")] == ["m2"]
        assert len(await repo.get_chats()) == 2

    asyncio.run(_run())


def test_storage_fault_propagates_from_facade(store):
    async def _run():
        repo = ConsoleRepository(store)
        await repo.get_tasks()
        (store.engine.root / "tasks.json").write_text("[broken", encoding="utf-8")
        with pytest.raises(StorageFault):
            await repo.get_tasks()
        with pytest.raises(StorageFault):
            await repo.save_task(Task(id="t1"))

    asyncio.run(_run())


def test_password_request_without_id_gets_one(store):
    async def _run():
        repo = ConsoleRepository(store)
        await repo.get_users()
        req = await repo.create_password_request({"userId": "u-ict-1", "newPassword": "later"})
        assert str(req.id).startswith("pwd-")
        assert [r.id for r in await repo.get_password_requests()] == [req.id]

    asyncio.run(_run())


def test_off_model_documents_are_skipped_on_read(store):
    from persistence.snapshot import SnapshotCodec

    async def _run():
        repo = ConsoleRepository(store)
        raw = '{"tasks":[{"id":"t1","comments":[{"text":"hi"}]},{"id":"t2","sn":"not a number"},{"id":"t3"}]}'
        assert await SnapshotCodec(store).import_snapshot(raw) is True

        tasks = {t.id: t for t in await repo.get_tasks()}
        assert set(tasks) == {"t1", "t3"}
        assert tasks["t1"].comments[0].text == "hi"
        # The unreadable document stays in the store.
        assert len(await store.get_all("tasks")) == 3

    asyncio.run(_run())


def test_unreadable_users_do_not_trigger_reseeding(store):
    async def _run():
        await store.put("users", {"id": "u9", "salary": "lots"})
        repo = ConsoleRepository(store)
        assert await repo.get_users() == []
        assert await store.get_all("users") == [{"id": "u9", "salary": "lots"}]

    asyncio.run(_run())


def test_explicit_nulls_survive_a_status_change(store):
    async def _run():
        repo = ConsoleRepository(store)
        await store.put("complaints", {"id": "c1", "text": "Leak", "date": None, "status": "Open"})
        await store.put("tasks", {"id": "t1", "skrc": {"status": "Ongoing", "report": None}, "deadline": None})

        await repo.resolve_complaint("c1")
        assert await store.get_all("complaints") == [
            {"id": "c1", "text": "Leak", "date": None, "status": "Resolved"}
        ]

        task = (await repo.get_tasks())[0]
        await repo.save_task(task)
        doc = (await store.get_all("tasks"))[0]
        assert doc["deadline"] is None
        assert doc["skrc"] == {"status": "Ongoing", "report": None}

    asyncio.run(_run())
