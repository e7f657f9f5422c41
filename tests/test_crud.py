from __future__ import annotations

import asyncio
from typing import Any

import pytest
from pydantic import BaseModel

from pycrudsync.backends.memory import MemoryBackend
from pycrudsync.config import SyncConfig
from pycrudsync.context import Scope
from pycrudsync.crud import TableHandle, database
from pycrudsync.exceptions import EntityNotFoundError, MissingProviderError, UnknownTableError
from pycrudsync.models.schema import TableSchema


class _UserRead(BaseModel):
    id: str
    name: str


class _UserWrite(BaseModel):
    name: str


class _PostRead(BaseModel):
    id: str
    title: str


class _PostWrite(BaseModel):
    title: str


SCHEMA = {
    "users": TableSchema(readable=_UserRead, writable=_UserWrite),
    "posts": TableSchema(readable=_PostRead, writable=_PostWrite),
}


class _ScriptedBackend:
    """Returns canned results and records every call."""

    def __init__(self, **results: Any) -> None:
        self.results = results
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.gate: asyncio.Event | None = None

    async def _answer(self, operation: str, props: dict[str, Any]) -> Any:
        self.calls.append((operation, props))
        if self.gate is not None:
            await self.gate.wait()
        outcome = self.results[operation]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def find(self, **props: Any) -> Any:
        return await self._answer("find", props)

    async def create(self, **props: Any) -> Any:
        return await self._answer("create", props)

    async def update(self, **props: Any) -> Any:
        return await self._answer("update", props)

    async def remove(self, **props: Any) -> Any:
        return await self._answer("remove", props)

    async def list(self, **props: Any) -> Any:
        return await self._answer("list", props)


@pytest.mark.asyncio
async def test_create_adds_result_to_index() -> None:
    backend = _ScriptedBackend(create={"id": "3", "name": "Bob"})
    users = TableHandle("users", backend, initial={"1": {"id": "1", "name": "Ann"}})

    result = await users.create.trigger(data={"name": "Bob"})

    assert result == {"id": "3", "name": "Bob"}
    assert len(users.index) == 2
    assert "3" in users.index


@pytest.mark.asyncio
async def test_table_name_is_injected_and_cannot_be_overridden() -> None:
    backend = _ScriptedBackend(create={"id": "3", "name": "Bob"})
    users = TableHandle("users", backend)

    await users.create.trigger(data={"name": "Bob"}, table="posts")

    assert backend.calls == [("create", {"data": {"name": "Bob"}, "table": "users"})]


@pytest.mark.asyncio
async def test_result_without_identity_is_not_indexed() -> None:
    backend = _ScriptedBackend(create={"name": "ghost"}, update=None, remove={})
    users = TableHandle("users", backend, initial=[{"id": "1", "name": "Ann"}])

    await users.create.trigger(data={"name": "ghost"})
    await users.update.trigger(id="1", data={})
    await users.remove.trigger(id="1")

    assert list(users.index) == ["1"]


@pytest.mark.asyncio
async def test_update_overwrites_entry() -> None:
    backend = _ScriptedBackend(update={"id": "1", "name": "Annie"})
    users = TableHandle("users", backend, initial=[{"id": "1", "name": "Ann"}])

    await users.update.trigger(id="1", data={"name": "Annie"})

    assert users.array == [{"id": "1", "name": "Annie"}]


@pytest.mark.asyncio
async def test_remove_drops_entry() -> None:
    backend = _ScriptedBackend(remove={"id": "1", "name": "Ann"})
    users = TableHandle("users", backend, initial=[{"id": "1", "name": "Ann"}, {"id": "2", "name": "Ben"}])

    await users.remove.trigger(id="1")

    assert "1" not in users.index
    assert len(users.array) == 1


@pytest.mark.asyncio
async def test_repeated_remove_fails_in_backend_but_leaves_index_alone() -> None:
    backend = MemoryBackend({"users": [{"id": "1", "name": "Ann"}, {"id": "2", "name": "Ben"}]})
    users = TableHandle("users", backend, initial=backend.snapshot("users"))

    await users.remove.trigger(id="1")
    assert "1" not in users.index

    with pytest.raises(EntityNotFoundError):
        await users.remove.trigger(id="1")

    assert list(users.index) == ["2"]
    assert isinstance(users.remove.error, EntityNotFoundError)


@pytest.mark.asyncio
async def test_unfiltered_list_is_a_full_resync() -> None:
    backend = _ScriptedBackend(list=[{"id": "1", "name": "Ann"}, {"id": "2", "name": "Ben"}])
    users = TableHandle("users", backend)

    await users.list.trigger()
    assert len(users.array) == 2

    backend.results["list"] = [{"id": "2", "name": "Ben"}]
    await users.list.trigger()

    assert len(users.array) == 1
    assert "1" not in users.index


@pytest.mark.asyncio
async def test_filtered_list_upserts_without_evicting() -> None:
    backend = _ScriptedBackend(list=[{"id": "2", "name": "Ben"}])
    users = TableHandle("users", backend, initial=[{"id": "1", "name": "Ann"}])

    await users.list.trigger(filters={"name": "Ben"})
    await users.list.trigger(pagination={"limit": 1, "page": 2})

    assert list(users.index) == ["1", "2"]


@pytest.mark.asyncio
async def test_filtered_list_replaces_when_configured() -> None:
    backend = _ScriptedBackend(list=[{"id": "2", "name": "Ben"}])
    config = SyncConfig(resync_filtered_lists=True)
    users = TableHandle("users", backend, initial=[{"id": "1", "name": "Ann"}], config=config)

    await users.list.trigger(filters={"name": "Ben"})

    assert list(users.index) == ["2"]


@pytest.mark.asyncio
async def test_find_does_not_touch_index() -> None:
    backend = _ScriptedBackend(find={"id": "9", "name": "Zed"})
    users = TableHandle("users", backend)

    found = await users.find.trigger(id="9")

    assert found == {"id": "9", "name": "Zed"}
    assert len(users.index) == 0
    assert users.find.result == found


@pytest.mark.asyncio
async def test_same_action_is_single_flight_but_different_actions_run_in_parallel() -> None:
    backend = _ScriptedBackend(create={"id": "3", "name": "Bob"}, update={"id": "1", "name": "Annie"})
    backend.gate = asyncio.Event()
    users = TableHandle("users", backend, initial=[{"id": "1", "name": "Ann"}])

    create_task = asyncio.create_task(users.create.trigger(data={"name": "Bob"}))
    update_task = asyncio.create_task(users.update.trigger(id="1", data={"name": "Annie"}))
    await asyncio.sleep(0)
    dropped = await users.create.trigger(data={"name": "Bob"})

    assert dropped is None
    assert users.create.loading and users.update.loading
    assert [operation for operation, _ in backend.calls] == ["create", "update"]

    backend.gate.set()
    await asyncio.gather(create_task, update_task)
    assert users.array == [{"id": "1", "name": "Annie"}, {"id": "3", "name": "Bob"}]


@pytest.mark.asyncio
async def test_failure_is_recorded_per_action_and_reraised() -> None:
    backend = _ScriptedBackend(create=RuntimeError("backend down"))
    users = TableHandle("users", backend)

    with pytest.raises(RuntimeError, match="backend down"):
        await users.create.trigger(data={"name": "Bob"})

    assert isinstance(users.create.error, RuntimeError)
    assert users.update.error is None
    assert len(users.index) == 0


@pytest.mark.asyncio
async def test_result_arriving_after_close_is_not_applied() -> None:
    backend = _ScriptedBackend(create={"id": "3", "name": "Bob"})
    backend.gate = asyncio.Event()
    users = TableHandle("users", backend)

    task = asyncio.create_task(users.create.trigger(data={"name": "Bob"}))
    await asyncio.sleep(0)
    users.close()
    backend.gate.set()

    assert await task == {"id": "3", "name": "Bob"}
    assert len(users.index) == 0
    assert users.create.result is None


@pytest.mark.asyncio
async def test_handle_notifies_on_index_and_action_changes() -> None:
    backend = _ScriptedBackend(create={"id": "3", "name": "Bob"})
    users = TableHandle("users", backend)
    ticks: list[tuple[bool, int]] = []
    users.subscribe(lambda: ticks.append((users.create.loading, len(users.array))))

    await users.create.trigger(data={"name": "Bob"})

    assert ticks == [(True, 0), (True, 1), (False, 1)]


@pytest.mark.asyncio
async def test_database_provider_exposes_every_schema_table() -> None:
    db = database(SCHEMA, _ScriptedBackend())
    users = [{"id": "1", "name": "John"}, {"id": "2", "name": "Jane"}]

    async with db.DatabaseProvider(Scope(), users=users) as scope:
        tables = db.use_database(scope)

        assert len(tables["users"].array) == 2
        assert len(tables.posts.array) == 0
        assert db.use_table(scope, "users") is tables["users"]
        for operation in ("find", "create", "update", "remove", "list"):
            assert hasattr(db.use_table(scope, "users"), operation)


@pytest.mark.asyncio
async def test_database_rejects_unknown_tables() -> None:
    db = database(SCHEMA, _ScriptedBackend())

    with pytest.raises(UnknownTableError):
        db.table("comments")

    async with db.DatabaseProvider(Scope()) as scope:
        with pytest.raises(UnknownTableError):
            db.use_table(scope, "comments")


@pytest.mark.asyncio
async def test_use_database_outside_provider() -> None:
    db = database(SCHEMA, _ScriptedBackend())

    with pytest.raises(MissingProviderError, match="use_database must be used within a DatabaseProvider"):
        db.use_database(Scope())


@pytest.mark.asyncio
async def test_unmounting_database_closes_tables() -> None:
    db = database(SCHEMA, _ScriptedBackend())
    provider = db.DatabaseProvider(Scope())
    scope = provider.mount()
    users = db.use_table(scope, "users")

    provider.unmount()

    assert users.closed is True
    assert users.create.closed is True


@pytest.mark.asyncio
async def test_single_provider_reads_index_without_fetching() -> None:
    backend = _ScriptedBackend(find={"id": "1", "name": "fetched"})
    db = database(SCHEMA, backend)

    async with db.DatabaseProvider(Scope(), users=[{"id": "1", "name": "cached"}]) as scope:
        async with db.SingleProvider(scope, table="users", id="1") as single_scope:
            single = db.use_single(single_scope)

            assert single.single == {"id": "1", "name": "cached"}
            assert single.pending is None

    assert backend.calls == []


@pytest.mark.asyncio
async def test_single_provider_fetches_missing_entity() -> None:
    backend = _ScriptedBackend(find={"id": "7", "name": "Zed"})
    db = database(SCHEMA, backend)

    async with db.DatabaseProvider(Scope()) as scope:
        async with db.SingleProvider(scope, table="users", id="7") as single_scope:
            single = db.use_single(single_scope)
            assert single.ready is False
            assert single.single is None

            assert single.pending is not None
            await single.pending

            assert single.single == {"id": "7", "name": "Zed"}
            assert len(db.use_table(scope, "users").index) == 0

    assert backend.calls == [("find", {"id": "7", "table": "users"})]


@pytest.mark.asyncio
async def test_single_provider_stays_absent_when_find_fails() -> None:
    backend = _ScriptedBackend(find=EntityNotFoundError("missing", table="users", entity_id="7"))
    db = database(SCHEMA, backend)

    async with db.DatabaseProvider(Scope()) as scope:
        async with db.SingleProvider(scope, table="users", id="7") as single_scope:
            single = db.use_single(single_scope)
            assert single.pending is not None
            await single.pending

            assert single.single is None
            assert isinstance(single.error, EntityNotFoundError)
            assert single.loading is False
            assert db.use_table(scope, "users").find.error is None


class _EchoFindBackend(_ScriptedBackend):
    async def find(self, **props: Any) -> Any:
        await self._answer("find", props)
        return {"id": props["id"], "name": f"user {props['id']}"}


@pytest.mark.asyncio
async def test_single_providers_fetch_different_entities_concurrently() -> None:
    backend = _EchoFindBackend(find=None)
    backend.gate = asyncio.Event()
    db = database(SCHEMA, backend)

    async with db.DatabaseProvider(Scope()) as scope:
        async with db.SingleProvider(scope, table="users", id="1") as first_scope:
            async with db.SingleProvider(scope, table="users", id="2") as second_scope:
                first = db.use_single(first_scope)
                second = db.use_single(second_scope)
                assert first.pending is not None
                assert second.pending is not None
                await asyncio.sleep(0)
                assert first.loading and second.loading

                backend.gate.set()
                await asyncio.gather(first.pending, second.pending)

                assert first.single == {"id": "1", "name": "user 1"}
                assert second.single == {"id": "2", "name": "user 2"}

    assert sorted(props["id"] for _, props in backend.calls) == ["1", "2"]


@pytest.mark.asyncio
async def test_single_provider_fetches_while_table_find_is_busy() -> None:
    backend = _EchoFindBackend(find=None)
    backend.gate = asyncio.Event()
    db = database(SCHEMA, backend)

    async with db.DatabaseProvider(Scope()) as scope:
        users = db.use_table(scope, "users")
        table_find = asyncio.create_task(users.find.trigger(id="1"))
        await asyncio.sleep(0)

        async with db.SingleProvider(scope, table="users", id="2") as single_scope:
            single = db.use_single(single_scope)
            backend.gate.set()
            assert single.pending is not None
            await single.pending

            assert single.single == {"id": "2", "name": "user 2"}

        assert await table_find == {"id": "1", "name": "user 1"}
