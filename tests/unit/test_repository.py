from __future__ import annotations

import logging

import pytest

from model_one.domain.errors import (
    MissingIdentity,
    RecordNotFound,
    SchemaViolation,
    StorageFailure,
    ValidationFailure,
)
from model_one.domain.records import QueryResult
from model_one.domain.schema import TableSchema
from model_one.mapper import View, to_record
from model_one.repository import Repository

ANA_ID = "00000000-0000-4000-8000-000000000001"
STAMP = "2024-05-01T12:00:00.000Z"


def _ok(*rows: dict) -> QueryResult:
    return QueryResult(success=True, rows=list(rows), error=None)


def _failed(message: str) -> QueryResult:
    return QueryResult(success=False, rows=[], error=message)


def _user_row(**overrides) -> dict:
    row = {
        "id": ANA_ID,
        "name": "Ana",
        "email": None,
        "age": None,
        "active": None,
        "settings": None,
        "birthday": None,
        "created_at": STAMP,
        "updated_at": STAMP,
        "deleted_at": None,
    }
    row.update(overrides)
    return row


@pytest.fixture
def repo(users_schema: TableSchema, fake_executor, id_sequence) -> Repository:
    return Repository(users_schema, fake_executor, id_generator=id_sequence)


@pytest.fixture
def notes(notes_schema: TableSchema, fake_executor, id_sequence) -> Repository:
    return Repository(notes_schema, fake_executor, id_generator=id_sequence)


class TestCreate:
    @pytest.mark.asyncio
    async def test_create_inserts_and_materializes_the_row(self, repo, fake_executor) -> None:
        fake_executor.queue(_ok(_user_row(age=30)))

        record = await repo.create({"name": "Ana", "age": 30})

        assert record.id == ANA_ID
        assert record.fields["age"] == 30
        assert record.created_at == STAMP
        assert fake_executor.statements[0].startswith('INSERT INTO "users"')
        assert fake_executor.calls[0]["params"] == (ANA_ID, "Ana", 30)

    @pytest.mark.asyncio
    async def test_create_checks_advisory_uniques_first(self, repo, fake_executor) -> None:
        fake_executor.queue(_ok(), _ok(_user_row(email="ana@example.com")))

        await repo.create({"name": "Ana", "email": "ana@example.com"})

        assert fake_executor.statements[0] == 'SELECT "id" FROM "users" WHERE "email" = ? LIMIT 1'
        assert fake_executor.statements[1].startswith("INSERT")

    @pytest.mark.asyncio
    async def test_create_rejects_duplicates_found_by_the_unique_check(self, repo, fake_executor) -> None:
        fake_executor.queue(_ok({"id": "someone-else"}))

        with pytest.raises(ValidationFailure) as excinfo:
            await repo.create({"name": "Ana", "email": "ana@example.com"})

        assert [(e.field, e.kind) for e in excinfo.value.errors] == [("email", "unique")]
        assert len(fake_executor.calls) == 1

    @pytest.mark.asyncio
    async def test_unique_lookup_can_be_disabled(self, users_schema, fake_executor, id_sequence) -> None:
        repo = Repository(users_schema, fake_executor, id_generator=id_sequence, check_uniques=False)
        fake_executor.queue(_ok(_user_row()))

        await repo.create({"name": "Ana", "email": "ana@example.com"})

        assert len(fake_executor.calls) == 1

    @pytest.mark.asyncio
    async def test_create_rejects_a_caller_supplied_id(self, repo, fake_executor) -> None:
        with pytest.raises(SchemaViolation):
            await repo.create({"id": "mine", "name": "Ana"})
        assert fake_executor.calls == []

    @pytest.mark.asyncio
    async def test_create_ignores_managed_timestamps(self, repo, fake_executor) -> None:
        fake_executor.queue(_ok(_user_row()))

        await repo.create({"name": "Ana", "created_at": "1999-01-01", "deleted_at": None})

        assert '"created_at", "updated_at"' in fake_executor.statements[0]
        assert fake_executor.calls[0]["params"] == (ANA_ID, "Ana")

    @pytest.mark.asyncio
    async def test_invalid_payload_never_reaches_the_executor(self, repo, fake_executor) -> None:
        with pytest.raises(ValidationFailure):
            await repo.create({"age": "old"})
        assert fake_executor.calls == []

    @pytest.mark.asyncio
    async def test_engine_failure_surfaces_as_storage_failure(self, notes, fake_executor) -> None:
        fake_executor.queue(_failed("NOT NULL constraint failed: notes.title"))

        with pytest.raises(StorageFailure) as excinfo:
            await notes.create({"title": "x"})

        assert excinfo.value.raw_message == "NOT NULL constraint failed: notes.title"
        assert excinfo.value.column == "title"
        assert excinfo.value.operation == "create"

    @pytest.mark.asyncio
    async def test_executor_exceptions_surface_as_storage_failure(self, notes_schema) -> None:
        class Exploding:
            async def execute(self, sql, params=()):
                raise RuntimeError("connection reset")

        with pytest.raises(StorageFailure, match="connection reset"):
            await Repository(notes_schema, Exploding()).create({"title": "x"})


class TestUpdate:
    @pytest.mark.asyncio
    async def test_update_sends_only_supplied_columns(self, repo, fake_executor) -> None:
        fake_executor.queue(_ok(_user_row(age=31)))

        record = await repo.update(ANA_ID, {"age": 31})

        assert record.fields["age"] == 31
        assert fake_executor.calls[0]["params"] == (31, ANA_ID)

    @pytest.mark.asyncio
    async def test_update_unique_check_excludes_the_record_itself(self, repo, fake_executor) -> None:
        fake_executor.queue(_ok(), _ok(_user_row(email="new@example.com")))

        await repo.update(ANA_ID, {"email": "new@example.com"})

        assert fake_executor.calls[0]["params"] == ("new@example.com", ANA_ID)
        assert '"id" <> ?' in fake_executor.statements[0]

    @pytest.mark.parametrize("record_id", [None, ""])
    @pytest.mark.asyncio
    async def test_update_requires_identity(self, repo, record_id) -> None:
        with pytest.raises(MissingIdentity):
            await repo.update(record_id, {"age": 1})

    @pytest.mark.asyncio
    async def test_update_with_nothing_to_change_falls_back_to_find(self, repo, fake_executor, caplog) -> None:
        fake_executor.queue(_ok(_user_row()))

        with caplog.at_level(logging.WARNING, logger="model_one.repository"):
            record = await repo.update(ANA_ID, {})

        assert record.id == ANA_ID
        assert fake_executor.statements[0].startswith('SELECT * FROM "users" WHERE "id" = ?')
        assert any("no attributes to update" in message for message in caplog.messages)

    @pytest.mark.asyncio
    async def test_update_of_missing_row_raises_not_found(self, repo, fake_executor) -> None:
        fake_executor.queue(_ok())

        with pytest.raises(RecordNotFound) as excinfo:
            await repo.update("missing", {"age": 2})

        assert str(excinfo.value) == 'The ID missing has not been found at table "users"'

    @pytest.mark.asyncio
    async def test_composite_unique_is_completed_from_the_stored_row(self, fake_executor) -> None:
        schema = TableSchema.model_validate(
            {
                "table_name": "members",
                "uniques": [["org", "email"]],
                "columns": [{"name": "org", "type": "string"}, {"name": "email", "type": "string"}],
            }
        )
        repo = Repository(schema, fake_executor)
        fake_executor.queue(_ok({"id": "b", "org": "acme", "email": "y"}), _ok({"id": "a"}))

        with pytest.raises(ValidationFailure) as excinfo:
            await repo.update("b", {"email": "x"})

        assert fake_executor.statements == [
            'SELECT * FROM "members" WHERE "id" = ? LIMIT 1',
            'SELECT "id" FROM "members" WHERE "org" = ? AND "email" = ? AND "id" <> ? LIMIT 1',
        ]
        assert fake_executor.calls[1]["params"] == ("acme", "x", "b")
        assert {(e.field, e.kind) for e in excinfo.value.errors} == {("org", "unique"), ("email", "unique")}

    @pytest.mark.asyncio
    async def test_untouched_uniques_are_not_checked(self, repo, fake_executor) -> None:
        fake_executor.queue(_ok(_user_row(age=5)))

        await repo.update(ANA_ID, {"age": 5})

        assert len(fake_executor.calls) == 1
        assert fake_executor.statements[0].startswith('UPDATE "users"')

    @pytest.mark.asyncio
    async def test_ids_are_immutable(self, repo) -> None:
        with pytest.raises(SchemaViolation):
            await repo.update(ANA_ID, {"id": "other", "age": 2})


class TestDeleteAndRestore:
    @pytest.mark.asyncio
    async def test_soft_delete_outcome(self, repo, fake_executor) -> None:
        fake_executor.queue(_ok({"id": ANA_ID}))

        outcome = await repo.delete(ANA_ID)

        assert outcome == {
            "message": f'The ID {ANA_ID} from table "users" has been soft deleted.',
            "id": ANA_ID,
            "table": "users",
            "soft": True,
            "found": True,
        }

    @pytest.mark.asyncio
    async def test_hard_delete_outcome(self, notes, fake_executor) -> None:
        fake_executor.queue(_ok({"id": "n1"}))

        outcome = await notes.delete("n1")

        assert outcome["message"] == 'The ID n1 from table "notes" has been successfully deleted.'
        assert outcome["soft"] is False
        assert fake_executor.statements[0].startswith('DELETE FROM "notes"')

    @pytest.mark.asyncio
    async def test_delete_of_unknown_id_reports_not_found(self, repo, fake_executor) -> None:
        outcome = await repo.delete("ghost")
        assert outcome["found"] is False
        assert outcome["message"] == 'The ID ghost has not been found at table "users"'

    @pytest.mark.asyncio
    async def test_delete_requires_identity(self, repo, fake_executor) -> None:
        with pytest.raises(MissingIdentity):
            await repo.delete(None)
        assert fake_executor.calls == []

    @pytest.mark.asyncio
    async def test_restore_returns_the_live_record(self, repo, fake_executor) -> None:
        fake_executor.queue(_ok(_user_row()))
        record = await repo.restore(ANA_ID)
        assert record.deleted_at is None

    @pytest.mark.asyncio
    async def test_restore_of_missing_row(self, repo) -> None:
        with pytest.raises(RecordNotFound):
            await repo.restore("ghost")

    @pytest.mark.asyncio
    async def test_restore_requires_soft_deletes(self, notes, fake_executor) -> None:
        with pytest.raises(SchemaViolation):
            await notes.restore("n1")
        assert fake_executor.calls == []


class TestReads:
    @pytest.mark.asyncio
    async def test_find_by_id_without_id_skips_the_query(self, repo, fake_executor) -> None:
        assert await repo.find_by_id(None) is None
        assert fake_executor.calls == []

    @pytest.mark.asyncio
    async def test_finds_return_none_or_empty(self, repo) -> None:
        assert await repo.find_by_id("ghost") is None
        assert await repo.find_one("email", "x@example.com") is None
        assert await repo.find_by("name", "Nobody") == []
        assert await repo.find_all() == []

    @pytest.mark.asyncio
    async def test_find_all_decodes_rows(self, repo, fake_executor) -> None:
        fake_executor.queue(_ok(_user_row(active=1, settings='{"a":1}'), _user_row(id="b", name="Bo")))

        records = await repo.find_all(include_deleted=True)

        assert [r.id for r in records] == [ANA_ID, "b"]
        assert records[0].fields["active"] is True
        assert records[0].fields["settings"] == {"a": 1}
        assert fake_executor.statements[0] == 'SELECT * FROM "users"'

    @pytest.mark.asyncio
    async def test_public_view_hides_bookkeeping(self, users_schema, fake_executor) -> None:
        repo = Repository(users_schema, fake_executor, view=View.PUBLIC)
        fake_executor.queue(_ok(_user_row()))

        record = await repo.find_by_id(ANA_ID)

        assert record.created_at is None

    @pytest.mark.asyncio
    async def test_raw_query_returns_rows_undecoded(self, repo, fake_executor) -> None:
        fake_executor.queue(_ok({"n": 2}))

        result = await repo.raw_query("SELECT count(*) AS n FROM users WHERE age > ?", [18])

        assert result == {"success": True, "rows": [{"n": 2}], "error": None}
        assert fake_executor.calls[0]["params"] == (18,)

    @pytest.mark.asyncio
    async def test_raw_query_reports_failures_instead_of_raising(self, repo, fake_executor) -> None:
        fake_executor.queue(_failed("near \"SELEC\": syntax error"))

        result = await repo.raw_query("SELEC 1")

        assert result["success"] is False
        assert result["error"] == 'near "SELEC": syntax error'


class TestModel:
    @pytest.mark.asyncio
    async def test_save_on_a_new_instance_creates(self, repo, fake_executor) -> None:
        fake_executor.queue(_ok(_user_row(age=30)))
        user = repo.new(name="Ana", age=30)
        assert user.is_new

        saved = await user.save()

        assert saved is user
        assert user.id == ANA_ID
        assert user.age == 30
        assert user.created_at == STAMP
        assert fake_executor.statements[0].startswith("INSERT")

    @pytest.mark.asyncio
    async def test_save_with_an_id_updates(self, repo, fake_executor) -> None:
        fake_executor.queue(_ok(_user_row(name="Ana Maria")))
        user = repo.new({"id": ANA_ID, "name": "Ana Maria"})

        await user.save()

        assert fake_executor.statements[0].startswith('UPDATE "users" SET "name" = ?')
        assert user["name"] == "Ana Maria"

    @pytest.mark.asyncio
    async def test_instance_update_requires_an_id(self, repo) -> None:
        with pytest.raises(MissingIdentity, match="Instance data is missing an ID"):
            await repo.new(name="Ana").update(name="Bo")

    @pytest.mark.asyncio
    async def test_instance_delete_refreshes_soft_deleted_state(self, repo, fake_executor) -> None:
        fake_executor.queue(_ok({"id": ANA_ID}), _ok(_user_row(deleted_at=STAMP)))
        user = repo.wrap(to_record(_user_row(), repo.schema))

        outcome = await user.delete()

        assert outcome["found"] is True
        assert user.deleted_at == STAMP
        assert fake_executor.statements[-1].endswith('"id" = ? LIMIT 1')

    @pytest.mark.asyncio
    async def test_hard_deleted_handle_is_purged(self, notes, fake_executor) -> None:
        fake_executor.queue(_ok({"id": "n1", "title": "tmp"}), _ok({"id": "n1"}))
        note = notes.new(title="tmp")
        await note.save()

        outcome = await note.delete()

        assert outcome["found"] is True and outcome["soft"] is False
        assert note.purged
        assert note.record is None
        assert not note.is_new
        for write in (note.save(), note.update(title="again"), note.delete()):
            with pytest.raises(SchemaViolation, match="was deleted"):
                await write
        assert len(fake_executor.calls) == 2

    @pytest.mark.asyncio
    async def test_delete_of_a_vanished_row_does_not_purge(self, notes, fake_executor) -> None:
        note = notes.new({"id": "n1", "title": "tmp"})

        outcome = await note.delete()

        assert outcome["found"] is False
        assert not note.purged

    def test_columns_shadowed_by_handle_members_stay_readable_by_key(self, fake_executor) -> None:
        schema = TableSchema.model_validate(
            {
                "table_name": "jobs",
                "columns": [{"name": "data", "type": "json"}, {"name": "update", "type": "string"}],
            }
        )
        job = Repository(schema, fake_executor).new({"data": {"k": 1}, "update": "nightly"})

        assert job["data"] == {"k": 1}
        assert job["update"] == "nightly"
        assert callable(job.update)

    def test_unknown_attribute_raises(self, repo) -> None:
        user = repo.new(name="Ana")
        assert user.name == "Ana"
        with pytest.raises(AttributeError):
            user.nope  # noqa: B018

    def test_id_cannot_be_reassigned_through_item_access(self, repo) -> None:
        with pytest.raises(SchemaViolation):
            repo.new(name="Ana")["id"] = "x"

