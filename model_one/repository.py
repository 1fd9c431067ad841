"""
Repository facade: CRUD, soft-delete and restore orchestration for one table.

Every operation flows schema -> StatementBuilder -> Executor -> RecordMapper:

    repo = Repository(users_schema, SqliteExecutor("app.db"))
    ana = await repo.create({"name": "Ana"})
    await repo.delete(ana.id)                      # soft delete when enabled
    await repo.find_by_id(ana.id)                  # None
    await repo.find_by_id(ana.id, include_deleted=True)
    await repo.restore(ana.id)

`Model` is the instance-level handle (save/update/delete/restore) built on top
of the same repository:

    user = repo.new(name="Ana")
    await user.save()                              # create, then sync id/data
    await user.update(name="Ana Maria")

Concurrent writes to the same id are last-write-wins: there is no optimistic
concurrency token and no transaction wrapping beyond a single statement.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

from model_one.config import get_settings
from model_one.domain.errors import (
    FieldError,
    MissingIdentity,
    RecordNotFound,
    SchemaViolation,
    StorageFailure,
    ValidationFailure,
)
from model_one.domain.records import DeleteOutcome, QueryResult, Record
from model_one.domain.schema import ID_COLUMN, TableSchema
from model_one.infrastructure.executor import Executor
from model_one.mapper import View, to_record, to_records
from model_one.statements import IdGenerator, Statement, StatementBuilder
from model_one.utils.logging import get_logger
from model_one.validation import SchemaValidator, Validator

log = get_logger(__name__)


class Repository:
    """
    CRUD facade for one table.

    Parameters
    ----------
    schema : TableSchema
        The table this repository manages.
    executor : Executor
        Execution capability the generated statements are sent to.
    validator : Validator, optional
        Payload validator. Defaults to a validator generated from the schema.
    id_generator : callable, optional
        Source of new record ids. Defaults to UUID v4.
    view : View
        COMPLETE (default) keeps created_at/updated_at/deleted_at on returned
        records, PUBLIC strips them.
    check_uniques : bool, optional
        Probe the schema's advisory uniques before writing. Defaults to
        settings.check_uniques.
    """

    def __init__(
        self,
        schema: TableSchema,
        executor: Executor,
        validator: Optional[Validator] = None,
        id_generator: Optional[IdGenerator] = None,
        view: View = View.COMPLETE,
        check_uniques: Optional[bool] = None,
    ) -> None:
        self.schema = schema
        self.executor = executor
        self.validator = validator or SchemaValidator()
        self.builder = StatementBuilder(schema, id_generator)
        self.view = View(view)
        self.check_uniques = (
            get_settings().check_uniques if check_uniques is None else check_uniques
        )

    @property
    def table(self) -> str:
        return self.schema.table_name

    # ------------------------------------------------------------------ writes

    async def create(self, fields: Mapping[str, Any]) -> Record:
        """
        Validate and insert a new record; the id is always generated.

        Raises SchemaViolation when the payload already carries an id,
        ValidationFailure when the validator or the unique check rejects it,
        StorageFailure when the engine refuses the insert.
        """
        payload = self._strip_managed(fields)
        supplied_id = payload.pop(ID_COLUMN, None)
        if supplied_id:
            raise SchemaViolation(
                f'create generates ids; use update for existing record {supplied_id} in "{self.table}"',
                operation="create",
                table=self.table,
                record_id=str(supplied_id),
            )

        values = self.validator.validate(self.schema, payload, partial=False)
        await self._ensure_unique(values, operation="create")

        statement = self.builder.insert(values)
        rows = await self._run(statement, "create")
        if not rows:
            raise StorageFailure(
                "Insert returned no row",
                operation="create",
                table=self.table,
                record_id=statement.record_id,
            )
        record = to_record(rows[0], self.schema, self.view)
        log.info(
            "Record created",
            extra={"table": self.table, "operation": "create", "record_id": record.id},
        )
        return record

    async def update(self, record_id: Optional[str], fields: Mapping[str, Any]) -> Record:
        """
        Update only the supplied columns of an existing record.

        A key set to None writes NULL; a missing key is left unchanged. When
        nothing is left to assign, the current record is fetched and returned.
        """
        if not record_id:
            raise MissingIdentity(
                f'update on table "{self.table}" requires a record id',
                operation="update",
                table=self.table,
            )
        payload = self._strip_managed(fields)
        payload_id = payload.pop(ID_COLUMN, None)
        if payload_id and payload_id != record_id:
            raise SchemaViolation(
                f"Record ids are immutable ({record_id} != {payload_id})",
                operation="update",
                table=self.table,
                record_id=record_id,
                column=ID_COLUMN,
            )

        values = self.validator.validate(self.schema, payload, partial=True)
        await self._ensure_unique(values, operation="update", exclude_id=record_id)

        statement = self.builder.update(record_id, values)
        if statement is None:
            log.warning(
                "Update called with no attributes to update",
                extra={"table": self.table, "operation": "update", "record_id": record_id},
            )
            current = await self.find_by_id(record_id)
            if current is None:
                raise self._not_found(record_id, "update")
            return current

        rows = await self._run(statement, "update")
        if not rows:
            raise self._not_found(record_id, "update")
        log.info(
            "Record updated",
            extra={
                "table": self.table,
                "operation": "update",
                "record_id": record_id,
                "columns": list(statement.columns),
            },
        )
        return to_record(rows[0], self.schema, self.view)

    async def delete(self, record_id: Optional[str]) -> DeleteOutcome:
        """Soft delete when the schema enables it, hard delete otherwise."""
        statement = self.builder.delete(record_id)
        rows = await self._run(statement, "delete")
        found = bool(rows)
        soft = self.schema.soft_deletes
        if not found:
            message = f'The ID {record_id} has not been found at table "{self.table}"'
        elif soft:
            message = f'The ID {record_id} from table "{self.table}" has been soft deleted.'
        else:
            message = f'The ID {record_id} from table "{self.table}" has been successfully deleted.'
        log.info(
            message,
            extra={"table": self.table, "operation": "delete", "record_id": record_id, "found": found},
        )
        return DeleteOutcome(message=message, id=str(record_id), table=self.table, soft=soft, found=found)

    async def restore(self, record_id: Optional[str]) -> Record:
        """Clear deleted_at on a soft-deleted record and return it."""
        statement = self.builder.restore(record_id)
        rows = await self._run(statement, "restore")
        if not rows:
            raise self._not_found(record_id, "restore")
        log.info(
            "Record restored",
            extra={"table": self.table, "operation": "restore", "record_id": record_id},
        )
        return to_record(rows[0], self.schema, self.view)

    # ------------------------------------------------------------------- reads

    async def find_by_id(self, record_id: Optional[str], include_deleted: bool = False) -> Optional[Record]:
        if not record_id:
            return None
        rows = await self._run(self.builder.find_by_id(record_id, include_deleted), "find_by_id")
        return to_record(rows[0], self.schema, self.view) if rows else None

    async def find_one(self, column: str, value: Any, include_deleted: bool = False) -> Optional[Record]:
        rows = await self._run(self.builder.find_one(column, value, include_deleted), "find_one")
        return to_record(rows[0], self.schema, self.view) if rows else None

    async def find_by(self, column: str, value: Any, include_deleted: bool = False) -> List[Record]:
        rows = await self._run(self.builder.find_by(column, value, include_deleted), "find_by")
        return to_records(rows, self.schema, self.view)

    async def find_all(self, include_deleted: bool = False) -> List[Record]:
        rows = await self._run(self.builder.select_all(include_deleted), "find_all")
        return to_records(rows, self.schema, self.view)

    async def raw_query(self, sql: str, params: Sequence[Any] = ()) -> QueryResult:
        """
        Pass a statement straight to the executor.

        Rows are returned undecoded. A failure is reported through
        `success=False` and `error`, never raised.
        """
        try:
            result = await self.executor.execute(sql, list(params))
        except Exception as exc:  # noqa: BLE001 - reported through the result contract
            log.exception("Raw query failed", extra={"table": self.table, "operation": "raw_query"})
            return QueryResult(success=False, rows=[], error=str(exc))
        return QueryResult(
            success=bool(result.get("success")),
            rows=list(result.get("rows") or []),
            error=result.get("error"),
        )

    # --------------------------------------------------------------- instances

    def new(self, data: Optional[Mapping[str, Any]] = None, **fields: Any) -> "Model":
        """Build a transient instance handle; nothing is written until save()."""
        payload = dict(data or {})
        payload.update(fields)
        return Model(self, payload)

    def wrap(self, record: Record) -> "Model":
        """Instance handle for an already persisted record."""
        return Model(self, record=record)

    # ----------------------------------------------------------------- helpers

    async def _run(self, statement: Statement, operation: str) -> List[Dict[str, Any]]:
        log.debug(
            f"[{operation.upper()}] {statement.sql}",
            extra={"table": self.table, "operation": operation, "record_id": statement.record_id},
        )
        try:
            result = await self.executor.execute(statement.sql, statement.params)
        except Exception as exc:  # noqa: BLE001 - executor errors surface as StorageFailure
            raise StorageFailure(
                str(exc), operation=operation, table=self.table, record_id=statement.record_id
            ) from exc
        if not result.get("success"):
            raise StorageFailure(
                result.get("error") or "Query failed",
                operation=operation,
                table=self.table,
                record_id=statement.record_id,
            )
        return list(result.get("rows") or [])

    async def _ensure_unique(
        self, values: Mapping[str, Any], operation: str, exclude_id: Optional[str] = None
    ) -> None:
        """
        Probe every advisory unique combination the payload touches.

        On update (`exclude_id` set) a combination only partly present in
        `values` is completed from the stored row before probing.
        """
        if not self.check_uniques:
            return
        touched = [combo for combo in self.schema.uniques if any(name in values for name in combo)]
        if not touched:
            return

        candidate: Dict[str, Any] = dict(values)
        if exclude_id and any(not all(name in values for name in combo) for combo in touched):
            current = await self.find_by_id(exclude_id, include_deleted=True)
            if current is not None:
                candidate = {**current.fields, **values}

        errors: List[FieldError] = []
        for combo in touched:
            # NULLs never collide
            if not all(candidate.get(name) is not None for name in combo):
                continue
            statement = self.builder.unique_lookup(combo, candidate, exclude_id)
            if await self._run(statement, operation):
                label = ", ".join(combo)
                for name in combo:
                    message = (
                        f'"{name}" is already taken'
                        if len(combo) == 1
                        else f'"{name}" is already taken in combination ({label})'
                    )
                    errors.append(FieldError(field=name, kind="unique", message=message))
        if errors:
            raise ValidationFailure(errors, operation=operation, table=self.table, record_id=exclude_id)

    def _strip_managed(self, fields: Mapping[str, Any]) -> Dict[str, Any]:
        """Drop the bookkeeping columns; they are only ever written by the engine."""
        managed = set(self.schema.bookkeeping_columns)
        return {key: value for key, value in dict(fields).items() if key not in managed}

    def _not_found(self, record_id: Optional[str], operation: str) -> RecordNotFound:
        return RecordNotFound(
            f'The ID {record_id} has not been found at table "{self.table}"',
            operation=operation,
            table=self.table,
            record_id=record_id,
        )


class Model:
    """
    Instance-level handle over a repository.

    `data` holds the field values; `id` is None until the first save. After
    save/update/restore the handle is resynchronized with the stored record and
    returned itself. A hard delete leaves the handle purged: `record` is cleared
    and any further write raises SchemaViolation.

    Field values are also readable as attributes (`user.name`). A column whose
    name matches a handle member (`id`, `data`, `record`, `repository`,
    `is_new`, `purged`, `save`, `update`, `delete`, `restore`, the timestamp
    properties) is shadowed by that member; read it with `user["data"]` instead.
    """

    def __init__(
        self,
        repository: Repository,
        data: Optional[Mapping[str, Any]] = None,
        *,
        record: Optional[Record] = None,
    ) -> None:
        payload = dict(data or {})
        self.repository = repository
        self.id: Optional[str] = payload.pop(ID_COLUMN, None) or None
        self.data: Dict[str, Any] = payload
        self.record: Optional[Record] = None
        self.purged = False
        if record is not None:
            self._sync(record)

    def __getattr__(self, name: str) -> Any:
        data = self.__dict__.get("data")
        if data is not None and name in data:
            return data[name]
        raise AttributeError(name)

    def __getitem__(self, key: str) -> Any:
        if key == ID_COLUMN:
            return self.id
        return self.data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        if key == ID_COLUMN:
            raise SchemaViolation("Record ids are immutable", operation="save", column=ID_COLUMN)
        self.data[key] = value

    def __repr__(self) -> str:
        state = " purged" if self.purged else ""
        return f"<Model {self.repository.table} id={self.id!r}{state} data={self.data!r}>"

    @property
    def is_new(self) -> bool:
        return not self.id and not self.purged

    @property
    def created_at(self) -> Optional[str]:
        return self.record.created_at if self.record else None

    @property
    def updated_at(self) -> Optional[str]:
        return self.record.updated_at if self.record else None

    @property
    def deleted_at(self) -> Optional[str]:
        return self.record.deleted_at if self.record else None

    def _sync(self, record: Record) -> None:
        self.record = record
        self.id = record.id
        self.data = dict(record.fields)

    def _require_live(self, operation: str) -> None:
        if self.purged:
            raise SchemaViolation(
                f'The ID {self.id} from table "{self.repository.table}" was deleted, cannot {operation}.',
                operation=operation,
                table=self.repository.table,
                record_id=self.id,
            )

    def _require_id(self, operation: str) -> str:
        self._require_live(operation)
        if not self.id:
            raise MissingIdentity(
                f"Instance data is missing an ID, cannot {operation}.",
                operation=operation,
                table=self.repository.table,
            )
        return self.id

    async def save(self) -> "Model":
        """Update when the instance has an id, create otherwise; returns self."""
        self._require_live("save")
        if self.id:
            record = await self.repository.update(self.id, self.data)
        else:
            record = await self.repository.create(self.data)
        self._sync(record)
        return self

    async def update(self, partial: Optional[Mapping[str, Any]] = None, **fields: Any) -> "Model":
        """Write only the given fields; returns self."""
        record_id = self._require_id("update")
        changes = dict(partial or {})
        changes.update(fields)
        record = await self.repository.update(record_id, changes)
        self._sync(record)
        return self

    async def delete(self) -> DeleteOutcome:
        """
        Delete the record.

        A soft-deleted handle is refreshed with its deleted_at; a hard-deleted
        one is marked purged.
        """
        record_id = self._require_id("delete")
        outcome = await self.repository.delete(record_id)
        if outcome["found"] and outcome["soft"]:
            refreshed = await self.repository.find_by_id(record_id, include_deleted=True)
            if refreshed is not None:
                self._sync(refreshed)
        elif outcome["found"]:
            self.record = None
            self.purged = True
        return outcome

    async def restore(self) -> "Model":
        record_id = self._require_id("restore")
        self._sync(await self.repository.restore(record_id))
        return self


__all__ = ["Model", "Repository"]
