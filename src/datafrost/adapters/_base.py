"""Database adapter protocol — the abstraction boundary between the browser and drivers."""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


class DatabaseType(enum.Enum):
    SQLITE = "sqlite"
    TURSO = "turso"
    POSTGRES = "postgres"
    BIGQUERY = "bigquery"
    SNOWFLAKE = "snowflake"


# -- Errors -----------------------------------------------------------------


class AdapterError(Exception):
    """Raised by adapters, the registry and the cache."""


class CredentialError(AdapterError):
    """Stored credentials cannot be turned into a connection."""


class MissingCredentialField(CredentialError):
    def __init__(self, field_name: str) -> None:
        super().__init__(f"{field_name} is required")
        self.field_name = field_name


class InvalidCredentialShape(CredentialError):
    pass


class UnknownAdapterType(AdapterError):
    def __init__(self, adapter_type: str) -> None:
        super().__init__(f"unknown adapter type: {adapter_type}")
        self.adapter_type = adapter_type


class NotConnected(AdapterError):
    def __init__(self) -> None:
        super().__init__("Not connected. Call connect() first.")


class ConnectionFailed(AdapterError):
    pass


class Unreachable(AdapterError):
    pass


class RejectedStatement(AdapterError):
    pass


class QueryExecutionFailed(AdapterError):
    pass


class ConnectionNotFound(AdapterError):
    def __init__(self, connection_id: int) -> None:
        super().__init__(f"connection {connection_id} not found")
        self.connection_id = connection_id


_BAD_REQUEST_ERRORS = (
    CredentialError,
    UnknownAdapterType,
    RejectedStatement,
    NotConnected,
    ConnectionFailed,
    Unreachable,
    QueryExecutionFailed,
)


def error_status(exc: BaseException) -> int:
    """Map an error kind to the HTTP status a request handler should answer with."""
    if isinstance(exc, ConnectionNotFound):
        return 404
    if isinstance(exc, _BAD_REQUEST_ERRORS):
        return 400
    return 500


# -- Query shapes -----------------------------------------------------------


class FilterOperator(enum.Enum):
    EQ = "eq"
    NEQ = "neq"
    GT = "gt"
    LT = "lt"
    GTE = "gte"
    LTE = "lte"
    LIKE = "like"
    NOT_LIKE = "not_like"
    IS_NULL = "is_null"
    IS_NOT_NULL = "is_not_null"


@dataclass(frozen=True)
class Filter:
    """One column/operator/value predicate. Operators are kept as raw strings so
    unknown ones can be ignored by the compilers instead of failing."""

    column: str
    operator: str
    value: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Filter:
        value = data.get("value")
        return cls(
            column=str(data.get("column") or ""),
            operator=str(data.get("operator") or ""),
            value="" if value is None else str(value),
        )


@dataclass
class QueryResult:
    columns: list[str]
    rows: list[list[object]]
    count: int = 0
    total: int = 0
    page: int = 1
    limit: int = 0

    @classmethod
    def single_page(cls, columns: list[str], rows: list[list[object]]) -> QueryResult:
        """Result of an ad-hoc query: everything returned is one page."""
        return cls(
            columns=columns, rows=rows, count=len(rows), total=len(rows), page=1, limit=len(rows)
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "columns": self.columns,
            "rows": self.rows,
            "count": self.count,
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
        }


def page_number(limit: int, offset: int) -> int:
    if limit <= 0:
        return 1
    return offset // limit + 1


# -- Catalog shapes ---------------------------------------------------------


@dataclass
class TableInfo:
    name: str
    type: str = "table"  # "table" | "view"
    full_name: str | None = None

    def to_dict(self) -> dict[str, object]:
        d: dict[str, object] = {"name": self.name, "type": self.type}
        if self.full_name:
            d["full_name"] = self.full_name
        return d


@dataclass
class TreeNode:
    name: str
    type: str  # "database" | "schema" | "table" | "view"
    full_name: str | None = None
    children: list[TreeNode] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        d: dict[str, object] = {"name": self.name, "type": self.type}
        if self.full_name:
            d["full_name"] = self.full_name
        if self.children:
            d["children"] = [c.to_dict() for c in self.children]
        return d


@dataclass
class ColumnInfo:
    name: str
    type: str
    nullable: bool = True
    default_value: str = ""
    is_primary_key: bool = False


@dataclass
class IndexInfo:
    name: str
    unique: bool = False
    columns: list[str] = field(default_factory=list)


@dataclass
class ConstraintInfo:
    name: str
    type: str  # "FOREIGN KEY" | "UNIQUE" | "CHECK"
    definition: str = ""


@dataclass
class TableSchema:
    table_name: str
    columns: list[ColumnInfo] = field(default_factory=list)
    indexes: list[IndexInfo] = field(default_factory=list)
    constraints: list[ConstraintInfo] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "table_name": self.table_name,
            "columns": [
                {
                    "name": c.name,
                    "type": c.type,
                    "nullable": c.nullable,
                    "default_value": c.default_value,
                    "is_primary_key": c.is_primary_key,
                }
                for c in self.columns
            ],
            "indexes": [
                {"name": i.name, "unique": i.unique, "columns": i.columns} for i in self.indexes
            ],
            "constraints": [
                {"name": c.name, "type": c.type, "definition": c.definition}
                for c in self.constraints
            ],
        }


# -- Adapter metadata (drives the "add connection" form) --------------------


@dataclass(frozen=True)
class FieldConfig:
    key: str
    label: str
    type: str = "text"  # "text" | "password" | "textarea"
    required: bool = False
    placeholder: str = ""


@dataclass(frozen=True)
class UIMode:
    key: str
    label: str
    fields: tuple[FieldConfig, ...] = ()


@dataclass(frozen=True)
class UIConfig:
    fields: tuple[FieldConfig, ...] = ()
    modes: tuple[UIMode, ...] = ()
    supports_file: bool = False
    file_types: tuple[str, ...] = ()


@dataclass(frozen=True)
class AdapterInfo:
    type: str
    name: str
    description: str
    ui_config: UIConfig = UIConfig()

    def to_dict(self) -> dict[str, object]:
        def _field(f: FieldConfig) -> dict[str, object]:
            d: dict[str, object] = {
                "key": f.key,
                "label": f.label,
                "type": f.type,
                "required": f.required,
            }
            if f.placeholder:
                d["placeholder"] = f.placeholder
            return d

        ui: dict[str, object] = {"supports_file": self.ui_config.supports_file}
        if self.ui_config.fields:
            ui["fields"] = [_field(f) for f in self.ui_config.fields]
        if self.ui_config.modes:
            ui["modes"] = [
                {"key": m.key, "label": m.label, "fields": [_field(f) for f in m.fields]}
                for m in self.ui_config.modes
            ]
        if self.ui_config.file_types:
            ui["file_types"] = list(self.ui_config.file_types)
        return {
            "type": self.type,
            "name": self.name,
            "description": self.description,
            "ui_config": ui,
        }


# -- Protocols --------------------------------------------------------------


@runtime_checkable
class DatabaseAdapter(Protocol):
    async def connect(self, credentials: Mapping[str, Any]) -> None: ...
    async def ping(self) -> None: ...
    async def close(self) -> None: ...
    async def list_tables(self) -> list[TableInfo]: ...
    async def get_table_data(
        self, table: str, limit: int, offset: int, filters: list[Filter] | None = None
    ) -> QueryResult: ...
    async def execute_query(self, sql: str) -> QueryResult: ...
    async def get_table_schema(self, table: str) -> TableSchema: ...
    def db_type(self) -> DatabaseType: ...
    def as_tree_lister(self) -> TreeLister | None:
        """Return self when the backend exposes a multi-level catalog, else None."""
        ...


@runtime_checkable
class TreeLister(Protocol):
    async def list_tree(self) -> list[TreeNode]: ...


async def list_tree(adapter: DatabaseAdapter) -> list[TreeNode]:
    """Hierarchical catalog for any adapter.

    Backends without a native hierarchy get a single level built from list_tables().
    """
    lister = adapter.as_tree_lister()
    if lister is not None:
        return await lister.list_tree()
    tables = await adapter.list_tables()
    return [TreeNode(name=t.name, type=t.type, full_name=t.full_name or t.name) for t in tables]
