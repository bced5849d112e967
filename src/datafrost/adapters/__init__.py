"""Database adapters — implementations of the DatabaseAdapter protocol."""

from datafrost.adapters._base import (
    AdapterError,
    AdapterInfo,
    ColumnInfo,
    ConnectionFailed,
    ConnectionNotFound,
    ConstraintInfo,
    CredentialError,
    DatabaseAdapter,
    DatabaseType,
    Filter,
    FilterOperator,
    IndexInfo,
    InvalidCredentialShape,
    MissingCredentialField,
    NotConnected,
    QueryExecutionFailed,
    QueryResult,
    RejectedStatement,
    TableInfo,
    TableSchema,
    TreeLister,
    TreeNode,
    UnknownAdapterType,
    Unreachable,
    error_status,
    list_tree,
)
from datafrost.adapters._registry import AdapterRegistry, default_registry

__all__ = [
    "AdapterError",
    "AdapterInfo",
    "AdapterRegistry",
    "ColumnInfo",
    "ConnectionFailed",
    "ConnectionNotFound",
    "ConstraintInfo",
    "CredentialError",
    "DatabaseAdapter",
    "DatabaseType",
    "Filter",
    "FilterOperator",
    "IndexInfo",
    "InvalidCredentialShape",
    "MissingCredentialField",
    "NotConnected",
    "QueryExecutionFailed",
    "QueryResult",
    "RejectedStatement",
    "TableInfo",
    "TableSchema",
    "TreeLister",
    "TreeNode",
    "UnknownAdapterType",
    "Unreachable",
    "default_registry",
    "error_status",
    "list_tree",
]
