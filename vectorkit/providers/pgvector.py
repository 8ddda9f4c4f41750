# vectorkit/providers/pgvector.py
# SPDX-License-Identifier: Apache-2.0
"""
PostgreSQL + pgvector provider.

Each index is a table:

    id        TEXT
    namespace TEXT NOT NULL DEFAULT ''
    embedding vector(<dimension>)
    metadata  JSONB
    PRIMARY KEY (id, namespace)

Connections come from a `ConnectionPool` of psycopg connections in
autocommit mode. Tables are created on first upsert (dimension taken from
the first vector) or explicitly with `create_index`.

Filters support equality (`{"genre": "sci-fi"}`) and membership
(`{"genre": ["sci-fi", "fantasy"]}`) on top-level metadata keys.
"""

from __future__ import annotations

import json
import logging
import re
import threading
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from vectorkit.errors import (
    AuthenticationError,
    BackendConnectionError,
    BackendTimeoutError,
    ConfigurationError,
    NotFoundError,
    ServerError,
    ValidationError,
    VectorKitError,
)
from vectorkit.providers.base import ProviderAdapter
from vectorkit.resilience.pool import ConnectionPool
from vectorkit.types import Match, QueryResult, Vector, VectorID

logger = logging.getLogger(__name__)

try:  # pragma: no cover - import surface only
    import psycopg  # type: ignore
    from psycopg import errors as pg_errors  # type: ignore
    from psycopg import sql  # type: ignore
except Exception:  # pragma: no cover
    psycopg = None  # type: ignore[assignment]
    pg_errors = None  # type: ignore[assignment]
    sql = None  # type: ignore[assignment]

# distance operator, and the SQL turning that distance into a similarity score
METRICS: Dict[str, Tuple[str, str]] = {
    "cosine": ("<=>", "1 - ({dist})"),
    "euclidean": ("<->", "1 / (1 + ({dist}))"),
    "inner_product": ("<#>", "-({dist})"),
}

_DIMENSION_RE = re.compile(r"vector\((\d+)\)")


def format_vector(values: Sequence[float]) -> str:
    return "[" + ",".join(repr(float(x)) for x in values) + "]"


def parse_vector(raw: Any) -> List[float]:
    if raw is None:
        return []
    if isinstance(raw, str):
        inner = raw.strip().strip("[]")
        return [float(x) for x in inner.split(",") if x.strip()]
    return [float(x) for x in raw]


def parse_json(raw: Any) -> Dict[str, Any]:
    if raw is None:
        return {}
    if isinstance(raw, Mapping):
        return dict(raw)
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        return {}
    return value if isinstance(value, dict) else {}


def translate_error(err: Exception, *, op: str, index: Optional[str] = None) -> VectorKitError:
    """Map psycopg exceptions into the vectorkit taxonomy."""
    if isinstance(err, VectorKitError):
        return err
    details = {k: v for k, v in {"op": op, "index": index}.items() if v is not None}
    msg = str(err) or f"pgvector error during {op}"
    logger.debug("pgvector error in %s: %r", op, err)

    if pg_errors is not None:
        if isinstance(err, pg_errors.UndefinedTable):
            return NotFoundError(f"index '{index}' not found", details=details)
        if isinstance(err, pg_errors.QueryCanceled):
            return BackendTimeoutError("pgvector statement timed out", details=details)
        if isinstance(err, (pg_errors.InsufficientPrivilege, pg_errors.InvalidPassword)):
            return AuthenticationError("pgvector authentication/authorization error", details=details)
        if isinstance(err, (pg_errors.DataException, pg_errors.IntegrityError)):
            return ValidationError(msg, details=details)
    if psycopg is not None and isinstance(err, psycopg.OperationalError):
        return BackendConnectionError(msg, details=details)
    if isinstance(err, (ConnectionError, OSError)):
        return BackendConnectionError(msg, details=details)
    return ServerError(msg, details=details)


class PgvectorProvider(ProviderAdapter):
    """
    Example:
        provider = PgvectorProvider(dsn="postgresql://localhost/vectors", pool_size=5)
        provider.create_index(index="docs", dimension=384)
    """

    name = "pgvector"

    def __init__(
        self,
        *,
        dsn: Optional[str] = None,
        pool: Optional[ConnectionPool] = None,
        pool_size: int = 5,
        pool_timeout: float = 5.0,
        metric: str = "cosine",
        connect_timeout: Optional[float] = None,
        warmup: int = 0,
    ) -> None:
        if metric not in METRICS:
            raise ConfigurationError(
                f"metric must be one of: {', '.join(sorted(METRICS))}"
            )
        if pool is None:
            if psycopg is None:
                raise ConfigurationError(
                    "PgvectorProvider requires the `psycopg` package. "
                    "Install via `pip install vectorkit[pgvector]`."
                )
            if not dsn:
                raise ConfigurationError("PgvectorProvider requires a dsn")
            connect_kwargs: Dict[str, Any] = {"autocommit": True}
            if connect_timeout:
                connect_kwargs["connect_timeout"] = max(1, int(connect_timeout))
            pool = ConnectionPool(
                lambda: psycopg.connect(dsn, **connect_kwargs),
                size=pool_size,
                timeout=pool_timeout,
                health_check=self._healthy,
            )
        self.pool = pool
        self.default_metric = metric
        self._metrics: Dict[str, str] = {}
        self._known_tables: Dict[str, int] = {}
        self._lock = threading.Lock()
        if warmup:
            self.pool.warmup(warmup)

    @staticmethod
    def _healthy(conn: Any) -> bool:
        if getattr(conn, "closed", False):
            return False
        conn.execute("SELECT 1")
        return True

    # ------------------------------------------------------------------ #
    # SQL helpers
    # ------------------------------------------------------------------ #

    def _execute(self, op: str, index: Optional[str], query: Any, params: Sequence[Any] = ()) -> List[Tuple]:
        with self.pool.connection() as conn:
            try:
                cur = conn.execute(query, tuple(params))
                if getattr(cur, "description", None) is None:
                    return []
                return list(cur.fetchall())
            except Exception as exc:  # noqa: BLE001
                raise translate_error(exc, op=op, index=index) from exc

    @staticmethod
    def _table(index: str) -> Any:
        return sql.Identifier(index)

    def _metric(self, index: str) -> str:
        with self._lock:
            return self._metrics.get(index, self.default_metric)

    def _where(
        self, namespace: Optional[str], filter: Optional[Mapping[str, Any]]
    ) -> Tuple[Any, List[Any]]:
        clauses = [sql.SQL("namespace = %s")]
        params: List[Any] = [namespace or ""]
        for key, value in (filter or {}).items():
            if isinstance(value, Mapping):
                raise ValidationError(
                    "pgvector filters support equality and list membership only",
                    details={"field": key},
                )
            if isinstance(value, (list, tuple, set)):
                clauses.append(sql.SQL("metadata->>%s = ANY(%s)"))
                params.extend([str(key), [str(v) for v in value]])
            else:
                clauses.append(sql.SQL("metadata->>%s = %s"))
                params.extend([str(key), str(value)])
        return sql.SQL(" AND ").join(clauses), params

    # ------------------------------------------------------------------ #
    # Index management
    # ------------------------------------------------------------------ #

    def create_index(self, *, index: str, dimension: int, metric: Optional[str] = None) -> Dict[str, Any]:
        metric = metric or self.default_metric
        if metric not in METRICS:
            raise ValidationError(f"metric must be one of: {', '.join(sorted(METRICS))}")
        if dimension < 1:
            raise ValidationError("dimension must be positive")
        self._execute("create_index", index, sql.SQL("CREATE EXTENSION IF NOT EXISTS vector"))
        self._execute(
            "create_index",
            index,
            sql.SQL(
                "CREATE TABLE IF NOT EXISTS {} ("
                "id TEXT NOT NULL, "
                "namespace TEXT NOT NULL DEFAULT '', "
                "embedding vector({}), "
                "metadata JSONB, "
                "PRIMARY KEY (id, namespace))"
            ).format(self._table(index), sql.Literal(int(dimension))),
        )
        with self._lock:
            self._metrics[index] = metric
            self._known_tables[index] = int(dimension)
        logger.info("created pgvector index %s (dimension=%d, metric=%s)", index, dimension, metric)
        return {"name": index, "dimension": int(dimension), "metric": metric, "status": "ready"}

    def delete_index(self, *, index: str) -> Dict[str, Any]:
        self._execute(
            "delete_index", index, sql.SQL("DROP TABLE IF EXISTS {}").format(self._table(index))
        )
        with self._lock:
            self._metrics.pop(index, None)
            self._known_tables.pop(index, None)
        return {"deleted": True}

    def _ensure_table(self, index: str, dimension: int) -> None:
        with self._lock:
            if index in self._known_tables:
                return
        self.create_index(index=index, dimension=dimension)

    # ------------------------------------------------------------------ #
    # Provider contract
    # ------------------------------------------------------------------ #

    def upsert(self, *, index, vectors, namespace=None):
        items = [Vector.coerce(v) for v in vectors]
        if not items:
            return {"upserted_count": 0}
        self._ensure_table(index, items[0].dimension)
        statement = sql.SQL(
            "INSERT INTO {} (id, namespace, embedding, metadata) "
            "VALUES (%s, %s, %s::vector, %s::jsonb) "
            "ON CONFLICT (id, namespace) DO UPDATE "
            "SET embedding = EXCLUDED.embedding, metadata = EXCLUDED.metadata"
        ).format(self._table(index))
        for v in items:
            self._execute(
                "upsert",
                index,
                statement,
                (v.id, namespace or "", format_vector(v.values), json.dumps(v.metadata or {})),
            )
        logger.debug("upserted %d vectors into %s", len(items), index)
        return {"upserted_count": len(items)}

    def query(
        self,
        *,
        index,
        vector,
        top_k=10,
        namespace=None,
        filter=None,
        include_values=False,
        include_metadata=True,
        offset=0,
    ):
        operator, score_template = METRICS[self._metric(index)]
        literal = format_vector(vector)
        distance = f"embedding {operator} %s::vector"
        where, where_params = self._where(namespace, filter)
        query = sql.SQL(
            "SELECT id, " + score_template.format(dist=distance) + " AS score, embedding, metadata "
            "FROM {} WHERE {} ORDER BY " + distance + " LIMIT %s OFFSET %s"
        ).format(self._table(index), where)
        params = [literal, *where_params, literal, int(top_k), int(offset)]
        rows = self._execute("query", index, query, params)
        matches = [
            Match(
                id=VectorID(str(row[0])),
                score=float(row[1]),
                values=parse_vector(row[2]) if include_values else None,
                metadata=parse_json(row[3]) if include_metadata else None,
            )
            for row in rows
        ]
        return QueryResult(matches=matches, namespace=namespace)

    def fetch(self, *, index, ids, namespace=None):
        ids = [str(i) for i in ids]
        if not ids:
            return {}
        query = sql.SQL(
            "SELECT id, embedding, metadata FROM {} WHERE id = ANY(%s) AND namespace = %s"
        ).format(self._table(index))
        rows = self._execute("fetch", index, query, (ids, namespace or ""))
        return {
            str(row[0]): Vector(
                id=VectorID(str(row[0])),
                values=parse_vector(row[1]),
                metadata=parse_json(row[2]),
            )
            for row in rows
        }

    def update(self, *, index, id, metadata=None, values=None, namespace=None):
        sets = []
        params: List[Any] = []
        if values is not None:
            sets.append(sql.SQL("embedding = %s::vector"))
            params.append(format_vector(values))
        if metadata:
            sets.append(sql.SQL("metadata = COALESCE(metadata, '{}'::jsonb) || %s::jsonb"))
            params.append(json.dumps(dict(metadata)))
        if not sets:
            return {"updated": False}
        query = sql.SQL("UPDATE {} SET {} WHERE id = %s AND namespace = %s RETURNING id").format(
            self._table(index), sql.SQL(", ").join(sets)
        )
        rows = self._execute("update", index, query, [*params, str(id), namespace or ""])
        if not rows:
            raise NotFoundError(f"vector '{id}' not found in index '{index}'")
        return {"updated": True}

    def delete(self, *, index, ids=None, namespace=None, filter=None, delete_all=False):
        table = self._table(index)
        if delete_all:
            if namespace is None:
                query, params = sql.SQL("DELETE FROM {}").format(table), ()
            else:
                query = sql.SQL("DELETE FROM {} WHERE namespace = %s").format(table)
                params = (namespace,)
        elif ids:
            query = sql.SQL("DELETE FROM {} WHERE id = ANY(%s) AND namespace = %s").format(table)
            params = ([str(i) for i in ids], namespace or "")
        elif filter:
            where, where_params = self._where(namespace, filter)
            query = sql.SQL("DELETE FROM {} WHERE {}").format(table, where)
            params = tuple(where_params)
        else:
            raise ValidationError("delete requires ids, filter or delete_all")
        self._execute("delete", index, query, params)
        return {"deleted": True}

    def list_indexes(self):
        rows = self._execute(
            "list_indexes",
            None,
            sql.SQL(
                "SELECT table_name FROM information_schema.columns "
                "WHERE column_name = 'embedding' AND udt_name = 'vector' "
                "AND table_schema = 'public' ORDER BY table_name"
            ),
        )
        return [self.describe_index(index=row[0]) for row in rows]

    def describe_index(self, *, index):
        rows = self._execute(
            "describe_index",
            index,
            sql.SQL(
                "SELECT format_type(a.atttypid, a.atttypmod) FROM pg_attribute a "
                "JOIN pg_class c ON a.attrelid = c.oid "
                "WHERE c.relname = %s AND a.attname = 'embedding' AND a.attnum > 0"
            ),
            (index,),
        )
        if not rows:
            raise NotFoundError(f"index '{index}' not found")
        found = _DIMENSION_RE.search(str(rows[0][0]))
        return {
            "name": index,
            "dimension": int(found.group(1)) if found else None,
            "metric": self._metric(index),
            "status": "ready",
        }

    def stats(self, *, index, namespace=None):
        info = self.describe_index(index=index)
        query = sql.SQL("SELECT namespace, count(*) FROM {} GROUP BY namespace").format(
            self._table(index)
        )
        rows = self._execute("stats", index, query)
        namespaces = {str(row[0]): {"vector_count": int(row[1])} for row in rows}
        if namespace is not None:
            namespaces = {namespace: namespaces.get(namespace, {"vector_count": 0})}
        return {
            "total_vector_count": sum(n["vector_count"] for n in namespaces.values()),
            "dimension": info["dimension"],
            "namespaces": namespaces,
        }

    def close(self) -> None:
        self.pool.shutdown()


__all__ = ["PgvectorProvider", "translate_error", "format_vector", "parse_vector"]
