"""
PostgreSQL Review Store
=======================

`ReviewStore` on PostgreSQL: one table per collection, each row a JSONB
document keyed by the collection's natural key (external_id / listing_id).

Features:
    - psycopg2 ThreadedConnectionPool, calls run via asyncio.to_thread
    - Filter language compiled to parameterized SQL (see compile_filter)
    - Upserts as INSERT ... ON CONFLICT with JSONB merge (set semantics)
    - Period bucketing done in SQL, %U-compatible week numbers

Usage:
    store = PostgresStore(settings.database)
    await store.ensure_schema()
    docs = await store.find("reviews", {"listing_id": "29-shoreditch-heights"})
"""

import asyncio
import json
import logging
import uuid
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Generator, List, Optional, Tuple

import psycopg2
from psycopg2 import pool
from psycopg2.extras import RealDictCursor

from .config import DatabaseConfig
from .store import (
    COLLECTION_KEYS,
    RANGE_OPERATORS,
    Filter,
    ReviewStore,
    Sort,
    StoreError,
    check_collection,
    equality_fields,
)
from ..reviews.review_models import as_utc

logger = logging.getLogger(__name__)

DATE_FIELDS = ("submitted_at", "created_at", "updated_at", "last_review_sync")

SQL_OPERATORS = {"$gt": ">", "$gte": ">=", "$lt": "<", "$lte": "<="}

WEEK_OF_YEAR = (
    "to_char(ts, 'YYYY') || '-' || "
    "lpad(floor((extract(doy from ts) + 6 - extract(dow from ts)) / 7)::int::text, 2, '0')"
)

PERIOD_EXPRESSIONS = {
    "day": "to_char(ts, 'YYYY-MM-DD')",
    "week": WEEK_OF_YEAR,
    "month": "to_char(ts, 'YYYY-MM')",
    "year": "to_char(ts, 'YYYY')",
}

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS {table} (
    key         TEXT PRIMARY KEY,
    doc         JSONB NOT NULL,
    created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS {table}_doc_idx ON {table} USING GIN (doc jsonb_path_ops);
"""


def _json_default(value: Any):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def encode(value: Any) -> str:
    return json.dumps(value, default=_json_default)


def decode_doc(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Turn ISO strings in known date fields back into aware datetimes."""
    for name in DATE_FIELDS:
        if isinstance(doc.get(name), str):
            doc[name] = as_utc(doc[name])
    return doc


def _nest(path: str, value: Any) -> Dict[str, Any]:
    """'category_ratings.category' -> {"category_ratings": [{"category": value}]}"""
    head, _, rest = path.partition(".")
    if not rest:
        return {head: value}
    return {head: [_nest(rest, value)]}


def _cast_for(operand: Any) -> str:
    if isinstance(operand, bool):
        return "boolean"
    if isinstance(operand, (int, float, Decimal)):
        return "numeric"
    if isinstance(operand, (datetime, date)):
        return "timestamptz"
    return "text"


def _present_sql() -> str:
    return "(doc -> %s IS NOT NULL AND doc -> %s <> 'null'::jsonb)"


def compile_condition(path: str, condition: Any) -> Tuple[str, List[Any]]:
    """Compile one filter entry to a SQL fragment and its parameters."""
    is_operator = isinstance(condition, dict) and any(k.startswith("$") for k in condition)
    dotted = "." in path

    if not is_operator:
        if condition is None:
            if dotted:
                raise StoreError(f"Null match on nested path not supported: {path}")
            return f"NOT {_present_sql()}", [path, path]
        return "doc @> %s::jsonb", [encode(_nest(path, condition))]

    fragments: List[str] = []
    params: List[Any] = []
    for op, operand in condition.items():
        if dotted and op != "$in":
            raise StoreError(f"Operator {op} not supported on nested path: {path}")
        if op in RANGE_OPERATORS:
            if operand is None:
                fragments.append("FALSE")
                continue
            fragments.append(f"(doc ->> %s)::{_cast_for(operand)} {SQL_OPERATORS[op]} %s")
            params.extend([path, operand])
        elif op == "$ne":
            if operand is None:
                fragments.append(_present_sql())
                params.extend([path, path])
            else:
                fragments.append("NOT (doc @> %s::jsonb)")
                params.append(encode(_nest(path, operand)))
        elif op == "$in":
            if not operand:
                fragments.append("FALSE")
                continue
            ors = ["doc @> %s::jsonb"] * len(operand)
            fragments.append("(" + " OR ".join(ors) + ")")
            params.extend(encode(_nest(path, item)) for item in operand)
        elif op == "$exists":
            sql = _present_sql()
            fragments.append(sql if operand else f"NOT {sql}")
            params.extend([path, path])
        else:
            raise StoreError(f"Unsupported filter operator: {op}")

    return " AND ".join(fragments) or "TRUE", params


def compile_filter(filter: Optional[Filter]) -> Tuple[str, List[Any]]:
    """
    Compile a filter to a WHERE clause body.

    Field names travel as parameters (doc -> %s), never spliced into SQL.

    Returns:
        (sql, params); an empty filter compiles to ("TRUE", [])
    """
    fragments: List[str] = []
    params: List[Any] = []
    for path, condition in (filter or {}).items():
        sql, cond_params = compile_condition(path, condition)
        fragments.append(sql)
        params.extend(cond_params)
    if not fragments:
        return "TRUE", []
    return " AND ".join(fragments), params


def compile_sort(sort: Optional[Sort]) -> Tuple[str, List[Any]]:
    if not sort:
        return "", []
    parts = []
    params: List[Any] = []
    for field, direction in sort:
        if "." in field:
            raise StoreError(f"Sorting on nested path not supported: {field}")
        parts.append("doc -> %s " + ("DESC NULLS LAST" if direction < 0 else "ASC NULLS FIRST"))
        params.append(field)
    return " ORDER BY " + ", ".join(parts), params


class PostgresStore(ReviewStore):
    """
    JSONB document store on PostgreSQL.

    Table names come from the fixed collection map; everything else is bound.
    """

    def __init__(self, config: DatabaseConfig, db_pool: Optional[pool.ThreadedConnectionPool] = None):
        self.config = config
        self._pool = db_pool

    def _get_pool(self) -> pool.ThreadedConnectionPool:
        if self._pool is None:
            self.config.validate()
            try:
                self._pool = pool.ThreadedConnectionPool(
                    self.config.pool_min_size,
                    self.config.pool_max_size,
                    **self.config.connection_dict,
                )
            except psycopg2.Error as e:
                raise StoreError(f"Failed to connect to database: {e}") from e
            logger.info(f"DB pool created: {self.config.host}:{self.config.port}/{self.config.name}")
        return self._pool

    @contextmanager
    def _connection(self) -> Generator:
        """Pooled connection with commit on success, rollback on failure."""
        db_pool = self._get_pool()
        conn = db_pool.getconn()
        try:
            yield conn
            conn.commit()
        except psycopg2.Error as e:
            conn.rollback()
            logger.error(f"Database error: {e}")
            raise StoreError(str(e)) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            db_pool.putconn(conn)

    def _fetch(self, sql: str, params: List[Any]) -> List[Dict[str, Any]]:
        with self._connection() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(sql, params)
                return [dict(row) for row in cur.fetchall()]

    @staticmethod
    def _table(collection: str) -> str:
        check_collection(collection)
        return collection

    # =========================================================================
    # Schema
    # =========================================================================

    def _ensure_schema(self):
        with self._connection() as conn:
            with conn.cursor() as cur:
                for table in COLLECTION_KEYS:
                    cur.execute(SCHEMA_SQL.format(table=table))
        logger.info("Store schema ensured")

    async def ensure_schema(self):
        await asyncio.to_thread(self._ensure_schema)

    # =========================================================================
    # ReviewStore
    # =========================================================================

    def _find(self, collection, filter, sort, skip, limit) -> List[Dict[str, Any]]:
        table = self._table(collection)
        where, params = compile_filter(filter)
        order, order_params = compile_sort(sort)
        sql = f"SELECT doc FROM {table} WHERE {where}{order} OFFSET %s"
        params = params + order_params + [max(skip, 0)]
        if limit is not None:
            sql += " LIMIT %s"
            params.append(limit)
        return [decode_doc(row["doc"]) for row in self._fetch(sql, params)]

    async def find(
        self,
        collection: str,
        filter: Optional[Filter] = None,
        sort: Optional[Sort] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self._find, collection, filter, sort, skip, limit)

    async def find_one(self, collection: str, filter: Filter) -> Optional[Dict[str, Any]]:
        docs = await self.find(collection, filter, limit=1)
        return docs[0] if docs else None

    def _upsert(self, collection, filter, document, defaults) -> Tuple[Dict[str, Any], bool]:
        table = self._table(collection)
        key_field = COLLECTION_KEYS[collection]
        key = document.get(key_field, (filter or {}).get(key_field))
        if key is None:
            raise StoreError(f"Upsert into {collection} requires {key_field}")

        inserted_doc = {"id": uuid.uuid4().hex}
        inserted_doc.update(defaults or {})
        inserted_doc.update(equality_fields(filter))
        inserted_doc.update(document)

        sql = (
            f"INSERT INTO {table} (key, doc) VALUES (%s, %s::jsonb) "
            f"ON CONFLICT (key) DO UPDATE SET doc = {table}.doc || %s::jsonb, updated_at = NOW() "
            f"RETURNING doc, (xmax = 0) AS inserted"
        )
        rows = self._fetch(sql, [str(key), encode(inserted_doc), encode(document)])
        return decode_doc(rows[0]["doc"]), bool(rows[0]["inserted"])

    async def upsert(
        self,
        collection: str,
        filter: Filter,
        document: Dict[str, Any],
        defaults: Optional[Dict[str, Any]] = None,
    ) -> Tuple[Dict[str, Any], bool]:
        return await asyncio.to_thread(self._upsert, collection, filter, document, defaults)

    def _update_one(self, collection, filter, changes) -> Optional[Dict[str, Any]]:
        table = self._table(collection)
        where, params = compile_filter(filter)
        sql = (
            f"UPDATE {table} SET doc = doc || %s::jsonb, updated_at = NOW() "
            f"WHERE key = (SELECT key FROM {table} WHERE {where} LIMIT 1) "
            f"RETURNING doc"
        )
        rows = self._fetch(sql, [encode(changes)] + params)
        return decode_doc(rows[0]["doc"]) if rows else None

    async def update_one(
        self,
        collection: str,
        filter: Filter,
        changes: Dict[str, Any],
    ) -> Optional[Dict[str, Any]]:
        return await asyncio.to_thread(self._update_one, collection, filter, changes)

    def _count(self, collection, filter) -> int:
        table = self._table(collection)
        where, params = compile_filter(filter)
        rows = self._fetch(f"SELECT count(*) AS n FROM {table} WHERE {where}", params)
        return int(rows[0]["n"])

    async def count(self, collection: str, filter: Optional[Filter] = None) -> int:
        return await asyncio.to_thread(self._count, collection, filter)

    def _distinct(self, collection, field, filter) -> List[Any]:
        table = self._table(collection)
        where, params = compile_filter(filter)
        head, _, rest = field.partition(".")
        if rest:
            sql = (
                f"SELECT DISTINCT elem -> %s AS value FROM {table}, "
                f"jsonb_array_elements(CASE WHEN jsonb_typeof(doc -> %s) = 'array' "
                f"THEN doc -> %s ELSE '[]'::jsonb END) AS elem WHERE {where}"
            )
            params = [rest, head, head] + params
        else:
            sql = f"SELECT DISTINCT doc -> %s AS value FROM {table} WHERE {where}"
            params = [field] + params
        values = [row["value"] for row in self._fetch(sql, params)]
        return sorted(v for v in values if v is not None)

    async def distinct(self, collection: str, field: str, filter: Optional[Filter] = None) -> List[Any]:
        return await asyncio.to_thread(self._distinct, collection, field, filter)

    def _aggregate_by_period(self, collection, filter, date_field, interval) -> List[Dict[str, Any]]:
        table = self._table(collection)
        where, params = compile_filter(filter)
        period = PERIOD_EXPRESSIONS.get(interval, PERIOD_EXPRESSIONS["month"])
        sql = f"""
            WITH s AS (
                SELECT ((doc ->> %s)::timestamptz AT TIME ZONE 'UTC') AS ts,
                       (doc ->> 'rating')::numeric AS rating
                FROM {table}
                WHERE {where} AND doc ->> %s IS NOT NULL
            )
            SELECT {period} AS period,
                   count(*) AS count,
                   COALESCE(sum(rating), 0) AS rating_sum,
                   count(rating) AS rating_count,
                   count(*) FILTER (WHERE rating >= 4) AS positive,
                   count(*) FILTER (WHERE rating <= 2) AS negative
            FROM s
            GROUP BY 1
            ORDER BY 1
        """
        rows = self._fetch(sql, [date_field] + params + [date_field])
        return [
            {
                "period": row["period"],
                "count": int(row["count"]),
                "rating_sum": float(row["rating_sum"]),
                "rating_count": int(row["rating_count"]),
                "positive": int(row["positive"]),
                "negative": int(row["negative"]),
            }
            for row in rows
        ]

    async def aggregate_by_period(
        self,
        collection: str,
        filter: Optional[Filter],
        date_field: str,
        interval: str,
    ) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self._aggregate_by_period, collection, filter, date_field, interval)

    async def ping(self) -> bool:
        try:
            await asyncio.to_thread(self._fetch, "SELECT 1 AS ok", [])
            return True
        except (StoreError, ValueError) as e:
            logger.warning(f"Store health check failed: {e}")
            return False

    async def close(self):
        if self._pool is not None:
            self._pool.closeall()
            self._pool = None
            logger.info("DB pool closed")
