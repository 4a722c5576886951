"""
SQL Backend
===========
Credentials and ACLs in a relational database (PostgreSQL, MySQL, SQLite)
through SQLAlchemy's async engine.

Queries are configured per deployment and may use positional placeholders
($1, $2 for PostgreSQL style, ? for MySQL/SQLite style):

    pg_userquery  = SELECT password_hash FROM users WHERE username = $1 LIMIT 1
    pg_superquery = SELECT count(*) FROM users WHERE username = $1 AND is_admin = true
    pg_aclquery   = SELECT topic FROM acls WHERE username = $1 AND (rw = $2 OR rw = 3)

The user query returns the stored hash. The superuser query returns a count
or boolean. The ACL query receives (username, access) and returns either one
column (patterns already filtered by access) or (pattern, access bitmask).
"""

import asyncio
import re
from typing import Any, Dict, List, Mapping, Optional, Tuple

import structlog
from sqlalchemy import text
from sqlalchemy.engine import URL
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from mqauth_core.config import option_float, option_int, option_salt_encoding, option_str, require_options
from mqauth_core.errors import BackendUnavailable, ConfigError
from mqauth_core.hashing import verify_password_async
from mqauth_core.topics import Access, AclRequest, AclRule, rules_permit
from .base import BackendKind

logger = structlog.get_logger(__name__)

# kind -> (option prefix, async driver, default port)
DIALECTS: Dict[BackendKind, Tuple[str, str, int]] = {
    BackendKind.POSTGRES: ("pg", "postgresql+asyncpg", 5432),
    BackendKind.MYSQL: ("mysql", "mysql+aiomysql", 3306),
    BackendKind.SQLITE: ("sqlite", "sqlite+aiosqlite", 0),
}

_DOLLAR_RE = re.compile(r"\$(\d+)")
_BIND_RE = re.compile(r"(?<![:\w\\]):(\w+)(?!:)")


def convert_placeholders(query: str) -> str:
    """
    Rewrite positional placeholders as named binds.

    `$1`/`$2` become `:p1`/`:p2`; each `?` becomes the next `:pN`.
    """
    query = _DOLLAR_RE.sub(lambda m: f":p{m.group(1)}", query)

    counter = 0

    def _next(_match: "re.Match") -> str:
        nonlocal counter
        counter += 1
        return f":p{counter}"

    return re.sub(r"\?", _next, query)


def bind_names(query: str) -> List[str]:
    return _BIND_RE.findall(query)


class SQLBackend:
    """Relational credential store."""

    def __init__(
        self,
        options: Mapping[str, Any],
        kind: BackendKind = BackendKind.POSTGRES,
        name: Optional[str] = None,
        engine: Optional[AsyncEngine] = None,
    ):
        if kind not in DIALECTS:
            raise ConfigError(f"{kind.value} is not a SQL backend", backend=name)

        self.kind = kind
        self.name = name or kind.value
        prefix, driver, default_port = DIALECTS[kind]

        if kind == BackendKind.SQLITE:
            mandatory = ["sqlite_source", "sqlite_userquery"]
        else:
            mandatory = [f"{prefix}_{key}" for key in ("dbname", "user", "password", "userquery")]
        require_options(options, mandatory, backend=self.name)

        self.salt_encoding = option_salt_encoding(options, backend=self.name)
        self.user_query = convert_placeholders(option_str(options, f"{prefix}_userquery"))
        superquery = option_str(options, f"{prefix}_superquery")
        aclquery = option_str(options, f"{prefix}_aclquery")
        self.super_query = convert_placeholders(superquery) if superquery else None
        self.acl_query = convert_placeholders(aclquery) if aclquery else None

        self.engine = engine or self._create_engine(options, prefix, driver, default_port)
        self._closed = False

    def _create_engine(
        self,
        options: Mapping[str, Any],
        prefix: str,
        driver: str,
        default_port: int,
    ) -> AsyncEngine:
        timeout = option_float(options, f"{prefix}_connect_timeout", 5.0, backend=self.name)

        if self.kind == BackendKind.SQLITE:
            source = option_str(options, "sqlite_source")
            url = URL.create(driver, database=source)
            if source == ":memory:":
                return create_async_engine(url, poolclass=StaticPool)
            return create_async_engine(url, connect_args={"timeout": timeout})

        url = URL.create(
            driver,
            username=option_str(options, f"{prefix}_user"),
            password=option_str(options, f"{prefix}_password"),
            host=option_str(options, f"{prefix}_host", "localhost"),
            port=option_int(options, f"{prefix}_port", default_port, backend=self.name),
            database=option_str(options, f"{prefix}_dbname"),
        )

        connect_args: Dict[str, Any] = {}
        if self.kind == BackendKind.POSTGRES:
            connect_args["timeout"] = timeout
            sslmode = option_str(options, "pg_sslmode", "disable")
            if sslmode != "disable":
                connect_args["ssl"] = sslmode
        else:
            connect_args["connect_timeout"] = int(timeout)

        return create_async_engine(
            url,
            pool_size=option_int(options, f"{prefix}_pool_size", 5, backend=self.name),
            max_overflow=option_int(options, f"{prefix}_max_overflow", 10, backend=self.name),
            pool_pre_ping=True,
            connect_args=connect_args,
        )

    async def _fetch(self, query: str, *args: Any) -> List[Tuple[Any, ...]]:
        positional = {f"p{i}": value for i, value in enumerate(args, start=1)}
        named = {"username": args[0] if args else None, "acc": args[1] if len(args) > 1 else None}
        values = {**named, **positional}
        params = {name: values.get(name) for name in bind_names(query)}

        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(text(query), params)
                return [tuple(row) for row in result.fetchall()]
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
            logger.warning("sql_query_failed", backend=self.name, error=type(e).__name__)
            raise BackendUnavailable(f"query failed: {type(e).__name__}", backend=self.name)

    async def authenticate(self, username: str, password: str) -> bool:
        rows = await self._fetch(self.user_query, username)
        if not rows or rows[0][0] is None:
            return False
        stored = rows[0][0]
        if isinstance(stored, bytes):
            stored = stored.decode("utf-8")
        return await verify_password_async(password, str(stored), self.salt_encoding)

    async def is_superuser(self, username: str) -> bool:
        if not self.super_query:
            return False
        rows = await self._fetch(self.super_query, username)
        if not rows or rows[0][0] is None:
            return False
        value = rows[0][0]
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "t", "yes")
        return bool(value)

    async def rules_for(self, username: str, access: Access) -> List[AclRule]:
        if not self.acl_query:
            return []

        rules: List[AclRule] = []
        for row in await self._fetch(self.acl_query, username, int(access)):
            if not row or row[0] is None:
                continue
            if len(row) > 1 and row[1] is not None:
                try:
                    granted = Access.parse(row[1])
                except ValueError:
                    continue
            else:
                # The query already filtered by access
                granted = access
            rules.append(AclRule(pattern=str(row[0]), access=granted, username=username))
        return rules

    async def check_acl(self, username: str, topic: str, client_id: str, access: Access) -> bool:
        request = AclRequest(username=username, topic=topic, client_id=client_id, access=access)
        return rules_permit(await self.rules_for(username, access), request)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self.engine.dispose()
