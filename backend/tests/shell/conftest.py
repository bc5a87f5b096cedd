"""Shared fixtures for shell tests: an in-memory row store and logged-in profiles."""

from itertools import count
from typing import Any, Sequence

import pytest

from src.core.models import Profile, ProfileRole
from src.shell import mcp_server
from src.shell.store import StoreError, Write, natural_key, to_row


class FakeStore:
    """In-memory stand-in for RowStore with the same method signatures."""

    def __init__(self) -> None:
        self.tables: dict[str, dict[str, dict[str, Any]]] = {}
        self.commits: list[list[Write]] = []
        self.fail_commit = False
        self._ids = count(1)

    def rows(self, entity: str) -> list[dict[str, Any]]:
        return list(self.tables.get(entity, {}).values())

    def new_key(self, entity: str) -> str:
        return f"{entity}-{next(self._ids)}"

    def query(
        self,
        entity: str,
        filters: Sequence[tuple[str, str, Any]] = (),
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        rows = [
            dict(row) for row in self.rows(entity)
            if all(row.get(field) == value for field, _, value in filters)
        ]
        if order_by:
            rows.sort(
                key=lambda row: (row.get(order_by) is not None, row.get(order_by) or ""),
                reverse=descending,
            )
        return rows[:limit] if limit else rows

    def get(self, entity: str, key: str) -> dict[str, Any] | None:
        row = self.tables.get(entity, {}).get(key)
        return dict(row) if row is not None else None

    def insert(self, entity, rows):
        batch_rows = rows if isinstance(rows, list) else [rows]
        created = []
        for row in batch_rows:
            row = dict(row)
            if not row.get("id"):
                row["id"] = self.new_key(entity)
            created.append(row)
        self.commit([Write("set", entity, row["id"], row) for row in created])
        return created

    def update(self, entity: str, key: str, patch: dict[str, Any]) -> None:
        if key not in self.tables.get(entity, {}):
            raise StoreError(f"Failed to update {entity}")
        self.tables[entity][key].update(patch)

    def upsert(self, entity, row, conflict_keys):
        key = natural_key(row, conflict_keys)
        stored = {**row, "id": key}
        self.tables.setdefault(entity, {})[key] = stored
        return dict(stored)

    def delete(self, entity: str, key: str) -> None:
        self.tables.get(entity, {}).pop(key, None)

    def commit(self, writes: list[Write]) -> None:
        if not writes:
            return
        if self.fail_commit:
            raise StoreError("Failed to save changes")
        self.commits.append(writes)
        for write in writes:
            table = self.tables.setdefault(write.entity, {})
            if write.op == "set":
                table[write.key] = dict(write.data)
            elif write.op == "update":
                table[write.key].update(write.data)
            else:
                table.pop(write.key, None)


@pytest.fixture
def store(monkeypatch):
    """Install an in-memory store behind the MCP tools."""
    fake = FakeStore()
    monkeypatch.setattr(mcp_server, "_store", fake)
    monkeypatch.setattr(mcp_server, "_auth_client", None)
    return fake


def add_profile(store: FakeStore, profile_id: str, role: ProfileRole) -> Profile:
    profile = Profile(id=profile_id, email=f"{profile_id}@example.com", role=role)
    store.tables.setdefault("profiles", {})[profile_id] = to_row(profile)
    return profile


@pytest.fixture
def make_profile(store):
    """Register an extra profile in the store."""
    return lambda profile_id, role: add_profile(store, profile_id, ProfileRole(role))


@pytest.fixture
def login():
    """Act as the given profile for the rest of the test."""
    tokens = []

    def _login(profile_id: str) -> None:
        tokens.append(mcp_server.current_user_id.set(profile_id))

    yield _login
    for token in reversed(tokens):
        mcp_server.current_user_id.reset(token)


@pytest.fixture
def client_profile(store, login):
    profile = add_profile(store, "client1", ProfileRole.CLIENT)
    login(profile.id)
    return profile


@pytest.fixture
def coach_with_client(store, login):
    """A coach linked to client1, logged in as the coach."""
    client = add_profile(store, "client1", ProfileRole.CLIENT)
    coach = add_profile(store, "coach1", ProfileRole.COACH)
    store.upsert(
        "coach_clients",
        {"coach_id": coach.id, "client_id": client.id, "status": "active"},
        ("coach_id", "client_id"),
    )
    login(coach.id)
    return coach, client
