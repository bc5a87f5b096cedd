"""Firestore Row Store - generic persistence for every entity.

This module handles all database I/O. Each entity is a top-level collection of
flat documents keyed by row id. All I/O is contained here; business logic is
in the core module.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Literal, Sequence, TypeVar

from google.cloud import firestore
from pydantic import BaseModel, ValidationError


logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# (field, operator, value), e.g. ("client_id", "==", "abc")
Filter = tuple[str, str, Any]


class StoreError(Exception):
    """A read or write against the store failed."""


@dataclass
class FirestoreConfig:
    """Configuration for Firestore client.

    Attributes:
        project_id: GCP project ID (None for default)
        database: Firestore database name (None for default database)
    """

    project_id: str | None = None
    database: str | None = None


@dataclass
class Write:
    """One operation in an atomic batch."""

    op: Literal["set", "update", "delete"]
    entity: str
    key: str
    data: dict[str, Any] = field(default_factory=dict)


def natural_key(row: dict[str, Any], conflict_keys: Sequence[str]) -> str:
    """Document id for an upsert, built from the conflict key values."""
    return "__".join(str(row[key]) for key in conflict_keys)


def to_row(model: BaseModel) -> dict[str, Any]:
    """Serialise a model for storage (dates become ISO strings)."""
    return model.model_dump(mode="json")


def load_models(model: type[ModelT], rows: Iterable[dict[str, Any]]) -> list[ModelT]:
    """Validate rows against a model, skipping rows that do not fit."""
    loaded = []
    for row in rows:
        try:
            loaded.append(model.model_validate(row))
        except ValidationError as e:
            logger.warning(
                "Skipping invalid %s row %s: %s", model.__name__, row.get("id"), e.error_count()
            )
    return loaded


class RowStore:
    """Row-oriented access to Firestore collections.

    Layout:
        {entity}/{id}: { id, ...fields }

    Every method logs and raises StoreError on failure; callers decide how to
    report it.
    """

    def __init__(self, config: FirestoreConfig | None = None) -> None:
        """Initialize the store.

        Args:
            config: Firestore configuration
        """
        self.config = config or FirestoreConfig()
        self._client: firestore.Client | None = None

    @property
    def client(self) -> firestore.Client:
        """Lazy initialization of Firestore client."""
        if self._client is None:
            kwargs: dict[str, Any] = {}
            if self.config.project_id:
                kwargs["project"] = self.config.project_id
            if self.config.database:
                kwargs["database"] = self.config.database
            self._client = firestore.Client(**kwargs)
        return self._client

    def _collection(self, entity: str) -> firestore.CollectionReference:
        return self.client.collection(entity)

    def new_key(self, entity: str) -> str:
        """Reserve a new auto-generated document id."""
        return self._collection(entity).document().id

    # ==================== Reads ====================

    def query(
        self,
        entity: str,
        filters: Sequence[Filter] = (),
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Select rows matching every filter.

        Args:
            entity: Collection name
            filters: (field, operator, value) triples combined with AND
            order_by: Field to order by
            descending: Order direction
            limit: Maximum number of rows

        Returns:
            Matching rows, each including its id
        """
        logger.debug("Querying %s with %d filters", entity, len(filters))
        try:
            query: Any = self._collection(entity)
            for field_name, op, value in filters:
                query = query.where(field_name, op, value)
            if order_by:
                direction = (
                    firestore.Query.DESCENDING if descending else firestore.Query.ASCENDING
                )
                query = query.order_by(order_by, direction=direction)
            if limit:
                query = query.limit(limit)

            rows = []
            for doc in query.stream():
                row = doc.to_dict()
                row.setdefault("id", doc.id)
                rows.append(row)
            return rows
        except Exception as e:
            logger.error("Failed to query %s: %s", entity, str(e))
            raise StoreError(f"Failed to load {entity}") from e

    def get(self, entity: str, key: str) -> dict[str, Any] | None:
        """Fetch one row by id, or None if it does not exist."""
        try:
            doc = self._collection(entity).document(key).get()
            if not doc.exists:
                return None
            row = doc.to_dict()
            row.setdefault("id", doc.id)
            return row
        except Exception as e:
            logger.error("Failed to get %s/%s: %s", entity, key, str(e))
            raise StoreError(f"Failed to load {entity}") from e

    # ==================== Writes ====================

    def insert(
        self, entity: str, rows: dict[str, Any] | list[dict[str, Any]]
    ) -> list[dict[str, Any]]:
        """Insert one row or a batch of rows.

        Rows without an id get an auto-generated one. A list is written as a
        single atomic batch.

        Returns:
            The created rows with their ids
        """
        batch_rows = rows if isinstance(rows, list) else [rows]
        created = []
        for row in batch_rows:
            row = dict(row)
            if not row.get("id"):
                row["id"] = self.new_key(entity)
            created.append(row)

        logger.info("Inserting %d row(s) into %s", len(created), entity)
        self.commit([Write("set", entity, row["id"], row) for row in created])
        return created

    def update(self, entity: str, key: str, patch: dict[str, Any]) -> None:
        """Update fields of an existing row."""
        logger.info("Updating %s/%s", entity, key)
        try:
            self._collection(entity).document(key).update(patch)
        except Exception as e:
            logger.error("Failed to update %s/%s: %s", entity, key, str(e))
            raise StoreError(f"Failed to update {entity}") from e

    def upsert(
        self, entity: str, row: dict[str, Any], conflict_keys: Sequence[str]
    ) -> dict[str, Any]:
        """Insert or replace the row identified by its natural key.

        Args:
            entity: Collection name
            row: Full row to store
            conflict_keys: Fields that identify the row, e.g. ("client_id", "date")

        Returns:
            The stored row with its id
        """
        key = natural_key(row, conflict_keys)
        stored = {**row, "id": key}
        logger.info("Upserting %s/%s", entity, key)
        try:
            self._collection(entity).document(key).set(stored)
            return stored
        except Exception as e:
            logger.error("Failed to upsert %s/%s: %s", entity, key, str(e))
            raise StoreError(f"Failed to save {entity}") from e

    def delete(self, entity: str, key: str) -> None:
        """Delete a row by id."""
        logger.info("Deleting %s/%s", entity, key)
        try:
            self._collection(entity).document(key).delete()
        except Exception as e:
            logger.error("Failed to delete %s/%s: %s", entity, key, str(e))
            raise StoreError(f"Failed to delete {entity}") from e

    def commit(self, writes: list[Write]) -> None:
        """Apply writes atomically: either all of them land or none do.

        Firestore limits a batch to 500 writes.
        """
        if not writes:
            return
        try:
            batch = self.client.batch()
            for write in writes:
                ref = self._collection(write.entity).document(write.key)
                if write.op == "set":
                    batch.set(ref, write.data)
                elif write.op == "update":
                    batch.update(ref, write.data)
                else:
                    batch.delete(ref)
            batch.commit()
        except Exception as e:
            logger.error("Failed to commit %d writes: %s", len(writes), str(e))
            raise StoreError("Failed to save changes") from e
