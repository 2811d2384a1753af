"""
Entity Repository Base

DESIGN DECISION: Repositories own the mapping between typed records and
flat store documents. Everything above this layer sees validated pydantic
models only. This means:
1. Ownership scoping lives in one place (the collection path)
2. Array fields are serialized the same way for every entity
3. A malformed document can never reach the session half-parsed
"""

from __future__ import annotations

import json
from typing import Any, Callable, ClassVar, Generic, Optional, TypeVar, Union

import structlog
from pydantic import BaseModel, ValidationError

from tripledger.services.storage import (
    DocumentStore,
    NotFoundError,
    RecordValidationError,
    StoredDocument,
    StoreUnavailableError,
    Subscription,
    collection_path,
)


logger = structlog.get_logger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)

# Fields derived from the document address, never written into the map
ADDRESS_FIELDS = frozenset({"id", "owner_id"})


def encode_sequence(values: Optional[list[str]]) -> str:
    """Serialize an ordered list of references into a JSON string."""
    return json.dumps(list(values or []))


def decode_sequence(value: Any) -> list[str]:
    """
    Parse a stored reference list.

    Missing, empty and malformed values all decode to an empty list.
    """
    if isinstance(value, list):
        return [str(v) for v in value]
    if not value or not isinstance(value, str):
        return []
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError:
        return []
    if not isinstance(parsed, list):
        return []
    return [str(v) for v in parsed]


def _describe(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in e['loc']) or 'record'}: {e['msg']}"
        for e in error.errors()
    )


class EntityRepository(Generic[RecordT]):
    """
    Typed CRUD over one per-owner collection.

    Subclasses set the collection name, the record model and which fields
    are stored as JSON-encoded sequences.
    """

    collection: ClassVar[str]
    record_type: ClassVar[type[BaseModel]]
    array_fields: ClassVar[tuple[str, ...]] = ()

    def __init__(self, store: DocumentStore, namespace: str):
        self._store = store
        self._namespace = namespace

    @property
    def entity_type(self) -> str:
        return self.record_type.__name__.lower()

    def _path(self, owner_id: Optional[str]) -> str:
        if not self._store.is_ready:
            raise StoreUnavailableError("Document store is not connected")
        if not owner_id:
            raise StoreUnavailableError("No owner identity established")
        return collection_path(self._namespace, owner_id, self.collection)

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def encode(self, record: BaseModel) -> dict[str, Any]:
        """Flatten a record into store fields."""
        fields = record.model_dump(mode="json", exclude=set(ADDRESS_FIELDS))
        for name in self.array_fields:
            fields[name] = encode_sequence(fields.get(name))
        return fields

    def decode(self, owner_id: str, document: StoredDocument) -> Optional[RecordT]:
        """
        Parse a stored document into a record.

        Returns None (and logs) when the document does not validate.
        """
        fields = {
            k: v for k, v in document.fields.items() if k not in ADDRESS_FIELDS
        }
        for name in self.array_fields:
            fields[name] = decode_sequence(fields.get(name))
        try:
            return self.record_type.model_validate(
                {**fields, "id": document.id, "owner_id": owner_id}
            )
        except ValidationError as e:
            logger.warning(
                "document_quarantined",
                collection=self.collection,
                doc_id=document.id,
                owner_id=owner_id,
                error=_describe(e),
            )
            return None

    def _validate(self, data: dict[str, Any]) -> RecordT:
        try:
            return self.record_type.model_validate(data)
        except ValidationError as e:
            raise RecordValidationError(
                f"Invalid {self.entity_type}: {_describe(e)}"
            )

    # -------------------------------------------------------------------------
    # CRUD
    # -------------------------------------------------------------------------

    async def create(
        self,
        owner_id: str,
        record: Union[RecordT, dict[str, Any]],
    ) -> str:
        """
        Validate and insert a new record.

        Returns:
            The store-assigned ID
        """
        path = self._path(owner_id)
        if not isinstance(record, BaseModel):
            record = self._validate(dict(record))
        doc_id = await self._store.insert(path, self.encode(record))
        logger.info(
            "record_created",
            collection=self.collection,
            doc_id=doc_id,
            owner_id=owner_id,
        )
        return doc_id

    async def get(self, owner_id: str, record_id: str) -> RecordT:
        path = self._path(owner_id)
        document = await self._store.get(path, record_id)
        record = self.decode(owner_id, document)
        if record is None:
            raise RecordValidationError(
                f"Stored {self.entity_type} {record_id} is malformed"
            )
        return record

    async def list(
        self,
        owner_id: str,
        where: Optional[dict[str, Any]] = None,
    ) -> list[RecordT]:
        """All well-formed records in the owner's collection matching where."""
        path = self._path(owner_id)
        documents = await self._store.query(path, where)
        return self._decode_all(owner_id, documents)

    async def list_ids(
        self,
        owner_id: str,
        where: Optional[dict[str, Any]] = None,
    ) -> list[str]:
        """
        IDs of every stored document matching where.

        Malformed documents are included, so callers that delete by ID
        reach records that list() quarantines.
        """
        path = self._path(owner_id)
        return [document.id for document in await self._store.query(path, where)]

    def _decode_all(
        self,
        owner_id: str,
        documents: list[StoredDocument],
    ) -> list[RecordT]:
        records = []
        for document in documents:
            record = self.decode(owner_id, document)
            if record is not None:
                records.append(record)
        return records

    async def update(
        self,
        owner_id: str,
        record_id: str,
        fields: dict[str, Any],
    ) -> RecordT:
        """
        Merge fields into an existing record.

        The merged record is validated as a whole, but only the supplied
        fields are written back.

        Raises:
            NotFoundError: If the record doesn't exist
            RecordValidationError: If the merge doesn't validate
        """
        path = self._path(owner_id)
        current = await self.get(owner_id, record_id)
        updates = {k: v for k, v in fields.items() if k not in ADDRESS_FIELDS}

        merged = self._validate({**current.model_dump(), **updates})
        encoded = self.encode(merged)
        await self._store.update(
            path,
            record_id,
            {name: encoded[name] for name in updates if name in encoded},
        )
        logger.info(
            "record_updated",
            collection=self.collection,
            doc_id=record_id,
            owner_id=owner_id,
            fields=sorted(updates),
        )
        return merged

    async def delete(
        self,
        owner_id: str,
        record_id: str,
        missing_ok: bool = False,
    ) -> bool:
        """
        Delete a record.

        Returns:
            True if a document was removed, False if it was already gone
            and missing_ok was set
        """
        path = self._path(owner_id)
        try:
            await self._store.delete(path, record_id)
        except NotFoundError:
            if missing_ok:
                return False
            raise
        logger.info(
            "record_deleted",
            collection=self.collection,
            doc_id=record_id,
            owner_id=owner_id,
        )
        return True

    def subscribe(
        self,
        owner_id: str,
        on_change: Callable[[list[RecordT]], None],
        where: Optional[dict[str, Any]] = None,
    ) -> Subscription:
        """Watch the owner's collection; on_change gets decoded records."""
        path = self._path(owner_id)
        return self._store.subscribe(
            path,
            where,
            lambda documents: on_change(self._decode_all(owner_id, documents)),
        )


class ProjectScopedRepository(EntityRepository[RecordT]):
    """Repository for records that belong to a project."""

    async def list_for_project(self, owner_id: str, project_id: str) -> list[RecordT]:
        return await self.list(owner_id, {"project_id": project_id})

    async def list_ids_for_project(self, owner_id: str, project_id: str) -> list[str]:
        return await self.list_ids(owner_id, {"project_id": project_id})

    def subscribe_for_project(
        self,
        owner_id: str,
        project_id: str,
        on_change: Callable[[list[RecordT]], None],
    ) -> Subscription:
        return self.subscribe(owner_id, on_change, {"project_id": project_id})
