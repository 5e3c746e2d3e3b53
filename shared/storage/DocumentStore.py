"""Document persistence. Translates the content-hash constraint into DuplicateDetected."""

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError

from shared.helper.HelperConfig import HelperConfig
from shared.models.document import Document
from shared.storage.Database import Database
from shared.storage.exceptions import DuplicateDetected, NotFound
from shared.storage.tables import DocumentRow


class DocumentStore:
    def __init__(self, helper_config: HelperConfig, database: Database) -> None:
        self.logging = helper_config.get_logger()
        self._db = database

    ##########################################
    ################ WRITES ##################
    ##########################################

    async def create(self, document: Document) -> Document:
        """Insert a document row.

        Raises:
            DuplicateDetected: If an active document with the same content hash
                already exists. This covers two identical uploads racing past
                the duplicate check; the unique index decides the winner.
        """
        row = DocumentRow(**document.model_dump(exclude={"created_at"}))
        try:
            async with self._db.session() as session:
                session.add(row)
                try:
                    await session.commit()
                except IntegrityError:
                    await session.rollback()
                    raise
        except IntegrityError as exc:
            existing = await self.get_active_by_content_hash(document.content_hash)
            if existing is None:
                raise
            self.logging.warning(
                "Insert of '%s' lost the race to document id=%s (same content hash).",
                document.original_name, existing.id,
            )
            raise DuplicateDetected(existing) from exc
        return Document.model_validate(row)

    async def deactivate(self, document_id: str) -> Document:
        """Soft delete: the row stays, but frees its content hash for a future upload."""
        async with self._db.session() as session:
            result = await session.execute(
                update(DocumentRow).where(DocumentRow.id == document_id).values(is_active=False)
            )
            await session.commit()
        if result.rowcount == 0:
            raise NotFound(f"Document '{document_id}' not found.")
        return await self.get(document_id)

    async def delete(self, document_id: str) -> Document:
        """Hard delete. Returns the removed record."""
        document = await self.get(document_id)
        async with self._db.session() as session:
            await session.execute(delete(DocumentRow).where(DocumentRow.id == document_id))
            await session.commit()
        return document

    ##########################################
    ################ READS ###################
    ##########################################

    async def get(self, document_id: str) -> Document:
        async with self._db.session() as session:
            row = await session.get(DocumentRow, document_id)
        if row is None:
            raise NotFound(f"Document '{document_id}' not found.")
        return Document.model_validate(row)

    async def get_active_by_content_hash(self, content_hash: str) -> Document | None:
        async with self._db.session() as session:
            result = await session.execute(
                select(DocumentRow).where(
                    DocumentRow.content_hash == content_hash,
                    DocumentRow.is_active.is_(True),
                )
            )
            row = result.scalars().first()
        return Document.model_validate(row) if row else None

    async def count_by_content_hash(self, content_hash: str) -> int:
        """Rows (active or not) still pointing at the stored bytes for this hash."""
        async with self._db.session() as session:
            result = await session.execute(
                select(DocumentRow.id).where(DocumentRow.content_hash == content_hash)
            )
            return len(result.all())

    async def list_by_name_hash(self, name_hash: str) -> list[Document]:
        async with self._db.session() as session:
            result = await session.execute(
                select(DocumentRow).where(
                    DocumentRow.name_hash == name_hash,
                    DocumentRow.is_active.is_(True),
                )
            )
            return [Document.model_validate(r) for r in result.scalars().all()]

    async def list_recent_by_owner(self, owner_id: str, limit: int = 200) -> list[Document]:
        async with self._db.session() as session:
            result = await session.execute(
                select(DocumentRow)
                .where(DocumentRow.owner_id == owner_id, DocumentRow.is_active.is_(True))
                .order_by(DocumentRow.created_at.desc())
                .limit(limit)
            )
            return [Document.model_validate(r) for r in result.scalars().all()]

    async def list_by_folder(self, folder_id: str | None) -> list[Document]:
        stmt = select(DocumentRow).where(DocumentRow.is_active.is_(True))
        if folder_id is None:
            stmt = stmt.where(DocumentRow.folder_id.is_(None))
        else:
            stmt = stmt.where(DocumentRow.folder_id == folder_id)
        async with self._db.session() as session:
            result = await session.execute(stmt.order_by(DocumentRow.created_at))
            return [Document.model_validate(r) for r in result.scalars().all()]
