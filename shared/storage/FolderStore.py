"""Folder tree persistence and vector-namespace allocation."""

import re

from sqlalchemy import select

from shared.helper.HelperConfig import HelperConfig
from shared.models.document import Folder
from shared.storage.Database import Database
from shared.storage.exceptions import NotFound
from shared.storage.tables import FolderRow

# Namespace for documents uploaded without a target folder.
SHARED_NAMESPACE = "shared"


def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "folder"


class FolderStore:
    def __init__(self, helper_config: HelperConfig, database: Database) -> None:
        self.logging = helper_config.get_logger()
        self._db = database

    async def get(self, folder_id: str) -> Folder:
        async with self._db.session() as session:
            row = await session.get(FolderRow, folder_id)
        if row is None:
            raise NotFound(f"Folder '{folder_id}' not found.")
        return Folder.model_validate(row)

    async def get_or_create(self, owner_id: str, name: str, parent_id: str | None = None) -> tuple[Folder, bool]:
        """Return the folder named ``name`` under ``parent_id``, creating it if missing.

        Folders are unique per (owner, parent, name), so replaying the same
        archive reuses the folders of the first run instead of adding siblings.

        Returns:
            tuple[Folder, bool]: The folder and whether it was created now.
        """
        name = name.strip()
        if not name:
            raise ValueError("Folder name must not be empty.")

        async with self._db.session() as session:
            stmt = select(FolderRow).where(FolderRow.owner_id == owner_id, FolderRow.name == name)
            if parent_id is None:
                stmt = stmt.where(FolderRow.parent_id.is_(None))
            else:
                stmt = stmt.where(FolderRow.parent_id == parent_id)
            existing = (await session.execute(stmt)).scalars().first()
            if existing is not None:
                return Folder.model_validate(existing), False

            parent_namespace = None
            if parent_id is not None:
                parent = await session.get(FolderRow, parent_id)
                if parent is None or parent.owner_id != owner_id:
                    raise NotFound(f"Parent folder '{parent_id}' not found.")
                parent_namespace = parent.vector_namespace

            namespace = await self._allocate_namespace(session, parent_namespace, name)
            row = FolderRow(owner_id=owner_id, name=name, parent_id=parent_id, vector_namespace=namespace)
            session.add(row)
            await session.commit()

        self.logging.info("Created folder '%s' (namespace=%s).", name, namespace)
        return Folder.model_validate(row), True

    async def _allocate_namespace(self, session, parent_namespace: str | None, name: str) -> str:
        base = f"{parent_namespace}/{slugify(name)}" if parent_namespace else slugify(name)
        if base == SHARED_NAMESPACE:
            base = f"{base}-folder"
        candidate, suffix = base, 2
        while (await session.execute(
            select(FolderRow.id).where(FolderRow.vector_namespace == candidate)
        )).first() is not None:
            candidate = f"{base}-{suffix}"
            suffix += 1
        return candidate

    async def get_owned(self, folder_id: str, owner_id: str) -> Folder:
        """Folder ``folder_id`` if it belongs to ``owner_id``.

        Raises:
            NotFound: If the folder is missing or owned by someone else.
        """
        folder = await self.get(folder_id)
        if folder.owner_id != owner_id:
            self.logging.warning("Owner '%s' referenced folder id=%s of another owner.", owner_id, folder_id)
            raise NotFound(f"Folder '{folder_id}' not found for owner '{owner_id}'.")
        return folder

    async def get_namespace(self, folder_id: str | None, owner_id: str | None = None) -> str:
        """Namespace of a folder; ``None`` is the shared root. With ``owner_id``
        the folder must belong to that owner."""
        if folder_id is None:
            return SHARED_NAMESPACE
        folder = await self.get(folder_id) if owner_id is None else await self.get_owned(folder_id, owner_id)
        return folder.vector_namespace

    async def list_descendant_namespaces(self, folder_ids: list[str], owner_id: str | None = None) -> list[str]:
        """Namespaces of the given folders and every folder below them.

        With ``owner_id`` only that owner's folders are considered, so foreign
        folder ids resolve to nothing.
        """
        stmt = select(FolderRow)
        if owner_id is not None:
            stmt = stmt.where(FolderRow.owner_id == owner_id)
        async with self._db.session() as session:
            rows = (await session.execute(stmt)).scalars().all()
        children: dict[str | None, list[FolderRow]] = {}
        by_id = {}
        for row in rows:
            children.setdefault(row.parent_id, []).append(row)
            by_id[row.id] = row

        namespaces: list[str] = []
        pending = [by_id[fid] for fid in folder_ids if fid in by_id]
        seen: set[str] = set()
        while pending:
            row = pending.pop()
            if row.id in seen:
                continue
            seen.add(row.id)
            namespaces.append(row.vector_namespace)
            pending.extend(children.get(row.id, []))
        return namespaces

    async def list_owner_namespaces(self, owner_id: str) -> list[str]:
        async with self._db.session() as session:
            result = await session.execute(
                select(FolderRow.vector_namespace).where(FolderRow.owner_id == owner_id)
            )
            return [ns for (ns,) in result.all()]
