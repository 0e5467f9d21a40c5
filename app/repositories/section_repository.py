"""Repository for document sections."""

from typing import List
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import DocumentSection
from app.repositories.base_repository import BaseRepository


class SectionRepository(BaseRepository[DocumentSection]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, DocumentSection)

    async def list_for_document(self, document_id: UUID, document_type: str) -> List[DocumentSection]:
        """Sections of a document in ``section_order``."""
        result = await self.session.execute(
            select(DocumentSection)
            .where(
                DocumentSection.document_id == document_id,
                DocumentSection.document_type == document_type,
            )
            .order_by(DocumentSection.section_order.asc())
        )
        return list(result.scalars().all())

    async def replace_for_document(
        self, document_id: UUID, document_type: str, rows: List[dict]
    ) -> List[DocumentSection]:
        """Delete every section of the document and insert ``rows`` in one transaction."""
        try:
            await self.session.execute(
                delete(DocumentSection)
                .where(
                    DocumentSection.document_id == document_id,
                    DocumentSection.document_type == document_type,
                )
                .execution_options(synchronize_session="fetch")
            )
            sections = [
                DocumentSection(document_id=document_id, document_type=document_type, **row)
                for row in rows
            ]
            self.session.add_all(sections)
            await self.session.flush()
            await self.session.commit()
            return sections
        except SQLAlchemyError:
            self.logger.error(
                f"Error replacing sections for {document_type} {document_id}", exc_info=True
            )
            await self.session.rollback()
            raise
