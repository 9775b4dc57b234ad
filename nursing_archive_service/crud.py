from datetime import date, datetime
from typing import Optional, List, Tuple, Iterable

from sqlalchemy import String, func, or_, update
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

import models, schemas

def _document_with_category_query():
    return (
        select(
            models.ArchiveDocument,
            models.DocumentCategory.category_name,
            models.DocumentCategory.category_description,
        )
        .outerjoin(
            models.DocumentCategory,
            models.ArchiveDocument.category_id == models.DocumentCategory.category_id,
        )
    )

def _substring_match(columns, term: str):
    needle = term.strip().lower()
    return or_(*[func.lower(column, type_=String).contains(needle, autoescape=True) for column in columns])

def _apply_document_filters(
    query,
    category: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    confidentiality: Optional[str] = None,
):
    if category:
        query = query.filter(models.DocumentCategory.category_name == category)
    if start_date:
        query = query.filter(models.ArchiveDocument.document_date >= start_date)
    if end_date:
        query = query.filter(models.ArchiveDocument.document_date <= end_date)
    if confidentiality:
        query = query.filter(models.ArchiveDocument.confidentiality_level == confidentiality)
    return query.order_by(models.ArchiveDocument.uploaded_at.desc(), models.ArchiveDocument.archive_id.desc())

async def get_category_by_name(db: AsyncSession, category_name: str, active_only: bool = True) -> Optional[models.DocumentCategory]:
    query = select(models.DocumentCategory).filter(models.DocumentCategory.category_name == category_name)
    if active_only:
        query = query.filter(models.DocumentCategory.is_active.is_(True))
    result = await db.execute(query)
    return result.scalars().first()

async def get_active_categories_with_counts(db: AsyncSession) -> List[Tuple[models.DocumentCategory, int]]:
    query = (
        select(models.DocumentCategory, func.count(models.ArchiveDocument.archive_id))
        .outerjoin(models.ArchiveDocument, models.ArchiveDocument.category_id == models.DocumentCategory.category_id)
        .filter(models.DocumentCategory.is_active.is_(True))
        .group_by(*models.DocumentCategory.__table__.c)
        .order_by(models.DocumentCategory.category_name)
    )
    result = await db.execute(query)
    return [(category, count) for category, count in result.all()]

async def seed_default_categories(db: AsyncSession, category_names: Iterable[str]) -> int:
    """Insert the given categories when the table is still empty. Returns how many were added."""
    existing = await db.execute(select(func.count(models.DocumentCategory.category_id)))
    if existing.scalar_one() > 0:
        return 0

    added = 0
    for name in category_names:
        db.add(models.DocumentCategory(category_name=name, is_active=True))
        added += 1
    await db.commit()
    return added

async def create_archive_document(db: AsyncSession, document: schemas.ArchiveDocumentCreate) -> models.ArchiveDocument:
    now = datetime.utcnow()
    db_document = models.ArchiveDocument(
        client_id=document.client_id,
        document_name=document.document_name,
        original_file_name=document.original_file_name,
        file_extension=document.file_extension,
        file_path=document.file_path,
        file_size=document.file_size,
        mime_type=document.mime_type,
        category_id=document.category_id,
        description=document.description,
        keywords=document.keywords,
        document_date=document.document_date,
        confidentiality_level=document.confidentiality_level.value,
        version_number=1.0,
        is_current_version=True,
        access_level="Standard",
        checksum=document.checksum,
        encryption_status=False,
        virus_scan_status=document.virus_scan_status,
        virus_scan_date=now,
        uploaded_by=document.uploaded_by,
        uploaded_at=now,
        last_accessed_by=document.uploaded_by,
        last_accessed_at=now,
        download_count=0,
    )
    db.add(db_document)
    await db.commit()
    await db.refresh(db_document)
    return db_document

async def get_archive_document(db: AsyncSession, archive_id: int) -> Optional[models.ArchiveDocument]:
    result = await db.execute(select(models.ArchiveDocument).filter(models.ArchiveDocument.archive_id == archive_id))
    return result.scalars().first()

async def get_archive_document_with_category(db: AsyncSession, archive_id: int):
    result = await db.execute(_document_with_category_query().filter(models.ArchiveDocument.archive_id == archive_id))
    return result.first()

async def list_archive_documents(
    db: AsyncSession,
    client_id: str,
    category: Optional[str] = None,
    search: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
):
    query = _document_with_category_query().filter(models.ArchiveDocument.client_id == client_id)
    if search:
        query = query.filter(_substring_match(
            [models.ArchiveDocument.document_name, models.ArchiveDocument.description, models.ArchiveDocument.keywords],
            search,
        ))
    query = _apply_document_filters(query, category=category, start_date=start_date, end_date=end_date)
    result = await db.execute(query)
    return result.all()

async def search_archive_documents(
    db: AsyncSession,
    client_id: str,
    search_term: str,
    category: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    confidentiality: Optional[str] = None,
):
    query = _document_with_category_query().filter(
        models.ArchiveDocument.client_id == client_id,
        _substring_match(
            [
                models.ArchiveDocument.document_name,
                models.ArchiveDocument.description,
                models.ArchiveDocument.keywords,
                models.ArchiveDocument.original_file_name,
            ],
            search_term,
        ),
    )
    query = _apply_document_filters(
        query, category=category, start_date=start_date, end_date=end_date, confidentiality=confidentiality
    )
    result = await db.execute(query)
    return result.all()

async def update_archive_document(
    db: AsyncSession,
    db_obj: Optional[models.ArchiveDocument],
    obj_in: schemas.ArchiveDocumentUpdate,
    updated_by: str,
) -> Optional[models.ArchiveDocument]:
    if db_obj is None:
        return None

    update_data = obj_in.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        if value is None and field in ("description", "keywords"):
            value = ""
        elif value is None and field in ("document_name", "confidentiality_level"):
            continue
        if isinstance(value, schemas.ConfidentialityLevel):
            value = value.value
        setattr(db_obj, field, value)

    db_obj.updated_by = updated_by
    db_obj.updated_at = datetime.utcnow()

    await db.commit()
    await db.refresh(db_obj)
    return db_obj

async def delete_archive_document(db: AsyncSession, db_obj: models.ArchiveDocument) -> None:
    await db.delete(db_obj)
    await db.commit()

async def register_download(db: AsyncSession, archive_id: int, accessed_by: str) -> None:
    await db.execute(
        update(models.ArchiveDocument)
        .where(models.ArchiveDocument.archive_id == archive_id)
        .values(
            download_count=models.ArchiveDocument.download_count + 1,
            last_accessed_by=accessed_by,
            last_accessed_at=datetime.utcnow(),
        )
    )
    await db.commit()

async def record_access(
    db: AsyncSession,
    archive_id: int,
    accessed_by: str,
    access_type: schemas.AccessType,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> models.DocumentAccessEvent:
    db_event = models.DocumentAccessEvent(
        archive_id=archive_id,
        accessed_by=accessed_by,
        access_type=access_type.value,
        accessed_at=datetime.utcnow(),
        ip_address=ip_address,
        user_agent=user_agent or "",
    )
    db.add(db_event)
    await db.commit()
    await db.refresh(db_event)
    return db_event

async def get_access_events_for_client(
    db: AsyncSession,
    client_id: str,
    start_at: Optional[datetime] = None,
    end_at: Optional[datetime] = None,
    access_type: Optional[schemas.AccessType] = None,
):
    query = (
        select(
            models.DocumentAccessEvent,
            models.ArchiveDocument.document_name,
            models.ArchiveDocument.original_file_name,
            models.DocumentCategory.category_name,
        )
        .join(models.ArchiveDocument, models.DocumentAccessEvent.archive_id == models.ArchiveDocument.archive_id)
        .outerjoin(models.DocumentCategory, models.ArchiveDocument.category_id == models.DocumentCategory.category_id)
        .filter(models.ArchiveDocument.client_id == client_id)
    )
    if start_at:
        query = query.filter(models.DocumentAccessEvent.accessed_at >= start_at)
    if end_at:
        query = query.filter(models.DocumentAccessEvent.accessed_at <= end_at)
    if access_type:
        query = query.filter(models.DocumentAccessEvent.access_type == access_type.value)
    query = query.order_by(models.DocumentAccessEvent.accessed_at.desc(), models.DocumentAccessEvent.access_id.desc())
    result = await db.execute(query)
    return result.all()
