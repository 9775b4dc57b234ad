import json
from datetime import date, datetime, time, timezone
from pathlib import Path
from typing import Optional, List

from fastapi import APIRouter, UploadFile, File, Form, Depends, HTTPException, Request, Query, Header
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

import crud, models, schemas
from database import get_db
from config import settings as global_app_settings, Settings
from logging_config import get_logger, log_user_action
from storage import ArchiveStorage
from validation import compute_checksum, validate_file_content

logger = get_logger(__name__)

RESOURCE = "NursingArchive"

router = APIRouter(
    prefix="/api/nursing-archive",
    tags=["nursing-archive"],
)

# PUT parses its own body; this documents the accepted fields
_update_schema = schemas.ArchiveDocumentUpdate.model_json_schema(ref_template="#/components/schemas/{model}")
_update_schema.pop("$defs", None)
UPDATE_REQUEST_BODY = {
    "required": False,
    "content": {"application/json": {"schema": _update_schema}},
}

def get_settings():
    return global_app_settings

def get_storage(current_settings: Settings = Depends(get_settings)) -> ArchiveStorage:
    return ArchiveStorage(current_settings.UPLOAD_PATH)

def get_current_user(x_user_email: Optional[str] = Header(None)) -> str:
    # identity is established upstream; the proxy forwards the signed-in e-mail
    return x_user_email or "System"

def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None

def _parse_document_date(value: Optional[str]) -> Optional[date]:
    if value is None or not value.strip():
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid documentDate: {value}")

def _parse_confidentiality(value: Optional[str]) -> schemas.ConfidentialityLevel:
    if value is None or not value.strip():
        return schemas.ConfidentialityLevel.STANDARD
    try:
        return schemas.ConfidentialityLevel(value.strip())
    except ValueError:
        allowed = ", ".join(level.value for level in schemas.ConfidentialityLevel)
        raise HTTPException(status_code=400, detail=f"Invalid confidentialityLevel: {value}. Allowed: {allowed}")

def _parse_audit_bound(value: Optional[str], name: str, end_of_day: bool = False) -> Optional[datetime]:
    if value is None or not value.strip():
        return None
    value = value.strip()
    try:
        if len(value) == 10:
            return datetime.combine(date.fromisoformat(value), time.max if end_of_day else time.min)
        parsed = datetime.fromisoformat(value[:-1] + "+00:00" if value.endswith("Z") else value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {name}: {value}")
    # accessed_at is stored as naive UTC
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed

async def archive_uploaded_file(
    db: AsyncSession,
    storage: ArchiveStorage,
    upload: UploadFile,
    client_id: str,
    category_id: int,
    description: str,
    keywords: str,
    document_date: Optional[date],
    confidentiality_level: schemas.ConfidentialityLevel,
    uploaded_by: str,
    ip_address: Optional[str],
    user_agent: Optional[str],
    current_settings: Settings,
) -> Optional[schemas.ArchiveDocumentInDB]:
    """Store, check and record one file of an upload batch.

    Returns None when the file was skipped. A skipped file never leaves anything on disk.
    """
    original_file_name = Path(upload.filename or "unnamed").name
    stored = None
    try:
        stored = await storage.save(upload)
        checksum = await compute_checksum(stored.full_path)
        logger.debug(f"Calculated hash for '{original_file_name}': {checksum}")

        validation = await validate_file_content(stored.full_path, upload.content_type, current_settings)
        if not validation.safe:
            logger.warning(f"Skipping '{original_file_name}' for client {client_id}: {validation.reason}")
            await storage.delete(stored.file_path)
            return None

        suffix = Path(original_file_name).suffix
        document = await crud.create_archive_document(db, schemas.ArchiveDocumentCreate(
            client_id=client_id,
            document_name=Path(original_file_name).stem,
            original_file_name=original_file_name,
            file_extension=suffix[1:],
            file_path=stored.file_path,
            file_size=stored.size_bytes,
            mime_type=upload.content_type,
            category_id=category_id,
            description=description,
            keywords=keywords,
            document_date=document_date,
            confidentiality_level=confidentiality_level,
            checksum=checksum,
            virus_scan_status="Clean",
            uploaded_by=uploaded_by,
        ))
    except Exception:
        logger.exception(f"Error processing file '{original_file_name}' for client {client_id}")
        await db.rollback()
        if stored is not None:
            await storage.delete(stored.file_path)
        return None
    finally:
        await upload.close()

    archived = schemas.ArchiveDocumentInDB.model_validate(document)
    logger.info(f"Archived '{original_file_name}' (ID: {archived.archive_id}) for client {client_id}")
    try:
        await crud.record_access(db, archived.archive_id, uploaded_by, schemas.AccessType.UPLOAD, ip_address, user_agent)
    except Exception:
        # the document row is already committed; only the audit row is lost
        logger.exception(f"Failed to record UPLOAD access for archive_id {archived.archive_id}")
        await db.rollback()
    return archived

@router.get("/categories", response_model=List[schemas.DocumentCategoryWithCount])
async def list_categories(db: AsyncSession = Depends(get_db)):
    logger.info("Category list request")
    try:
        rows = await crud.get_active_categories_with_counts(db)
    except Exception as e:
        logger.exception("Error fetching categories")
        raise HTTPException(status_code=500, detail=f"Failed to fetch categories: {str(e)}")

    return [
        schemas.DocumentCategoryWithCount(
            **{column.name: getattr(category, column.name) for column in models.DocumentCategory.__table__.columns},
            document_count=count,
        )
        for category, count in rows
    ]

@router.get("/document/{document_id}", response_model=schemas.ArchiveDocumentWithCategory)
async def get_document(
    document_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: str = Depends(get_current_user),
):
    logger.info(f"Document view request for archive_id: {document_id}")
    try:
        row = await crud.get_archive_document_with_category(db, document_id)
        if row is None:
            logger.warning(f"Document not found: archive_id {document_id}")
            raise HTTPException(status_code=404, detail="Document not found")

        document = schemas.ArchiveDocumentWithCategory.from_row(*row)
        await crud.record_access(
            db, document_id, current_user, schemas.AccessType.VIEW,
            _client_ip(request), request.headers.get("user-agent"),
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Error fetching document {document_id}")
        raise HTTPException(status_code=500, detail=f"Failed to fetch document: {str(e)}")

    log_user_action(current_user, "GET", RESOURCE, document_id)
    return document

@router.get("/document/{document_id}/download")
async def download_document(
    document_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    storage: ArchiveStorage = Depends(get_storage),
    current_user: str = Depends(get_current_user),
):
    logger.info(f"Download request for archive_id: {document_id}")
    try:
        document = await crud.get_archive_document(db, document_id)
        if document is None:
            logger.warning(f"Document not found for download: archive_id {document_id}")
            raise HTTPException(status_code=404, detail="Document not found")

        stored_name = document.file_path
        original_file_name = document.original_file_name
        mime_type = document.mime_type

        if not storage.exists(stored_name):
            logger.error(f"Document {document_id} found in DB (file_path: {stored_name}) but not in storage at {storage.base_path}. Inconsistency!")
            raise HTTPException(status_code=404, detail="File not found on disk")

        await crud.register_download(db, document_id, current_user)
        await crud.record_access(
            db, document_id, current_user, schemas.AccessType.DOWNLOAD,
            _client_ip(request), request.headers.get("user-agent"),
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Error downloading document {document_id}")
        raise HTTPException(status_code=500, detail=f"Failed to download document: {str(e)}")

    log_user_action(current_user, "DOWNLOAD", RESOURCE, document_id)
    return FileResponse(
        path=storage.resolve(stored_name),
        filename=original_file_name,
        media_type=mime_type,
    )

@router.put(
    "/document/{document_id}",
    response_model=schemas.ArchiveDocumentWithCategory,
    openapi_extra={"requestBody": UPDATE_REQUEST_BODY},
)
async def update_document(
    document_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: str = Depends(get_current_user),
):
    logger.info(f"Metadata update request for archive_id: {document_id}")
    try:
        document = await crud.get_archive_document(db, document_id)
        if document is None:
            logger.warning(f"Document not found for update: archive_id {document_id}")
            raise HTTPException(status_code=404, detail="Document not found")

        # body is parsed only after the lookup so an unknown id is a 404 whatever was sent
        body = await request.body()
        try:
            payload = json.loads(body) if body else {}
        except ValueError:
            raise HTTPException(status_code=400, detail="Request body must be valid JSON")
        try:
            update_in = schemas.ArchiveDocumentUpdate.model_validate(payload)
        except ValidationError as e:
            raise RequestValidationError(e.errors(include_url=False, include_context=False))

        await crud.update_archive_document(db, document, update_in, current_user)
        row = await crud.get_archive_document_with_category(db, document_id)
    except (HTTPException, RequestValidationError):
        raise
    except Exception as e:
        logger.exception(f"Error updating document {document_id}")
        raise HTTPException(status_code=500, detail=f"Failed to update document: {str(e)}")

    log_user_action(current_user, "UPDATE", RESOURCE, document_id)
    return schemas.ArchiveDocumentWithCategory.from_row(*row)

@router.delete("/document/{document_id}", response_model=schemas.DeleteResponse)
async def delete_document(
    document_id: int,
    db: AsyncSession = Depends(get_db),
    storage: ArchiveStorage = Depends(get_storage),
    current_user: str = Depends(get_current_user),
):
    logger.info(f"Delete request for archive_id: {document_id}")
    try:
        document = await crud.get_archive_document(db, document_id)
        if document is None:
            logger.warning(f"Document not found for delete: archive_id {document_id}")
            raise HTTPException(status_code=404, detail="Document not found")

        stored_name = document.file_path
        await crud.delete_archive_document(db, document)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Error deleting document {document_id}")
        raise HTTPException(status_code=500, detail=f"Failed to delete document: {str(e)}")

    if not await storage.delete(stored_name):
        logger.warning(f"Document {document_id} deleted but its file {stored_name} could not be removed")

    log_user_action(current_user, "DELETE", RESOURCE, document_id)
    return schemas.DeleteResponse(message="Document deleted successfully", document_id=document_id)

@router.post("/{client_id}/upload", response_model=schemas.UploadResponse)
async def upload_documents(
    client_id: str,
    request: Request,
    files: Optional[List[UploadFile]] = File(None),
    category: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    document_date: Optional[str] = Form(None, alias="documentDate"),
    confidentiality_level: Optional[str] = Form(None, alias="confidentialityLevel"),
    keywords: Optional[str] = Form(None),
    db: AsyncSession = Depends(get_db),
    storage: ArchiveStorage = Depends(get_storage),
    current_settings: Settings = Depends(get_settings),
    current_user: str = Depends(get_current_user),
):
    logger.info(f"Upload request for client {client_id}: {len(files or [])} file(s), category '{category}'")
    if not files:
        raise HTTPException(status_code=400, detail="No files uploaded")
    if not category or not category.strip():
        raise HTTPException(status_code=400, detail="Category is required")
    if len(files) > current_settings.MAX_FILES_PER_UPLOAD:
        raise HTTPException(
            status_code=400,
            detail=f"Too many files: at most {current_settings.MAX_FILES_PER_UPLOAD} per upload",
        )
    for upload in files:
        if upload.content_type not in current_settings.ALLOWED_MIME_TYPES:
            logger.warning(f"Rejected '{upload.filename}' with content_type '{upload.content_type}'")
            raise HTTPException(status_code=400, detail=f"File type not allowed: {upload.content_type}")
        if upload.size is not None and upload.size > current_settings.max_file_size_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"File '{upload.filename}' exceeds the {current_settings.MAX_FILE_SIZE_MB}MB limit",
            )

    parsed_date = _parse_document_date(document_date)
    parsed_confidentiality = _parse_confidentiality(confidentiality_level)

    try:
        db_category = await crud.get_category_by_name(db, category.strip())
        if db_category is None:
            logger.warning(f"Upload for client {client_id} rejected: invalid category '{category}'")
            raise HTTPException(status_code=400, detail="Invalid category")

        category_id = db_category.category_id
        uploaded_documents = []
        for upload in files:
            document = await archive_uploaded_file(
                db, storage, upload, client_id, category_id,
                description or "", keywords or "", parsed_date, parsed_confidentiality,
                current_user, _client_ip(request), request.headers.get("user-agent"),
                current_settings,
            )
            if document is not None:
                uploaded_documents.append(document)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Error uploading documents for client {client_id}")
        raise HTTPException(status_code=500, detail=f"Failed to upload documents: {str(e)}")

    logger.info(f"Upload for client {client_id}: {len(uploaded_documents)} of {len(files)} file(s) archived")
    log_user_action(current_user, "UPLOAD", RESOURCE, client_id)
    return schemas.UploadResponse(
        message=f"Successfully uploaded {len(uploaded_documents)} document(s)",
        documents=uploaded_documents,
    )

@router.get("/{client_id}/search", response_model=List[schemas.ArchiveDocumentWithCategory])
async def search_documents(
    client_id: str,
    q: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    confidentiality: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: str = Depends(get_current_user),
):
    if not q or not q.strip():
        raise HTTPException(status_code=400, detail="Search query is required")

    logger.info(f"Search request for client {client_id}: q='{q}'")
    try:
        rows = await crud.search_archive_documents(
            db, client_id, q,
            category=category, start_date=start_date, end_date=end_date, confidentiality=confidentiality,
        )
    except Exception as e:
        logger.exception(f"Error searching documents for client {client_id}")
        raise HTTPException(status_code=500, detail=f"Failed to search documents: {str(e)}")

    log_user_action(current_user, "SEARCH", RESOURCE, client_id)
    return [schemas.ArchiveDocumentWithCategory.from_row(*row) for row in rows]

@router.get("/{client_id}/audit", response_model=List[schemas.AccessEventWithDocument])
async def get_access_audit(
    client_id: str,
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    access_type: Optional[schemas.AccessType] = Query(None, alias="accessType"),
    db: AsyncSession = Depends(get_db),
    current_user: str = Depends(get_current_user),
):
    start_at = _parse_audit_bound(start_date, "startDate")
    end_at = _parse_audit_bound(end_date, "endDate", end_of_day=True)

    logger.info(f"Audit request for client {client_id}")
    try:
        rows = await crud.get_access_events_for_client(db, client_id, start_at=start_at, end_at=end_at, access_type=access_type)
    except Exception as e:
        logger.exception(f"Error fetching audit log for client {client_id}")
        raise HTTPException(status_code=500, detail=f"Failed to fetch audit log: {str(e)}")

    log_user_action(current_user, "AUDIT", RESOURCE, client_id)
    return [
        schemas.AccessEventWithDocument.model_validate(event).model_copy(update={
            "document_name": document_name,
            "original_file_name": original_file_name,
            "category_name": category_name,
        })
        for event, document_name, original_file_name, category_name in rows
    ]

@router.get("/{client_id}", response_model=List[schemas.ArchiveDocumentWithCategory])
async def list_documents(
    client_id: str,
    category: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    db: AsyncSession = Depends(get_db),
    current_user: str = Depends(get_current_user),
):
    logger.info(f"Document list request for client {client_id}")
    try:
        rows = await crud.list_archive_documents(
            db, client_id, category=category, search=search, start_date=start_date, end_date=end_date,
        )
    except Exception as e:
        logger.exception(f"Error fetching documents for client {client_id}")
        raise HTTPException(status_code=500, detail=f"Failed to fetch documents: {str(e)}")

    log_user_action(current_user, "GET", RESOURCE, client_id)
    return [schemas.ArchiveDocumentWithCategory.from_row(*row) for row in rows]
