from datetime import date, datetime
from enum import Enum
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field

class ConfidentialityLevel(str, Enum):
    STANDARD = "Standard"
    CONFIDENTIAL = "Confidential"
    RESTRICTED = "Restricted"
    TOP_SECRET = "Top Secret"

class AccessType(str, Enum):
    UPLOAD = "UPLOAD"
    VIEW = "VIEW"
    DOWNLOAD = "DOWNLOAD"

class ArchiveDocumentCreate(BaseModel):
    client_id: str
    document_name: str
    original_file_name: str
    file_extension: str
    file_path: str
    file_size: int
    mime_type: str
    category_id: int
    description: str = ""
    keywords: str = ""
    document_date: Optional[date] = None
    confidentiality_level: ConfidentialityLevel = ConfidentialityLevel.STANDARD
    checksum: str
    virus_scan_status: str = "Clean"
    uploaded_by: str = "System"

class ArchiveDocumentUpdate(BaseModel):
    document_name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    keywords: Optional[str] = Field(None, max_length=500)
    confidentiality_level: Optional[ConfidentialityLevel] = None
    document_date: Optional[date] = None

class ArchiveDocumentInDB(BaseModel):
    archive_id: int
    client_id: str
    document_name: str
    original_file_name: str
    file_extension: str
    file_path: str
    file_size: int
    mime_type: str
    category_id: int
    description: str
    keywords: str
    document_date: Optional[date] = None
    confidentiality_level: ConfidentialityLevel
    version_number: float
    is_current_version: bool
    access_level: str
    checksum: str
    encryption_status: bool
    virus_scan_status: Optional[str] = None
    virus_scan_date: Optional[datetime] = None
    uploaded_by: str
    uploaded_at: datetime
    last_accessed_by: Optional[str] = None
    last_accessed_at: Optional[datetime] = None
    download_count: int
    updated_by: Optional[str] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class ArchiveDocumentWithCategory(ArchiveDocumentInDB):
    category_name: Optional[str] = None
    category_description: Optional[str] = None

    @classmethod
    def from_row(cls, document, category_name: Optional[str], category_description: Optional[str]) -> "ArchiveDocumentWithCategory":
        data = ArchiveDocumentInDB.model_validate(document).model_dump()
        return cls(**data, category_name=category_name, category_description=category_description)

class UploadResponse(BaseModel):
    message: str
    documents: List[ArchiveDocumentInDB]

class DeleteResponse(BaseModel):
    message: str
    document_id: int = Field(alias="documentID")

    model_config = ConfigDict(populate_by_name=True)

class DocumentCategoryWithCount(BaseModel):
    category_id: int
    category_name: str
    category_description: Optional[str] = None
    parent_category_id: Optional[int] = None
    allowed_file_types: Optional[str] = None
    retention_period: Optional[int] = None
    is_active: bool
    document_count: int

    model_config = ConfigDict(from_attributes=True)

class AccessEventWithDocument(BaseModel):
    access_id: int
    archive_id: Optional[int] = None
    accessed_by: str
    access_type: str
    accessed_at: datetime
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    document_name: Optional[str] = None
    original_file_name: Optional[str] = None
    category_name: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
