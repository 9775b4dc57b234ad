from datetime import datetime

from sqlalchemy import Column, String, Integer, BigInteger, Boolean, Date, DateTime, Float, Text, ForeignKey
from sqlalchemy.orm import declarative_base

Base = declarative_base()

class DocumentCategory(Base):
    __tablename__ = "document_categories"

    category_id = Column(Integer, primary_key=True, autoincrement=True)
    category_name = Column(String(100), nullable=False, unique=True)
    category_description = Column(String(500), nullable=True)
    parent_category_id = Column(Integer, ForeignKey("document_categories.category_id"), nullable=True)
    allowed_file_types = Column(String(200), nullable=True)
    retention_period = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    def __repr__(self):
        return f"<DocumentCategory(id={self.category_id}, name='{self.category_name}', active={self.is_active})>"

class ArchiveDocument(Base):
    __tablename__ = "nursing_archive"

    archive_id = Column(Integer, primary_key=True, autoincrement=True)
    client_id = Column(String(50), nullable=False, index=True)
    document_name = Column(String(255), nullable=False)
    original_file_name = Column(String(255), nullable=False)
    file_extension = Column(String(10), nullable=False, default="")
    file_path = Column(String(500), nullable=False, unique=True)
    file_size = Column(BigInteger, nullable=False)
    mime_type = Column(String(100), nullable=False)
    category_id = Column(Integer, ForeignKey("document_categories.category_id"), nullable=False, index=True)
    description = Column(Text, nullable=False, default="")
    keywords = Column(String(500), nullable=False, default="")
    document_date = Column(Date, nullable=True)
    confidentiality_level = Column(String(20), nullable=False, default="Standard")

    version_number = Column(Float, nullable=False, default=1.0)
    is_current_version = Column(Boolean, nullable=False, default=True)
    access_level = Column(String(20), nullable=False, default="Standard")
    checksum = Column(String(64), nullable=False)
    encryption_status = Column(Boolean, nullable=False, default=False)
    virus_scan_status = Column(String(20), nullable=True)
    virus_scan_date = Column(DateTime, nullable=True)

    uploaded_by = Column(String(100), nullable=False)
    uploaded_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_accessed_by = Column(String(100), nullable=True)
    last_accessed_at = Column(DateTime, nullable=True)
    download_count = Column(Integer, nullable=False, default=0)
    updated_by = Column(String(100), nullable=True)
    updated_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<ArchiveDocument(id={self.archive_id}, client='{self.client_id}', name='{self.original_file_name}')>"

class DocumentAccessEvent(Base):
    __tablename__ = "document_access"

    access_id = Column(Integer, primary_key=True, autoincrement=True)
    # SET NULL keeps the audit trail when a document is deleted
    archive_id = Column(Integer, ForeignKey("nursing_archive.archive_id", ondelete="SET NULL"), nullable=True, index=True)
    accessed_by = Column(String(100), nullable=False)
    access_type = Column(String(20), nullable=False)
    accessed_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(500), nullable=True)

    def __repr__(self):
        return f"<DocumentAccessEvent(id={self.access_id}, archive_id={self.archive_id}, type='{self.access_type}')>"
