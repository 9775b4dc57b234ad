import uuid
from pathlib import Path
from typing import NamedTuple

import aiofiles
import aiofiles.os
from fastapi import UploadFile

from logging_config import get_logger

logger = get_logger(__name__)

CHUNK_SIZE = 1024 * 1024  # 1MB

class StoredFile(NamedTuple):
    file_path: str
    full_path: Path
    size_bytes: int

class ArchiveStorage:
    """Keeps archived documents on local disk as ``<uuid><ext>`` under one upload directory.

    Only the generated file name is persisted with the document; ``resolve`` turns it
    back into a full path so the upload directory can move without a data migration.
    """

    def __init__(self, base_path: Path):
        self.base_path = Path(base_path)
        if not self.base_path.exists():
            logger.info(f"Creating upload directory at {self.base_path}")
            self.base_path.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def generate_file_name(original_filename: str) -> str:
        return f"{uuid.uuid4()}{Path(original_filename).suffix}"

    def resolve(self, file_path: str) -> Path:
        full_path = (self.base_path / file_path).resolve()
        if self.base_path.resolve() not in full_path.parents:
            raise ValueError(f"Stored path escapes upload directory: {file_path}")
        return full_path

    async def save(self, upload: UploadFile) -> StoredFile:
        file_path = self.generate_file_name(upload.filename or "")
        full_path = self.resolve(file_path)
        size = 0
        async with aiofiles.open(full_path, 'wb') as out_file:
            while chunk := await upload.read(CHUNK_SIZE):
                size += len(chunk)
                await out_file.write(chunk)
        logger.debug(f"Stored '{upload.filename}' as {full_path} ({size} bytes)")
        return StoredFile(file_path=file_path, full_path=full_path, size_bytes=size)

    def exists(self, file_path: str) -> bool:
        try:
            full_path = self.resolve(file_path)
        except ValueError:
            return False
        return full_path.is_file()

    async def delete(self, file_path: str) -> bool:
        """Remove a stored file. Returns False instead of raising when it cannot be removed."""
        try:
            await aiofiles.os.remove(self.resolve(file_path))
            return True
        except FileNotFoundError:
            logger.warning(f"File {file_path} already missing from {self.base_path}")
        except (OSError, ValueError) as e:
            logger.error(f"Error deleting file {file_path}: {e}")
        return False
