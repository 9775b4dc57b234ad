import hashlib
from pathlib import Path
from typing import NamedTuple, Optional

import aiofiles
import aiofiles.os
import httpx

from config import Settings
from logging_config import get_logger

logger = get_logger(__name__)

CHUNK_SIZE = 64 * 1024

class ValidationResult(NamedTuple):
    safe: bool
    reason: str

async def compute_checksum(file_path: Path) -> str:
    sha256_hash = hashlib.sha256()
    async with aiofiles.open(file_path, 'rb') as f:
        while chunk := await f.read(CHUNK_SIZE):
            sha256_hash.update(chunk)
    return sha256_hash.hexdigest()

async def scan_with_service(file_path: Path, mime_type: str, scan_url: str, timeout: float) -> ValidationResult:
    async with aiofiles.open(file_path, 'rb') as f:
        content = await f.read()
    logger.info(f"Sending {file_path.name} to scan service at {scan_url}")
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.post(scan_url, files={"file": (file_path.name, content, mime_type)})
            response.raise_for_status()
            verdict = response.json()
    except httpx.HTTPStatusError as e:
        logger.error(f"Scan service rejected {file_path.name}. Status: {e.response.status_code}, Response: {e.response.text}")
        return ValidationResult(False, "Error validating file")
    except httpx.RequestError as e:
        logger.error(f"Scan service request failed for {file_path.name}: {str(e)}")
        return ValidationResult(False, "Error validating file")
    except ValueError:
        logger.error(f"Scan service returned a non-JSON body for {file_path.name}")
        return ValidationResult(False, "Error validating file")

    if not isinstance(verdict, dict):
        logger.error(f"Unexpected scan service verdict for {file_path.name}: {verdict!r}")
        return ValidationResult(False, "Error validating file")

    safe = bool(verdict.get("safe", False))
    reason = verdict.get("reason") or ("File appears safe" if safe else "Rejected by scan service")
    return ValidationResult(safe, reason)

async def validate_file_content(file_path: Path, mime_type: str, settings: Settings) -> ValidationResult:
    """Basic safety check run on every stored upload before it is archived.

    Empty files are always rejected. When SCAN_SERVICE_URL is configured the file is
    also submitted to that scanner, and any scanner failure counts as unsafe.
    """
    try:
        stats = await aiofiles.os.stat(file_path)
    except OSError:
        logger.exception(f"Could not stat {file_path} for validation")
        return ValidationResult(False, "Error validating file")

    if stats.st_size == 0:
        return ValidationResult(False, "Empty file")

    scan_url: Optional[str] = settings.SCAN_SERVICE_URL
    if scan_url:
        return await scan_with_service(file_path, mime_type, scan_url, settings.SCAN_TIMEOUT_SECONDS)

    return ValidationResult(True, "File appears safe")
