import logging
import os
from dataclasses import dataclass
from typing import List, Optional

from fastapi import Request
from starlette.datastructures import UploadFile as StarletteUploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.formparsers import MultiPartException

from ..core.config import UploadConfig
from ..core.errors import FileTypeNotAllowed, NoFileUploaded, PayloadTooLarge, UploadError
from ..core.files import create_dir_if_not_exists
from ..core.sniff import SNIFF_LEN, detect_content_type
from ..core.text import random_string


logger = logging.getLogger(__name__)

COPY_CHUNK_SIZE = 1024 * 1024
RANDOM_NAME_LENGTH = 10


@dataclass(frozen=True)
class UploadedFile:
    new_name: str
    original_name: str
    size_bytes: int


def _original_name(part: StarletteUploadFile) -> str:
    # browsers on Windows may send a full path
    return os.path.basename((part.filename or "").replace("\\", "/"))


def _part_size(part: StarletteUploadFile) -> int:
    if part.size is not None:
        return part.size
    position = part.file.tell()
    part.file.seek(0, os.SEEK_END)
    size = part.file.tell()
    part.file.seek(position)
    return size


def _check_declared_length(request: Request, max_bytes: int) -> None:
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > max_bytes:
        logger.warning(f"Upload rejected: declared length {declared} > {max_bytes} bytes")
        raise PayloadTooLarge()


async def _save_part(
    part: StarletteUploadFile,
    upload_dir: str,
    config: UploadConfig,
    rename: bool,
) -> UploadedFile:
    original_name = _original_name(part)

    head = await part.read(SNIFF_LEN)
    content_type = detect_content_type(head)
    if not config.allows(content_type):
        logger.warning(f"Upload rejected: {original_name!r} sniffed as {content_type}")
        raise FileTypeNotAllowed(content_type)

    # the sniffed prefix must be written too
    await part.seek(0)

    if rename:
        new_name = f"{random_string(RANDOM_NAME_LENGTH)}{os.path.splitext(original_name)[1]}"
    else:
        if not original_name:
            raise UploadError("uploaded file has no filename")
        new_name = original_name

    written = 0
    with open(os.path.join(upload_dir, new_name), "wb") as out:
        while True:
            chunk = await part.read(COPY_CHUNK_SIZE)
            if not chunk:
                break
            out.write(chunk)
            written += len(chunk)

    logger.info(f"Saved upload {original_name!r} as {new_name} ({written} bytes, {content_type})")
    return UploadedFile(new_name=new_name, original_name=original_name, size_bytes=written)


async def upload_files(
    request: Request,
    upload_dir: str,
    config: Optional[UploadConfig] = None,
    rename: bool = True,
) -> List[UploadedFile]:
    """Persist every file part of a multipart request under `upload_dir`.

    - Parts are processed in form order, across all field names
    - Types are sniffed from content and checked against the config
    - The first failure aborts the call; the raised UploadError carries the
      files already written in `uploaded_files`
    """
    cfg = config or UploadConfig()

    create_dir_if_not_exists(upload_dir)
    _check_declared_length(request, cfg.max_total_bytes)

    try:
        form = await request.form()
    except (MultiPartException, StarletteHTTPException) as e:
        # inside an app Starlette re-raises parser errors as HTTPException
        reason = getattr(e, "message", None) or getattr(e, "detail", "")
        logger.warning(f"Upload rejected: malformed multipart body: {reason}")
        raise UploadError(f"malformed multipart form: {reason}") from e

    uploaded: List[UploadedFile] = []
    try:
        parts = [value for _, value in form.multi_items() if isinstance(value, StarletteUploadFile)]

        total = sum(_part_size(part) for part in parts)
        if total > cfg.max_total_bytes:
            logger.warning(f"Upload rejected: {total} bytes > {cfg.max_total_bytes} bytes")
            raise PayloadTooLarge()

        for part in parts:
            try:
                uploaded.append(await _save_part(part, upload_dir, cfg, rename))
            except UploadError as e:
                e.uploaded_files = list(uploaded)
                raise
            except OSError as e:
                logger.error(f"Failed to store upload {part.filename!r}: {str(e)}")
                raise UploadError(str(e), uploaded_files=uploaded) from e
    finally:
        await form.close()
        request.state.upload_count = len(uploaded)

    return uploaded


async def upload_one_file(
    request: Request,
    upload_dir: str,
    config: Optional[UploadConfig] = None,
    rename: bool = True,
) -> UploadedFile:
    """Like upload_files, returning only the first stored file."""
    files = await upload_files(request, upload_dir, config, rename)
    if not files:
        raise NoFileUploaded()
    return files[0]
