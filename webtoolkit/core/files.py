import logging
import os

from fastapi.responses import FileResponse

from .errors import FileNotFound


logger = logging.getLogger(__name__)

DIR_MODE = 0o755


def create_dir_if_not_exists(path: str, mode: int = DIR_MODE) -> None:
    """Create `path` and any missing parents; no-op if it already exists."""
    if not os.path.exists(path):
        os.makedirs(path, mode=mode, exist_ok=True)
        logger.info(f"Created directory {path}")


def download_static_file(path: str, display_name: str) -> FileResponse:
    """Serve the file at `path` as an attachment named `display_name`.

    The Content-Disposition header makes browsers download the file instead
    of rendering it inline.
    """
    if not os.path.isfile(path):
        logger.warning(f"Download requested for missing file {path}")
        raise FileNotFound(path)

    return FileResponse(
        path,
        headers={"Content-Disposition": f'attachment; filename="{display_name}"'},
    )
