"""HTTP-adjacent helpers for FastAPI/Starlette services."""

from .core.config import JSONConfig, UploadConfig
from .core.errors import (
    BadJSONRequest,
    FileNotFound,
    FileTypeNotAllowed,
    JSONEncodeFailure,
    JSONTargetError,
    NoFileUploaded,
    PayloadTooLarge,
    RemoteRelayError,
    ToolkitError,
    UploadError,
)
from .core.files import create_dir_if_not_exists, download_static_file
from .core.http import RemoteResponse, push_json_to_remote
from .core.sniff import detect_content_type
from .core.text import RANDOM_STRING_SOURCE, EmptyInputError, EmptySlugError, SlugError, random_string, slugify
from .services.json_exchange import JSONEnvelope, error_json, read_json, success_json, write_json
from .services.uploads import UploadedFile, upload_files, upload_one_file

__version__ = "1.0.0"
