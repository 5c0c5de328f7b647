import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple
from urllib.error import HTTPError, URLError
from urllib.request import OpenerDirector, Request, build_opener

from .errors import JSONEncodeFailure, RemoteRelayError
from .serialization import dumps_json


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RemoteResponse:
    """Status, headers and body of a relayed request, read before close."""

    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    def json(self) -> Any:
        return json.loads(self.body)


def push_json_to_remote(
    uri: str,
    data: Any,
    opener: Optional[OpenerDirector] = None,
    timeout_seconds: int = 60,
) -> Tuple[RemoteResponse, int]:
    """POST `data` as JSON to `uri` and return (response, status code).

    - opener: any object with `open(request, timeout=...)`, defaults to a
      plain urllib opener; pass a stub in tests
    - HTTP error statuses come back as responses; only transport failures raise
    """
    try:
        payload = dumps_json(data)
    except (TypeError, ValueError) as e:
        raise JSONEncodeFailure(f"failed to encode JSON payload: {e}") from e

    http_opener = opener if opener is not None else build_opener()
    request = Request(uri, data=payload, method="POST")
    request.add_header("Content-Type", "application/json")

    try:
        with http_opener.open(request, timeout=timeout_seconds) as resp:
            response = RemoteResponse(
                status_code=resp.status,
                headers=dict(resp.headers.items()),
                body=resp.read(),
            )
    except HTTPError as e:
        # an error status is still a response from the remote side
        response = RemoteResponse(
            status_code=e.code,
            headers=dict(e.headers.items()) if e.headers else {},
            body=e.read(),
        )
        e.close()
    except (URLError, OSError, ValueError) as e:
        logger.error(f"Failed to push JSON to {uri}: {str(e)}")
        raise RemoteRelayError(uri, str(e)) from e

    if response.status_code >= 400:
        logger.warning(f"Remote {uri} answered with status {response.status_code}")

    return response, response.status_code
