import collections.abc
import json
import logging
import re
import types
from typing import Annotated, Any, Dict, Mapping, Optional, Tuple, Type, TypeVar, Union, get_args, get_origin


from fastapi import Request, status
from fastapi.responses import Response
from pydantic import AliasChoices, AliasPath, BaseModel, RootModel, ValidationError, model_serializer
from starlette.exceptions import HTTPException


from ..core.config import JSONConfig
from ..core.errors import BadJSONRequest, JSONEncodeFailure, JSONTargetError
from ..core.serialization import dumps_json


logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# whitespace allowed around a JSON value (RFC 8259)
_JSON_WHITESPACE = " \t\n\r"


class JSONEnvelope(BaseModel):
    """Fixed response wrapper; `data` is left out of the output when None."""

    error: bool = False
    message: str = ""
    data: Optional[Any] = None

    @model_serializer(mode="wrap")
    def omit_empty_data(self, handler):
        out = handler(self)
        if out.get("data") is None:
            out.pop("data", None)
        return out


def _reject_constant(name: str):
    raise ValueError(f"invalid JSON constant {name}")


_decoder = json.JSONDecoder(parse_constant=_reject_constant)


async def _read_limited_body(request: Request, max_bytes: int) -> bytes:
    too_large = BadJSONRequest(
        f"body must not be larger than {max_bytes} bytes",
        status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
    )

    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > max_bytes:
        raise too_large

    received = 0
    chunks = []
    async for chunk in request.stream():
        received += len(chunk)
        if received > max_bytes:
            raise too_large
        chunks.append(chunk)
    return b"".join(chunks)


_LITERALS = ("true", "false", "null")
# a number that stops before it is complete: "-", "1.", "1e", "1e+"
_PARTIAL_NUMBER = re.compile(r"-|-?(?:0|[1-9][0-9]*)(?:\.[0-9]*)?(?:[eE][+-]?[0-9]*)?")
_NUMBER_CHARS = "0123456789+-.eE"


def _is_truncated(err: json.JSONDecodeError) -> bool:
    doc = err.doc.rstrip(_JSON_WHITESPACE)
    if err.pos >= len(doc) or err.msg.startswith("Unterminated string"):
        return True

    tail = doc[err.pos:]
    if any(literal.startswith(tail) for literal in _LITERALS):
        return True

    # the decoder stops a cut-off number after its last valid digit
    start = err.pos
    while start > 0 and doc[start - 1] in _NUMBER_CHARS:
        start -= 1
    return _PARTIAL_NUMBER.fullmatch(doc[start:]) is not None


def _decode_single_value(raw: bytes):
    """Decode exactly one JSON value; return (value, its source text, end offset)."""
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        raise BadJSONRequest("body contains badly-formed JSON")

    start = len(text) - len(text.lstrip(_JSON_WHITESPACE))
    if start == len(text):
        raise BadJSONRequest("body must not be empty")

    try:
        value, end = _decoder.raw_decode(text, start)
    except json.JSONDecodeError as e:
        if _is_truncated(e):
            raise BadJSONRequest("body contains badly-formed JSON")
        raise BadJSONRequest(f"body contains badly-formed JSON (at character {e.pos + 1})")
    except ValueError:
        # NaN / Infinity literals
        raise BadJSONRequest("body contains badly-formed JSON")

    if text[end:].strip(_JSON_WHITESPACE):
        raise BadJSONRequest("body must contain only one json value")

    return value, text[start:end], end


def _alias_keys(alias, annotation):
    if isinstance(alias, str):
        yield alias, annotation
    elif isinstance(alias, AliasPath):
        # only the outermost key of a path is a key of this object
        if alias.path and isinstance(alias.path[0], str):
            yield alias.path[0], None
    elif isinstance(alias, AliasChoices):
        for choice in alias.choices:
            yield from _alias_keys(choice, annotation)


def _field_keys(model: Type[BaseModel]) -> Dict[str, Any]:
    """Map every key `model` accepts to the annotation of the field it fills."""
    keys = {}
    for name, info in model.model_fields.items():
        keys[name] = info.annotation
        if info.alias:
            keys[info.alias] = info.annotation
        for key, annotation in _alias_keys(info.validation_alias, info.annotation):
            keys.setdefault(key, annotation)
    return keys


def _unknown_key(value: Any, annotation: Any, path: Tuple = ()) -> Optional[Tuple]:
    """Return the path of the first key in `value` that `annotation` has no field for."""
    if annotation is None:
        return None

    if isinstance(annotation, type) and issubclass(annotation, BaseModel):
        if issubclass(annotation, RootModel):
            return _unknown_key(value, annotation.model_fields["root"].annotation, path)
        if not isinstance(value, dict):
            return None
        keys = _field_keys(annotation)
        for key, item in value.items():
            if key not in keys:
                return path + (key,)
            found = _unknown_key(item, keys[key], path + (key,))
            if found is not None:
                return found
        return None

    origin = get_origin(annotation)
    args = get_args(annotation)

    if origin is Annotated:
        return _unknown_key(value, args[0], path)
    if origin is Union or origin is types.UnionType:
        members = [arg for arg in args if arg is not type(None)]
        # with several candidates the validator picks the match
        return _unknown_key(value, members[0], path) if len(members) == 1 else None
    if origin in (dict, collections.abc.Mapping) and isinstance(value, dict) and len(args) == 2:
        for key, item in value.items():
            found = _unknown_key(item, args[1], path + (key,))
            if found is not None:
                return found
        return None
    if isinstance(value, list) and args:
        if origin is tuple and not (len(args) == 2 and args[1] is Ellipsis):
            pairs = zip(value, args)
        elif origin in (list, tuple, set, frozenset, collections.abc.Sequence):
            pairs = ((item, args[0]) for item in value)
        else:
            return None
        for index, (item, item_annotation) in enumerate(pairs):
            found = _unknown_key(item, item_annotation, path + (index,))
            if found is not None:
                return found
    return None


def _field_path(loc) -> str:
    return ".".join(str(part) for part in loc)


def _translate_validation_error(err: ValidationError, end: int) -> BadJSONRequest:
    first = err.errors()[0]
    kind = first.get("type", "")
    loc = tuple(first.get("loc", ()))

    if kind == "extra_forbidden":
        return BadJSONRequest(f'body contains unknown key "{_field_path(loc)}"')
    if kind == "missing":
        return BadJSONRequest(f'body is missing required field "{_field_path(loc)}"')
    if not loc:
        return BadJSONRequest(f"body contains incorrect JSON type (at character {end})")
    if kind.endswith("_type") or kind.endswith("_parsing"):
        return BadJSONRequest(f'body contains incorrect JSON type for field "{_field_path(loc)}"')
    return BadJSONRequest(f'body contains invalid value for field "{_field_path(loc)}"')


async def read_json(request: Request, model: Type[ModelT], config: Optional[JSONConfig] = None) -> ModelT:
    """Decode a size-bounded request body into one instance of `model`.

    Types are matched strictly (no "1" -> 1 coercion). Every failure raises
    BadJSONRequest with a message safe to return to the client.
    """
    if not (isinstance(model, type) and issubclass(model, BaseModel)):
        raise JSONTargetError(f"target must be a pydantic model class, got {model!r}")

    cfg = config or JSONConfig()
    raw = await _read_limited_body(request, cfg.max_body_bytes)
    request.state.json_target = model.__name__
    value, source, end = _decode_single_value(raw)

    if not cfg.allow_unknown_fields:
        unknown = _unknown_key(value, model)
        if unknown is not None:
            logger.warning(f"Rejected JSON body for {model.__name__}: unknown key {unknown!r}")
            raise BadJSONRequest(f'body contains unknown key "{_field_path(unknown)}"')

    try:
        return model.model_validate_json(source, strict=True)
    except ValidationError as e:
        translated = _translate_validation_error(e, end)
        logger.warning(f"Rejected JSON body for {model.__name__}: {translated.message}")
        raise translated


def write_json(status_code: int, data: Any, headers: Optional[Mapping[str, str]] = None) -> Response:
    """Build a JSON response.

    Extra `headers` are applied first; Content-Type is always
    application/json.
    """
    try:
        body = dumps_json(data)
    except (TypeError, ValueError) as e:
        logger.error(f"Failed to encode JSON response: {str(e)}")
        raise JSONEncodeFailure(f"failed to encode JSON response: {e}") from e

    response = Response(content=body, status_code=status_code)
    if headers:
        for key, value in headers.items():
            response.headers[key] = value
    response.headers["Content-Type"] = "application/json"
    return response


def error_json(err: Exception, status_code: int = status.HTTP_400_BAD_REQUEST) -> Response:
    """Wrap `err` in an error envelope: {"error": true, "message": ...}."""
    message = str(err.detail) if isinstance(err, HTTPException) else str(err)
    return write_json(status_code, JSONEnvelope(error=True, message=message))


def success_json(message: str, data: Any = None, status_code: int = status.HTTP_200_OK) -> Response:
    return write_json(status_code, JSONEnvelope(error=False, message=message, data=data))
