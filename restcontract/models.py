"""
Core HTTP data models used by the dispatcher and its host framework.
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic_core import to_jsonable_python

# Set up logger for this module
logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"
BINARY_CONTENT_TYPE = "application/octet-stream"


class MultiValueHeaders:
    """
    Multi-value, case-insensitive headers container.

    HTTP headers are case-insensitive per RFC 7230, and the same header can appear
    multiple times. Lookups ignore case; ``get`` returns the first value and
    ``get_all`` every value.

    Example::

        headers = MultiValueHeaders()
        headers.add('Set-Cookie', 'session=abc')
        headers.add('Set-Cookie', 'user=123')
        headers.get('set-cookie')      # Returns 'session=abc' (first value)
        headers.get_all('set-cookie')  # Returns ['session=abc', 'user=123']
    """

    def __init__(self, data=None):
        # Internal storage: Dict[lowercase_name, List[Tuple[original_name, value]]]
        self._headers: Dict[str, List[Tuple[str, str]]] = {}

        if data is not None:
            if isinstance(data, MultiValueHeaders):
                self._headers = {k: list(v) for k, v in data._headers.items()}
            elif isinstance(data, dict):
                for key, value in data.items():
                    if isinstance(value, list):
                        for v in value:
                            self.add(key, v)
                    else:
                        self.add(key, value)
            elif isinstance(data, (list, tuple)):
                for key, value in data:
                    self.add(key, value)

    def add(self, name: str, value: str) -> None:
        """Add a header value, allowing multiple values for the same name."""
        self._headers.setdefault(name.lower(), []).append((name, value))

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get the first value for a header name."""
        if not isinstance(name, str):
            return default

        values = self._headers.get(name.lower())
        if values:
            return values[0][1]
        return default

    def get_all(self, name: str) -> List[str]:
        """Get all values for a header name."""
        return [value for _, value in self._headers.get(name.lower(), [])]

    def set(self, name: str, value: str) -> None:
        """Set a header to a single value, replacing any existing values."""
        self._headers[name.lower()] = [(name, value)]

    def __setitem__(self, name: str, value: str) -> None:
        self.set(name, value)

    def __getitem__(self, name: str) -> str:
        value = self.get(name)
        if value is None:
            raise KeyError(name)
        return value

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        return name.lower() in self._headers

    def __delitem__(self, name: str) -> None:
        try:
            del self._headers[name.lower()]
        except KeyError:
            raise KeyError(name) from None

    def __iter__(self):
        """Iterate over header names (using original casing of first occurrence)."""
        for values in self._headers.values():
            if values:
                yield values[0][0]

    def __len__(self):
        return len(self._headers)

    def __repr__(self):
        return f"MultiValueHeaders({self.items()!r})"

    def items(self):
        """Return (name, first_value) pairs."""
        return [(values[0][0], values[0][1]) for values in self._headers.values() if values]

    def items_all(self):
        """Return all (name, value) pairs including duplicates."""
        result = []
        for values in self._headers.values():
            result.extend(values)
        return result

    def to_validation_dict(self) -> Dict[str, Union[str, List[str]]]:
        """Lowercase names; single values as str, repeated headers as lists.

        This is the shape header schemas are validated against.
        """
        result: Dict[str, Union[str, List[str]]] = {}
        for name_lower, values in self._headers.items():
            if len(values) == 1:
                result[name_lower] = values[0][1]
            elif values:
                result[name_lower] = [value for _, value in values]
        return result

    def copy(self):
        return MultiValueHeaders(self)


class HTTPMethod(Enum):
    """Enumeration of supported HTTP methods."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"


@dataclass
class Request:
    """Represents an HTTP request.

    ``body`` starts as the raw bytes received from the client. The host
    parses it according to Content-Type before the pre-validation phase, and
    request validation replaces ``path_params``, ``query_params`` and
    ``body`` with their parsed values. Validated headers are stored on
    ``validated_headers`` so ``headers`` keeps its case-insensitive lookups.
    """

    method: HTTPMethod
    path: str
    headers: Union[Dict[str, str], MultiValueHeaders] = field(default_factory=MultiValueHeaders)
    body: Any = None
    query_params: Dict[str, Any] = field(default_factory=dict)
    path_params: Dict[str, Any] = field(default_factory=dict)
    validated_headers: Any = None
    tls: bool = False
    state: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not isinstance(self.headers, MultiValueHeaders):
            self.headers = MultiValueHeaders(self.headers)
        if isinstance(self.method, str):
            self.method = HTTPMethod(self.method.upper())
        if self.query_params is None:
            self.query_params = {}
        if self.path_params is None:
            self.path_params = {}

    def get_content_type(self) -> Optional[str]:
        """Get the media type of the Content-Type header, without parameters."""
        content_type = self.headers.get("content-type")
        if not content_type:
            return None
        return content_type.split(";")[0].strip().lower()


def encode_json(body: Any) -> bytes:
    """Serialize a structured body, including pydantic models and dataclasses."""
    return json.dumps(to_jsonable_python(body), separators=(",", ":")).encode("utf-8")


class Reply:
    """Mutable reply handed to hooks, error handlers and the terminal handler.

    A reply is sent at most once. Hooks short-circuit a request simply by
    sending on it; the host checks ``sent`` between phases.

    Example:
        ```python
        async def require_auth(request, reply):
            if "authorization" not in request.headers:
                reply.status(401).send({"message": "Unauthorized"})
        ```
    """

    def __init__(self):
        self.status_code = 200
        self.headers = MultiValueHeaders()
        self.body: bytes = b""
        self.sent = False

    def status(self, status_code: int) -> "Reply":
        self.status_code = int(status_code)
        return self

    code = status

    def header(self, name: str, value: str) -> "Reply":
        """Set a header. Values must be encodable as latin-1 (RFC 7230).

        Raises:
            ValueError: if the value cannot go on the wire.
        """
        value = str(value)
        try:
            value.encode("latin-1")
        except UnicodeEncodeError:
            raise ValueError(f"Header {name!r} has a value that is not latin-1 encodable: {value!r}") from None
        self.headers[name] = value
        return self

    def type(self, content_type: str) -> "Reply":
        return self.header("Content-Type", content_type)

    def send(self, body: Any = None) -> "Reply":
        """Send the body, inferring the content type when none was set.

        str and bytes are sent verbatim; anything else is JSON-encoded.
        """
        if isinstance(body, (str, bytes)) or body is None:
            return self._finish(body, TEXT_CONTENT_TYPE if isinstance(body, str) else BINARY_CONTENT_TYPE)
        return self.json(body)

    def json(self, body: Any) -> "Reply":
        """Send the body with structured (JSON) encoding."""
        if self.sent:
            raise RuntimeError("Reply already sent")
        if "content-type" not in self.headers:
            self.headers["Content-Type"] = JSON_CONTENT_TYPE
        self.body = encode_json(body)
        self.sent = True
        return self

    def _finish(self, body: Union[str, bytes, None], default_type: str) -> "Reply":
        if self.sent:
            raise RuntimeError("Reply already sent")
        if body is not None and "content-type" not in self.headers:
            self.headers["Content-Type"] = default_type
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.body = body or b""
        self.sent = True
        return self

    def to_response(self) -> "Response":
        headers = self.headers.copy()
        headers["Content-Length"] = str(len(self.body))
        return Response(status_code=self.status_code, headers=headers, body=self.body)


@dataclass
class Response:
    """Finalized HTTP response produced by the host framework."""

    status_code: int
    headers: MultiValueHeaders = field(default_factory=MultiValueHeaders)
    body: bytes = b""

    @property
    def content_type(self) -> Optional[str]:
        return self.headers.get("content-type")

    @property
    def text(self) -> str:
        return self.body.decode("utf-8")

    def json(self) -> Any:
        return json.loads(self.body) if self.body else None
