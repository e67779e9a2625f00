from typing import Any, Dict, Generator, List, Literal, Optional, Tuple, Union

import httpx
from pydantic import BaseModel, ConfigDict, Field

HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]

# --- Configuration ---

class SchemeTokenAuth(httpx.Auth):
    """Sends ``Authorization: <scheme> <token>`` on every request."""

    def __init__(self, scheme: str, token: str):
        self._header = f"{scheme} {token}"

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        request.headers["Authorization"] = self._header
        yield request


class TokenAuth(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: str
    # Bugsnag uses "token", PactFlow and Zephyr use "Bearer"
    scheme: Literal["token", "Bearer"] = "token"

    def http_auth(self) -> httpx.Auth:
        return SchemeTokenAuth(self.scheme, self.token)


class BasicCredentials(BaseModel):
    model_config = ConfigDict(frozen=True)

    username: str
    password: str

    def http_auth(self) -> httpx.Auth:
        return httpx.BasicAuth(self.username, self.password)


class ClientConfiguration(BaseModel):
    """
    Everything a client needs to talk to one product API. Built once, shared read-only by
    every request that client issues; a new configuration means a new client.
    """
    model_config = ConfigDict(frozen=True)

    base_path: str
    auth: Union[TokenAuth, BasicCredentials]
    default_headers: Dict[str, str] = Field(default_factory=dict)
    timeout: float = 30.0


# --- Requests and responses ---

class RequestDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    method: HttpMethod = "GET"
    url: str
    headers: Dict[str, str] = Field(default_factory=dict)
    params: Optional[List[Tuple[str, Any]]] = None
    # None sends no body; any other value, {} and 0 included, is sent as JSON
    body: Optional[Any] = None

    def at(self, url: str) -> "RequestDescriptor":
        """The same request issued against another URL, e.g. a pagination cursor."""
        return self.model_copy(update={"url": url, "params": None})


class ResponseEnvelope(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    status: int
    headers: httpx.Headers
    body: Optional[Any] = None
    next_cursor: Optional[str] = None
    total_count: Optional[int] = None
    # False when the resource type is declared passthrough
    redacted: bool = False


# --- Field policies ---

class FieldPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    mode: Literal["allow", "deny", "passthrough"]
    fields: Tuple[str, ...] = ()

    @classmethod
    def allow(cls, *fields: str) -> "FieldPolicy":
        return cls(mode="allow", fields=fields)

    @classmethod
    def deny(cls, *fields: str) -> "FieldPolicy":
        return cls(mode="deny", fields=fields)

    @classmethod
    def passthrough(cls) -> "FieldPolicy":
        return cls(mode="passthrough")

    @property
    def redacts(self) -> bool:
        return self.mode != "passthrough"


# --- Async jobs ---

class AsyncJobHandle(BaseModel):
    model_config = ConfigDict(frozen=True)

    status_url: str
    result_url: str


# --- Tool responses ---

class ErrorResponse(BaseModel):
    error: str
    status_code: Optional[int] = None
    body: Optional[str] = None


class PagedResult(BaseModel):
    """
    Shape returned by list tools: the page of data, how many items it holds, the total
    across every page when the server reports one, and the cursor for the next page.
    """
    data: List[Any]
    count: int
    total: Optional[int] = None
    next: Optional[str] = None

    @classmethod
    def from_envelope(cls, envelope: ResponseEnvelope) -> "PagedResult":
        data = envelope.body or []
        return cls(data=data, count=len(data), total=envelope.total_count, next=envelope.next_cursor)
