"""SmartBear API MCP Server.

A Model Context Protocol (MCP) server exposing Bugsnag (error tracking), PactFlow
(contract testing) and Zephyr (test management) operations as tools, all built on one
resource-client core: authenticated requests, Link-header pagination, field redaction,
rate-limit retries and asynchronous job polling.
"""

# Version information
__version__ = "0.1.0"

# Import main classes/functions that users should access
from .cancellation import CancellationToken
from .client import ResourceClient
from .errors import (
    ApiClientError,
    DecodeError,
    HttpError,
    JobFailedError,
    OperationCancelled,
    PaginationLimitExceeded,
    PollTimeoutError,
    RateLimitExceeded,
    ShapeError,
    TransportError,
    UndeclaredResourceType,
)
from .models import (
    AsyncJobHandle,
    BasicCredentials,
    ClientConfiguration,
    FieldPolicy,
    RequestDescriptor,
    ResponseEnvelope,
    TokenAuth,
)
from .sanitizer import sanitize

# Define what gets imported with "from smartbear_api_mcp import *"
__all__ = [
    "ResourceClient",
    "CancellationToken",
    "ClientConfiguration",
    "TokenAuth",
    "BasicCredentials",
    "RequestDescriptor",
    "ResponseEnvelope",
    "FieldPolicy",
    "AsyncJobHandle",
    "sanitize",
    "ApiClientError",
    "TransportError",
    "HttpError",
    "JobFailedError",
    "RateLimitExceeded",
    "DecodeError",
    "ShapeError",
    "PollTimeoutError",
    "PaginationLimitExceeded",
    "OperationCancelled",
    "UndeclaredResourceType",
]

import logging
logging.getLogger(__name__).addHandler(logging.NullHandler())
