import os
from typing import Mapping, Optional, Set

from . import __version__
from .models import BasicCredentials, ClientConfiguration, TokenAuth

DEFAULT_ENDPOINTS = {
    "bugsnag": "https://api.bugsnag.com",
    "zephyr": "https://api.zephyrscale.smartbear.com/v2",
}

USER_AGENT = f"smartbear-api-mcp/{__version__}"
DEFAULT_TIMEOUT = 30.0
DEFAULT_RATE_LIMIT_RETRIES = 5


def _get(env: Mapping[str, str], name: str) -> Optional[str]:
    value = env.get(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _default_headers() -> dict:
    return {"User-Agent": USER_AGENT, "Accept": "application/json"}


def http_timeout(env: Mapping[str, str] = os.environ) -> float:
    value = _get(env, "SMARTBEAR_HTTP_TIMEOUT")
    if value is None:
        return DEFAULT_TIMEOUT
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"SMARTBEAR_HTTP_TIMEOUT must be a number of seconds, got '{value}'.")


def rate_limit_retries(env: Mapping[str, str] = os.environ) -> Optional[int]:
    """Throttling retry budget. 'unlimited' keeps retrying for as long as the server throttles."""
    value = _get(env, "SMARTBEAR_RATE_LIMIT_RETRIES")
    if value is None:
        return DEFAULT_RATE_LIMIT_RETRIES
    if value.lower() == "unlimited":
        return None
    try:
        retries = int(value)
    except ValueError:
        raise ValueError(f"SMARTBEAR_RATE_LIMIT_RETRIES must be an integer or 'unlimited', got '{value}'.")
    if retries < 0:
        raise ValueError("SMARTBEAR_RATE_LIMIT_RETRIES cannot be negative.")
    return retries


def enabled_clients(env: Mapping[str, str] = os.environ) -> Optional[Set[str]]:
    """Products named in MCP_CLIENTS, lower-cased. None means every configured product."""
    value = _get(env, "MCP_CLIENTS")
    if value is None:
        return None
    return {name.strip().lower() for name in value.split(",") if name.strip()}


def bugsnag_configuration(env: Mapping[str, str] = os.environ) -> Optional[ClientConfiguration]:
    token = _get(env, "BUGSNAG_AUTH_TOKEN")
    if token is None:
        return None
    return ClientConfiguration(
        base_path=_get(env, "BUGSNAG_ENDPOINT") or DEFAULT_ENDPOINTS["bugsnag"],
        auth=TokenAuth(token=token, scheme="token"),
        default_headers={**_default_headers(), "X-Version": "2"},
        timeout=http_timeout(env),
    )


def pactflow_configuration(env: Mapping[str, str] = os.environ) -> Optional[ClientConfiguration]:
    """
    PactFlow authenticates with a bearer token, a self-hosted Pact Broker with a username
    and password. Only one of the two may be configured.
    """
    base_url = _get(env, "PACT_BROKER_BASE_URL")
    token = _get(env, "PACT_BROKER_TOKEN")
    username = _get(env, "PACT_BROKER_USERNAME")
    password = _get(env, "PACT_BROKER_PASSWORD")

    if base_url is None:
        if token or username or password:
            raise ValueError("PACT_BROKER_BASE_URL must be set when Pact Broker credentials are provided.")
        return None

    if token and (username or password):
        raise ValueError("Set either PACT_BROKER_TOKEN or PACT_BROKER_USERNAME/PACT_BROKER_PASSWORD, not both.")

    if token:
        auth = TokenAuth(token=token, scheme="Bearer")
    elif username and password:
        auth = BasicCredentials(username=username, password=password)
    elif username or password:
        raise ValueError("PACT_BROKER_USERNAME and PACT_BROKER_PASSWORD must be set together.")
    else:
        return None

    return ClientConfiguration(
        base_path=base_url.rstrip("/"),
        auth=auth,
        default_headers=_default_headers(),
        timeout=http_timeout(env),
    )


def zephyr_configuration(env: Mapping[str, str] = os.environ) -> Optional[ClientConfiguration]:
    token = _get(env, "ZEPHYR_API_TOKEN")
    if token is None:
        return None
    return ClientConfiguration(
        base_path=(_get(env, "ZEPHYR_BASE_URL") or DEFAULT_ENDPOINTS["zephyr"]).rstrip("/"),
        auth=TokenAuth(token=token, scheme="Bearer"),
        default_headers={**_default_headers(), "zscale-source": "smartbear-mcp"},
        timeout=http_timeout(env),
    )
