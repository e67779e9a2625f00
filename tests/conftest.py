import httpx
import pytest

from smartbear_api_mcp.client import ResourceClient
from smartbear_api_mcp.executor import new_http_client
from smartbear_api_mcp.models import ClientConfiguration, FieldPolicy, TokenAuth

BASE_URL = "https://api.example.com"


class FakeClock:
    """Stands in for both time.monotonic and asyncio.sleep: sleeping advances the clock."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def config():
    return ClientConfiguration(
        base_path=BASE_URL,
        auth=TokenAuth(token="secret-token"),
        default_headers={"X-Test-Header": "test-value"},
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_client(config, clock):
    """Builds a ResourceClient whose HTTP traffic goes to ``handler`` instead of the network."""

    def factory(handler, policies=None, client_config=None, **kwargs):
        client_config = client_config or config
        http_client = new_http_client(client_config, transport=httpx.MockTransport(handler))
        return ResourceClient(
            client_config,
            policies if policies is not None else {"item": FieldPolicy.passthrough()},
            http_client=http_client,
            sleep=clock.sleep,
            **kwargs,
        )

    return factory
