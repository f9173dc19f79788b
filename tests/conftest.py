import pytest

from fndeploy.internal.config import Settings
from fndeploy.kernel.artifacts import DeploymentPackage
from fndeploy.kernel.deployment import DeploymentService
from fndeploy.kernel.inputs import DeployInputs
from tests.kernel.mocks import MockFunctionService, MockObjectStore

ROLE_ARN = "arn:aws:iam::123456789012:role/x"


class FakeClock:
    """Monotonic clock whose sleep only advances virtual time."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def role_arn():
    return ROLE_ARN


@pytest.fixture
def package():
    return DeploymentPackage.from_bytes(b"PK\x03\x04 fake zip v1", source="tests")


@pytest.fixture
def other_package():
    return DeploymentPackage.from_bytes(b"PK\x03\x04 fake zip v2", source="tests")


@pytest.fixture
def function_service():
    return MockFunctionService()


@pytest.fixture
def object_store():
    return MockObjectStore(buckets={"artifacts"})


@pytest.fixture
def settings():
    return Settings(max_wait_seconds=30, poll_interval_seconds=2, read_retries=2, retry_backoff_seconds=1)


@pytest.fixture
def deployment_service(function_service, object_store, settings, fake_clock):
    return DeploymentService(
        function_service,
        object_store,
        settings=settings,
        sleep=fake_clock.sleep,
        clock=fake_clock,
    )


@pytest.fixture
def make_inputs():
    def _make(**overrides) -> DeployInputs:
        values = {"function_name": "f1", "dry_run": False}
        values.update(overrides)
        return DeployInputs(**values)

    return _make
