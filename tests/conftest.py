from collections.abc import Iterator
from pathlib import Path

import pytest

from agent_sdk_bridge.core.config import ProviderSettings
from agent_sdk_bridge.core.id import sequential
from agent_sdk_bridge.util.log import Log


@pytest.fixture(autouse=True)
def _log_teardown() -> Iterator[None]:
    yield
    Log.reset()


@pytest.fixture
def ids():
    return sequential("id")


@pytest.fixture
def settings(tmp_path: Path) -> ProviderSettings:
    return ProviderSettings(session_cache_dir=str(tmp_path / "sessions"), cwd=str(tmp_path))


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"
