from typing import AsyncIterator

import pytest

from bucketbind.binding import Binding
from bucketbind.storage.memory import InMemoryBackend


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def fs() -> InMemoryBackend:
    return InMemoryBackend()


@pytest.fixture
async def binding(fs: InMemoryBackend) -> AsyncIterator[Binding]:
    binding = Binding(fs, "fos", "lb-1")
    await binding.init()
    yield binding
