import pytest


@pytest.fixture(scope="session")
def anyio_backend():
    # LazyResource uses an asyncio future and requires the asyncio backend
    # (DESIGN.md); don't parametrize over other backends installed locally.
    return "asyncio"
