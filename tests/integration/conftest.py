"""Integration test fixtures with a real on-disk data directory."""

from collections.abc import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from driver_payroll.api.app import create_app
from driver_payroll.services import PayrollServices, shutdown_services


@pytest_asyncio.fixture(scope="function")
async def client(services: PayrollServices) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to an app serving the test services."""
    app = create_app(services)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    shutdown_services()
