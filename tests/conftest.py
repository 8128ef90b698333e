"""
Pytest configuration for multi-driver testing.

Parametrizes the 'api' fixture of MultiDriverTestBase subclasses with every
enabled driver, and pins async tests to the asyncio backend.
"""

import pytest

from tests.framework.multi_driver_base import MultiDriverTestBase


@pytest.fixture
def anyio_backend():
    """Run anyio-marked tests on asyncio only (trio is not installed)."""
    return "asyncio"


def pytest_generate_tests(metafunc):
    """
    Pytest hook to automatically parametrize the 'api' fixture for MultiDriverTestBase subclasses.

    This ensures every test method in classes that inherit from MultiDriverTestBase
    gets run against all enabled drivers.
    """
    if (metafunc.cls is not None and
        issubclass(metafunc.cls, MultiDriverTestBase) and
        'api' in metafunc.fixturenames):

        drivers = metafunc.cls.get_available_drivers()
        metafunc.parametrize(
            'api',
            drivers,
            indirect=True,
            ids=[f"driver-{d}" for d in drivers]
        )
