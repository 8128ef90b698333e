"""
Multi-driver test base for automatic driver discovery and execution.

Each test class inherits from MultiDriverTestBase and defines a single
create_app() method; every test then runs once per enabled driver.
"""

from abc import ABC, abstractmethod
from typing import List

import pytest

from restcontract import RestApplication
from .dsl import RestApiDsl
from .drivers import AsgiDriver, DirectDriver, DriverInterface


class MultiDriverTestBase(ABC):
    """
    Base class for multi-driver tests.

    Automatically runs each test method against all available drivers.
    Subclasses must implement create_app() to define the application under test.
    """

    # Override this in subclasses to control which drivers to test
    ENABLED_DRIVERS = [
        'direct',  # Direct driver: calls RestApplication.execute
        'asgi',    # ASGI driver: goes through ASGIAdapter with a synthetic scope
    ]

    # Optional: Override to exclude specific drivers for certain test files
    EXCLUDED_DRIVERS: List[str] = []

    @abstractmethod
    def create_app(self) -> RestApplication:
        """Create and configure the application for testing."""
        pass

    @classmethod
    def get_available_drivers(cls) -> List[str]:
        """Get list of available driver names for this test class."""
        return [driver for driver in cls.ENABLED_DRIVERS if driver not in cls.EXCLUDED_DRIVERS]

    @classmethod
    def create_driver(cls, driver_name: str, app: RestApplication) -> DriverInterface:
        """Create a driver instance for the given driver name."""
        driver_map = {
            'direct': DirectDriver,
            'asgi': AsgiDriver,
        }
        if driver_name not in driver_map:
            pytest.skip(f"Driver '{driver_name}' not available. Available: {list(driver_map.keys())}")
        return driver_map[driver_name](app)

    @pytest.fixture
    def api(self, request):
        """
        Parametrized fixture that provides an API client for each enabled driver.

        This fixture is parametrized with all enabled drivers by conftest.py.
        """
        driver_name = request.param
        app = self.create_app()
        yield RestApiDsl(self.create_driver(driver_name, app)), driver_name
