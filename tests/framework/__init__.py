"""
Test framework for RESTful API testing using 4-layer architecture.
"""

from .dsl import RestApiDsl, HttpRequest, HttpResponse
from .drivers import AsgiDriver, DirectDriver, DriverInterface
from .multi_driver_base import MultiDriverTestBase

__all__ = [
    'RestApiDsl',
    'HttpRequest',
    'HttpResponse',
    'AsgiDriver',
    'DirectDriver',
    'DriverInterface',
    'MultiDriverTestBase',
]
