"""Shared fixtures for Smart Debugger tests."""

from unittest.mock import MagicMock

import pytest
import requests


def make_response(status_code: int = 200, body: bytes = b"", null_body: bool = False) -> requests.Response:
    """Build a real requests.Response with a preloaded body."""
    response = requests.Response()
    response.status_code = status_code
    response._content = None if null_body else body
    response._content_consumed = True
    response.encoding = "utf-8"
    return response


@pytest.fixture
def session() -> MagicMock:
    """A requests.Session stand-in whose post() the test configures."""
    return MagicMock(spec=requests.Session)
