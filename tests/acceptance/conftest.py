from dataclasses import dataclass

import pytest
from werkzeug.test import TestResponse


@dataclass
class ResponseContext:
    response: TestResponse | None = None


@pytest.fixture
def response_context() -> ResponseContext:
    return ResponseContext()
