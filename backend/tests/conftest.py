from unittest.mock import MagicMock

import pytest

from backend.services.supabase_service import create_client
from backend.tests.fakes import BASE, KEY, FakeResponse


@pytest.fixture
def session():
    s = MagicMock()
    s.request.return_value = FakeResponse(200, [])
    return s


@pytest.fixture
def client(session):
    return create_client(url=BASE, key=KEY, session=session)
