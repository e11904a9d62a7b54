import pytest

from lazy_services import app


@pytest.fixture(autouse=True)
def _reset_process_container():
    yield
    app.clear_container()
