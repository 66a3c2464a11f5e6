import pathlib
from typing import Generator

import pytest
from _pytest.fixtures import SubRequest
from sqlalchemy.engine import Engine, create_engine


@pytest.fixture()
def engine(request: SubRequest, tmp_path: pathlib.Path) -> Generator[Engine, None, None]:
    connection_url = request.config.getoption("--sqlalchemy-url") or f"sqlite:///{tmp_path / 'company.db'}"
    engine = create_engine(connection_url)
    yield engine
    engine.dispose()
