from typing import Any, Dict, List

import pytest
from _pytest.config.argparsing import Parser

from mini_orm.tests.company import TABLES, CompanyContext
from mini_orm.tests.recording_storage import RecordingStorage


def pytest_addoption(parser: Parser) -> None:
    parser.addoption("--sqlalchemy-url", action="store", default=None)


@pytest.fixture()
def company_rows() -> Dict[str, List[Dict[str, Any]]]:
    return {
        "departments": [{"Id": 1, "Name": "R&D"}, {"Id": 2, "Name": "Sales"}],
        "projects": [{"Id": 1, "Name": "Apollo"}],
        "employees": [
            {"Id": 1, "FirstName": "Bob", "LastName": "Smith", "IsEmployed": True, "DepartmentId": 1},
            {"Id": 2, "FirstName": "Eve", "LastName": None, "IsEmployed": False, "DepartmentId": None},
        ],
        "employees_projects": [{"EmployeeId": 1, "ProjectId": 1}],
    }


@pytest.fixture()
def recording_storage(company_rows: Dict[str, List[Dict[str, Any]]]) -> RecordingStorage:
    return RecordingStorage(TABLES, company_rows)


@pytest.fixture()
def company(recording_storage: RecordingStorage) -> CompanyContext:
    context = CompanyContext(recording_storage)
    recording_storage.calls.clear()
    return context
