from typing import Generator

import pytest
from sqlalchemy import Boolean, Column, ForeignKey, Integer, MetaData, String, Table
from sqlalchemy.engine import Engine

from mini_orm.storages.sqlalchemy import SqlAlchemyStorage


@pytest.fixture()
def sa_metadata() -> MetaData:
    sa_metadata = MetaData()
    Table(
        "departments",
        sa_metadata,
        Column("Id", Integer, primary_key=True),
        Column("Name", String(50), nullable=False),
    )
    Table(
        "projects",
        sa_metadata,
        Column("Id", Integer, primary_key=True),
        Column("Name", String(50), nullable=False),
    )
    Table(
        "employees",
        sa_metadata,
        Column("Id", Integer, primary_key=True),
        Column("FirstName", String(50), nullable=False),
        Column("LastName", String(50)),
        Column("IsEmployed", Boolean, nullable=False),
        Column("DepartmentId", Integer, ForeignKey("departments.Id")),
    )
    Table(
        "employees_projects",
        sa_metadata,
        Column("EmployeeId", Integer, ForeignKey("employees.Id"), primary_key=True),
        Column("ProjectId", Integer, ForeignKey("projects.Id"), primary_key=True),
    )
    return sa_metadata


@pytest.fixture()
def schema(sa_metadata: MetaData, engine: Engine) -> Generator[MetaData, None, None]:
    sa_metadata.drop_all(engine)
    sa_metadata.create_all(engine)
    tables = sa_metadata.tables
    with engine.begin() as connection:
        connection.execute(tables["departments"].insert(), [{"Id": 1, "Name": "R&D"}, {"Id": 2, "Name": "Sales"}])
        connection.execute(tables["projects"].insert(), [{"Id": 1, "Name": "Apollo"}])
        connection.execute(
            tables["employees"].insert(),
            [
                {"Id": 1, "FirstName": "Bob", "LastName": "Smith", "IsEmployed": True, "DepartmentId": 1},
                {"Id": 2, "FirstName": "Eve", "LastName": None, "IsEmployed": False, "DepartmentId": None},
            ],
        )
        connection.execute(tables["employees_projects"].insert(), [{"EmployeeId": 1, "ProjectId": 1}])
    yield sa_metadata
    sa_metadata.drop_all(engine)


@pytest.fixture()
def storage(schema: MetaData, engine: Engine) -> SqlAlchemyStorage:
    return SqlAlchemyStorage(engine)
