import logging
import typing

import attr
from sqlalchemy import Column, ForeignKey, Integer, MetaData, String, Table, create_engine

from mini_orm import DbContext, DbSet, Entity, Identity, foreign_key, navigation, navigation_collection
from mini_orm.storages.sqlalchemy import SqlAlchemyStorage


class Department(Entity):
    id: Identity[int] = None
    name: str = attr.ib(validator=attr.validators.instance_of(str))
    employees: typing.Tuple["Employee", ...] = navigation_collection()


class Employee(Entity):
    id: Identity[int] = None
    first_name: str = attr.ib(validator=attr.validators.instance_of(str))
    department_id: typing.Optional[int] = foreign_key("department", default=None)
    department: typing.Optional[Department] = navigation()


class CompanyContext(DbContext):
    departments: DbSet[Department]
    employees: DbSet[Employee]


logging.basicConfig(level=logging.INFO)

engine = create_engine("sqlite://")
schema = MetaData()
departments = Table(
    "departments", schema, Column("Id", Integer, primary_key=True), Column("Name", String(50), nullable=False)
)
Table(
    "employees",
    schema,
    Column("Id", Integer, primary_key=True),
    Column("FirstName", String(50), nullable=False),
    Column("DepartmentId", Integer, ForeignKey("departments.Id")),
)
schema.create_all(engine)
with engine.begin() as connection:
    connection.execute(departments.insert(), [{"Id": 1, "Name": "R&D"}])

company = CompanyContext(SqlAlchemyStorage(engine))
ann = Employee(first_name="Ann", department_id=1)
company.employees.add(ann)
company.save_changes()

print(ann.id, ann.department.name, [employee.first_name for employee in company.departments[0].employees])
