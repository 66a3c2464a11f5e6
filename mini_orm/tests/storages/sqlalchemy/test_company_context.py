import pytest
from sqlalchemy import MetaData, select
from sqlalchemy.engine import Engine

from mini_orm.errors import ConfigurationError, PersistenceError
from mini_orm.storages.sqlalchemy import SqlAlchemyStorage
from mini_orm.tests.company import CompanyContext, Department, Employee, EmployeesProject


def _rows(engine: Engine, schema: MetaData, table_name: str) -> list:
    table = schema.tables[table_name]
    with engine.connect() as connection:
        return [dict(row._mapping) for row in connection.execute(select(table).order_by(*table.primary_key.columns))]


def test_loads_and_wires_company(storage: SqlAlchemyStorage) -> None:
    company = CompanyContext(storage)

    research, sales = company.departments
    bob, eve = company.employees
    assert [employee.first_name for employee in research.employees] == ["Bob"]
    assert sales.employees == ()
    assert eve.department is None
    assert bob.employees_projects[0].project is company.projects[0]


def test_added_employee_is_inserted_and_wired(storage: SqlAlchemyStorage, engine: Engine, schema: MetaData) -> None:
    company = CompanyContext(storage)
    research = company.departments[0]
    ann = Employee(first_name="Ann", department_id=1)
    company.employees.add(ann)

    company.save_changes()

    assert ann.id == 3
    assert ann.department is research
    assert research.employees == (company.employees[0], ann)
    assert [snapshot.key for snapshot in company.employees.change_tracker.all_entities] == [(1,), (2,), (3,)]
    assert _rows(engine, schema, "employees")[-1] == {
        "Id": 3,
        "FirstName": "Ann",
        "LastName": None,
        "IsEmployed": True,
        "DepartmentId": 1,
    }


def test_changes_survive_reload(storage: SqlAlchemyStorage, engine: Engine) -> None:
    company = CompanyContext(storage)
    research, sales = company.departments
    bob, eve = company.employees
    research.name = "Research"
    company.employees.remove(eve)
    eve.first_name = "Evelyn"
    bob.department_id = 2
    company.employees_projects.remove(company.employees_projects[0])
    venus = Department(name="Venus")
    company.departments.add(venus)

    company.save_changes()

    reloaded = CompanyContext(SqlAlchemyStorage(engine))
    assert [department.name for department in reloaded.departments] == ["Research", "Sales", "Venus"]
    assert [employee.first_name for employee in reloaded.employees] == ["Bob"]
    assert reloaded.employees[0].department is reloaded.departments[1]
    assert len(reloaded.employees_projects) == 0


def test_link_entity_is_inserted(storage: SqlAlchemyStorage, engine: Engine, schema: MetaData) -> None:
    company = CompanyContext(storage)
    eve = company.employees[1]
    apollo = company.projects[0]
    company.employees_projects.add(EmployeesProject(employee_id=eve.id, project_id=apollo.id))

    company.save_changes()

    assert _rows(engine, schema, "employees_projects") == [
        {"EmployeeId": 1, "ProjectId": 1},
        {"EmployeeId": 2, "ProjectId": 1},
    ]
    assert [link.employee for link in apollo.employees_projects] == [company.employees[0], eve]


def test_constraint_violation_rolls_back_every_set(
    storage: SqlAlchemyStorage, engine: Engine, schema: MetaData
) -> None:
    company = CompanyContext(storage, validator=lambda entity: True)
    research = company.departments[0]
    research.name = "Research"
    ann = Employee(first_name="Ann")
    ann.first_name = None
    company.employees.add(ann)

    with pytest.raises(PersistenceError):
        company.save_changes()

    assert [row["Name"] for row in _rows(engine, schema, "departments")] == ["R&D", "Sales"]
    assert len(_rows(engine, schema, "employees")) == 2
    assert ann.id is None
    assert company.departments.change_tracker.get_modified_entities(company.departments) == [research]

    ann.first_name = "Ann"
    company.save_changes()

    assert [row["Name"] for row in _rows(engine, schema, "departments")] == ["Research", "Sales"]
    assert ann.id == 3


def test_removed_entity_with_changed_key_deletes_its_own_row(storage: SqlAlchemyStorage, engine: Engine) -> None:
    company = CompanyContext(storage)
    eve = company.employees[1]
    company.employees.remove(eve)
    eve.id = 1

    company.save_changes()

    reloaded = CompanyContext(SqlAlchemyStorage(engine))
    assert [employee.first_name for employee in reloaded.employees] == ["Bob"]


def test_removing_a_referenced_principal_is_rejected_before_writing(
    storage: SqlAlchemyStorage, engine: Engine, schema: MetaData
) -> None:
    company = CompanyContext(storage)
    company.departments.remove(company.departments[0])

    with pytest.raises(ConfigurationError):
        company.save_changes()

    assert [row["Id"] for row in _rows(engine, schema, "departments")] == [1, 2]
    assert company.departments.change_tracker.removed != ()
