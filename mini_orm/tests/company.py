import typing

import attr

from mini_orm import DbContext, DbSet, Entity, Identity, foreign_key, navigation, navigation_collection, not_mapped


class Department(Entity):
    id: Identity[int] = None
    name: str = attr.ib(validator=attr.validators.instance_of(str))
    employees: typing.Tuple["Employee", ...] = navigation_collection()


class Project(Entity):
    id: Identity[int] = None
    name: str = attr.ib(validator=attr.validators.instance_of(str))
    employees_projects: typing.Tuple["EmployeesProject", ...] = navigation_collection()


class Employee(Entity):
    id: Identity[int] = None
    first_name: str = attr.ib(validator=attr.validators.instance_of(str))
    last_name: typing.Optional[str] = None
    is_employed: bool = True
    department_id: typing.Optional[int] = foreign_key("department", default=None)
    department: typing.Optional[Department] = navigation()
    employees_projects: typing.Tuple["EmployeesProject", ...] = navigation_collection()
    nickname: typing.Optional[str] = not_mapped(default=None)


class EmployeesProject(Entity):
    employee_id: Identity[int] = foreign_key("employee")
    project_id: Identity[int] = foreign_key("project")
    employee: typing.Optional[Employee] = navigation()
    project: typing.Optional[Project] = navigation()


class CompanyContext(DbContext):
    departments: DbSet[Department]
    projects: DbSet[Project]
    employees: DbSet[Employee]
    employees_projects: DbSet[EmployeesProject]


TABLES = {
    "departments": ["Id", "Name"],
    "projects": ["Id", "Name"],
    "employees": ["Id", "FirstName", "LastName", "IsEmployed", "DepartmentId"],
    "employees_projects": ["EmployeeId", "ProjectId"],
}
