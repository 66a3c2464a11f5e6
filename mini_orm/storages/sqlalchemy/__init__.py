import contextlib
import logging
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Type

from sqlalchemy import Column, MetaData, Table, create_engine, exc, inspect, select
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.engine import Transaction as SaTransaction

from mini_orm.entity import materialize
from mini_orm.errors import ConfigurationError, PersistenceError
from mini_orm.metadata import ColumnNode
from mini_orm.storages import Columns, EntityType, Storage, Transaction
from mini_orm.storages.sqlalchemy import native_type_to_column


LOG = logging.getLogger(__name__)


@contextlib.contextmanager
def _persistence_errors(action: str) -> Iterator[None]:
    try:
        yield
    except exc.SQLAlchemyError as error:
        raise PersistenceError(f"{action} failed - {error}") from error


class SqlAlchemyTransaction(Transaction):
    def __init__(self, transaction: SaTransaction) -> None:
        self._transaction = transaction

    def commit(self) -> None:
        with _persistence_errors("Commit"):
            self._transaction.commit()

    def rollback(self) -> None:
        with _persistence_errors("Rollback"):
            self._transaction.rollback()


class SqlAlchemyStorage(Storage):
    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._connection: Optional[Connection] = None
        self._tables: Dict[Tuple[str, Tuple[str, ...]], Table] = {}

    @classmethod
    def from_url(cls, url: str, **engine_kwargs: Any) -> "SqlAlchemyStorage":
        return cls(create_engine(url, **engine_kwargs))

    @property
    def connection(self) -> Connection:
        if self._connection is None:
            raise PersistenceError("The database connection is not open")
        return self._connection

    def open(self) -> None:
        with _persistence_errors("Connecting"):
            self._connection = self._engine.connect()

    def close(self) -> None:
        if self._connection is not None:
            connection, self._connection = self._connection, None
            connection.close()

    def begin_transaction(self) -> Transaction:
        with _persistence_errors("Beginning a transaction"):
            return SqlAlchemyTransaction(self.connection.begin())

    def fetch_column_names(self, table_name: str) -> List[str]:
        with _persistence_errors(f"Reading columns of {table_name}"):
            try:
                columns = inspect(self.connection).get_columns(table_name)
            except exc.NoSuchTableError:
                columns = []

        if not columns:
            raise ConfigurationError(f"Could not find a table named {table_name}")
        return [column["name"] for column in columns]

    def fetch_result_set(self, entity_cls: Type[EntityType], table_name: str, columns: Columns) -> List[EntityType]:
        table = self._table(table_name, columns)
        with _persistence_errors(f"Loading {table_name}"):
            rows = self.connection.execute(select(table).order_by(*table.primary_key.columns)).all()

        entities = [
            materialize(entity_cls, {column.name: row._mapping[column.column] for column in columns}) for row in rows
        ]
        LOG.debug("Loaded %d rows from %s", len(entities), table_name)
        return entities

    def insert_entities(self, entities: Sequence[Any], table_name: str, columns: Columns) -> None:
        table = self._table(table_name, columns)
        with _persistence_errors(f"Inserting into {table_name}"):
            for entity in entities:
                generated = [column for column in columns if column.is_identity and getattr(entity, column.name) is None]
                values = {
                    column.column: getattr(entity, column.name) for column in columns if column not in generated
                }
                result = self.connection.execute(table.insert().values(values))
                if not generated:
                    continue

                inserted = dict(zip((column.name for column in table.primary_key.columns), result.inserted_primary_key))
                for column in generated:
                    setattr(entity, column.name, inserted[column.column])

    def update_entities(self, entities: Sequence[Any], table_name: str, columns: Columns) -> None:
        table = self._table(table_name, columns)
        changed = [column for column in columns if not column.is_identity]
        if not changed:
            return

        with _persistence_errors(f"Updating {table_name}"):
            for entity in entities:
                statement = (
                    table.update()
                    .where(*self._key_criteria(table, columns, self._key_of(columns, entity)))
                    .values({column.column: getattr(entity, column.name) for column in changed})
                )
                self.connection.execute(statement)

    def delete_rows(self, keys: Sequence[tuple], table_name: str, columns: Columns) -> None:
        table = self._table(table_name, columns)
        with _persistence_errors(f"Deleting from {table_name}"):
            for key in keys:
                self.connection.execute(table.delete().where(*self._key_criteria(table, columns, key)))

    @staticmethod
    def _key_of(columns: Columns, entity: Any) -> tuple:
        return tuple(getattr(entity, column.name) for column in columns if column.is_identity)

    @staticmethod
    def _key_criteria(table: Table, columns: Columns, key: tuple) -> List[Any]:
        identities = [column for column in columns if column.is_identity]
        return [table.c[column.column] == value for column, value in zip(identities, key)]

    def _table(self, table_name: str, columns: Sequence[ColumnNode]) -> Table:
        key = (table_name, tuple(column.column for column in columns))
        if key not in self._tables:
            self._tables[key] = Table(
                table_name,
                MetaData(),
                *(
                    Column(
                        column.column,
                        native_type_to_column.convert(column.type),
                        primary_key=column.is_identity,
                        nullable=column.nullable,
                    )
                    for column in columns
                ),
            )
        return self._tables[key]
