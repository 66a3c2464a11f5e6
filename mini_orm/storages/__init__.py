import abc
import typing
from types import TracebackType

from mini_orm.metadata import ColumnNode


EntityType = typing.TypeVar("EntityType")
Columns = typing.Sequence[ColumnNode]


class Transaction(abc.ABC):
    @abc.abstractmethod
    def commit(self) -> None:
        pass

    @abc.abstractmethod
    def rollback(self) -> None:
        pass


class Storage(abc.ABC):
    """Connection to the backing store, opened for the initial load and for every save.

    Failures of the statements are raised as `PersistenceError`.
    """

    def __enter__(self) -> "Storage":
        self.open()
        return self

    def __exit__(
        self,
        exc_type: typing.Optional[typing.Type[BaseException]],
        exc_value: typing.Optional[BaseException],
        traceback: typing.Optional[TracebackType],
    ) -> None:
        self.close()

    @abc.abstractmethod
    def open(self) -> None:
        pass

    @abc.abstractmethod
    def close(self) -> None:
        pass

    @abc.abstractmethod
    def begin_transaction(self) -> Transaction:
        pass

    @abc.abstractmethod
    def fetch_column_names(self, table_name: str) -> typing.List[str]:
        pass

    @abc.abstractmethod
    def fetch_result_set(
        self, entity_cls: typing.Type[EntityType], table_name: str, columns: Columns
    ) -> typing.List[EntityType]:
        pass

    @abc.abstractmethod
    def insert_entities(self, entities: typing.Sequence[typing.Any], table_name: str, columns: Columns) -> None:
        """Insert every entity, writing identities generated by the store back onto it."""

    @abc.abstractmethod
    def update_entities(self, entities: typing.Sequence[typing.Any], table_name: str, columns: Columns) -> None:
        pass

    @abc.abstractmethod
    def delete_rows(self, keys: typing.Sequence[tuple], table_name: str, columns: Columns) -> None:
        """Delete the rows whose primary key, ordered as the identity columns of `columns`, is in `keys`."""
