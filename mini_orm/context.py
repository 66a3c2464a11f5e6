import logging
import typing

from mini_orm import metadata as entity_metadata
from mini_orm.db_set import DbSet
from mini_orm.entity import Entity
from mini_orm.errors import ConfigurationError, ValidationError
from mini_orm.registry import Registry
from mini_orm.relations import check_references, map_relations
from mini_orm.storages import Storage, Transaction
from mini_orm.validation import Validator, is_valid


LOG = logging.getLogger(__name__)


class DbContextMeta(type):
    def __new__(mcs, name: str, bases: tuple, namespace: dict) -> typing.Type:
        cls = super().__new__(mcs, name, bases, namespace)
        try:
            hints = typing.get_type_hints(cls)
        except NameError as error:
            raise ConfigurationError(f"Could not resolve DbSets of {name} - {error}") from error

        cls._set_declarations = {
            set_name: hint.__args__[0]
            for set_name, hint in hints.items()
            if getattr(hint, "__origin__", None) is DbSet
        }
        return cls


class DbContext(metaclass=DbContextMeta):
    """Unit of work over the DbSets declared as annotations of a subclass.

    Construction maps and loads every table inside one connection, then wires relations in memory.
    `save_changes` persists additions, modifications and removals of all sets in one transaction::

        class CompanyContext(DbContext):
            departments: DbSet[Department]
            employees: DbSet[Employee]
    """

    _set_declarations: typing.Dict[str, typing.Type[Entity]]

    def __init__(self, storage: Storage, validator: Validator = is_valid) -> None:
        self._storage = storage
        self._validator = validator
        self._registry = Registry()
        self._sets: typing.Dict[typing.Type[Entity], DbSet] = {}

        with self._storage:
            for set_name, entity_cls in self._set_declarations.items():
                column_names = self._storage.fetch_column_names(entity_metadata.table_name(entity_cls, set_name))
                metadata = entity_metadata.build(entity_cls, set_name, column_names)
                self._registry.register(set_name, metadata)

                entities = self._storage.fetch_result_set(entity_cls, metadata.table_name, metadata.columns)
                db_set = DbSet(metadata, entities)
                self._sets[entity_cls] = db_set
                setattr(self, set_name, db_set)

        map_relations(self._registry, self._sets)

    @property
    def registry(self) -> Registry:
        return self._registry

    def save_changes(self) -> None:
        invalid: typing.Dict[str, typing.List[Entity]] = {}
        for set_name, db_set in self._named_sets():
            invalid_entities = [entity for entity in db_set if not self._validator(entity)]
            if invalid_entities:
                invalid[set_name] = invalid_entities
        if invalid:
            raise ValidationError(invalid)
        check_references(self._registry, self._sets)

        # keys of added entities as they were, the storage overwrites generated ones on insert
        added_keys = [
            (db_set.metadata, entity, db_set.metadata.key_of(entity))
            for db_set in self._sets.values()
            for entity in db_set.change_tracker.added
        ]

        with self._storage:
            transaction = self._storage.begin_transaction()
            for set_name, db_set in self._named_sets():
                try:
                    self._persist(db_set)
                except BaseException:
                    LOG.error("Rolling back the transaction, persisting %s failed", set_name)
                    self._rollback(transaction)
                    self._restore_keys(added_keys)
                    raise

            try:
                transaction.commit()
            except BaseException:
                LOG.error("The transaction could not be committed")
                self._restore_keys(added_keys)
                raise
            LOG.info("Committed changes of %d sets", len(self._sets))

        for db_set in self._sets.values():
            db_set.change_tracker.reset(db_set)
        map_relations(self._registry, self._sets)

    def _named_sets(self) -> typing.Iterator[typing.Tuple[str, DbSet]]:
        for set_name, entity_cls in self._set_declarations.items():
            yield set_name, self._sets[entity_cls]

    def _persist(self, db_set: DbSet) -> None:
        metadata = db_set.metadata
        table_columns = {name.lower() for name in self._storage.fetch_column_names(metadata.table_name)}
        columns = [column for column in metadata.columns if column.column.lower() in table_columns]
        if not all(column in columns for column in metadata.primary_keys):
            raise ConfigurationError(f"Table {metadata.table_name} lost primary key columns of its entities")

        tracker = db_set.change_tracker
        added = tracker.added
        modified = tracker.get_modified_entities(db_set)
        removed = tracker.removed_keys
        LOG.info(
            "Persisting %s (added: %d, modified: %d, removed: %d)",
            metadata.entity_type.__name__,
            len(added),
            len(modified),
            len(removed),
        )

        if added:
            self._storage.insert_entities(added, metadata.table_name, columns)
        if modified:
            self._storage.update_entities(modified, metadata.table_name, columns)
        if removed:
            self._storage.delete_rows(removed, metadata.table_name, columns)

    @staticmethod
    def _rollback(transaction: Transaction) -> None:
        try:
            transaction.rollback()
        except Exception:
            LOG.exception("Rollback failed, the connection is closed without committing")

    @staticmethod
    def _restore_keys(added_keys: typing.List[typing.Tuple[entity_metadata.EntityMetadata, Entity, tuple]]) -> None:
        for metadata, entity, key in added_keys:
            metadata.assign_key(entity, key)
