import types
import typing
from collections import defaultdict

import attr

from mini_orm.errors import TrackingInvariantError
from mini_orm.metadata import EntityMetadata


EntityType = typing.TypeVar("EntityType")


@attr.s(auto_attribs=True, frozen=True)
class Snapshot:
    key: tuple
    values: typing.Mapping[str, typing.Any]

    @classmethod
    def of(cls, entity: typing.Any, metadata: EntityMetadata) -> "Snapshot":
        return cls(metadata.key_of(entity), types.MappingProxyType(metadata.values_of(entity)))

    def differs_from(self, entity: typing.Any) -> bool:
        return any(getattr(entity, name) != value for name, value in self.values.items())


def _contains(entities: typing.Iterable[typing.Any], entity: typing.Any) -> bool:
    return any(candidate is entity for candidate in entities)


def _without(entities: typing.List[typing.Any], entity: typing.Any) -> typing.List[typing.Any]:
    return [candidate for candidate in entities if candidate is not entity]


class ChangeTracker(typing.Generic[EntityType]):
    """Remembers entities as they were loaded and what has been added or removed since.

    Modifications are never recorded, they are found by comparing live entities with the baseline
    snapshots whenever they are asked for.
    """

    def __init__(self, metadata: EntityMetadata, entities: typing.Iterable[EntityType]) -> None:
        self._metadata = metadata
        self._added: typing.List[EntityType] = []
        # removed entities paired with their primary key as it was when they were removed
        self._removed: typing.List[typing.Tuple[EntityType, tuple]] = []
        self._all_entities: typing.Tuple[Snapshot, ...] = self._snapshot(entities)

    @property
    def all_entities(self) -> typing.Tuple[Snapshot, ...]:
        return self._all_entities

    @property
    def added(self) -> typing.Tuple[EntityType, ...]:
        return tuple(self._added)

    @property
    def removed(self) -> typing.Tuple[EntityType, ...]:
        return tuple(entity for entity, _key in self._removed)

    @property
    def removed_keys(self) -> typing.Tuple[tuple, ...]:
        return tuple(key for _entity, key in self._removed)

    def add(self, entity: EntityType) -> None:
        if _contains(self.removed, entity):
            self._removed = [(removed, key) for removed, key in self._removed if removed is not entity]
        else:
            self._added.append(entity)

    def remove(self, entity: EntityType) -> None:
        if _contains(self._added, entity):
            self._added = _without(self._added, entity)
        else:
            self._removed.append((entity, self._metadata.key_of(entity)))

    def get_modified_entities(self, db_set: typing.Iterable[EntityType]) -> typing.List[EntityType]:
        removed_keys = set(self.removed_keys)
        added_ids = {id(entity) for entity in self._added}
        live_by_key: typing.DefaultDict[tuple, typing.List[EntityType]] = defaultdict(list)
        for entity in db_set:
            if id(entity) not in added_ids:
                live_by_key[self._metadata.key_of(entity)].append(entity)

        modified: typing.Dict[int, EntityType] = {}
        for snapshot in self._all_entities:
            if snapshot.key in removed_keys:
                continue

            matches = live_by_key.get(snapshot.key, [])
            if len(matches) != 1:
                raise TrackingInvariantError(
                    f"Primary key {snapshot.key} of {self._metadata.entity_type.__name__} matches "
                    f"{len(matches)} entities, primary keys have to stay unique and unchanged"
                )

            entity = matches[0]
            if snapshot.differs_from(entity):
                modified.setdefault(id(entity), entity)

        return list(modified.values())

    def reset(self, entities: typing.Iterable[EntityType]) -> None:
        self._added = []
        self._removed = []
        self._all_entities = self._snapshot(entities)

    def _snapshot(self, entities: typing.Iterable[EntityType]) -> typing.Tuple[Snapshot, ...]:
        return tuple(Snapshot.of(entity, self._metadata) for entity in entities)
