import typing

from mini_orm.change_tracker import ChangeTracker, EntityType
from mini_orm.metadata import EntityMetadata


class DbSet(typing.Generic[EntityType]):
    """Live, ordered collection of one entity type's rows.

    Every add and remove goes straight to the change tracker, so what gets persisted on the next
    save is always in line with what the collection holds.
    """

    def __init__(self, metadata: EntityMetadata, entities: typing.Iterable[EntityType]) -> None:
        self._metadata = metadata
        self._entities: typing.List[EntityType] = list(entities)
        self._change_tracker: ChangeTracker[EntityType] = ChangeTracker(metadata, self._entities)

    @property
    def metadata(self) -> EntityMetadata:
        return self._metadata

    @property
    def change_tracker(self) -> ChangeTracker[EntityType]:
        return self._change_tracker

    def add(self, entity: EntityType) -> None:
        if entity is None:
            raise ValueError("The entity cannot be None")

        self._entities.append(entity)
        self._change_tracker.add(entity)

    def remove(self, entity: EntityType) -> bool:
        if entity is None:
            raise ValueError("The entity cannot be None")

        for index, candidate in enumerate(self._entities):
            if candidate is entity:
                del self._entities[index]
                self._change_tracker.remove(entity)
                return True
        return False

    def remove_range(self, entities: typing.Iterable[EntityType]) -> bool:
        if entities is None:
            raise ValueError("The entities cannot be None")

        result = True
        for entity in list(entities):
            result &= self.remove(entity)
        return result

    def clear(self) -> None:
        while self._entities:
            self.remove(self._entities[0])

    def __iter__(self) -> typing.Iterator[EntityType]:
        return iter(self._entities)

    def __len__(self) -> int:
        return len(self._entities)

    def __contains__(self, entity: object) -> bool:
        return any(candidate is entity for candidate in self._entities)

    def __getitem__(self, index: typing.Union[int, slice]) -> typing.Any:
        return self._entities[index]

    def __repr__(self) -> str:
        return f"DbSet[{self._metadata.entity_type.__name__}]({len(self._entities)} entities)"
