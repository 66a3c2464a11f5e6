import typing
from collections import defaultdict

from mini_orm.db_set import DbSet
from mini_orm.entity import Entity, _set_navigation
from mini_orm.errors import ConfigurationError
from mini_orm.metadata import CollectionNode, EntityMetadata, EntityNode, ReferenceNode, Visitor
from mini_orm.registry import Registry


def _single_key_of(metadata: EntityMetadata) -> str:
    primary_keys = metadata.primary_keys
    if len(primary_keys) != 1:
        raise ConfigurationError(
            f"{metadata.entity_type.__name__} has a composite primary key and can not be referenced by one foreign key"
        )
    return primary_keys[0].name


def _reference_back(
    dependent: EntityMetadata, principal_type: typing.Type[Entity], collection: CollectionNode
) -> ReferenceNode:
    candidates = [
        reference
        for reference in dependent.references
        if reference.type is principal_type and collection.foreign_key in (None, reference.foreign_key)
    ]
    if len(candidates) != 1:
        # many-to-many goes through an explicit link entity, each side holding a collection of links
        raise ConfigurationError(
            f"Navigation collection {principal_type.__name__}.{collection.name} needs exactly one foreign key of "
            f"{dependent.entity_type.__name__} pointing back, found {len(candidates)}"
        )
    return candidates[0]


class RelationMappingVisitor(Visitor):
    """Wires navigation attributes of one entity type from foreign key values, in memory only."""

    def __init__(self, registry: Registry, sets: typing.Mapping[typing.Type[Entity], DbSet]) -> None:
        self._registry = registry
        self._sets = sets
        self._entities_stack: typing.List[EntityNode] = []

    @property
    def current_entity(self) -> EntityNode:
        return self._entities_stack[-1]

    def visit_entity(self, entity: EntityNode) -> None:
        self._entities_stack.append(entity)

    def leave_entity(self, entity: EntityNode) -> None:
        self._entities_stack.pop()

    def visit_reference(self, reference: ReferenceNode) -> None:
        for dependent, principal in self._resolve(reference):
            _set_navigation(dependent, reference.name, principal)

    def _resolve(self, reference: ReferenceNode) -> typing.Iterator[typing.Tuple[Entity, typing.Optional[Entity]]]:
        principal_key = _single_key_of(self._registry.metadata_for(reference.type))
        principals = {getattr(principal, principal_key): principal for principal in self._sets[reference.type]}

        for dependent in self._sets[self.current_entity.type]:
            key = getattr(dependent, reference.foreign_key)
            if key is None:
                yield dependent, None
                continue

            principal = principals.get(key)
            if principal is None:
                raise ConfigurationError(
                    f"{self.current_entity.type.__name__}.{reference.foreign_key} = {key!r} does not match "
                    f"any {reference.type.__name__}"
                )
            yield dependent, principal

    def visit_collection(self, collection: CollectionNode) -> None:
        principal_type = self.current_entity.type
        principal_key = _single_key_of(self._registry.metadata_for(principal_type))
        dependent_metadata = self._registry.metadata_for(collection.type)
        reference = _reference_back(dependent_metadata, principal_type, collection)

        dependents_by_key: typing.DefaultDict[typing.Any, typing.List[Entity]] = defaultdict(list)
        for dependent in self._sets[collection.type]:
            key = getattr(dependent, reference.foreign_key)
            if key is not None:
                dependents_by_key[key].append(dependent)

        for principal in self._sets[principal_type]:
            dependents = dependents_by_key.get(getattr(principal, principal_key), ())
            _set_navigation(principal, collection.name, tuple(dependents))


def map_relations(registry: Registry, sets: typing.Mapping[typing.Type[Entity], DbSet]) -> None:
    visitor = RelationMappingVisitor(registry, sets)
    for metadata in registry.entities_metadata.values():
        visitor.traverse_from(metadata.root)


class ReferenceCheckingVisitor(RelationMappingVisitor):
    """Resolves every foreign key like the mapper does, without touching navigations."""

    def visit_reference(self, reference: ReferenceNode) -> None:
        list(self._resolve(reference))

    def visit_collection(self, collection: CollectionNode) -> None:
        pass


def check_references(registry: Registry, sets: typing.Mapping[typing.Type[Entity], DbSet]) -> None:
    visitor = ReferenceCheckingVisitor(registry, sets)
    for metadata in registry.entities_metadata.values():
        visitor.traverse_from(metadata.root)
