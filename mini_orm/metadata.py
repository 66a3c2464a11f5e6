import abc
import inspect
import logging
import types
import typing
from collections import deque

import attr
import inflection

from mini_orm.column_types import is_mappable
from mini_orm.entity import (
    FOREIGN_KEY,
    NAVIGATION,
    NAVIGATION_COLLECTION,
    NOT_MAPPED,
    Entity,
    EntityWithoutIdentity,
    Identity,
)
from mini_orm.errors import ConfigurationError


LOG = logging.getLogger(__name__)

_UNION_ORIGINS = (typing.Union, types.UnionType)


def _is_generic(field_type: typing.Type) -> bool:
    return typing.get_origin(field_type) is not None


def _get_wrapped_type(wrapped_type: typing.Type) -> typing.Type:
    return typing.get_args(wrapped_type)[0]


def _is_field_nullable(field_type: typing.Type) -> bool:
    return typing.get_origin(field_type) in _UNION_ORIGINS and type(None) in typing.get_args(field_type)


def _unwrap_nullable(field_type: typing.Type) -> typing.Type:
    args = [arg for arg in typing.get_args(field_type) if arg is not type(None)]
    if len(args) != 1:
        raise ConfigurationError(f"Unions of several types are not supported - {field_type}")
    return args[0]


def _is_entity_type(field_type: typing.Type) -> bool:
    return inspect.isclass(field_type) and issubclass(field_type, Entity)


class Visitor:
    def traverse_from(self, node: "Node") -> None:
        node.accept(self)
        for child in node.children:
            self.traverse_from(child)
        node.farewell(self)

    def visit_column(self, column: "ColumnNode") -> None:
        pass

    def leave_column(self, column: "ColumnNode") -> None:
        pass

    def visit_entity(self, entity: "EntityNode") -> None:
        pass

    def leave_entity(self, entity: "EntityNode") -> None:
        pass

    def visit_reference(self, reference: "ReferenceNode") -> None:
        pass

    def leave_reference(self, reference: "ReferenceNode") -> None:
        pass

    def visit_collection(self, collection: "CollectionNode") -> None:
        pass

    def leave_collection(self, collection: "CollectionNode") -> None:
        pass


class NodeMeta(type):
    def __new__(mcs, name: str, bases: tuple, namespace: dict) -> typing.Type:
        cls = super().__new__(mcs, name, bases, namespace)
        if inspect.isabstract(cls):
            return cls
        return attr.s(auto_attribs=True)(cls)


class Node(metaclass=NodeMeta):
    name: str
    type: typing.Type
    nullable: bool = False
    children: typing.Tuple["Node", ...] = ()

    @abc.abstractmethod
    def accept(self, visitor: Visitor) -> None:
        pass

    @abc.abstractmethod
    def farewell(self, visitor: Visitor) -> None:
        pass


class ColumnNode(Node):
    column: str = ""
    is_identity: bool = False
    # name of the navigation attribute this column feeds, if it is a foreign key
    foreign_key: typing.Optional[str] = None

    def accept(self, visitor: Visitor) -> None:
        visitor.visit_column(self)

    def farewell(self, visitor: Visitor) -> None:
        visitor.leave_column(self)


class EntityNode(Node):
    def accept(self, visitor: Visitor) -> None:
        visitor.visit_entity(self)

    def farewell(self, visitor: Visitor) -> None:
        visitor.leave_entity(self)


class ReferenceNode(Node):
    # attribute holding the principal's primary key
    foreign_key: str = ""

    def accept(self, visitor: Visitor) -> None:
        visitor.visit_reference(self)

    def farewell(self, visitor: Visitor) -> None:
        visitor.leave_reference(self)


class CollectionNode(Node):
    foreign_key: typing.Optional[str] = None

    def accept(self, visitor: Visitor) -> None:
        visitor.visit_collection(self)

    def farewell(self, visitor: Visitor) -> None:
        visitor.leave_collection(self)


@attr.s(auto_attribs=True, frozen=True)
class EntityMetadata:
    root: EntityNode
    table_name: str

    def __iter__(self) -> typing.Generator[Node, None, None]:
        def iterate_dfs() -> typing.Generator[Node, None, None]:
            nodes_left: typing.Deque[Node] = deque([self.root])

            while nodes_left:
                current = nodes_left.pop()
                yield current
                nodes_left.extend(current.children[::-1])

        return iterate_dfs()

    @property
    def entity_type(self) -> typing.Type[Entity]:
        return self.root.type

    @property
    def columns(self) -> typing.List[ColumnNode]:
        return [node for node in self.root.children if isinstance(node, ColumnNode)]

    @property
    def primary_keys(self) -> typing.List[ColumnNode]:
        return [column for column in self.columns if column.is_identity]

    @property
    def foreign_keys(self) -> typing.List[ColumnNode]:
        return [column for column in self.columns if column.foreign_key]

    @property
    def references(self) -> typing.List[ReferenceNode]:
        return [node for node in self.root.children if isinstance(node, ReferenceNode)]

    @property
    def collections(self) -> typing.List[CollectionNode]:
        return [node for node in self.root.children if isinstance(node, CollectionNode)]

    def key_of(self, entity: Entity) -> tuple:
        return tuple(getattr(entity, column.name) for column in self.primary_keys)

    def assign_key(self, entity: Entity, key: tuple) -> None:
        for column, value in zip(self.primary_keys, key):
            setattr(entity, column.name, value)

    def values_of(self, entity: Entity) -> typing.Dict[str, typing.Any]:
        return {column.name: getattr(entity, column.name) for column in self.columns}


def table_name(entity_cls: typing.Type[Entity], set_name: str) -> str:
    return getattr(entity_cls, "__tablename__", None) or set_name


def build(root: typing.Type[Entity], set_name: str, column_names: typing.Sequence[str]) -> EntityMetadata:
    """Discover how `root` maps onto a table holding `column_names`.

    An attribute becomes a column when its type is mappable, it is not excluded and the table has
    a column of the same name, compared case-insensitively or in underscored form.
    """
    try:
        attr.resolve_types(root)
    except NameError as error:
        raise ConfigurationError(f"Could not resolve annotations of {root.__name__} - {error}") from error

    table_columns: typing.Dict[str, str] = {}
    for column_name in column_names:
        table_columns.setdefault(column_name.lower(), column_name)
        table_columns.setdefault(inflection.underscore(column_name), column_name)

    fields = attr.fields_dict(root)
    columns: typing.List[ColumnNode] = []
    references: typing.List[ReferenceNode] = []
    collections: typing.List[CollectionNode] = []

    for field in attr.fields(root):
        if NAVIGATION in field.metadata or NOT_MAPPED in field.metadata:
            continue

        if NAVIGATION_COLLECTION in field.metadata:
            collections.append(_parse_collection(root, field))
            continue

        field_type = field.type
        field_nullable = False
        is_identity = Identity.is_identity(field)

        if is_identity:
            field_type = _get_wrapped_type(field_type)
        if _is_field_nullable(field_type):
            field_type = _unwrap_nullable(field_type)
            field_nullable = not is_identity

        navigation_name = field.metadata.get(FOREIGN_KEY)
        if navigation_name:
            references.append(_parse_reference(root, fields, field, navigation_name, field_nullable))

        column_name = table_columns.get(field.name.lower())
        if not is_mappable(field_type) or column_name is None:
            if is_identity:
                raise ConfigurationError(
                    f"Primary key {root.__name__}.{field.name} does not map onto a column of {set_name}"
                )
            continue

        columns.append(
            ColumnNode(
                name=field.name,
                type=field_type,
                nullable=field_nullable,
                column=column_name,
                is_identity=is_identity,
                foreign_key=navigation_name,
            )
        )

    fed_navigations = {reference.name for reference in references}
    for field in attr.fields(root):
        if NAVIGATION in field.metadata and field.name not in fed_navigations:
            raise ConfigurationError(f"Navigation {root.__name__}.{field.name} has no foreign key feeding it")

    if not any(column.is_identity for column in columns):
        raise EntityWithoutIdentity(f"Entity {root.__name__} has no primary key")

    entity_node = EntityNode(
        name=inflection.underscore(root.__name__),
        type=root,
        children=tuple(columns + references + collections),
    )
    metadata = EntityMetadata(entity_node, table_name(root, set_name))
    LOG.debug("Mapped %s onto table %s with %d columns", root.__name__, metadata.table_name, len(columns))
    return metadata


def _parse_reference(
    root: typing.Type[Entity],
    fields: typing.Dict[str, attr.Attribute],
    field: attr.Attribute,
    navigation_name: str,
    nullable: bool,
) -> ReferenceNode:
    navigation_field = fields.get(navigation_name)
    if navigation_field is None or NAVIGATION not in navigation_field.metadata:
        raise ConfigurationError(
            f"Foreign key {root.__name__}.{field.name} references navigation {navigation_name} which does not exist"
        )

    target = navigation_field.type
    if _is_field_nullable(target):
        target = _unwrap_nullable(target)
    if not _is_entity_type(target):
        raise ConfigurationError(f"Navigation {root.__name__}.{navigation_name} has to point at an Entity")

    return ReferenceNode(name=navigation_name, type=target, nullable=nullable, foreign_key=field.name)


def _parse_collection(root: typing.Type[Entity], field: attr.Attribute) -> CollectionNode:
    element_type = _get_wrapped_type(field.type) if _is_generic(field.type) else None
    if not _is_entity_type(element_type):
        raise ConfigurationError(f"Navigation collection {root.__name__}.{field.name} has to hold Entities")

    return CollectionNode(name=field.name, type=element_type, foreign_key=field.metadata[NAVIGATION_COLLECTION])
