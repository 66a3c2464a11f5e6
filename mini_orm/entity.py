import abc
import typing

import attr

from mini_orm.errors import ConfigurationError


FOREIGN_KEY = "mini_orm.foreign_key"
NAVIGATION = "mini_orm.navigation"
NAVIGATION_COLLECTION = "mini_orm.navigation_collection"
NOT_MAPPED = "mini_orm.not_mapped"


class EntityWithoutIdentity(ConfigurationError):
    pass


T = typing.TypeVar("T")


class Identity(typing.Generic[T]):
    @classmethod
    def is_identity(cls, field: attr.Attribute) -> bool:
        return getattr(field.type, "__origin__", None) == cls


class EntityMeta(abc.ABCMeta):
    def __new__(mcs, name: str, bases: tuple, namespace: dict):
        cls = super().__new__(mcs, name, bases, namespace)
        if name == "Entity":
            return cls
        # Entities are tracked by reference, two rows with equal values are still two entities
        attr_cls = attr.s(auto_attribs=True, kw_only=True, eq=False)(cls)
        if not any(Identity.is_identity(field) for field in attr.fields(attr_cls)):
            raise EntityWithoutIdentity(f"Entity {name} has to declare at least one Identity attribute")
        return attr_cls


class Entity(metaclass=EntityMeta):
    pass


def foreign_key(navigation: str, **kwargs: typing.Any) -> typing.Any:
    """Scalar attribute holding the primary key of the entity referenced by `navigation`."""
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[FOREIGN_KEY] = navigation
    return attr.ib(metadata=metadata, **kwargs)


def not_mapped(**kwargs: typing.Any) -> typing.Any:
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[NOT_MAPPED] = True
    return attr.ib(metadata=metadata, **kwargs)


def navigation() -> typing.Any:
    """Reference to a principal entity, resolved from a foreign key after every load and save.

    Callers can read it but not assign it.
    """
    return attr.ib(
        default=None, init=False, repr=False, on_setattr=attr.setters.frozen, metadata={NAVIGATION: True}
    )


def navigation_collection(foreign_key: typing.Optional[str] = None) -> typing.Any:
    """Tuple of dependent entities whose foreign key equals this entity's primary key.

    `foreign_key` names the dependent's attribute to group by, required only when the dependent
    has several foreign keys pointing back at this entity type.
    """
    return attr.ib(
        factory=tuple,
        init=False,
        repr=False,
        on_setattr=attr.setters.frozen,
        metadata={NAVIGATION_COLLECTION: foreign_key},
    )


def _set_navigation(entity: Entity, name: str, value: typing.Any) -> None:
    object.__setattr__(entity, name, value)


def materialize(entity_cls: typing.Type[T], values: typing.Dict[str, typing.Any]) -> T:
    # rows already stored are taken as they are, validation happens on save
    with attr.validators.disabled():
        try:
            return entity_cls(**values)
        except TypeError as error:
            raise ConfigurationError(f"Could not build {entity_cls.__name__} from stored columns - {error}") from error
