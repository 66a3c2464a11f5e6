from mini_orm.context import DbContext
from mini_orm.db_set import DbSet
from mini_orm.entity import Entity, Identity, foreign_key, navigation, navigation_collection, not_mapped
from mini_orm.errors import (
    ConfigurationError,
    MiniOrmError,
    PersistenceError,
    TrackingInvariantError,
    ValidationError,
)


__all__ = [
    "ConfigurationError",
    "DbContext",
    "DbSet",
    "Entity",
    "Identity",
    "MiniOrmError",
    "PersistenceError",
    "TrackingInvariantError",
    "ValidationError",
    "foreign_key",
    "navigation",
    "navigation_collection",
    "not_mapped",
]
