from typing import Dict, Type

import attr

from mini_orm.entity import Entity
from mini_orm.errors import ConfigurationError
from mini_orm.metadata import EntityMetadata


@attr.s(auto_attribs=True)
class Registry:
    entities_metadata: Dict[Type[Entity], EntityMetadata] = attr.Factory(dict)
    entities_set_names: Dict[Type[Entity], str] = attr.Factory(dict)

    def register(self, set_name: str, metadata: EntityMetadata) -> None:
        if metadata.entity_type in self.entities_metadata:
            raise ConfigurationError(
                f"{metadata.entity_type.__name__} is already registered as {self.entities_set_names[metadata.entity_type]}"
            )
        self.entities_metadata[metadata.entity_type] = metadata
        self.entities_set_names[metadata.entity_type] = set_name

    def metadata_for(self, entity_cls: Type[Entity]) -> EntityMetadata:
        try:
            return self.entities_metadata[entity_cls]
        except KeyError:
            raise ConfigurationError(f"No DbSet is registered for {entity_cls.__name__}") from None

    def set_name_for(self, entity_cls: Type[Entity]) -> str:
        self.metadata_for(entity_cls)
        return self.entities_set_names[entity_cls]
