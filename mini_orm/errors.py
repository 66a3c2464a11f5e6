import typing


class MiniOrmError(Exception):
    pass


class ConfigurationError(MiniOrmError):
    pass


class PersistenceError(MiniOrmError):
    pass


class TrackingInvariantError(MiniOrmError):
    pass


class ValidationError(MiniOrmError):
    def __init__(self, invalid: typing.Dict[str, typing.List[typing.Any]]) -> None:
        self.invalid = invalid
        summary = ", ".join(f"{len(entities)} invalid entities found in {name}" for name, entities in invalid.items())
        super().__init__(summary)
