import typing

import attr


Validator = typing.Callable[[typing.Any], bool]


def is_valid(entity: typing.Any) -> bool:
    """Run the attrs validators declared on the entity's attributes."""
    try:
        attr.validate(entity)
    except (TypeError, ValueError):
        return False
    return True
