"""Request body validation on top of pydantic"""

from pydantic import ValidationError

from .errors import ValidationFailed


def parse(model, data, message='Validation failed'):
    """Validate `data` against `model`, raising ValidationFailed with field detail"""
    if data is None:
        raise ValidationFailed('Request body must be a JSON object')
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ValidationFailed.from_pydantic(e, message)


def present_fields(parsed):
    """
    snake_case dict of only the fields the client actually sent, so an explicit
    null clears a column while an absent key leaves it alone
    """
    return parsed.model_dump(include=parsed.model_fields_set)
