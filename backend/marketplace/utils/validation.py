from typing import TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from marketplace.errors import ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


def field_errors(errors: list[dict]) -> list[dict]:
    details = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        details.append({"field": ".".join(loc) or None, "message": err.get("msg", "Invalid value")})
    return details


def parse_attrs(model_cls: type[ModelT], attrs: ModelT | dict) -> ModelT:
    """Validate ``attrs`` against ``model_cls``, raising the domain ValidationError."""
    if isinstance(attrs, model_cls):
        return attrs
    if isinstance(attrs, BaseModel):
        attrs = attrs.model_dump(exclude_unset=True)
    try:
        return model_cls.model_validate(attrs)
    except PydanticValidationError as exc:
        raise ValidationError("Invalid input", details=field_errors(exc.errors())) from exc
