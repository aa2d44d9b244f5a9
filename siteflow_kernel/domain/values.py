"""Value coercion shared by module DTOs."""

from decimal import Decimal, InvalidOperation
from typing import Any

from siteflow_kernel.exceptions import ValidationError


def to_decimal(value: Any, entity_type: str, field_name: str) -> Decimal | None:
    """Coerce a numeric input to Decimal; floats go through str() first.

    ``None`` passes through.  Booleans and unparseable values raise
    ``ValidationError`` naming ``field_name``.
    """
    if value is None or isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValidationError(
            entity_type, fields=(field_name,), reason=f"{field_name} must be a number"
        )
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(
            entity_type, fields=(field_name,), reason=f"{field_name} must be a number"
        ) from exc
