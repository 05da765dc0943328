"""
Embedded address value shared by users and services.

An address has no identity of its own; it is stored as JSON inside the
owning row.  Multipart endpoints receive it either as a JSON string
(``address={"street": ...}``) or in bracket notation
(``address[street]=...``), see ``address_from_form``.
"""

import json
from typing import Mapping

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from ..core.errors import ValidationError, from_pydantic


class Address(BaseModel):
    street: str = Field(..., min_length=1, examples=["Rua das Flores"])
    city: str = Field(..., min_length=1, examples=["Curitiba"])
    state: str = Field(..., min_length=1, examples=["PR"])
    postal_code: str = Field(..., min_length=1, alias="postalCode", examples=["80000-000"])
    country: str = Field(..., min_length=1, examples=["Brazil"])
    number: str = Field(..., min_length=1, examples=["42"])

    model_config = {
        "populate_by_name": True,
    }


def address_from_form(form: Mapping[str, object], prefix: str) -> Address:
    """Build an ``Address`` from multipart form data.

    Raises ``ValidationError`` when the field is missing or malformed.
    """
    raw = form.get(prefix)
    if isinstance(raw, str) and raw:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            raise ValidationError(f"Field '{prefix}' must be a JSON object", field=prefix)
    else:
        start = f"{prefix}["
        data = {
            key[len(start):-1]: value
            for key, value in form.items()
            if key.startswith(start) and key.endswith("]")
        }
        if not data:
            raise ValidationError(f"Field '{prefix}' is required", field=prefix)
    if not isinstance(data, dict):
        raise ValidationError(f"Field '{prefix}' must be a JSON object", field=prefix)
    try:
        return Address.model_validate(data)
    except PydanticValidationError as e:
        raise from_pydantic(e, field=prefix) from e
