"""Pydantic models for request and download options."""

import hashlib
from typing import Any, Literal, Optional, TypeVar, Union

from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from ..errors import ValidationError
from ..headers import Headers

QueryValue = Union[str, int, float, bool]

_ModelT = TypeVar("_ModelT", bound=BaseModel)


class ByteSize(int):
    """
    Custom type that parses human-readable byte sizes.

    Accepts:
        - Integers (bytes)
        - Strings like '200kb', '1mb', '5gb'

    Examples:
        >>> ByteSize._parse('200kb')
        204800
        >>> ByteSize._parse('1mb')
        1048576
        >>> ByteSize._parse(1024)
        1024
    """

    @classmethod
    def __get_pydantic_core_schema__(cls, source: Any, handler: Any) -> Any:
        from pydantic_core import core_schema

        return core_schema.no_info_plain_validator_function(cls._parse)

    @classmethod
    def _parse(cls, v: Any) -> int:
        if isinstance(v, bool):
            raise ValueError(f"Invalid byte size: {v}")
        if isinstance(v, int):
            if v < 0:
                raise ValueError(f"Byte size must not be negative: {v}")
            return v
        if isinstance(v, str):
            v = v.lower().strip()
            # Order matters: check longer suffixes first
            units = [("gb", 1024**3), ("mb", 1024**2), ("kb", 1024), ("b", 1)]
            for unit, mult in units:
                if v.endswith(unit):
                    num_str = v[: -len(unit)].strip()
                    try:
                        return int(float(num_str) * mult)
                    except ValueError as err:
                        raise ValueError(f"Invalid number in byte size: {v}") from err
            try:
                return int(v)
            except ValueError:
                pass
        raise ValueError(f"Invalid byte size: {v}. Use format like '200kb', '1mb', or integer bytes.")


class RequestOptions(BaseModel):
    """
    User-facing options for a single request.

    Unset fields fall back to the defaults below. ``timeout`` and ``size``
    are disabled when 0.

    Example:
        options = RequestOptions(
            url="https://example.com/api",
            method="POST",
            body='{"q": 1}',
            headers={"Content-Type": "application/json"},
            size="1mb",
        )
    """

    url: str = Field(..., description="Absolute http:// or https:// URL")
    method: str = Field("GET", description="HTTP method")
    headers: dict[str, Union[str, list[str]]] = Field(
        default_factory=dict,
        description="Request headers (mapping or Headers)",
    )
    query: dict[str, QueryValue] = Field(
        default_factory=dict,
        description="Query parameters appended to the URL",
    )
    body: Any = Field(None, description="str, bytes, binary file or async iterable of bytes")
    follow_redirect: bool = Field(True, description="Follow 3xx redirects")
    max_redirects: int = Field(20, ge=0, description="Maximum redirect hops to follow")
    timeout: float = Field(0, ge=0, description="Response timeout in seconds (0 = disabled)")
    size: ByteSize = Field(0, description="Maximum response body size (0 = unlimited)")

    model_config = {"extra": "forbid", "arbitrary_types_allowed": True}

    @field_validator("headers", mode="before")
    @classmethod
    def _plain_headers(cls, value: Any) -> Any:
        if isinstance(value, Headers):
            return value.raw()
        return value


class ValidateOptions(BaseModel):
    """Expected digest of a downloaded body."""

    expected: str = Field(..., description="Expected digest, encoded per `encoding`")
    algorithm: str = Field("md5", description="Any hashlib algorithm name")
    encoding: Literal["base64", "hex"] = Field("base64", description="Digest text encoding")

    model_config = {"extra": "forbid"}

    @field_validator("algorithm")
    @classmethod
    def _known_algorithm(cls, value: str) -> str:
        name = value.lower()
        if name not in hashlib.algorithms_available or name.startswith("shake_"):
            raise ValueError(f"Unsupported digest algorithm: {value}")
        return name


def build_model(model: type[_ModelT], data: Any) -> _ModelT:
    """
    Coerce ``data`` into ``model``, raising this package's ValidationError.

    Instances of ``model`` are returned unchanged.
    """
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(str(e)) from e


def optional_model(model: type[_ModelT], data: Any) -> Optional[_ModelT]:
    return None if data is None else build_model(model, data)
