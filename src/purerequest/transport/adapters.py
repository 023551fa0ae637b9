"""Scheme handler selection (plain vs TLS)."""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import ValidationError


@dataclass(frozen=True)
class SchemeAdapter:
    """Connection parameters for one URL scheme."""

    scheme: str
    default_port: int
    secure: bool


HTTP = SchemeAdapter(scheme="http", default_port=80, secure=False)
HTTPS = SchemeAdapter(scheme="https", default_port=443, secure=True)

SCHEME_ADAPTERS: dict[str, SchemeAdapter] = {
    HTTP.scheme: HTTP,
    HTTPS.scheme: HTTPS,
}


def adapter_for_scheme(scheme: str) -> SchemeAdapter:
    """
    Return the adapter for ``scheme``.

    Raises:
        ValidationError: If the scheme is neither http nor https
    """
    adapter = SCHEME_ADAPTERS.get(scheme.lower().rstrip(":"))
    if adapter is None:
        raise ValidationError(f"Only HTTP(S) protocols are supported, got '{scheme}'")
    return adapter
