"""Git credentials for Flux sources.

A credential is one of three closed variants. ``make_credential`` is the
only way to build one from loose fields and rejects incomplete input
before anything is declared.
"""

from dataclasses import dataclass, fields
from typing import Any, Union

from infra.errors import ValidationError


@dataclass(frozen=True)
class TokenCredential:
    """HTTPS token auth (GitHub/GitLab personal access tokens)."""

    name: str
    token: Any


@dataclass(frozen=True)
class SshCredential:
    name: str
    private_key: Any
    known_hosts: Any = ""
    public_key: Any = ""


@dataclass(frozen=True)
class BasicCredential:
    name: str
    username: Any
    password: Any


Credential = Union[TokenCredential, SshCredential, BasicCredential]

CREDENTIAL_TYPES: dict[str, type] = {
    "token": TokenCredential,
    "ssh": SshCredential,
    "basic": BasicCredential,
}

_REQUIRED_FIELDS = {
    "token": ("token",),
    "ssh": ("private_key",),
    "basic": ("username", "password"),
}


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value)


def make_credential(name: str, type: str, **values: Any) -> Credential:
    """Build the credential variant for ``type`` from ``values``.

    Raises:
        ValidationError: on an unknown type, a missing required field or a
            field that belongs to another variant.
    """
    if not name:
        raise ValidationError("Credential name is required")
    if type not in CREDENTIAL_TYPES:
        raise ValidationError(
            f"Credential '{name}' has unknown type '{type}'. "
            f"Valid types are: {', '.join(CREDENTIAL_TYPES)}"
        )

    variant = CREDENTIAL_TYPES[type]
    allowed = {f.name for f in fields(variant)} - {"name"}
    foreign = sorted(set(values) - allowed)
    if foreign:
        raise ValidationError(
            f"Credential '{name}' of type '{type}' does not accept: {', '.join(foreign)}"
        )

    missing = [f for f in _REQUIRED_FIELDS[type] if _is_missing(values.get(f))]
    if missing:
        raise ValidationError(
            f"Credential '{name}' of type '{type}' is missing: {', '.join(missing)}"
        )

    present = {k: v for k, v in values.items() if v is not None}
    return variant(name=name, **present)


def secret_string_data(credential: Credential) -> dict[str, Any]:
    """Secret ``stringData`` in the layout Flux's source-controller reads."""
    if isinstance(credential, SshCredential):
        return {
            "identity": credential.private_key,
            "identity.pub": credential.public_key,
            "known_hosts": credential.known_hosts,
        }
    if isinstance(credential, TokenCredential):
        # Token auth always uses "git" as the username.
        return {"username": "git", "password": credential.token}
    if isinstance(credential, BasicCredential):
        return {"username": credential.username, "password": credential.password}
    raise ValidationError(f"Unsupported credential: {credential!r}")
