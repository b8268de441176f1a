"""Helm chart repository helpers."""

from __future__ import annotations

from urllib.parse import urlsplit

REGISTRY_TYPE_OCI = "oci"
REGISTRY_TYPE_DEFAULT = "default"


def determine_default_repository_type(default_registry_url: str) -> str:
    """Return the repository type for a registry URL.

    ``oci://`` URLs give ``"oci"``; ``http://`` and ``https://`` URLs give
    ``"default"``. Any other scheme raises :class:`ValueError`.
    """
    try:
        scheme = urlsplit(default_registry_url).scheme
    except ValueError as exc:
        raise ValueError(f"failed to parse default registry URL: {exc}") from exc

    if scheme == "oci":
        return REGISTRY_TYPE_OCI
    if scheme in ("http", "https"):
        return REGISTRY_TYPE_DEFAULT
    raise ValueError(
        f"invalid default registry URL scheme: {scheme} must be "
        "'oci://', 'http://', or 'https://'"
    )