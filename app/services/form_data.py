"""Helpers for reading the form-encoded bodies posted by the admin and storefront."""

from __future__ import annotations

from typing import Any, Mapping, Optional


def form_str(form: Mapping[str, Any], key: str) -> Optional[str]:
    value = form.get(key)
    if value is None:
        return None
    return str(value)


def form_required_str(form: Mapping[str, Any], key: str) -> Optional[str]:
    """Return the value stripped, or None when it is missing or blank."""
    value = form_str(form, key)
    if value is None or not value.strip():
        return None
    return value.strip()


def form_int(form: Mapping[str, Any], key: str) -> Optional[int]:
    value = form_required_str(form, key)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def form_flag(form: Mapping[str, Any], key: str) -> bool:
    # Only the literal "true" switches a flag on
    return form_str(form, key) == "true"
