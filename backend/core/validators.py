"""
Column validation rules, checked on every insert / update.

Rule names follow the JSON accepted in a column's ``validate`` block
(``isEmail``, ``len``, ``isIn`` ...). Format rules delegate to pydantic's
network and UUID types.
"""
import re
from ipaddress import IPv4Address, IPv6Address
from typing import Any, Callable, Optional
from uuid import UUID

from pydantic import AnyUrl, EmailStr, IPvAnyAddress, TypeAdapter, ValidationError

from core.column_builder import ColumnDefinition

_ADAPTERS: dict[str, TypeAdapter] = {
    "isEmail": TypeAdapter(EmailStr),
    "isUrl":   TypeAdapter(AnyUrl),
    "isIP":    TypeAdapter(IPvAnyAddress),
    "isIPv4":  TypeAdapter(IPv4Address),
    "isIPv6":  TypeAdapter(IPv6Address),
    "isUUID":  TypeAdapter(UUID),
}


def _format_ok(rule: str, value: Any) -> bool:
    try:
        _ADAPTERS[rule].validate_python(str(value))
        return True
    except ValidationError:
        return False


def _flatten(arg: Any) -> list:
    # isIn: [["a", "b"]] and isIn: ["a", "b"] are both accepted
    if isinstance(arg, list) and len(arg) == 1 and isinstance(arg[0], list):
        return arg[0]
    return list(arg) if isinstance(arg, (list, tuple)) else [arg]


def _pattern(arg: Any) -> re.Pattern:
    if isinstance(arg, (list, tuple)):
        source, flags = arg[0], (arg[1] if len(arg) > 1 else "")
    else:
        source, flags = arg, ""
    re_flags = re.IGNORECASE if "i" in flags else 0
    return re.compile(source, re_flags)


def _is_number(value: Any) -> bool:
    try:
        float(value)
        return not isinstance(value, bool)
    except (TypeError, ValueError):
        return False


def _len_ok(value: Any, arg: Any) -> bool:
    bounds = _flatten(arg)
    lo = bounds[0] if bounds else 0
    hi = bounds[1] if len(bounds) > 1 else None
    n = len(str(value))
    return n >= lo and (hi is None or n <= hi)


_CHECKS: dict[str, Callable[[Any, Any], bool]] = {
    "notEmpty":       lambda v, a: str(v).strip() != "",
    "len":            _len_ok,
    "min":            lambda v, a: _is_number(v) and float(v) >= float(a),
    "max":            lambda v, a: _is_number(v) and float(v) <= float(a),
    "isIn":           lambda v, a: v in _flatten(a),
    "notIn":          lambda v, a: v not in _flatten(a),
    "is":             lambda v, a: _pattern(a).search(str(v)) is not None,
    "not":            lambda v, a: _pattern(a).search(str(v)) is None,
    "contains":       lambda v, a: str(a) in str(v),
    "isNumeric":      lambda v, a: str(v).isdigit(),
    "isInt":          lambda v, a: re.fullmatch(r"[-+]?\d+", str(v)) is not None,
    "isFloat":        lambda v, a: _is_number(v),
    "isDecimal":      lambda v, a: _is_number(v),
    "isAlpha":        lambda v, a: str(v).isalpha(),
    "isAlphanumeric": lambda v, a: str(v).isalnum(),
    "isLowercase":    lambda v, a: str(v) == str(v).lower(),
    "isUppercase":    lambda v, a: str(v) == str(v).upper(),
}


def check_value(definition: ColumnDefinition, value: Any) -> list[str]:
    """Return the rule violations for one column value. ``None`` skips every rule but ``notNull``."""
    errors: list[str] = []
    rules = definition.validate or {}

    if value is None:
        if rules.get("notNull"):
            errors.append(f"{definition.name}: cannot be null")
        return errors

    for rule, arg in rules.items():
        if arg is False or rule == "notNull":
            continue
        if rule in _ADAPTERS:
            ok = _format_ok(rule, value)
        elif rule in _CHECKS:
            ok = _CHECKS[rule](value, arg)
        else:
            # unknown rule names are carried but not enforced
            continue
        if not ok:
            errors.append(f"{definition.name}: validation '{rule}' failed")
    return errors


def check_row(
    definitions: dict[str, ColumnDefinition],
    data: dict[str, Any],
    partial: bool = False,
    required: Optional[set[str]] = None,
) -> list[str]:
    """
    Validate a row about to be written.

    ``partial`` (updates) only checks the keys present in ``data``; inserts also
    check that every non-nullable column without a default is supplied.
    """
    errors: list[str] = []
    for name, value in data.items():
        definition = definitions.get(name)
        if definition is None:
            continue
        if value is None and not definition.nullable:
            errors.append(f"{name}: cannot be null")
            continue
        errors.extend(check_value(definition, value))

    if not partial:
        for name in sorted(required or set()):
            if name not in data:
                errors.append(f"{name}: is required")
    return errors
