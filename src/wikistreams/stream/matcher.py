"""
Predicate Matcher
=================

Decides whether a decoded record satisfies a set of field constraints.

A constraint set maps an external field name to an expected scalar
(bool, int or str). A record matches only when every constraint holds:

    - Values compare by exact type and value (True never equals 1)
    - Names outside the record's matchable fields never match
    - An empty constraint set matches every record

Example:
    from wikistreams.stream.matcher import matches
    
    if matches(event, {"namespace": 0, "bot": False}):
        handle(event)
"""

import re
from typing import Any, Mapping, Tuple

from wikistreams.models.events import Scalar, StreamEvent


_INT_PATTERN = re.compile(r"^[+-]?\d+$")


def validate_scalar(value: Any) -> Scalar:
    """
    Check that a predicate value belongs to the scalar variant.
    
    Raises:
        TypeError: value is not a bool, int or str
    """
    if not isinstance(value, (bool, int, str)):
        raise TypeError(
            f"Predicate values must be bool, int or str, got {type(value).__name__}"
        )
    return value


def scalar_equal(expected: Scalar, actual: Scalar) -> bool:
    """Exact scalar equality: same type and same value."""
    return type(expected) is type(actual) and expected == actual


def matches(record: StreamEvent, constraints: Mapping[str, Scalar]) -> bool:
    """
    Return True if the record satisfies every constraint.
    
    Args:
        record: Decoded event record
        constraints: Field name -> expected value
    """
    satisfied = 0
    
    for name, value in record.matchable_fields():
        if name in constraints and scalar_equal(constraints[name], value):
            satisfied += 1
    
    return satisfied == len(constraints)


def parse_scalar(text: str) -> Scalar:
    """
    Convert command-line or environment text into a scalar.
    
    "true"/"false" become bool, integer literals become int, and
    anything else (including quoted text) stays a str.
    """
    stripped = text.strip()
    
    if len(stripped) >= 2 and stripped[0] == stripped[-1] and stripped[0] in "\"'":
        return stripped[1:-1]
    if stripped.lower() == "true":
        return True
    if stripped.lower() == "false":
        return False
    if _INT_PATTERN.match(stripped):
        return int(stripped)
    
    return stripped


def parse_constraint(text: str) -> Tuple[str, Scalar]:
    """
    Parse a "name=value" pair.
    
    Raises:
        ValueError: text has no '=' or an empty name
    """
    name, sep, value = text.partition("=")
    name = name.strip()
    
    if not sep or not name:
        raise ValueError(f"Expected name=value, got {text!r}")
    
    return name, parse_scalar(value)
