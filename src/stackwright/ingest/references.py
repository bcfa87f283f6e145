"""Symbolic references between resources.

Properties keep references symbolic until the executor resolves them right
before a provider call. Two forms are recognised:

- ``{"ref": "bucket"}`` / ``{"ref": "bucket.arn"}``: the whole value is replaced
  by the target's physical id or one of its outputs.
- ``"https://${cdn.domain_name}/"``: placeholders interpolated inside strings.
  A string consisting of a single placeholder keeps the resolved value's type.

``${var.name}`` placeholders are document variables and are substituted when
the document is loaded, never at execution time.
"""

import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple
from ..utils.errors import ReferenceResolutionError, SpecLoadError

PLACEHOLDER_PATTERN = re.compile(r"\$\{([^}]+)\}")
REF_KEY = "ref"
VARIABLE_PREFIX = "var."

Lookup = Callable[[str, Optional[str]], Any]


@dataclass(frozen=True)
class Reference:
    """A reference from a property location to another resource's output."""
    target: str
    attribute: Optional[str]
    location: str

    @property
    def expression(self) -> str:
        return f"{self.target}.{self.attribute}" if self.attribute else self.target


def parse_reference_path(expression: str) -> Tuple[str, Optional[str]]:
    """Split 'target' or 'target.attribute' into its parts."""
    expression = expression.strip()
    target, _, attribute = expression.partition(".")
    return target, (attribute or None)


def is_ref_marker(value: Any) -> bool:
    return isinstance(value, dict) and len(value) == 1 and isinstance(value.get(REF_KEY), str)


def collect_references(value: Any, location: str = "") -> List[Reference]:
    """Collect all resource references found in a property value."""
    refs: List[Reference] = []

    if is_ref_marker(value):
        target, attribute = parse_reference_path(value[REF_KEY])
        refs.append(Reference(target=target, attribute=attribute, location=location))
    elif isinstance(value, dict):
        for key, item in value.items():
            child = f"{location}.{key}" if location else str(key)
            refs.extend(collect_references(item, child))
    elif isinstance(value, list):
        for idx, item in enumerate(value):
            refs.extend(collect_references(item, f"{location}[{idx}]"))
    elif isinstance(value, str):
        for match in PLACEHOLDER_PATTERN.finditer(value):
            expression = match.group(1).strip()
            if expression.startswith(VARIABLE_PREFIX):
                continue
            target, attribute = parse_reference_path(expression)
            refs.append(Reference(target=target, attribute=attribute, location=location))

    return refs


def referenced_properties(properties: Dict[str, Any], target: str) -> List[str]:
    """Top-level property names whose values reference the given logical id."""
    return sorted(
        name for name, value in properties.items()
        if any(ref.target == target for ref in collect_references(value, name))
    )


def resolve_references(value: Any, lookup: Lookup) -> Any:
    """
    Return a copy of value with every reference replaced by its concrete value.

    Args:
        value: Declared property value
        lookup: Callable (target, attribute) -> concrete value

    Raises:
        ReferenceResolutionError: If lookup fails for any reference
    """
    if is_ref_marker(value):
        target, attribute = parse_reference_path(value[REF_KEY])
        return lookup(target, attribute)
    if isinstance(value, dict):
        return {key: resolve_references(item, lookup) for key, item in value.items()}
    if isinstance(value, list):
        return [resolve_references(item, lookup) for item in value]
    if isinstance(value, str):
        return _interpolate(value, lookup, skip_variables=True)
    return value


def substitute_variables(value: Any, variables: Dict[str, Any]) -> Any:
    """Replace ${var.name} placeholders with document variables."""
    def lookup(target: str, attribute: Optional[str]) -> Any:
        if attribute not in variables:
            raise SpecLoadError(f"Undefined variable: var.{attribute}")
        return variables[attribute]

    if isinstance(value, dict):
        return {key: substitute_variables(item, variables) for key, item in value.items()}
    if isinstance(value, list):
        return [substitute_variables(item, variables) for item in value]
    if isinstance(value, str):
        return _interpolate(value, lookup, only_variables=True)
    return value


def _interpolate(text: str, lookup: Lookup, skip_variables: bool = False, only_variables: bool = False) -> Any:
    """Resolve placeholders in a string, keeping the raw value for a lone placeholder."""
    matches = list(PLACEHOLDER_PATTERN.finditer(text))
    if not matches:
        return text

    def resolve(expression: str) -> Tuple[bool, Any]:
        expression = expression.strip()
        is_variable = expression.startswith(VARIABLE_PREFIX)
        if (skip_variables and is_variable) or (only_variables and not is_variable):
            return False, None
        target, attribute = parse_reference_path(expression)
        return True, lookup(target, attribute)

    if len(matches) == 1 and matches[0].group(0) == text:
        handled, resolved = resolve(matches[0].group(1))
        return resolved if handled else text

    def replace(match: "re.Match[str]") -> str:
        handled, resolved = resolve(match.group(1))
        if not handled:
            return match.group(0)
        if isinstance(resolved, (dict, list)):
            raise ReferenceResolutionError(
                f"Cannot interpolate non-scalar value of '{match.group(1).strip()}' into a string"
            )
        return str(resolved)

    return PLACEHOLDER_PATTERN.sub(replace, text)
