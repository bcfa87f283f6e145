"""Validate desired-state document structure before model parsing."""

import re
from typing import Dict, Any, List
import yaml
from ..utils.errors import DuplicateIdError, SpecLoadError
from ..utils.logging import get_logger

logger = get_logger("ingest.spec_validator")

TOP_LEVEL_FIELDS = ["name", "description", "variables", "tags", "kinds", "resources", "outputs"]
MAPPING_FIELDS = ["variables", "tags", "kinds", "resources", "outputs"]


def check_duplicate_keys(node: yaml.Node, path: str = "") -> None:
    """
    Walk a composed YAML node tree and reject duplicate mapping keys.

    Duplicate keys directly under 'resources' are duplicate logical ids.

    Raises:
        DuplicateIdError: On a duplicated resource logical id
        SpecLoadError: On any other duplicated key
    """
    if isinstance(node, yaml.MappingNode):
        seen = set()
        for key_node, value_node in node.value:
            key = key_node.value if isinstance(key_node, yaml.ScalarNode) else str(key_node)
            if key in seen:
                if path == "resources":
                    raise DuplicateIdError(key)
                location = f"{path}.{key}" if path else key
                raise SpecLoadError(f"Duplicate key in document: {location}")
            seen.add(key)
            child = f"{path}.{key}" if path else key
            check_duplicate_keys(value_node, child)
    elif isinstance(node, yaml.SequenceNode):
        for idx, item in enumerate(node.value):
            check_duplicate_keys(item, f"{path}[{idx}]")


def validate_document_structure(data: Dict[str, Any]) -> None:
    """
    Validate top-level document structure.

    Args:
        data: Parsed document

    Raises:
        SpecLoadError: If the structure is invalid
    """
    if not isinstance(data, dict):
        raise SpecLoadError(
            "Desired-state document must be a mapping. "
            "Expected top-level keys such as 'resources' and 'outputs'."
        )

    unknown = [key for key in data if key not in TOP_LEVEL_FIELDS]
    if unknown:
        raise SpecLoadError(
            f"Unknown top-level fields: {', '.join(str(k) for k in unknown)}. "
            f"Supported fields: {', '.join(TOP_LEVEL_FIELDS)}"
        )

    for field in MAPPING_FIELDS:
        if field in data and data[field] is not None and not isinstance(data[field], dict):
            raise SpecLoadError(f"'{field}' must be a mapping")

    resources = data.get("resources") or {}
    for logical_id, declaration in resources.items():
        if not isinstance(declaration, dict):
            raise SpecLoadError(f"Resource '{logical_id}' must be a mapping with 'kind' and 'properties'")
        if "kind" not in declaration:
            raise SpecLoadError(f"Resource '{logical_id}' is missing 'kind'")

    if not resources:
        logger.warning("Document declares no resources")

    logger.debug("Document structure validation passed")


def get_document_summary(data: Dict[str, Any]) -> Dict[str, Any]:
    """Extract summary information from a parsed document."""
    resources = data.get("resources") or {}
    return {
        "name": data.get("name", "default"),
        "resource_count": len(resources),
        "output_count": len(data.get("outputs") or {}),
    }


def find_invalid_logical_ids(resource_ids: List[str], pattern: str) -> List[str]:
    """Return logical ids that do not match the allowed pattern."""
    regex = re.compile(pattern)
    return [rid for rid in resource_ids if not isinstance(rid, str) or not regex.match(rid)]
