"""Translate a desired-state document into resource nodes."""

import copy
from typing import Dict, Any, List
from .models import DesiredStateDocument, ResourceDeclaration
from .references import substitute_variables
from ..contracts.resources import ResourceNode, NodeStatus
from ..kinds.registry import KindRegistry
from ..utils.logging import get_logger

logger = get_logger("ingest.spec_normalizer")

TAGS_PROPERTY = "tags"


def _merge_tags(properties: Dict[str, Any], stack_tags: Dict[str, str], logical_id: str) -> Dict[str, Any]:
    """Merge stack tags under resource tags (resource values win)."""
    if not stack_tags:
        return properties

    resource_tags = properties.get(TAGS_PROPERTY)
    if resource_tags is None:
        resource_tags = {}
    if not isinstance(resource_tags, dict):
        logger.warning(f"Resource '{logical_id}' has non-mapping 'tags'; stack tags not applied")
        return properties

    merged = dict(properties)
    merged[TAGS_PROPERTY] = {**stack_tags, **resource_tags}
    return merged


def normalize_declaration(
    logical_id: str,
    declaration: ResourceDeclaration,
    document: DesiredStateDocument,
    registry: KindRegistry
) -> ResourceNode:
    """Build a pending ResourceNode from one declaration."""
    properties = substitute_variables(copy.deepcopy(declaration.properties), document.variables)

    kind = registry.find(declaration.kind)
    if kind is not None and kind.taggable:
        stack_tags = substitute_variables(dict(document.tags), document.variables)
        properties = _merge_tags(properties, stack_tags, logical_id)

    return ResourceNode(
        logical_id=logical_id,
        kind=declaration.kind,
        properties=properties,
        dependencies=list(dict.fromkeys(declaration.depends_on)),
        deletion_policy=declaration.deletion_policy,
        status=NodeStatus.PENDING,
    )


def normalize_document(document: DesiredStateDocument, registry: KindRegistry) -> List[ResourceNode]:
    """
    Normalize all declarations of a document.

    Args:
        document: Parsed desired-state document
        registry: Kind registry (document-level kinds already applied)

    Returns:
        List of pending ResourceNodes in declaration order
    """
    nodes = [
        normalize_declaration(logical_id, declaration, document, registry)
        for logical_id, declaration in document.resources.items()
    ]
    logger.debug(f"Normalized {len(nodes)} resources for stack '{document.name}'")
    return nodes


def resolve_output_expressions(document: DesiredStateDocument) -> Dict[str, Any]:
    """Output value expressions with document variables substituted."""
    return {
        name: substitute_variables(copy.deepcopy(output.value), document.variables)
        for name, output in document.outputs.items()
    }
