"""Load and validate desired-state documents (YAML or JSON)."""

from pathlib import Path
from typing import Dict, Any, List, Union
import yaml
from pydantic import ValidationError as SchemaValidationError
from .models import DesiredStateDocument, LOGICAL_ID_PATTERN
from .spec_validator import check_duplicate_keys, validate_document_structure, get_document_summary, find_invalid_logical_ids
from ..utils.errors import DuplicateIdError, SpecLoadError
from ..utils.logging import get_logger

logger = get_logger("ingest.spec_loader")

PathLike = Union[str, Path]


def parse_document_text(text: str, source: str = "<string>") -> Dict[str, Any]:
    """
    Parse document text, rejecting duplicate keys.

    Raises:
        SpecLoadError: If the text is not valid YAML/JSON
        DuplicateIdError: If a logical id is declared twice
    """
    try:
        node = yaml.compose(text, Loader=yaml.SafeLoader)
        if node is None:
            return {}
        check_duplicate_keys(node)
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise SpecLoadError(f"Invalid YAML/JSON in {source}: {e}")
    return data if data is not None else {}


def load_document(spec_path: PathLike) -> DesiredStateDocument:
    """
    Load and validate a desired-state document.

    Args:
        spec_path: Path to a YAML or JSON document

    Returns:
        Parsed DesiredStateDocument

    Raises:
        SpecLoadError: If the file cannot be loaded or is invalid
    """
    path = Path(spec_path)

    if not path.exists():
        raise SpecLoadError(
            f"Desired-state file not found: {spec_path}. "
            "Please check the file path and ensure the file exists."
        )

    if not path.is_file():
        raise SpecLoadError(f"Path is not a file: {spec_path}.")

    try:
        text = path.read_text(encoding='utf-8')
    except OSError as e:
        raise SpecLoadError(f"Error reading desired-state file: {e}. Please check file permissions.")

    data = parse_document_text(text, source=str(path))
    document = document_from_dict(data)

    summary = get_document_summary(data)
    logger.info(
        f"Loaded desired state '{summary['name']}' from {spec_path} "
        f"(resources: {summary['resource_count']}, outputs: {summary['output_count']})"
    )
    return document


def document_from_dict(data: Dict[str, Any]) -> DesiredStateDocument:
    """Validate a parsed mapping and build the document model."""
    validate_document_structure(data)

    invalid_ids = find_invalid_logical_ids(list((data.get("resources") or {}).keys()), LOGICAL_ID_PATTERN)
    if invalid_ids:
        raise SpecLoadError(
            f"Invalid logical ids: {', '.join(str(i) for i in invalid_ids)}. "
            "Logical ids must start with a letter and contain only letters, digits, '_' or '-'."
        )

    cleaned = {key: value for key, value in data.items() if value is not None}
    try:
        return DesiredStateDocument(**cleaned)
    except SchemaValidationError as e:
        raise SpecLoadError(f"Invalid desired-state document: {e}")


def load_documents(spec_paths: List[PathLike]) -> DesiredStateDocument:
    """Load several documents and merge them into one stack."""
    if not spec_paths:
        raise SpecLoadError("At least one desired-state file is required")
    documents = [load_document(path) for path in spec_paths]
    return merge_documents(documents)


def merge_documents(documents: List[DesiredStateDocument]) -> DesiredStateDocument:
    """
    Merge documents into one. Resources and outputs must not collide.

    Raises:
        DuplicateIdError: If two documents declare the same logical id
        SpecLoadError: If two documents declare the same output
    """
    if len(documents) == 1:
        return documents[0]

    merged = DesiredStateDocument(name=documents[0].name, description=documents[0].description)
    for document in documents:
        for logical_id, declaration in document.resources.items():
            if logical_id in merged.resources:
                raise DuplicateIdError(logical_id)
            merged.resources[logical_id] = declaration
        for name, output in document.outputs.items():
            if name in merged.outputs:
                raise SpecLoadError(f"Duplicate output name: {name}")
            merged.outputs[name] = output
        merged.variables.update(document.variables)
        merged.tags.update(document.tags)
        merged.kinds.update(document.kinds)

    logger.debug(f"Merged {len(documents)} documents into {len(merged.resources)} resources")
    return merged
