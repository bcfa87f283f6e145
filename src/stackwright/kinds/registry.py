"""Declarative registry of resource kind schemas."""

from pathlib import Path
from typing import Dict, Any, List, Optional, Union
import yaml
from pydantic import BaseModel, Field
from pydantic import ValidationError as SchemaValidationError
from ..contracts.changes import ReplaceStrategy
from ..utils.errors import ConfigError, UnknownKindError, ValidationError
from ..utils.logging import get_logger

logger = get_logger("kinds.registry")

BUILTIN_KINDS_PATH = Path(__file__).parent / "builtin.yaml"


class KindSchema(BaseModel):
    """Schema metadata for one resource kind."""
    name: str = Field(..., description="Kind name as used in documents")
    description: str = Field(default="", description="Human-readable description")
    replacement_required: List[str] = Field(default_factory=list, description="Properties that force replacement when changed")
    replace_strategy: Optional[ReplaceStrategy] = Field(default=None, description="Required when the kind can be replaced")
    outputs: List[str] = Field(default_factory=list, description="Declared output attributes (empty = unchecked)")
    taggable: bool = Field(default=True, description="Whether stack tags are merged into the 'tags' property")

    def requires_replacement(self, property_name: str) -> bool:
        return property_name in self.replacement_required

    def declares_output(self, attribute: str) -> bool:
        """True when the attribute is declared, or the kind declares no outputs at all."""
        return not self.outputs or attribute in self.outputs


class KindRegistry:
    """Lookup of kind schemas by name."""

    def __init__(self, kinds: Optional[List[KindSchema]] = None):
        self._kinds: Dict[str, KindSchema] = {}
        for kind in kinds or []:
            self.register(kind)

    def register(self, kind: KindSchema) -> None:
        """Register (or override) a kind schema."""
        if kind.replacement_required and kind.replace_strategy is None:
            raise ValidationError(
                f"Kind '{kind.name}' declares replacement-required properties "
                f"{kind.replacement_required} but no replace_strategy. "
                "Declare 'destroy_before_create' or 'create_before_destroy'."
            )
        if kind.name in self._kinds:
            logger.debug(f"Overriding kind schema: {kind.name}")
        self._kinds[kind.name] = kind

    def get(self, name: str, logical_id: Optional[str] = None) -> KindSchema:
        """Get a kind schema, raising UnknownKindError if missing."""
        try:
            return self._kinds[name]
        except KeyError:
            raise UnknownKindError(name, logical_id)

    def find(self, name: str) -> Optional[KindSchema]:
        return self._kinds.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._kinds

    def names(self) -> List[str]:
        return sorted(self._kinds)

    def copy(self) -> "KindRegistry":
        return KindRegistry(list(self._kinds.values()))

    def extend(self, definitions: Dict[str, Any]) -> "KindRegistry":
        """Return a new registry with document-level kind definitions applied."""
        registry = self.copy()
        for kind in parse_kind_definitions(definitions):
            registry.register(kind)
        return registry


def parse_kind_definitions(definitions: Dict[str, Any]) -> List[KindSchema]:
    """Parse a mapping of kind name -> schema fields into KindSchema objects."""
    if not isinstance(definitions, dict):
        raise ValidationError("Kind definitions must be a mapping of kind name to schema")

    kinds = []
    for name, fields in definitions.items():
        fields = fields or {}
        if not isinstance(fields, dict):
            raise ValidationError(f"Kind '{name}' must be a mapping")
        try:
            kinds.append(KindSchema(name=name, **fields))
        except SchemaValidationError as e:
            raise ValidationError(f"Invalid schema for kind '{name}': {e}")
    return kinds


def read_kind_definitions(path: Path) -> Dict[str, Any]:
    """
    Read a kinds YAML file.

    Raises:
        ConfigError: If the file cannot be read or parsed
    """
    if not path.exists():
        raise ConfigError(f"Kinds file not found: {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in kinds file: {e}")
    except OSError as e:
        raise ConfigError(f"Error reading kinds file: {e}")
    return data


def load_kind_registry(path: Optional[Path] = None) -> KindRegistry:
    """
    Load kind schemas from YAML.

    Args:
        path: Path to a kinds YAML file. If None, uses the built-in kinds.

    Returns:
        KindRegistry

    Raises:
        ConfigError: If the file cannot be read or parsed
    """
    path = Path(path) if path is not None else BUILTIN_KINDS_PATH
    registry = KindRegistry(parse_kind_definitions(read_kind_definitions(path)))
    logger.debug(f"Loaded {len(registry.names())} kind schemas from {path}")
    return registry


def load_kinds(extra_path: Optional[Union[str, Path]] = None) -> KindRegistry:
    """Built-in kinds with an optional kinds file merged over them."""
    registry = load_kind_registry()
    if extra_path:
        registry = registry.extend(read_kind_definitions(Path(extra_path)))
        logger.info(f"Merged kinds from {extra_path}")
    return registry
