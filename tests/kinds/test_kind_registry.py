"""Tests for the kind schema registry."""

import tempfile
from pathlib import Path
import pytest
from stackwright.contracts.changes import ReplaceStrategy
from stackwright.kinds.registry import KindRegistry, KindSchema, load_kind_registry, load_kinds, parse_kind_definitions
from stackwright.utils.errors import ConfigError, UnknownKindError, ValidationError


class TestBuiltinKinds:
    """Test the built-in kinds shipped with the package."""

    def test_serverless_kinds_present(self, registry):
        """Every kind of the serverless topology is registered."""
        for name in (
            "S3Bucket", "CloudFrontDistribution", "DynamoTable", "CognitoUserPool",
            "CognitoUserPoolClient", "LambdaFunction", "LogGroup", "IamRole",
            "ApiGatewayRestApi", "ApiGatewayResource", "ApiGatewayMethod",
            "SnsTopic", "CloudWatchDashboard", "CloudWatchAlarm",
        ):
            assert name in registry

    def test_replaceable_kinds_declare_strategy(self, registry):
        """Kinds with replacement-required properties always name a strategy."""
        for name in registry.names():
            kind = registry.get(name)
            if kind.replacement_required:
                assert kind.replace_strategy is not None

    def test_strategies(self, registry):
        """Table replacement destroys first, bucket replacement creates first."""
        assert registry.get("DynamoTable").replace_strategy == ReplaceStrategy.DESTROY_BEFORE_CREATE
        assert registry.get("S3Bucket").replace_strategy == ReplaceStrategy.CREATE_BEFORE_DESTROY
        assert registry.get("DynamoTable").requires_replacement("partition_key")
        assert not registry.get("DynamoTable").requires_replacement("billing_mode")

    def test_unknown_kind(self, registry):
        """Unknown kinds raise UnknownKindError."""
        with pytest.raises(UnknownKindError):
            registry.get("Mainframe")
        assert registry.find("Mainframe") is None


class TestKindRegistry:
    """Test registering and extending kinds."""

    def test_replacement_without_strategy_rejected(self):
        """A replaceable kind without replace_strategy is a validation error."""
        registry = KindRegistry()

        with pytest.raises(ValidationError, match="replace_strategy"):
            registry.register(KindSchema(name="Disk", replacement_required=["size"]))

    def test_declares_output(self):
        """An empty outputs list leaves references unchecked."""
        assert KindSchema(name="Open").declares_output("anything")
        assert not KindSchema(name="Closed", outputs=["arn"]).declares_output("anything")

    def test_extend_does_not_mutate_base(self, registry):
        """extend() returns a new registry."""
        extended = registry.extend({"Queue": {"outputs": ["queue_url"]}})

        assert "Queue" in extended
        assert "Queue" not in registry

    def test_extend_overrides_builtin(self, registry):
        """Document kinds may override built-in schemas."""
        extended = registry.extend({"SnsTopic": {"replacement_required": [], "outputs": ["arn"]}})

        assert extended.get("SnsTopic").replacement_required == []
        assert registry.get("SnsTopic").replacement_required == ["topic_name"]

    def test_invalid_definition(self):
        """Malformed definitions are validation errors."""
        with pytest.raises(ValidationError):
            parse_kind_definitions({"Bad": {"replace_strategy": "sideways"}})
        with pytest.raises(ValidationError):
            parse_kind_definitions(["not", "a", "mapping"])


class TestLoadKindRegistry:
    """Test loading kinds from files."""

    def test_load_custom_file(self):
        """A kinds file replaces the built-in set."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "kinds.yaml"
            path.write_text("Widget:\n  replacement_required: [size]\n  replace_strategy: destroy_before_create\n")
            registry = load_kind_registry(path)

        assert registry.names() == ["Widget"]

    def test_missing_file(self):
        """A missing kinds file is a configuration error."""
        with pytest.raises(ConfigError):
            load_kind_registry(Path("/nonexistent/kinds.yaml"))

    def test_invalid_yaml(self):
        """Unparseable kinds files are configuration errors."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "kinds.yaml"
            path.write_text("Widget: [unclosed\n")
            with pytest.raises(ConfigError):
                load_kind_registry(path)

    def test_load_kinds_merges_over_builtin(self):
        """An extra kinds file adds to the built-in kinds."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "kinds.yaml"
            path.write_text("Widget:\n  outputs: [widget_id]\n")
            registry = load_kinds(path)

        assert "Widget" in registry
        assert "S3Bucket" in registry
        assert load_kinds().names() == load_kind_registry().names()
