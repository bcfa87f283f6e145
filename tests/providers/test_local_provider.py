"""Tests for the local simulated provider."""

import tempfile
from pathlib import Path
import pytest
from stackwright.kinds.registry import KindRegistry, KindSchema
from stackwright.providers import create_provider
from stackwright.providers.http import HttpProvider
from stackwright.providers.local import LocalProvider
from stackwright.utils.errors import ConfigError, FatalProviderError, ResourceNotFoundError


class TestLocalProvider:
    """Test simulated resource lifecycle."""

    def test_create_assigns_ids_and_outputs(self, provider):
        """Physical ids are sequential; declared outputs are synthesized."""
        bucket_id, bucket = provider.create_resource("S3Bucket", {"bucket_name": "assets"})
        api_id, api = provider.create_resource("ApiGatewayRestApi", {"endpoint_types": ["REGIONAL"]})

        assert bucket_id == "s3bucket-0001"
        assert api_id == "apigatewayrestapi-0002"
        assert bucket["bucket_name"] == "assets"
        assert bucket["arn"] == "arn:local:s3bucket:local-1:s3bucket-0001"
        assert bucket["domain_name"] == "s3bucket-0001.s3bucket.local"
        assert api["rest_api_id"] == "apigatewayrestapi-0002"
        assert api["url"] == "https://apigatewayrestapi-0002.local-1.local/"

    def test_suffix_rules(self):
        """Unknown-suffix outputs get a derived value."""
        registry = KindRegistry([KindSchema(name="Fn", outputs=["invoke_arn", "version"])])
        provider = LocalProvider(kinds=registry)

        physical_id, outputs = provider.create_resource("Fn", {})

        assert outputs["invoke_arn"] == f"arn:local:fn:local-1:{physical_id}/invoke"
        assert outputs["version"] == f"{physical_id}/version"

    def test_update_and_delete(self, provider):
        """Updates return fresh outputs; deletes remove the resource."""
        physical_id, _ = provider.create_resource("SnsTopic", {"topic_name": "a"})

        outputs = provider.update_resource("SnsTopic", physical_id, {"topic_name": "b"})
        assert outputs["topic_name"] == "b"

        provider.delete_resource("SnsTopic", physical_id)
        assert physical_id not in provider.resources
        assert [call[0] for call in provider.calls] == ["create", "update", "delete"]

    def test_missing_resource(self, provider):
        """Updating or deleting an unknown id is not-found."""
        with pytest.raises(ResourceNotFoundError):
            provider.update_resource("SnsTopic", "snstopic-9999", {})
        with pytest.raises(ResourceNotFoundError):
            provider.delete_resource("SnsTopic", "snstopic-9999")

    def test_injected_fault_consumed(self, provider):
        """Injected faults fire the requested number of times."""
        provider.inject_fault("create", "alerts", FatalProviderError("boom"), times=1)

        with pytest.raises(FatalProviderError):
            provider.create_resource("SnsTopic", {"topic_name": "alerts"})
        physical_id, _ = provider.create_resource("SnsTopic", {"topic_name": "alerts"})

        assert physical_id == "snstopic-0001"

    def test_persistence(self, registry):
        """Resources survive a provider restart when a path is given."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "provider.json"
            first = LocalProvider(path=path, kinds=registry)
            physical_id, _ = first.create_resource("LogGroup", {"log_group_name": "/app"})

            second = LocalProvider(path=path, kinds=registry)
            assert physical_id in second.resources
            next_id, _ = second.create_resource("LogGroup", {"log_group_name": "/other"})

        assert next_id == "loggroup-0002"


class TestCreateProvider:
    """Test the provider factory."""

    def test_default_is_local(self):
        """No config means the local provider."""
        assert isinstance(create_provider(), LocalProvider)

    def test_options_passed(self):
        """Options under the type key configure the provider; None values are dropped."""
        provider = create_provider({
            "type": "http",
            "http": {"base_url": "https://api.example", "token": None, "timeout": 5.0},
        })

        assert isinstance(provider, HttpProvider)
        assert provider.base_url == "https://api.example"
        assert provider.timeout == 5.0

    def test_unknown_type(self):
        """Unsupported provider types are configuration errors."""
        with pytest.raises(ConfigError, match="Unsupported provider"):
            create_provider({"type": "mainframe"})

    def test_bad_option(self):
        """Unknown options are configuration errors."""
        with pytest.raises(ConfigError):
            create_provider({"type": "local", "local": {"color": "blue"}})
