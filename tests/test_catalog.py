"""
Tests for the pricing catalog tools: provider normalisation, per-provider tool
tables, required arguments and compare ordering.
"""

import httpx
import pytest

from tools import catalog
from tools.mcp_client import McpProtocolError
from conftest import FakeToolService


class TestNormalizeProvider:

    @pytest.mark.parametrize("value", ["EC2", "aws", "AWS", " ec2 "])
    def test_aws_aliases(self, value) -> None:
        assert catalog.normalize_provider(value) == "aws"

    @pytest.mark.parametrize("value", ["google", "GCP", "Google"])
    def test_gcp_aliases(self, value) -> None:
        assert catalog.normalize_provider(value) == "gcp"

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_blank_defaults_to_aws(self, value) -> None:
        assert catalog.normalize_provider(value) == "aws"

    def test_unknown_passes_through_lowercased(self) -> None:
        assert catalog.normalize_provider("Oracle") == "oracle"

    @pytest.mark.parametrize("value", ["EC2", "google", "Azure", "RedShift", "oracle"])
    def test_idempotent(self, value) -> None:
        once = catalog.normalize_provider(value)
        assert catalog.normalize_provider(once) == once


class TestArgumentHelpers:

    def test_string_arg(self) -> None:
        args = {"a": "x", "b": 4, "c": True, "d": None, "e": {"k": 1}}
        assert catalog.string_arg(args, "a") == "x"
        assert catalog.string_arg(args, "b") == "4"
        assert catalog.string_arg(args, "c") == "true"
        assert catalog.string_arg(args, "d") is None
        assert catalog.string_arg(args, "missing") is None
        assert catalog.string_arg(args, "e") == '{"k": 1}'

    def test_string_list_arg(self) -> None:
        assert catalog.string_list_arg({"list": ["a", " ", None, "b"]}, "list") == ["a", "b"]
        assert catalog.string_list_arg({"list": "m5.large"}, "list") == ["m5.large"]
        assert catalog.string_list_arg({}, "list") == []


class TestListProviders:

    @pytest.mark.asyncio
    async def test_providers_from_catalog(self, make_client, pricing_service) -> None:
        client = make_client(pricing_service)

        result = await catalog.list_providers(client)

        assert result == {"providers": ["aws", "azure", "gcp", "rds"]}

    @pytest.mark.asyncio
    async def test_dedupes_case_insensitively(self, make_client) -> None:
        client = make_client(FakeToolService(tools=["GET-EC2-indexes", "get-aws-x", "get-Google-y", "get-", "get-gcp-z"]))

        result = await catalog.list_providers(client)

        assert result == {"providers": ["aws", "gcp"]}


class TestListFamilies:

    @pytest.mark.asyncio
    async def test_calls_families_tool(self, make_client, pricing_service) -> None:
        result = await catalog.list_families(make_client(pricing_service), "aws")

        assert result == {"families": ["m5", "c5", "t3"]}
        assert pricing_service.tool_calls == [{"name": "get-ec2-instance-families", "arguments": {}}]

    @pytest.mark.asyncio
    async def test_unsupported_provider(self, make_client, pricing_service) -> None:
        result = await catalog.list_families(make_client(pricing_service), "redshift")

        assert result == {"error": "Provider not supported for list_families."}
        assert pricing_service.requests == []


class TestSearchInstances:

    @pytest.mark.asyncio
    async def test_with_family(self, make_client, pricing_service) -> None:
        result = await catalog.search_instances(make_client(pricing_service), "aws", {"family": "m5", "vcpus": 2})

        assert result == {"instances": ["m5.large", "m5.xlarge"]}
        assert pricing_service.tool_calls == [{"name": "get-ec2-instances-for-family", "arguments": {"family": "m5"}}]

    @pytest.mark.asyncio
    async def test_without_family_uses_index(self, make_client, pricing_service) -> None:
        result = await catalog.search_instances(make_client(pricing_service), "aws", {"region": "us-east-1"})

        assert result == {"indexes": ["compute", "memory"]}
        assert pricing_service.tool_calls == [{"name": "get-ec2-indexes", "arguments": {}}]

    @pytest.mark.asyncio
    async def test_unsupported_provider(self, make_client, pricing_service) -> None:
        client = make_client(pricing_service)

        assert await catalog.search_instances(client, "redshift", {"family": "ra3"}) == {
            "error": "Provider not supported for search_instances."
        }
        assert await catalog.search_instances(client, "oracle", {}) == {
            "error": "Provider not supported for search_instances."
        }
        assert pricing_service.requests == []


class TestGetPricing:

    @pytest.mark.asyncio
    async def test_calls_region_pricing(self, make_client, pricing_service) -> None:
        args = {"instanceType": "m5.large", "region": "us-east-1", "os": "linux"}

        result = await catalog.get_pricing(make_client(pricing_service), "aws", args)

        assert result == {"instanceType": "m5.large", "region": "us-east-1", "hourly": 0.096}
        assert pricing_service.tool_calls == [
            {"name": "get-ec2-region-pricing", "arguments": {"instanceType": "m5.large", "region": "us-east-1"}}
        ]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("args", [
        {"instanceType": "m5.large"},
        {"instanceType": "m5.large", "region": "  "},
        {"region": "us-east-1"},
        {},
    ])
    async def test_missing_arguments(self, make_client, pricing_service, args) -> None:
        result = await catalog.get_pricing(make_client(pricing_service), "aws", args)

        assert result == {"error": "instanceType and region are required for get_pricing."}
        assert pricing_service.requests == []

    @pytest.mark.asyncio
    async def test_redshift_supported(self, make_client) -> None:
        service = FakeToolService(handlers={"get-redshift-region-pricing": {"hourly": 0.25}})
        args = {"instanceType": "ra3.xlplus", "region": "us-east-1"}

        assert await catalog.get_pricing(make_client(service), "redshift", args) == {"hourly": 0.25}

    @pytest.mark.asyncio
    async def test_unsupported_provider(self, make_client, pricing_service) -> None:
        args = {"instanceType": "x", "region": "y"}

        result = await catalog.get_pricing(make_client(pricing_service), "oracle", args)

        assert result == {"error": "Provider not supported for get_pricing."}


class TestCompareInstances:

    @pytest.mark.asyncio
    async def test_sequential_in_input_order(self, make_client, pricing_service) -> None:
        args = {"list": ["a", "b"], "region": "us-east-1"}

        result = await catalog.compare_instances(make_client(pricing_service), "aws", args)

        assert pricing_service.tool_calls == [
            {"name": "get-ec2-region-pricing", "arguments": {"instanceType": "a", "region": "us-east-1"}},
            {"name": "get-ec2-region-pricing", "arguments": {"instanceType": "b", "region": "us-east-1"}},
        ]
        assert result["region"] == "us-east-1"
        assert result["provider"] == "aws"
        assert [r["instanceType"] for r in result["results"]] == ["a", "b"]
        assert result["results"][1]["result"]["instanceType"] == "b"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("args", [
        {"list": ["a"]},
        {"list": [], "region": "us-east-1"},
        {"region": "us-east-1"},
    ])
    async def test_missing_arguments(self, make_client, pricing_service, args) -> None:
        result = await catalog.compare_instances(make_client(pricing_service), "aws", args)

        assert result == {"error": "region and list are required for compare_instances."}
        assert pricing_service.requests == []

    @pytest.mark.asyncio
    async def test_failure_aborts(self, make_client) -> None:
        def pricing(arguments):
            return {"hourly": 1.0}

        service = FakeToolService(handlers={"get-ec2-region-pricing": pricing})
        calls = []

        def handler(request):
            response = service(request)
            calls.append(service.requests[-1]["params"]["arguments"]["instanceType"])
            if calls[-1] == "b":
                return httpx.Response(200, json={"error": "unknown instance b"})
            return response

        args = {"list": ["a", "b", "c"], "region": "us-east-1"}
        with pytest.raises(McpProtocolError):
            await catalog.compare_instances(make_client(handler), "aws", args)

        assert calls == ["a", "b"]
