"""Tests for engine-reference loading and engine construction."""

import json
import logging

import httpx
import pytest

from casengine import TemplateEngine
from casengine.errors import ConfigError
from casengine.registry import (
    CONSTRUCTORS,
    EngineReference,
    load_references,
    open_engines,
)

pytestmark = pytest.mark.anyio

TEMPLATE_REFERENCE = {
    "uri": "https://example.com/",
    "config": {
        "protocol": "oci-cas-template-v1",
        "data": {"uri": "blobs/{algorithm}/{encoded}"},
    },
}


@pytest.fixture
async def client(anyio_backend):
    async with httpx.AsyncClient(
        transport=httpx.MockTransport(lambda request: httpx.Response(404))
    ) as client:
        yield client


class TestLoadReferences:
    """Test parsing engine-reference JSON."""

    async def test_valid(self):
        references = load_references(json.dumps([TEMPLATE_REFERENCE]))
        assert references == [
            EngineReference(
                protocol="oci-cas-template-v1",
                uri="https://example.com/",
                data={"uri": "blobs/{algorithm}/{encoded}"},
            )
        ]

    async def test_bytes(self):
        assert len(load_references(json.dumps([TEMPLATE_REFERENCE]).encode())) == 1

    async def test_optional_uri_and_data(self):
        (reference,) = load_references('[{"config": {"protocol": "x"}}]')
        assert reference == EngineReference(protocol="x")

    async def test_empty_list(self):
        assert load_references("[]") == []

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "not json",
            "{}",
            '"a string"',
            "[1]",
            "[{}]",
            '[{"config": []}]',
            '[{"config": {"data": {}}}]',
            '[{"config": {"protocol": 1}}]',
            '[{"uri": 1, "config": {"protocol": "x"}}]',
        ],
    )
    async def test_invalid(self, text):
        with pytest.raises(ConfigError):
            load_references(text)


class TestOpenEngines:
    """Test constructing engines from references."""

    async def test_template_engine(self, client):
        (engine,) = open_engines(load_references(json.dumps([TEMPLATE_REFERENCE])), client=client)
        assert isinstance(engine, TemplateEngine)
        assert engine.base == "https://example.com/"
        assert engine.template.template == "blobs/{algorithm}/{encoded}"
        await engine.close()
        assert not client.is_closed

    async def test_unknown_protocol_skipped(self, client, caplog):
        references = [
            EngineReference(protocol="unknown"),
            EngineReference.from_dict(TEMPLATE_REFERENCE),
        ]
        with caplog.at_level(logging.DEBUG, logger="casengine.registry"):
            engines = open_engines(references, client=client)

        assert [type(engine) for engine in engines] == [TemplateEngine]
        assert "unsupported CAS-engine protocol 'unknown'" in caplog.text

    @pytest.mark.parametrize("data", ["not a map", {}, {"uri": 1}, {"uri": "{"}])
    async def test_invalid_data_skipped(self, client, caplog, data):
        references = [EngineReference(protocol="oci-cas-template-v1", data=data)]
        with caplog.at_level(logging.WARNING, logger="casengine.registry"):
            assert open_engines(references, client=client) == []

        assert "failed to initialize oci-cas-template-v1 CAS engine" in caplog.text

    async def test_preserves_order(self, client):
        references = [
            EngineReference("oci-cas-template-v1", "https://a.example.com/", {"uri": "{digest}"}),
            EngineReference("oci-cas-template-v1", "https://b.example.com/", {"uri": "{digest}"}),
        ]
        engines = open_engines(references, client=client)
        assert [engine.base for engine in engines] == [
            "https://a.example.com/",
            "https://b.example.com/",
        ]

    async def test_custom_constructors(self):
        opened = []

        def constructor(uri, data, client=None):
            opened.append((uri, data, client))
            return "engine"

        engines = open_engines(
            [EngineReference("custom", "https://example.com/", {"key": "value"})],
            constructors={"custom": constructor},
        )
        assert engines == ["engine"]
        assert opened == [("https://example.com/", {"key": "value"}, None)]

    async def test_constructors_are_immutable(self):
        with pytest.raises(TypeError):
            CONSTRUCTORS["custom"] = TemplateEngine.from_config
        assert list(CONSTRUCTORS) == ["oci-cas-template-v1"]
