from __future__ import annotations

import json

import httpx
import pytest

from market_collector.config.models import ApiSettings, CollectorConfig
from market_collector.diagnostics.endpoints import (
    EndpointProbe,
    describe_structure,
    sample_payload,
)
from market_collector.transport.client import BreezeClient


def _client(handler) -> BreezeClient:
    return BreezeClient(
        ApiSettings(base_url="https://breeze.test", api_key="k", secret_key="s"),
        transport=httpx.MockTransport(handler),
    )


def test_describe_structure():
    assert describe_structure(None) == "null"
    assert describe_structure([{"a": 1}, {"a": 2}]) == "Array[2] of dict"
    assert describe_structure([]) == "Array[0] of unknown"
    assert describe_structure({"ltp": 1, "open": 2}) == "Object with keys: [ltp, open]"
    assert describe_structure(3.5) == "float"


def test_sample_payload_truncates():
    assert sample_payload(list(range(10))) == [0, 1]
    assert sample_payload({str(i): i for i in range(8)}) == {"0": 0, "1": 1, "2": 2, "3": 3, "4": 4}


@pytest.mark.asyncio
async def test_probe_runs_every_endpoint(tmp_path):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/vixdata":
            return httpx.Response(403, json={"Error": "Not entitled"})
        return httpx.Response(200, json={"Success": [{"ok": True}], "Status": 200})

    cfg = CollectorConfig()
    async with _client(handler) as client:
        probe = EndpointProbe(client, cfg)
        results = await probe.run_all()

    assert len(results) == 8
    failed = [r for r in results if not r.success]
    assert [r.endpoint for r in failed] == ["/vixdata"]
    assert failed[0].error == "Not entitled"
    assert failed[0].status == 403

    report = probe.report()
    assert (report.total_tests, report.successful_tests, report.success_rate) == (8, 7, "88%")

    path = probe.write_report(tmp_path)
    assert json.loads(path.read_text())["results"][0]["data_structure"] == "Array[1] of dict"


@pytest.mark.asyncio
async def test_probe_stops_when_connection_fails():
    async with _client(lambda r: httpx.Response(401, json={"Error": "bad key"})) as client:
        probe = EndpointProbe(client, CollectorConfig())
        assert await probe.run_all() == []
    assert probe.report().success_rate == "0%"


@pytest.mark.asyncio
async def test_error_envelope_counts_as_failed_check():
    def handler(request):
        return httpx.Response(200, json={"Success": None, "Status": 500, "Error": "Unauthorized access"})

    async with _client(handler) as client:
        result = await EndpointProbe(client, CollectorConfig()).probe("VIX Data", "/vixdata")

    assert not result.success
    assert result.status == 500
    assert result.error == "Unauthorized access"
