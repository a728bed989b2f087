"""Tests for link health checks and sweeps."""

import httpx
import pytest

from conftest import make_link, mock_client
from linkvault.ingest.link_validator import LinkValidator
from linkvault.monitor.health import HealthMonitor


def _validator_for(dead_hosts: set[str]) -> LinkValidator:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host in dead_hosts:
            return httpx.Response(404)
        return httpx.Response(200)

    return LinkValidator(client=mock_client(handler))


@pytest.mark.asyncio
async def test_perform_health_check_does_not_deactivate(repository):
    alive = make_link("a", "https://alive.example/p")
    dead = make_link("b", "https://dead.example/p")
    repository.add(alive, dead)

    monitor = HealthMonitor(repository, _validator_for({"dead.example"}))
    checks = await monitor.perform_health_check(["a", "b", "missing"])

    by_id = {check.link_id: check for check in checks}
    assert set(by_id) == {"a", "b"}
    assert by_id["a"].is_healthy is True
    assert by_id["b"].is_healthy is False
    assert by_id["b"].status == 404
    assert by_id["b"].error == "HTTP 404"
    assert dead.is_active is True
    assert repository.deactivate_calls == []


@pytest.mark.asyncio
async def test_crashing_check_is_dropped(repository, monkeypatch):
    repository.add(make_link("a", "https://one.example/"), make_link("b", "https://two.example/"))
    validator = _validator_for(set())
    original = validator.validate

    async def flaky_validate(url):
        if "two" in url:
            raise RuntimeError("boom")
        return await original(url)

    monkeypatch.setattr(validator, "validate", flaky_validate)

    checks = await HealthMonitor(repository, validator).perform_health_check(["a", "b"])

    assert [check.link_id for check in checks] == ["a"]


@pytest.mark.asyncio
async def test_sweep_deactivates_unhealthy_links_across_pages(repository):
    # Dead links spread over several pages must all be found
    links = [
        make_link(f"link-{i:03d}", f"https://{'dead' if i % 3 == 0 else 'ok'}{i}.example/")
        for i in range(10)
    ]
    repository.add(*links)
    dead_hosts = {f"dead{i}.example" for i in range(10) if i % 3 == 0}

    monitor = HealthMonitor(repository, _validator_for(dead_hosts), batch_size=3)
    summary = await monitor.run_sweep()

    assert summary.checked == 10
    assert summary.deactivated == 4
    assert summary.healthy == 6
    assert summary.unhealthy == 4
    assert summary.batches == 4
    assert sorted(repository.deactivate_calls) == ["link-000", "link-003", "link-006", "link-009"]
    assert all(link.is_active == (i % 3 != 0) for i, link in enumerate(links))


@pytest.mark.asyncio
async def test_sweep_skips_inactive_links(repository):
    inactive = make_link("a", "https://dead.example/", is_active=False)
    repository.add(inactive, make_link("b", "https://ok.example/"))

    summary = await HealthMonitor(repository, _validator_for({"dead.example"})).run_sweep()

    assert summary.checked == 1
    assert summary.deactivated == 0
    assert repository.deactivate_calls == []


@pytest.mark.asyncio
async def test_sweep_counts_only_links_it_deactivated(repository, monkeypatch):
    repository.add(make_link("a", "https://dead.example/"))

    async def already_inactive(link_id):
        return False

    monkeypatch.setattr(repository, "deactivate_link", already_inactive)

    summary = await HealthMonitor(repository, _validator_for({"dead.example"})).run_sweep()

    assert summary.checked == 1
    assert summary.healthy == 0
    assert summary.deactivated == 0
