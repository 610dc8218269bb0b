"""Tests for host and image lookups."""
import pytest

from crunchloop.catalog import CatalogService
from crunchloop.errors import NotFoundError


@pytest.fixture
def catalog(api):
    return CatalogService(api)


class TestCatalogService:
    def test_find_host(self, catalog):
        assert catalog.find_host("host-b").id == 8

    def test_find_vmi(self, catalog):
        assert catalog.find_vmi("ubuntu-24.04").id == 3

    def test_match_is_exact(self, catalog):
        with pytest.raises(NotFoundError):
            catalog.find_vmi("ubuntu")

    def test_missing_host(self, catalog, api):
        with pytest.raises(NotFoundError) as exc:
            catalog.find_host("host-z")

        assert "host with name host-z was not found" in str(exc.value)
        assert api.calls_to("list_hosts") == [("list_hosts",)]

    def test_first_match_wins(self, catalog, api):
        api.hosts.append(type(api.hosts[0])(id=99, name="host-a"))

        assert catalog.find_host("host-a").id == 7

    def test_lists(self, catalog):
        assert [h.name for h in catalog.list_hosts()] == ["host-a", "host-b"]
        assert [v.name for v in catalog.list_vmis()] == ["ubuntu-24.04", "debian-12"]
