# SPDX-License-Identifier: MIT
"""Tests for version lookup against package sources."""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest
import respx
from packaging.version import Version

from runtime_loader.config import LoaderConfig
from runtime_loader.index import (
    SIMPLE_JSON_CONTENT_TYPE,
    IndexClient,
    IndexRequestError,
    PackageNotFoundError,
)


INDEX = "https://index.example.com/simple"


def _files(*entries: tuple[str, object]) -> dict:
    return {
        "meta": {"api-version": "1.1"},
        "name": "demo",
        "files": [{"filename": name, "url": f"https://files.example.com/{name}", "yanked": yanked}
                  for name, yanked in entries],
    }


@pytest.fixture
def config(tmp_path: Path) -> LoaderConfig:
    return LoaderConfig(packages_folder=tmp_path / "packages", index_url=INDEX)


class TestRemoteVersions:
    """Tests against a mocked simple index."""

    @respx.mock
    def test_lists_wheel_versions(self, config: LoaderConfig):
        route = respx.get(f"{INDEX}/demo/").mock(
            return_value=httpx.Response(
                200,
                json=_files(
                    ("demo-1.0.0-py3-none-any.whl", False),
                    ("demo-1.2.0-cp311-cp311-win_amd64.whl", False),
                    ("demo-1.2.0-py3-none-any.whl", False),
                    ("demo-0.9.0.tar.gz", False),
                    ("demo-2.0.0a1-py3-none-any.whl", False),
                ),
            )
        )

        versions = IndexClient(config).available_versions("demo")

        assert versions == [Version("1.0.0"), Version("1.2.0"), Version("2.0.0a1")]
        assert route.calls.last.request.headers["Accept"] == SIMPLE_JSON_CONTENT_TYPE

    @respx.mock
    def test_yanked_files_are_skipped(self, config: LoaderConfig):
        respx.get(f"{INDEX}/demo/").mock(
            return_value=httpx.Response(
                200,
                json=_files(
                    ("demo-1.0.0-py3-none-any.whl", False),
                    ("demo-1.1.0-py3-none-any.whl", "broken release"),
                    ("demo-1.2.0-py3-none-any.whl", True),
                ),
            )
        )
        assert IndexClient(config).available_versions("demo") == [Version("1.0.0")]

    @respx.mock
    def test_name_is_normalized(self, config: LoaderConfig):
        route = respx.get(f"{INDEX}/my-package/").mock(
            return_value=httpx.Response(200, json=_files(("My_Package-3.0-py3-none-any.whl", False)))
        )
        assert IndexClient(config).available_versions("My_Package") == [Version("3.0")]
        assert route.called

    @respx.mock
    def test_missing_package_is_empty(self, config: LoaderConfig):
        respx.get(f"{INDEX}/demo/").mock(return_value=httpx.Response(404))
        assert IndexClient(config).available_versions("demo") == []

    @respx.mock
    def test_server_error_raises(self, config: LoaderConfig):
        respx.get(f"{INDEX}/demo/").mock(return_value=httpx.Response(500))
        with pytest.raises(IndexRequestError, match="HTTP 500"):
            IndexClient(config).available_versions("demo")

    @respx.mock
    def test_network_error_raises(self, config: LoaderConfig):
        respx.get(f"{INDEX}/demo/").mock(side_effect=httpx.ConnectError("refused"))
        with pytest.raises(IndexRequestError, match="Network error"):
            IndexClient(config).available_versions("demo")

    @respx.mock
    def test_non_json_raises(self, config: LoaderConfig):
        respx.get(f"{INDEX}/demo/").mock(return_value=httpx.Response(200, text="<html></html>"))
        with pytest.raises(IndexRequestError, match="did not return JSON"):
            IndexClient(config).available_versions("demo")

    @respx.mock
    def test_extra_indexes_are_merged(self, tmp_path: Path):
        extra = "https://extra.example.com/simple"
        config = LoaderConfig(
            packages_folder=tmp_path / "packages",
            index_url=INDEX,
            extra_index_urls=[extra],
        )
        respx.get(f"{INDEX}/demo/").mock(
            return_value=httpx.Response(200, json=_files(("demo-1.0-py3-none-any.whl", False)))
        )
        respx.get(f"{extra}/demo/").mock(
            return_value=httpx.Response(200, json=_files(("demo-1.5-py3-none-any.whl", False)))
        )
        assert IndexClient(config).available_versions("demo") == [Version("1.0"), Version("1.5")]

    @respx.mock
    def test_given_client_is_not_closed(self, config: LoaderConfig):
        respx.get(f"{INDEX}/demo/").mock(return_value=httpx.Response(404))
        with httpx.Client() as client:
            IndexClient(config, client=client).available_versions("demo")
            assert not client.is_closed


class TestLocalVersions:
    """Tests for offline lookup in a wheel directory."""

    def test_offline_lists_local_wheels(self, tmp_path: Path, make_wheel):
        wheels = tmp_path / "wheels"
        make_wheel("demo", "1.0.0", directory=wheels)
        make_wheel("demo", "1.1.0", directory=wheels)
        make_wheel("other", "9.0.0", directory=wheels)
        config = LoaderConfig(packages_folder=tmp_path / "packages", local_source=wheels, offline=True)

        assert IndexClient(config).available_versions("demo") == [Version("1.0.0"), Version("1.1.0")]

    def test_offline_never_touches_network(self, tmp_path: Path):
        config = LoaderConfig(packages_folder=tmp_path / "packages", local_source=tmp_path, offline=True)
        with respx.mock(assert_all_called=False) as router:
            assert IndexClient(config).available_versions("demo") == []
        assert not router.calls


class TestLatestVersion:
    """Tests for latest_version."""

    @pytest.fixture
    def offline_config(self, tmp_path: Path, make_wheel) -> LoaderConfig:
        wheels = tmp_path / "wheels"
        for version in ("1.0.0", "1.4.2", "2.0.0b1"):
            make_wheel("demo", version, directory=wheels)
        return LoaderConfig(packages_folder=tmp_path / "packages", local_source=wheels, offline=True)

    def test_excludes_prereleases_by_default(self, offline_config: LoaderConfig):
        assert IndexClient(offline_config).latest_version("demo") == Version("1.4.2")

    def test_includes_prereleases_when_asked(self, offline_config: LoaderConfig):
        assert IndexClient(offline_config).latest_version("demo", include_prerelease=True) == Version(
            "2.0.0b1"
        )

    def test_config_prerelease_default(self, offline_config: LoaderConfig):
        offline_config.include_prerelease = True
        assert IndexClient(offline_config).latest_version("demo") == Version("2.0.0b1")

    def test_not_found(self, offline_config: LoaderConfig):
        with pytest.raises(PackageNotFoundError, match="missing"):
            IndexClient(offline_config).latest_version("missing")
