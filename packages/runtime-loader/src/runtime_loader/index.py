# SPDX-License-Identifier: MIT
"""Version lookup against the configured package sources.

Remote sources are queried through the JSON form of the simple repository
API (PEP 691); local sources are listed from their wheel filenames.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Optional

import httpx
import structlog
from packaging.utils import InvalidWheelFilename, canonicalize_name, parse_wheel_filename
from packaging.version import Version

if TYPE_CHECKING:
    from .config import LoaderConfig, PackageSource


log = structlog.get_logger()

SIMPLE_JSON_CONTENT_TYPE = "application/vnd.pypi.simple.v1+json"


class PackageNotFoundError(Exception):
    """Raised when no source offers a version of a package."""

    def __init__(self, package: str) -> None:
        self.package = package
        super().__init__(f"Package {package} not found in any configured source")


class IndexRequestError(Exception):
    """Raised when a package index cannot be queried."""

    pass


def _wheel_version(filename: str, package: str) -> Version | None:
    if not filename.endswith(".whl"):
        return None
    try:
        name, version, _build, _tags = parse_wheel_filename(filename)
    except InvalidWheelFilename:
        return None
    return version if name == package else None


class IndexClient:
    """Lists the versions of a package offered by the configured sources."""

    def __init__(
        self,
        config: LoaderConfig,
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.config = config
        self.timeout = timeout
        self._client = client

    def _remote_versions(self, client: httpx.Client, source: PackageSource, package: str) -> set[Version]:
        url = f"{source.source.rstrip('/')}/{package}/"
        try:
            response = client.get(url, headers={"Accept": SIMPLE_JSON_CONTENT_TYPE})
            if response.status_code == 404:
                return set()
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise IndexRequestError(
                f"Index {source.name} returned HTTP {e.response.status_code} for {package}"
            ) from e
        except httpx.RequestError as e:
            raise IndexRequestError(f"Network error querying {source.name}: {e}") from e
        except ValueError as e:
            raise IndexRequestError(f"Index {source.name} did not return JSON for {package}") from e

        versions: set[Version] = set()
        for file_info in data.get("files", []):
            if file_info.get("yanked"):
                continue
            version = _wheel_version(file_info.get("filename", ""), package)
            if version is not None:
                versions.add(version)
        return versions

    def _local_versions(self, source: PackageSource, package: str) -> set[Version]:
        versions: set[Version] = set()
        for wheel in Path(source.source).glob("*.whl"):
            version = _wheel_version(wheel.name, package)
            if version is not None:
                versions.add(version)
        return versions

    def available_versions(self, package: str) -> list[Version]:
        """All wheel versions of ``package`` across sources, ascending.

        Raises:
            IndexRequestError: If a remote index fails
        """
        normalized = canonicalize_name(package)
        versions: set[Version] = set()
        remote = [s for s in self.config.sources if not s.is_local]

        for source in self.config.sources:
            if source.is_local:
                versions |= self._local_versions(source, normalized)

        if remote:
            client = self._client or httpx.Client(follow_redirects=True, timeout=self.timeout)
            try:
                for source in remote:
                    versions |= self._remote_versions(client, source, normalized)
            finally:
                if self._client is None:
                    client.close()

        log.debug("versions_listed", package=normalized, count=len(versions))
        return sorted(versions)

    def latest_version(self, package: str, include_prerelease: bool | None = None) -> Version:
        """Highest available version, excluding pre-releases unless allowed.

        Raises:
            PackageNotFoundError: If no suitable version is available
        """
        if include_prerelease is None:
            include_prerelease = self.config.include_prerelease

        candidates = [
            v for v in self.available_versions(package) if include_prerelease or not v.is_prerelease
        ]
        if not candidates:
            raise PackageNotFoundError(package)
        return candidates[-1]
