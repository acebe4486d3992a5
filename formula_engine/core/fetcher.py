"""
Source fetching for tool specs: pinned release archives and live git branches.
"""

import asyncio
import hashlib
import logging
import os
import re
import shutil
import tarfile
import tempfile
import urllib.error
import urllib.request
import zipfile
from pathlib import Path, PurePosixPath
from typing import Optional

from ..errors import ChecksumMismatch, FetchError, FetchTimeout
from ..models.installation import SourceTree
from ..models.tool import LiveRef, ToolSpec, VersionedArchive
from .process import run_process


CHUNK_SIZE = 1024 * 1024


def sha256_file(path: Path) -> str:
    """Compute the sha256 hex digest of a file."""
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


class Fetcher:
    """Resolves a ToolSpec's source reference into a local source tree."""

    def __init__(self, cache_dir: Path, timeout: Optional[float] = 300):
        """
        Initialize the fetcher.

        Args:
            cache_dir: Directory holding downloaded archives, extracted trees and clones
            timeout: Seconds allowed for one download or git invocation
        """
        self.logger = logging.getLogger(__name__)
        self.cache_dir = Path(cache_dir)
        self.timeout = timeout

    async def fetch(self, spec: ToolSpec) -> SourceTree:
        """
        Fetch the source for ``spec``.

        Returns:
            SourceTree whose root contains ``spec.source_path``

        Raises:
            FetchError: Download, extraction or clone failed
            ChecksumMismatch: Archive content differs from the declared checksum
            FetchTimeout: The operation exceeded the timeout
        """
        ref = spec.source_ref
        if isinstance(ref, VersionedArchive):
            return await self._fetch_archive(spec, ref)
        if isinstance(ref, LiveRef):
            return await self._fetch_live(spec, ref)
        raise FetchError(f"Unsupported source reference for {spec.name}: {ref!r}")

    def tool_cache_dir(self, tool_name: str) -> Path:
        return self.cache_dir / tool_name

    async def _fetch_archive(self, spec: ToolSpec, ref: VersionedArchive) -> SourceTree:
        tool_dir = self.tool_cache_dir(spec.name)
        tool_dir.mkdir(parents=True, exist_ok=True)

        if ref.checksum:
            cached = self._cached_tree(tool_dir, ref.checksum)
            if cached is not None:
                self.logger.info(f"Using cached source for {spec.name} ({ref.checksum[:12]})")
                return SourceTree(root=cached, trusted=True, checksum=ref.checksum, cache_hit=True)

        self.logger.info(f"Downloading {spec.name} from {ref.url}")
        fd, tmp_name = tempfile.mkstemp(dir=tool_dir, suffix=".download")
        os.close(fd)
        tmp_path = Path(tmp_name)
        try:
            actual = await self._download_with_timeout(ref.url, tmp_path)

            if ref.checksum and actual != ref.checksum:
                raise ChecksumMismatch(ref.url, ref.checksum, actual)
            if not ref.checksum:
                self.logger.warning(
                    f"No checksum declared for {spec.name}; archive sha256 is {actual} "
                    f"and the content is unverified"
                )

            archive_path = tool_dir / f"{actual}.archive"
            tree_dir = tool_dir / actual
            marker = self._marker(tool_dir, actual)
            marker.unlink(missing_ok=True)
            if tree_dir.exists():
                shutil.rmtree(tree_dir)
            os.replace(tmp_path, archive_path)

            self._extract(archive_path, tree_dir)
            marker.touch()
        finally:
            tmp_path.unlink(missing_ok=True)

        return SourceTree(
            root=self._source_root(tree_dir),
            trusted=ref.checksum is not None,
            checksum=actual,
            cache_hit=False
        )

    def _cached_tree(self, tool_dir: Path, checksum: str) -> Optional[Path]:
        """Return the extracted tree for ``checksum`` if it is complete and still matches."""
        archive_path = tool_dir / f"{checksum}.archive"
        tree_dir = tool_dir / checksum
        marker = self._marker(tool_dir, checksum)
        if not (marker.exists() and archive_path.exists() and tree_dir.is_dir()):
            return None

        actual = sha256_file(archive_path)
        if actual != checksum:
            self.logger.warning(
                f"Cached archive {archive_path} no longer matches its checksum, discarding it"
            )
            marker.unlink(missing_ok=True)
            archive_path.unlink(missing_ok=True)
            shutil.rmtree(tree_dir, ignore_errors=True)
            return None

        return self._source_root(tree_dir)

    @staticmethod
    def _marker(tool_dir: Path, checksum: str) -> Path:
        return tool_dir / f"{checksum}.complete"

    @staticmethod
    def _source_root(tree_dir: Path) -> Path:
        """Strip the single top-level directory release archives wrap their content in."""
        entries = list(tree_dir.iterdir())
        if len(entries) == 1 and entries[0].is_dir():
            return entries[0]
        return tree_dir

    async def _download_with_timeout(self, url: str, dest: Path) -> str:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._download, url, dest),
                timeout=self.timeout
            )
        except asyncio.TimeoutError:
            raise FetchTimeout(f"Download of {url} timed out after {self.timeout} seconds")

    def _download(self, url: str, dest: Path) -> str:
        """Stream ``url`` into ``dest`` and return its sha256."""
        digest = hashlib.sha256()
        request = urllib.request.Request(url)
        request.add_header("User-Agent", "formula-engine")

        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as response, \
                    open(dest, "wb") as f:
                for chunk in iter(lambda: response.read(CHUNK_SIZE), b""):
                    digest.update(chunk)
                    f.write(chunk)
        except urllib.error.HTTPError as e:
            raise FetchError(f"Download of {url} failed: HTTP {e.code}") from e
        except urllib.error.URLError as e:
            if isinstance(e.reason, TimeoutError):
                raise FetchTimeout(f"Download of {url} timed out after {self.timeout} seconds") from e
            raise FetchError(f"Download of {url} failed: {e.reason}") from e
        except TimeoutError as e:
            raise FetchTimeout(f"Download of {url} timed out after {self.timeout} seconds") from e
        except OSError as e:
            raise FetchError(f"Download of {url} failed: {e}") from e

        return digest.hexdigest()

    def _extract(self, archive_path: Path, dest: Path) -> None:
        dest.mkdir(parents=True, exist_ok=True)
        try:
            if zipfile.is_zipfile(archive_path):
                with zipfile.ZipFile(archive_path) as zf:
                    for name in zf.namelist():
                        self._check_member(name, archive_path)
                    zf.extractall(dest)
                return

            with tarfile.open(archive_path, "r:*") as tf:
                for member in tf.getmembers():
                    self._check_member(member.name, archive_path)
                    if member.issym() or member.islnk():
                        target = PurePosixPath(member.name).parent / member.linkname
                        self._check_member(str(target), archive_path)
                if hasattr(tarfile, "data_filter"):
                    tf.extractall(dest, filter="data")
                else:
                    tf.extractall(dest)
        except (tarfile.TarError, zipfile.BadZipFile) as e:
            raise FetchError(f"Could not extract {archive_path.name}: {e}") from e
        except OSError as e:
            raise FetchError(f"Could not extract {archive_path.name}: {e}") from e

    @staticmethod
    def _check_member(name: str, archive_path: Path) -> None:
        path = PurePosixPath(name)
        if path.is_absolute() or ".." in path.parts:
            raise FetchError(f"Refusing unsafe archive member {name!r} in {archive_path.name}")

    async def _fetch_live(self, spec: ToolSpec, ref: LiveRef) -> SourceTree:
        self.logger.warning(
            f"Fetching {spec.name} from live branch {ref.branch} of {ref.repository_url}; "
            f"no checksum is possible, do not use for reproducible installs"
        )
        branch_dir = re.sub(r"[^A-Za-z0-9._-]", "_", ref.branch)
        clone_dir = self.tool_cache_dir(spec.name) / "live" / branch_dir

        if (clone_dir / ".git").exists():
            await self._git("-C", str(clone_dir), "fetch", "--depth", "1", "origin", ref.branch)
            await self._git("-C", str(clone_dir), "reset", "--hard", "FETCH_HEAD")
        else:
            clone_dir.parent.mkdir(parents=True, exist_ok=True)
            if clone_dir.exists():
                shutil.rmtree(clone_dir)
            await self._git(
                "clone", "--depth", "1", "--branch", ref.branch,
                ref.repository_url, str(clone_dir)
            )

        return SourceTree(root=clone_dir, trusted=False, checksum=None, cache_hit=False)

    async def _git(self, *args: str) -> str:
        try:
            result = await run_process(["git", *args], timeout=self.timeout)
        except asyncio.TimeoutError:
            raise FetchTimeout(f"git {' '.join(args)} timed out after {self.timeout} seconds")
        except OSError as e:
            raise FetchError(f"Could not run git: {e}") from e

        if result.returncode != 0:
            raise FetchError(
                f"git {' '.join(args)} failed with exit code {result.returncode}",
                output=result.output
            )
        return result.output
