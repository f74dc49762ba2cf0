"""CI job artifacts: finding and downloading the .deb files a job built."""
from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List
from urllib.parse import unquote, urljoin, urlparse

import requests

from prdeb.exceptions import DownloadError, PullRequestLookupError


_HREF_DEB = re.compile(r'href="(\S+\.deb)">')
# Jenkins collapses long artifact lists behind a script link.
_SCRIPT_HREF_DEB = re.compile(r"\.href = '(\S+\.deb)'")

NON_DEFAULT_SUFFIXES = ("-dev", "-dbg", "-dbgsym")


@dataclass(frozen=True)
class DebFilename:
    package: str
    version: str
    arch: str


def parse_deb_filename(filename: str) -> DebFilename:
    """Split `name_version_arch.deb`."""
    stem = filename[:-len(".deb")] if filename.endswith(".deb") else filename
    fields = stem.split("_")
    if len(fields) != 3 or not all(fields):
        raise ValueError(f"not a name_version_arch.deb filename: {filename!r}")
    return DebFilename(*fields)


def url_basename(url: str) -> str:
    return posixpath.basename(unquote(urlparse(url).path))


def default_answer(package: str) -> bool:
    """Development and debug symbol packages are not offered by default."""
    return not package.endswith(NON_DEFAULT_SUFFIXES)


def get_deb_urls(session: requests.Session, job_url: str) -> List[str]:
    """Absolute URLs of every .deb linked from the job page."""
    try:
        resp = session.get(job_url, timeout=60)
        resp.raise_for_status()
    except requests.RequestException as e:
        raise PullRequestLookupError(f"cannot fetch job page {job_url}: {e}") from e

    if not job_url.endswith("/"):
        job_url += "/"
    page = resp.text
    links = _HREF_DEB.findall(page) or _SCRIPT_HREF_DEB.findall(page)
    return [urljoin(job_url, link) for link in links]


def download(session: requests.Session, url: str, dest_dir: Path) -> Path:
    """Stream url into dest_dir/<basename> and return the file path."""
    dest_dir = Path(dest_dir)
    dest = dest_dir / url_basename(url)
    try:
        dest_dir.mkdir(parents=True, exist_ok=True)
        with session.get(url, stream=True, timeout=60) as resp:
            resp.raise_for_status()
            with open(dest, "wb") as f:
                for chunk in resp.iter_content(chunk_size=65536):
                    if chunk:
                        f.write(chunk)
    except requests.RequestException as e:
        dest.unlink(missing_ok=True)
        raise DownloadError(f"download of {url} failed: {e}") from e
    except OSError as e:
        raise DownloadError(f"cannot write {dest}: {e}") from e
    return dest
