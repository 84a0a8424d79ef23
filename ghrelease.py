"""GitHub release asset transfer: latest release lookup, asset download and upload."""

import os
import datetime
import logging
from dataclasses import dataclass
from pathlib import Path

import requests

logger = logging.getLogger(__name__)

DEFAULT_SERVER_URL = "https://github.com"
DEFAULT_API_URL = "https://api.github.com"
API_VERSION = "2022-11-28"
USER_AGENT = "release-torrents"
CHUNK_SIZE = 1024 * 1024


class UploadError(RuntimeError):
    """Upload request answered with something other than 201 Created."""

    def __init__(self, status_code, message=None):
        self.status_code = status_code
        super().__init__(message or f"Failed to upload file: {status_code}")


@dataclass
class ReleaseAsset:
    id: int
    name: str
    browser_download_url: str
    size: int = 0

    @classmethod
    def from_json(cls, data):
        return cls(
            id=int(data["id"]),
            name=str(data["name"]),
            browser_download_url=str(data["browser_download_url"]),
            size=int(data.get("size") or 0),
        )


def release_download_url(server_url, owner, repo, tag, filename):
    """Predicted public download URL of a release asset."""
    return f"{server_url.rstrip('/')}/{owner}/{repo}/releases/download/{tag}/{filename}"


def uploads_url_for(api_url):
    # github.com serves uploads from a separate host, GHES under /api/uploads
    api_url = api_url.rstrip("/")
    if api_url == DEFAULT_API_URL:
        return "https://uploads.github.com"
    if api_url.endswith("/api/v3"):
        return api_url[: -len("/api/v3")] + "/api/uploads"
    return api_url


class GitHubReleases:
    def __init__(self, token, api_url=DEFAULT_API_URL, uploads_url=None, session=None, logfile=None):
        self.api_url = api_url.rstrip("/")
        self.uploads_url = (uploads_url or uploads_url_for(self.api_url)).rstrip("/")
        self.logfile = logfile
        self.session = session if session is not None else requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
            "User-Agent": USER_AGENT,
        })

    def _get_json(self, url, **kwargs):
        response = self.session.get(url, **kwargs)
        response.raise_for_status()
        return response

    def get_latest_release(self, owner, repo):
        response = self._get_json(f"{self.api_url}/repos/{owner}/{repo}/releases/latest")
        return response.json()

    def list_release_assets(self, owner, repo, release_id):
        """All assets of a release, following ``Link: rel="next"`` pages."""
        url = f"{self.api_url}/repos/{owner}/{repo}/releases/{release_id}/assets"
        params = {"per_page": 100}
        assets = []
        while url:
            response = self._get_json(url, params=params)
            assets.extend(ReleaseAsset.from_json(a) for a in response.json())
            url = response.links.get("next", {}).get("url")
            # the next link already carries the query string
            params = None
        return assets

    def download_asset(self, owner, repo, asset_id, output_path):
        """Stream the raw bytes of a release asset to ``output_path``."""
        url = f"{self.api_url}/repos/{owner}/{repo}/releases/assets/{asset_id}"
        output_path = Path(output_path)
        with self.session.get(url, headers={"Accept": "application/octet-stream"}, stream=True) as response:
            response.raise_for_status()
            with open(output_path, "wb") as f:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    f.write(chunk)
        logger.info(f"Downloaded {output_path}")
        return output_path

    def upload_asset(self, owner, repo, release_id, file_path):
        """Upload ``file_path`` as a new asset of the release; returns the asset JSON."""
        file_name = os.path.basename(file_path)
        with open(file_path, "rb") as f:
            file_content = f.read()

        url = f"{self.uploads_url}/repos/{owner}/{repo}/releases/{release_id}/assets"
        headers = {
            "Content-Type": "application/octet-stream",
            "Content-Length": str(len(file_content)),
        }
        response = self.session.post(url, params={"name": file_name}, data=file_content, headers=headers)

        if self.logfile is not None:
            self._log_response(file_path, len(file_content), response)

        if response.status_code != 201:
            logger.debug(f"Upload of {file_name} answered {response.status_code}: {response.text}")
            raise UploadError(response.status_code)

        logger.info(f"Uploaded {file_name} to release assets.")
        return response.json()

    def _log_response(self, file_path, file_size, response):
        current_time = datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        with open(self.logfile, "a") as fileout:
            fileout.write(f"\n\n--- Response at {current_time} ---\n")
            fileout.write("File Info:\n")
            fileout.write(f"\tFile Name: {file_path}\n")
            fileout.write(f"\tFile Size: {file_size}\n")
            fileout.write("Request:\n")
            fileout.write(f"\tRequest URL: {response.request.url}\n")
            fileout.write(f"\tRequest Headers: \n\t\t{_redact(response.request.headers)}\n")
            fileout.write("Response:\n")
            fileout.write(f"\tStatus Code: {response.status_code}\n")
            fileout.write(f"\tHeaders: {response.headers}\n")
            fileout.write(f"\tText: {response.text}\n")


def _redact(headers):
    headers = dict(headers)
    if "Authorization" in headers:
        headers["Authorization"] = "Bearer ***"
    return headers
