#!/usr/bin/env python3
# Release torrent generator
# Builds .torrent files for GitHub release assets, web-seeded from their download URLs.
# Remote mode: torrents for every asset of the latest release, uploaded back to it.
# Local mode: torrents for local files matched by glob patterns, before they are attached.

import os
import sys
import glob
import logging
import argparse
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import requests

from createtorrent import DEFAULT_OUTPUT_DIR, TorrentError, create_torrent_file
from ghrelease import (
    DEFAULT_API_URL,
    DEFAULT_SERVER_URL,
    GitHubReleases,
    UploadError,
    release_download_url,
)

logger = logging.getLogger("releasetorrents")

TAG_REF_PREFIX = "refs/tags/"


class ReleaseTorrentError(Exception):
    """Base class for the errors that abort a run."""


class ConfigError(ReleaseTorrentError, ValueError):
    pass


class NoFilesMatchedError(ReleaseTorrentError):
    pass


@dataclass
class Config:
    owner: str
    repo: str
    token: Optional[str] = None
    ref: str = ""
    local: bool = False
    patterns: List[str] = field(default_factory=list)
    one_file: bool = False
    private: bool = False
    output_dir: str = DEFAULT_OUTPUT_DIR
    server_url: str = DEFAULT_SERVER_URL
    api_url: str = DEFAULT_API_URL
    dry_run: bool = False
    logfile: Optional[str] = None
    verbose: bool = False

    @property
    def tag(self):
        return parse_tag(self.ref)


def parse_bool(value):
    return str(value or "").strip().lower() == "true"


def parse_tag(ref):
    """Tag name from a ``refs/tags/<tag>`` ref."""
    ref = (ref or "").strip()
    if ref.startswith(TAG_REF_PREFIX):
        return ref[len(TAG_REF_PREFIX):]
    return ref


def parse_patterns(text):
    """Newline-separated glob patterns, blank lines dropped."""
    return [line.strip() for line in (text or "").splitlines() if line.strip()]


def build_parser():
    parser = argparse.ArgumentParser(
        description="Create .torrent files for GitHub release assets, web-seeded from GitHub")
    parser.add_argument("--repository", type=str, default=None,
                        help="owner/repo (defaults to GITHUB_REPOSITORY)")
    parser.add_argument("--token", type=str, default=None,
                        help="GitHub token (defaults to INPUT_GITHUB_TOKEN or GITHUB_TOKEN)")
    parser.add_argument("--ref", type=str, default=None,
                        help="tag ref such as refs/tags/v1.0 (defaults to GITHUB_REF)")
    parser.add_argument("--local", action="store_true", default=None,
                        help="build torrents for local files instead of the latest release assets")
    parser.add_argument("-f", "--files", action="append", default=None,
                        help="file path or glob pattern for local mode, repeatable")
    parser.add_argument("--onefile", action="store_true", default=None,
                        help="local mode: build a single torrent holding every matched file")
    parser.add_argument("-P", "--private", action="store_true", default=None,
                        help="mark torrents as private")
    parser.add_argument("-o", "--output-dir", type=str, default=None,
                        help=f"directory for torrents and downloaded assets (default ./{DEFAULT_OUTPUT_DIR})")
    parser.add_argument("-t", "--testing", action="store_true", default=False,
                        help="remote mode: build the torrents without uploading them")
    parser.add_argument("-l", "--logfile", type=str, default=None,
                        help="append upload request/response details to this file")
    parser.add_argument("-v", "--verbose", action="store_true", default=False,
                        help="increase output verbosity")
    return parser


def load_config(argv=None, environ: Optional[Dict[str, str]] = None) -> Config:
    """Config from the Actions environment, overridden by command-line flags."""
    env = os.environ if environ is None else environ
    args = build_parser().parse_args(argv)

    repository = args.repository or env.get("GITHUB_REPOSITORY", "")
    if not repository:
        raise ConfigError("GITHUB_REPOSITORY environment variable is required")
    owner, _, repo = repository.strip().partition("/")
    if not owner or not repo or "/" in repo:
        raise ConfigError(f"Repository must be given as owner/repo, got: {repository}")

    if args.files is not None:
        patterns = [p for text in args.files for p in parse_patterns(text)]
    else:
        patterns = parse_patterns(env.get("INPUT_FILES"))

    def flag(value, name):
        return value if value is not None else parse_bool(env.get(name))

    return Config(
        owner=owner,
        repo=repo,
        token=args.token or env.get("INPUT_GITHUB_TOKEN") or env.get("GITHUB_TOKEN") or None,
        ref=args.ref if args.ref is not None else env.get("GITHUB_REF", ""),
        local=flag(args.local, "INPUT_LOCAL"),
        patterns=patterns,
        one_file=flag(args.onefile, "INPUT_ONEFILE"),
        private=flag(args.private, "INPUT_PRIVATE"),
        output_dir=args.output_dir or env.get("INPUT_OUTPUT_DIR") or DEFAULT_OUTPUT_DIR,
        server_url=env.get("GITHUB_SERVER_URL") or DEFAULT_SERVER_URL,
        api_url=env.get("GITHUB_API_URL") or DEFAULT_API_URL,
        dry_run=args.testing,
        logfile=args.logfile,
        verbose=args.verbose,
    )


def expand_pattern(pattern):
    """Regular files matched by ``pattern``, sorted."""
    return sorted(p for p in glob.glob(pattern, recursive=True) if os.path.isfile(p))


def process_local_assets(config: Config) -> List[Path]:
    tag = config.tag
    if not tag:
        raise ConfigError("Could not extract tag name from GITHUB_REF.")
    if not config.patterns:
        raise ConfigError("No files provided in the 'files' input.")

    def web_seed(file_path):
        return release_download_url(
            config.server_url, config.owner, config.repo, tag, os.path.basename(file_path))

    created = []
    if config.one_file:
        file_paths = [p for pattern in config.patterns for p in expand_pattern(pattern)]
        output_name = f"{config.repo}-{tag}.torrent"
        created.append(create_torrent_file(
            file_paths,
            output_name,
            [web_seed(p) for p in file_paths],
            output_dir=config.output_dir,
            private=config.private,
        ))
        return created

    for pattern in config.patterns:
        matched_files = expand_pattern(pattern)
        if not matched_files:
            message = f"No files matched the pattern: {pattern}"
            logger.error(message)
            # surfaces as an annotation on the workflow run
            print(f"::error::{message}")
            raise NoFilesMatchedError(message)

        for file_path in matched_files:
            output_name = f"{os.path.basename(file_path)}-{tag}.torrent"
            created.append(create_torrent_file(
                [file_path],
                output_name,
                [web_seed(file_path)],
                output_dir=config.output_dir,
                private=config.private,
            ))
    return created


def process_remote_assets(config: Config, client: Optional[GitHubReleases] = None) -> List[Path]:
    if not config.token:
        raise ConfigError("A GitHub token is required (INPUT_GITHUB_TOKEN or GITHUB_TOKEN)")
    if client is None:
        client = GitHubReleases(config.token, api_url=config.api_url, logfile=config.logfile)

    owner, repo = config.owner, config.repo
    release = client.get_latest_release(owner, repo)
    release_id = release["id"]
    logger.info(f"Latest release of {owner}/{repo}: {release.get('tag_name', release_id)}")

    download_dir = Path(config.output_dir)
    download_dir.mkdir(parents=True, exist_ok=True)

    created = []
    for asset in client.list_release_assets(owner, repo, release_id):
        file_path = download_dir / asset.name
        client.download_asset(owner, repo, asset.id, file_path)
        torrent_path = create_torrent_file(
            [file_path],
            f"{file_path.name}.torrent",
            [asset.browser_download_url],
            output_dir=download_dir,
            private=config.private,
        )
        if config.dry_run:
            logger.info(f"Testing mode, not uploading {torrent_path.name}")
        else:
            client.upload_asset(owner, repo, release_id, torrent_path)
        created.append(torrent_path)
    return created


def main(argv=None):
    try:
        config = load_config(argv)
    except ConfigError as e:
        print(f"Error - {e}", file=sys.stderr)
        return 1

    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=logging.DEBUG if config.verbose else logging.INFO,
    )
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    logger.debug(f"Repository: {config.owner}/{config.repo}")
    logger.debug(f"Mode: {'local' if config.local else 'remote'}")
    logger.debug(f"Output directory: {config.output_dir}")

    try:
        if config.local:
            process_local_assets(config)
        else:
            process_remote_assets(config)
    except (ReleaseTorrentError, TorrentError, UploadError, requests.RequestException) as e:
        print(f"Error - {e}", file=sys.stderr)
        return 1

    print("All files processed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
