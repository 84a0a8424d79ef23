#!/usr/bin/env python3
# Torrent creator for release assets, web-seeded from their download URLs
# Piece size is picked from the total data size
# -P / --private marks the torrent as private

import os
import time
import logging
import argparse
import hashlib
from pathlib import Path

import bencodepy

logger = logging.getLogger(__name__)

CREATED_BY = "release-torrents"
DEFAULT_OUTPUT_DIR = "torrents"

# Public trackers, announced as a single tier
TRACKERS = (
    "udp://9.rarbg.to:2710/announce",
    "udp://explodie.org:6969",
    "udp://exodus.desync.com:6969/announce",
    "udp://tracker.coppersurfer.tk:6969",
    "udp://tracker.cyberia.is:6969/announce",
    "udp://tracker.empire-js.us:1337",
    "udp://tracker.internetwarriors.net:1337/announce",
    "udp://tracker.leechers-paradise.org:6969",
    "udp://tracker.openbittorrent.com:80/announce",
    "udp://tracker.opentrackr.org:1337/announce",
    "udp://tracker.pirateparty.gr:6969/announce",
    "udp://tracker.tiny-vps.com:6969/announce",
)


class TorrentError(Exception):
    """Raised when a torrent cannot be built from the given inputs."""


def determine_piece_size(total_size):
    """Determine piece size based on total data size (in bytes)."""
    mib = total_size / (1024 * 1024)
    if mib < 50:
        return 32 * 1024          # 32 KiB
    elif 50 <= mib <= 150:
        return 64 * 1024          # 64 KiB
    elif 150 < mib <= 512:
        return 256 * 1024         # 256 KiB
    elif 512 < mib <= 1024:
        return 512 * 1024         # 512 KiB
    elif 1024 < mib <= 2048:
        return 1 * 1024 * 1024    # 1 MiB
    elif 2048 < mib <= 5120:
        return 2 * 1024 * 1024    # 2 MiB
    elif 5120 < mib <= 11264:
        return 4 * 1024 * 1024    # 4 MiB
    else:
        return 8 * 1024 * 1024    # 8 MiB for larger


def hash_pieces(paths, piece_size):
    """SHA-1 every piece of the concatenated files, reading one piece at a time."""
    pieces = b""
    buffer = b""
    for path in paths:
        with open(path, "rb") as f:
            while True:
                read_data = f.read(piece_size - len(buffer))
                if not read_data:
                    break
                buffer += read_data
                if len(buffer) == piece_size:
                    pieces += hashlib.sha1(buffer).digest()
                    buffer = b""
    if buffer:
        pieces += hashlib.sha1(buffer).digest()
    return pieces


def build_torrent(paths, web_seeds, name=None, trackers=TRACKERS, private=False, comment=None):
    """Return the bencoded metainfo for ``paths``.

    A single path gives a single-file torrent; several paths give a
    multi-file torrent whose entries are the file basenames, in order.
    ``web_seeds`` end up in ``url-list`` and ``trackers`` in one
    ``announce-list`` tier.
    """
    paths = [str(p) for p in paths]
    if not paths:
        raise TorrentError("No input files to build a torrent from")
    for path in paths:
        if not os.path.isfile(path):
            raise TorrentError(f"Not a file: {path}")

    sizes = [os.path.getsize(p) for p in paths]
    piece_size = determine_piece_size(sum(sizes))

    info = {
        b"piece length": piece_size,
        b"pieces": hash_pieces(paths, piece_size),
    }
    if len(paths) == 1:
        info[b"name"] = (name or os.path.basename(paths[0])).encode()
        info[b"length"] = sizes[0]
    else:
        if not name:
            raise TorrentError("A name is required for a multi-file torrent")
        info[b"name"] = name.encode()
        info[b"files"] = [
            {b"length": size, b"path": [os.path.basename(path).encode()]}
            for path, size in zip(paths, sizes)
        ]
    if private:
        info[b"private"] = 1

    torrent_dict = {
        b"info": info,
        b"created by": CREATED_BY.encode(),
        b"creation date": int(time.time()),
        b"encoding": b"UTF-8",
    }
    if trackers:
        torrent_dict[b"announce"] = trackers[0].encode()
        torrent_dict[b"announce-list"] = [[t.encode() for t in trackers]]
    if web_seeds:
        torrent_dict[b"url-list"] = [url.encode() for url in web_seeds]
    if comment:
        torrent_dict[b"comment"] = comment.encode()

    return bencodepy.encode(torrent_dict)


def create_torrent_file(paths, output_name, web_seeds, output_dir=DEFAULT_OUTPUT_DIR, **kwargs):
    """Build a torrent for ``paths`` and write it to ``output_dir/output_name``."""
    out_dir = Path(output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    name = kwargs.pop("name", None)
    if name is None and len(paths) > 1:
        name = os.path.splitext(output_name)[0]
    torrent = build_torrent(paths, web_seeds, name=name, **kwargs)

    torrent_path = out_dir / output_name
    torrent_path.write_bytes(torrent)
    logger.info(f"Torrent created: {torrent_path}")
    return torrent_path


def main():
    parser = argparse.ArgumentParser(description="Create a .torrent file")
    parser.add_argument("paths", nargs="+", help="Path(s) to the file(s) to include")
    parser.add_argument("--output", required=True, help="Output .torrent file path")
    parser.add_argument("--announce", action="append", default=None,
                        help="Tracker announce URL, repeatable (defaults to the public tracker list)")
    parser.add_argument("--webseed", action="append", default=[], help="Web seed URL, repeatable")
    parser.add_argument("--name", default=None, help="Torrent name (required with several paths)")
    parser.add_argument("-P", "--private", action="store_true", help="Mark torrent as private")
    args = parser.parse_args()

    logging.basicConfig(format="%(message)s", level=logging.INFO)

    output = Path(args.output)
    try:
        create_torrent_file(
            args.paths,
            output.name,
            args.webseed,
            output_dir=output.parent,
            name=args.name,
            trackers=tuple(args.announce) if args.announce else TRACKERS,
            private=args.private,
        )
    except TorrentError as e:
        parser.error(str(e))

    if args.private:
        print("🔒 Torrent marked as PRIVATE")


if __name__ == "__main__":
    main()
