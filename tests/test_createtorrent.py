import hashlib
import sys

import bencodepy
import pytest

import createtorrent
from createtorrent import (
    TRACKERS,
    TorrentError,
    build_torrent,
    create_torrent_file,
    determine_piece_size,
)


def test_piece_size_table():
    mib = 1024 * 1024
    assert determine_piece_size(0) == 32 * 1024
    assert determine_piece_size(100 * mib) == 64 * 1024
    assert determine_piece_size(600 * mib) == 512 * 1024
    assert determine_piece_size(20000 * mib) == 8 * mib


def test_single_file_torrent(tmp_path):
    data = b"x" * (32 * 1024) + b"tail"
    path = tmp_path / "widget.zip"
    path.write_bytes(data)

    seed = "https://github.com/acme/widget/releases/download/v1.2.3/widget.zip"
    meta = bencodepy.decode(build_torrent([path], [seed]))

    info = meta[b"info"]
    assert info[b"name"] == b"widget.zip"
    assert info[b"length"] == len(data)
    assert info[b"piece length"] == 32 * 1024
    assert info[b"pieces"] == (
        hashlib.sha1(data[:32 * 1024]).digest() + hashlib.sha1(b"tail").digest()
    )
    assert b"private" not in info
    assert meta[b"url-list"] == [seed.encode()]
    assert meta[b"announce"] == TRACKERS[0].encode()
    assert meta[b"announce-list"] == [[t.encode() for t in TRACKERS]]


def test_multi_file_torrent_keeps_order_and_hashes_across_files(tmp_path):
    a = tmp_path / "b.bin"
    b = tmp_path / "a.bin"
    a.write_bytes(b"first")
    b.write_bytes(b"second")

    meta = bencodepy.decode(build_torrent([a, b], [], name="bundle", private=True))

    info = meta[b"info"]
    assert info[b"name"] == b"bundle"
    assert info[b"private"] == 1
    assert info[b"files"] == [
        {b"length": 5, b"path": [b"b.bin"]},
        {b"length": 6, b"path": [b"a.bin"]},
    ]
    assert info[b"pieces"] == hashlib.sha1(b"firstsecond").digest()
    assert b"url-list" not in meta


def test_build_rejects_missing_input(tmp_path):
    with pytest.raises(TorrentError):
        build_torrent([], ["https://example.com/x"])
    with pytest.raises(TorrentError):
        build_torrent([tmp_path / "missing.zip"], [])


def test_create_torrent_file_creates_output_dir(tmp_path):
    src = tmp_path / "app.tar.gz"
    src.write_bytes(b"payload")
    out_dir = tmp_path / "torrents"

    first = create_torrent_file([src], "app.tar.gz.torrent", ["https://h/app.tar.gz"], output_dir=out_dir)
    second = create_torrent_file([src], "again.torrent", [], output_dir=out_dir)

    assert first == out_dir / "app.tar.gz.torrent"
    assert first.is_file() and second.is_file()
    assert bencodepy.decode(first.read_bytes())[b"info"][b"name"] == b"app.tar.gz"


def test_create_torrent_file_names_multi_file_torrent_after_output(tmp_path):
    one = tmp_path / "one.txt"
    two = tmp_path / "two.txt"
    one.write_text("1")
    two.write_text("2")

    path = create_torrent_file([one, two], "widget-v1.torrent", [], output_dir=tmp_path / "out")

    assert bencodepy.decode(path.read_bytes())[b"info"][b"name"] == b"widget-v1"


def test_cli(tmp_path, monkeypatch, capsys):
    src = tmp_path / "data.bin"
    src.write_bytes(b"abc")
    output = tmp_path / "out" / "data.torrent"
    monkeypatch.setattr(sys, "argv", [
        "createtorrent", str(src), "--output", str(output),
        "--announce", "http://tracker.example/announce", "--webseed", "https://h/data.bin", "-P",
    ])

    createtorrent.main()

    meta = bencodepy.decode(output.read_bytes())
    assert meta[b"announce-list"] == [[b"http://tracker.example/announce"]]
    assert meta[b"url-list"] == [b"https://h/data.bin"]
    assert meta[b"info"][b"private"] == 1
    assert "PRIVATE" in capsys.readouterr().out
