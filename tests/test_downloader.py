import httpx
import pytest

from ezserver.exceptions import DownloadError, DownloadErrorCode
from ezserver.models import DownloadTarget
from ezserver.utils.download import Downloader

from .conftest import json_transport


async def test_fetch_writes_file_and_reports_progress(tmp_path):
    downloader = Downloader(chunk_size=4, transport=json_transport({"https://dl.test/a.jar": b"x" * 10}))
    seen = []

    path = await downloader.fetch("https://dl.test/a.jar", tmp_path / "a.jar", progress=lambda d, t: seen.append((d, t)))

    assert path.read_bytes() == b"x" * 10
    assert seen == [(4, 10), (8, 10), (10, 10)]
    await downloader.aclose()


async def test_progress_without_content_length_never_falls_behind(tmp_path):
    async def body():
        yield b"ab"
        yield b"cd"
        yield b"ef"

    transport = httpx.MockTransport(lambda request: httpx.Response(200, content=body()))
    downloader = Downloader(chunk_size=2, transport=transport)
    seen = []

    await downloader.fetch("https://dl.test/stream.jar", tmp_path / "stream.jar", progress=lambda d, t: seen.append((d, t)))

    assert (tmp_path / "stream.jar").read_bytes() == b"abcdef"
    assert seen[-1] == (6, 6)
    assert all(total >= downloaded for downloaded, total in seen)
    assert [d for d, _ in seen] == sorted(d for d, _ in seen)


async def test_not_found_is_version_not_found(tmp_path):
    downloader = Downloader(transport=json_transport({}))

    with pytest.raises(DownloadError) as exc_info:
        await downloader.fetch("https://dl.test/missing.jar", tmp_path / "missing.jar")

    assert exc_info.value.code is DownloadErrorCode.VERSION_NOT_FOUND


async def test_missing_destination_directory_makes_no_request(tmp_path):
    calls = []
    downloader = Downloader(transport=json_transport({"https://dl.test/a.jar": b"x"}, calls))

    with pytest.raises(DownloadError) as exc_info:
        await downloader.fetch("https://dl.test/a.jar", tmp_path / "nope" / "a.jar")

    assert exc_info.value.code is DownloadErrorCode.DESTINATION_NOT_FOUND
    assert calls == []


async def test_other_http_errors_propagate(tmp_path):
    transport = httpx.MockTransport(lambda request: httpx.Response(500))
    downloader = Downloader(transport=transport)

    with pytest.raises(httpx.HTTPStatusError):
        await downloader.fetch("https://dl.test/a.jar", tmp_path / "a.jar")


async def test_fetch_all_downloads_every_target(tmp_path):
    routes = {f"https://dl.test/{n}.jar": n.encode() for n in ("one", "two", "three")}
    downloader = Downloader(transport=json_transport(routes))
    targets = [DownloadTarget(url, tmp_path / url.rsplit("/", 1)[-1]) for url in routes]

    paths = await downloader.fetch_all(targets)

    assert [p.read_bytes() for p in paths] == [b"one", b"two", b"three"]
