import pytest

from app.exceptions import InvalidRegionError, InvalidRequestError, NotFoundError
from app.services.download_handler import DownloadedFile, download, parse_file_id
from app.services.upload_pipeline import UploadPipeline


@pytest.mark.asyncio
async def test_download_by_id_and_region(store):
    result = await UploadPipeline(store).upload(b"col1,col2\n1,2\n", "data.csv", "text/csv", "ap-southeast-2")
    fetched = await download(store, str(result.id), "ap-southeast-2")
    assert fetched == DownloadedFile(file_name="data.csv", mime_type="text/csv", data=b"col1,col2\n1,2\n")


@pytest.mark.asyncio
async def test_unknown_id_is_not_found(store):
    with pytest.raises(NotFoundError):
        await download(store, 999, "us-west-1")


@pytest.mark.asyncio
async def test_no_cross_region_lookup(store):
    result = await UploadPipeline(store).upload(b"only here", "a.txt", "text/plain", "us-west-1")
    with pytest.raises(NotFoundError):
        await download(store, result.id, "sa-east-1")
    assert (await download(store, result.id, "us-west-1")).data == b"only here"


@pytest.mark.asyncio
@pytest.mark.parametrize("region", [None, "", "mars-1"])
async def test_invalid_region(store, region):
    with pytest.raises(InvalidRegionError):
        await download(store, 1, region)


@pytest.mark.parametrize("raw", ["abc", "0", "-3", "1.5", "", None])
def test_parse_file_id_rejects_non_positive_integers(raw):
    with pytest.raises(InvalidRequestError):
        parse_file_id(raw)


def test_parse_file_id_accepts_integers():
    assert parse_file_id("42") == 42
    assert parse_file_id(7) == 7


def test_content_disposition():
    assert DownloadedFile("report.pdf", "application/pdf", b"").content_disposition == \
        'attachment; filename="report.pdf"'
    assert DownloadedFile("résumé.pdf", "application/pdf", b"").content_disposition == \
        "attachment; filename=\"r?sum?.pdf\"; filename*=UTF-8''r%C3%A9sum%C3%A9.pdf"


def test_content_disposition_keeps_plain_filename_for_ascii_names():
    assert DownloadedFile("my report.pdf", "application/pdf", b"").content_disposition == \
        'attachment; filename="my report.pdf"'
    assert DownloadedFile('say "hi".txt', "text/plain", b"").content_disposition == \
        'attachment; filename="say \\"hi\\".txt"'
    assert DownloadedFile("a\\b.txt", "text/plain", b"").content_disposition == \
        'attachment; filename="a\\\\b.txt"'
