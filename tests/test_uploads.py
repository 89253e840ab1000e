import re

import pytest

from core.errors import BackendUnavailableError, MissingIdentifyingNameError, ValidationError
from tests.fakes import FakeStorage
from utils.storage import LocalStorage
from utils.uploads import (
    SelectedFile,
    UploadedFile,
    build_upload_path,
    files_from_urls,
    remove_uploaded_file,
    slugify_owner,
    unique_file_name,
    upload_batch,
)


def _files(*names):
    return [SelectedFile(name=n, data=b"x" * 8) for n in names]


def test_slugify_owner_collapses_whitespace_runs():
    assert slugify_owner("Ana   Maria Souza") == "ana-maria-souza"
    assert slugify_owner("  Ana\tMaria ") == "ana-maria"


def test_unique_file_name_keeps_extension():
    name = unique_file_name("depoimento.final.MP4")
    assert re.fullmatch(r"\d{13}_[a-z0-9]{6}\.MP4", name)
    assert unique_file_name("sem-extensao").endswith(".bin")


def test_build_upload_path_layout():
    path = build_upload_path("Ana Maria", "imagens-produto", "foto.png")
    owner, category, filename = path.split("/")
    assert owner == "ana-maria"
    assert category == "imagens-produto"
    assert filename.endswith(".png")


def test_unique_file_names_do_not_collide():
    names = {unique_file_name("a.jpg") for _ in range(200)}
    assert len(names) == 200


@pytest.mark.asyncio
async def test_blank_owner_rejects_before_any_storage_call(sink):
    storage = FakeStorage()
    with pytest.raises(MissingIdentifyingNameError):
        await upload_batch(storage, "   ", "videos", _files("a.mp4", "b.mp4"), notifier=sink)
    assert storage.calls == 0
    assert sink.levels() == ["warning"]


@pytest.mark.asyncio
@pytest.mark.parametrize("owner", ["../../escaped", "/tmp/x", "ana/../..", "a\\b", ".hidden"])
async def test_owner_name_cannot_leave_storage_root(tmp_path, sink, owner):
    root = tmp_path / "static"
    root.mkdir()
    with pytest.raises(ValidationError) as exc:
        await upload_batch(LocalStorage(root=str(root)), owner, "videos", _files("v.mp4"), notifier=sink)

    assert "owner_name" in exc.value.errors
    assert sink.levels() == ["warning"]
    assert [p.name for p in tmp_path.iterdir()] == ["static"]
    assert list(root.iterdir()) == []


def test_extension_outside_safe_charset_becomes_bin():
    assert unique_file_name("a./../../etc").endswith(".bin")
    assert unique_file_name("a.p df").endswith(".bin")


@pytest.mark.asyncio
async def test_unknown_category_is_rejected():
    storage = FakeStorage()
    with pytest.raises(ValidationError):
        await upload_batch(storage, "Ana", "fotos", _files("a.jpg"))
    assert storage.calls == 0


@pytest.mark.asyncio
async def test_batch_appends_to_previous(sink):
    storage = FakeStorage()
    previous = [UploadedFile(name="old.jpg", url="https://cdn.test/ana/imagens-prova/old.jpg")]
    merged = await upload_batch(storage, "Ana", "imagens-prova", _files("a.jpg", "b.jpg"), previous=previous, notifier=sink)

    assert storage.calls == 2
    assert merged[0] == previous[0]
    assert [f.name for f in merged[1:]] == ["a.jpg", "b.jpg"]
    assert all(f.url.startswith("https://cdn.test/ana/imagens-prova/") for f in merged[1:])
    assert sink.levels() == ["success"]


@pytest.mark.asyncio
async def test_failure_in_second_file_fails_whole_batch(sink):
    storage = FakeStorage(fail_on=(".fail",))
    previous = [UploadedFile(name="keep.pdf", url="https://cdn.test/keep.pdf")]
    with pytest.raises(BackendUnavailableError):
        await upload_batch(storage, "Ana", "documentos", _files("a.pdf", "b.fail", "c.pdf"), previous=previous, notifier=sink)

    # every upload was dispatched; nothing is reported as uploaded
    assert storage.calls == 3
    assert sink.levels() == ["error"]
    assert previous == [UploadedFile(name="keep.pdf", url="https://cdn.test/keep.pdf")]


@pytest.mark.asyncio
async def test_empty_selection_returns_previous_untouched():
    storage = FakeStorage()
    previous = [UploadedFile(name="a.mp4", url="u1")]
    assert await upload_batch(storage, "", "videos", [], previous=previous) == previous
    assert storage.calls == 0


def test_remove_uploaded_file_is_local_filter():
    files = [UploadedFile("a", "u1"), UploadedFile("b", "u2"), UploadedFile("c", "u3")]
    assert remove_uploaded_file(files, 1) == [UploadedFile("a", "u1"), UploadedFile("c", "u3")]
    assert remove_uploaded_file(files, 9) == files
    assert len(files) == 3


def test_files_from_urls_uses_basename():
    files = files_from_urls(["https://cdn.test/ana/videos/123_abc.mp4"])
    assert files == [UploadedFile(name="123_abc.mp4", url="https://cdn.test/ana/videos/123_abc.mp4")]
