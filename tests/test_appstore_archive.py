import io
import os
import zipfile

import pytest

from dockyard.appstore.archive import SecureArchiveExtractor, resolve_member_path
from dockyard.errors import CatalogParseError, NoAppsFolderFound, SizeLimitExceeded, ZipSlipDetected


def make_zip(entries):
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in entries.items():
            archive.writestr(name, content)
    return buffer.getvalue()


def test_resolve_member_path_rejects_escapes(tmp_path):
    for name in ("../../evil", "/etc/passwd", "C:/windows/evil", "a/../../evil"):
        with pytest.raises(ZipSlipDetected):
            resolve_member_path(str(tmp_path), name)


def test_resolve_member_path_allows_nested_entries(tmp_path):
    target = resolve_member_path(str(tmp_path), "Apps/foo/../bar/docker-compose.yml")
    assert target == os.path.join(os.path.realpath(tmp_path), "Apps", "bar", "docker-compose.yml")


def test_extract_skips_zip_slip_entries_and_keeps_the_rest(tmp_path):
    dest = tmp_path / "dest"
    payload = make_zip(
        {
            "../../evil": "pwned",
            "Apps/foo/docker-compose.yml": "services: {}\n",
        }
    )

    report = SecureArchiveExtractor().extract(payload, str(dest))

    assert (dest / "Apps" / "foo" / "docker-compose.yml").read_text() == "services: {}\n"
    assert not (tmp_path.parent / "evil").exists()
    assert not (tmp_path / "evil").exists()
    assert [skipped.entry for skipped in report.skipped] == ["../../evil"]
    assert report.written == ["Apps/foo/docker-compose.yml"]


def test_extract_rejects_invalid_archive(tmp_path):
    with pytest.raises(CatalogParseError):
        SecureArchiveExtractor().extract(b"not a zip", str(tmp_path))


def test_extract_enforces_entry_and_size_limits(tmp_path):
    payload = make_zip({"a": "1", "b": "2", "c": "3"})
    with pytest.raises(SizeLimitExceeded):
        SecureArchiveExtractor(max_entries=2).extract(payload, str(tmp_path / "a"))
    with pytest.raises(SizeLimitExceeded):
        SecureArchiveExtractor(max_bytes=2).extract(payload, str(tmp_path / "b"))


def test_locate_apps_folder_at_root_and_in_wrapper(tmp_path):
    extractor = SecureArchiveExtractor()
    direct = tmp_path / "direct"
    (direct / "Apps").mkdir(parents=True)
    assert extractor.locate_apps_folder(str(direct)) == str(direct / "Apps")

    wrapped = tmp_path / "wrapped"
    (wrapped / "CasaOS-AppStore-main" / "Apps").mkdir(parents=True)
    assert extractor.locate_apps_folder(str(wrapped)) == str(
        wrapped / "CasaOS-AppStore-main" / "Apps"
    )


def test_locate_apps_folder_does_not_search_deeper(tmp_path):
    (tmp_path / "one" / "two" / "Apps").mkdir(parents=True)
    with pytest.raises(NoAppsFolderFound):
        SecureArchiveExtractor().locate_apps_folder(str(tmp_path))


def test_install_archive_replaces_cache_and_cleans_staging(tmp_path):
    storage = tmp_path / "storage"
    cache = storage / "source-1"
    (cache / "stale").mkdir(parents=True)

    payload = make_zip({"repo-main/Apps/jellyfin/docker-compose.yml": "services: {}\n"})
    SecureArchiveExtractor().install_archive(payload, str(cache))

    assert (cache / "jellyfin" / "docker-compose.yml").exists()
    assert not (cache / "stale").exists()
    assert sorted(os.listdir(storage)) == ["source-1"]


def test_install_archive_keeps_previous_cache_without_apps_folder(tmp_path):
    storage = tmp_path / "storage"
    cache = storage / "source-1"
    (cache / "jellyfin").mkdir(parents=True)

    payload = make_zip({"README.md": "nothing here"})
    with pytest.raises(NoAppsFolderFound):
        SecureArchiveExtractor().install_archive(payload, str(cache))

    assert (cache / "jellyfin").is_dir()
    assert sorted(os.listdir(storage)) == ["source-1"]
