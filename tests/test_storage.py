import os

import pytest

from emirimo.errors import NotFoundError, StorageError
from emirimo.storage import ArtifactStore, LocalFilesystemStore, RemoteObjectStore, download_url


def test_local_store_roundtrip_and_url(local_backend):
    url = local_backend.store("EM-ABC", "u1", b"%PDF-1")
    assert url == "http://api.test/learning/certificates/EM-ABC/download"
    assert local_backend.retrieve("EM-ABC", "u1") == b"%PDF-1"
    assert local_backend.retrieve("EM-MISSING", "u1") is None
    assert local_backend.owns(url)


def test_local_store_rejects_path_traversal(local_backend):
    with pytest.raises(StorageError):
        local_backend.store("../etc/passwd", "u1", b"x")


def test_failed_local_write_leaves_no_temp_file(local_backend):
    # a directory where the pdf should go makes the final rename fail
    os.makedirs(local_backend.path_for("EM-ABC"))
    with pytest.raises(StorageError):
        local_backend.store("EM-ABC", "u1", b"%PDF-1")
    assert os.listdir(local_backend.directory) == ["EM-ABC.pdf"]


def test_remote_store_key_and_url(fake_s3):
    remote = RemoteObjectStore("certs", client=fake_s3(), public_base_url="https://cdn.example.rw")
    url = remote.store("EM-ABC", "u1", b"%PDF-1")
    assert url == "https://cdn.example.rw/emirimo/certificates/u1/EM-ABC.pdf"
    assert remote.owns(url)
    assert not remote.owns(download_url("EM-ABC"))
    assert remote.retrieve("EM-ABC", "u1") == b"%PDF-1"
    assert remote.retrieve("EM-OTHER", "u1") is None


def test_remote_store_default_url_uses_bucket_and_region(fake_s3):
    remote = RemoteObjectStore("certs", client=fake_s3(), region="eu-west-1")
    assert remote.public_base_url == "https://certs.s3.eu-west-1.amazonaws.com"


def test_store_falls_back_when_primary_fails(fake_s3, local_backend):
    store = ArtifactStore([RemoteObjectStore("certs", client=fake_s3(fail_put=True)), local_backend])
    url = store.store("EM-ABC", "u1", b"%PDF-1")
    assert url.endswith("/learning/certificates/EM-ABC/download")
    assert not store.is_primary_url(url)


def test_store_raises_when_every_backend_fails(fake_s3, tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("file in the way")
    store = ArtifactStore([
        RemoteObjectStore("certs", client=fake_s3(fail_put=True)),
        LocalFilesystemStore(str(blocker)),
    ])
    with pytest.raises(StorageError):
        store.store("EM-ABC", "u1", b"%PDF-1")


def test_retrieve_prefers_owner_then_falls_back(fake_s3, local_backend):
    remote = RemoteObjectStore("certs", client=fake_s3(fail_get=True), public_base_url="https://cdn.example.rw")
    store = ArtifactStore([remote, local_backend])
    local_backend.store("EM-ABC", "u1", b"local-copy")
    url = "https://cdn.example.rw/emirimo/certificates/u1/EM-ABC.pdf"
    assert store.retrieve("EM-ABC", "u1", url) == b"local-copy"


def test_retrieve_miss_everywhere_is_not_found(fake_s3, local_backend):
    store = ArtifactStore([RemoteObjectStore("certs", client=fake_s3()), local_backend])
    with pytest.raises(NotFoundError):
        store.retrieve("EM-NONE", "u1")


def test_store_needs_a_backend():
    with pytest.raises(ValueError):
        ArtifactStore([])
