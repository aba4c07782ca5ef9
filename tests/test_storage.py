import httpx
import pytest

from conftest import BASE_URL, json_body, run_with_backend
from gallery_client.infrastructure.storage import StorageManager, extract_storage_path


@pytest.mark.parametrize(
    "value,expected",
    [
        ("https://x.supabase.co/storage/v1/object/public/images/uploads/a.jpg", "uploads/a.jpg"),
        ("https://x.supabase.co/storage/v1/object/public/images/my%20art.png", "my art.png"),
        ("uploads/a.jpg", "uploads/a.jpg"),
        ("/a.jpg", "a.jpg"),
        ("https://cdn.example.com/files/b.webp", "b.webp"),
    ],
)
def test_extract_storage_path(value, expected):
    assert extract_storage_path(value) == expected


def test_public_url(scripted):
    storage = StorageManager(scripted.client(), "images")

    assert storage.get_public_url("a.jpg") == f"{BASE_URL}/storage/v1/object/public/images/a.jpg"
    assert storage.get_public_url("https://elsewhere/a.jpg") == "https://elsewhere/a.jpg"
    assert storage.get_public_url(None) == ""


def test_upload_posts_bytes_to_bucket(scripted):
    scripted.on("POST", "/storage/v1/object/images/a.png", httpx.Response(200, json={"Key": "images/a.png"}))

    async def scenario(backend):
        return await StorageManager(backend, "images").upload_file(b"data", "a.png", "image/png")

    assert run_with_backend(scripted, scenario) == "a.png"
    request = scripted.requests[0]
    assert request.content == b"data"
    assert request.headers["content-type"] == "image/png"
    assert request.headers["x-upsert"] == "false"


def test_delete_accepts_public_url(scripted):
    scripted.on("DELETE", "/storage/v1/object/images", httpx.Response(200, json=[]))

    async def scenario(backend):
        storage = StorageManager(backend, "images")
        await storage.delete_file(storage.get_public_url("uploads/a.jpg"))

    run_with_backend(scripted, scenario)

    assert json_body(scripted.requests[0]) == {"prefixes": ["uploads/a.jpg"]}
