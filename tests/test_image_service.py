from datetime import datetime, timedelta, timezone
from io import BytesIO

import httpx
import pytest
from PIL import Image

from conftest import BASE_URL, image_row, json_body, param, run_with_backend
from gallery_client.application.image_service import ImageService, popularity_score
from gallery_client.exceptions import BackendError, InvalidFileError, NotOwnerError
from gallery_client.infrastructure.image_processor import ImageProcessor
from gallery_client.infrastructure.storage import StorageManager
from gallery_client.schemas import ImageCreate, ImageFilters, ImageRecord, ImageUpdate

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def png_bytes(size=(4, 4)) -> bytes:
    buffer = BytesIO()
    Image.new("RGB", size, (200, 80, 40)).save(buffer, "PNG")
    return buffer.getvalue()


def image_service(backend) -> ImageService:
    return ImageService(backend, StorageManager(backend, "images"))


def test_popularity_score_decays_with_age():
    fresh = ImageRecord(
        id="a", user_id="o", image_url="a.jpg",
        like_count=10, view_count=100, comment_count=5, created_at=NOW,
    )
    older = fresh.model_copy(update={"created_at": NOW - timedelta(days=20)})

    assert popularity_score(fresh, NOW) == pytest.approx(50.0)
    assert popularity_score(older, NOW) == pytest.approx(25.0)


def test_get_images_applies_filters_urls_and_viewer_state(scripted):
    scripted.on("GET", "/rest/v1/images", httpx.Response(200, json=[image_row("img1"), image_row("img2")]))
    scripted.on("GET", "/rest/v1/likes", httpx.Response(200, json=[{"image_id": "img1"}]))
    scripted.on("GET", "/rest/v1/favorites", httpx.Response(200, json=[]))
    filters = ImageFilters(category="photo", tags=["sky"], sort_by="like_count", limit=2, offset=2)

    async def scenario(backend):
        service = image_service(backend)
        first = await service.get_images(filters, "u1")
        again = await service.get_images(filters, "u1")
        return first, again

    images, again = run_with_backend(scripted, scenario)

    request = scripted.calls("GET", "/rest/v1/images")[0]
    assert param(request, "category") == "eq.photo"
    assert param(request, "tags") == "ov.{sky}"
    assert param(request, "order") == "like_count.desc"
    assert param(request, "offset") == "2"
    assert param(request, "limit") == "2"
    assert images[0].image_url == f"{BASE_URL}/storage/v1/object/public/images/img1.jpg"
    assert [i.is_liked for i in images] == [True, False]
    assert [i.id for i in again] == ["img1", "img2"]
    assert len(scripted.calls("GET", "/rest/v1/images")) == 1


def test_popular_images_ranked_by_score(scripted):
    scripted.on(
        "GET",
        "/rest/v1/images",
        httpx.Response(
            200,
            json=[
                image_row("old", like_count=50, created_at="2000-01-01T00:00:00+00:00"),
                image_row("new", like_count=20, created_at=datetime.now(timezone.utc).isoformat()),
            ],
        ),
    )

    images = run_with_backend(
        scripted, lambda backend: image_service(backend).get_popular_images(limit=5, timeframe="all")
    )

    assert [i.id for i in images] == ["new", "old"]
    request = scripted.requests[0]
    assert param(request, "is_published") == "eq.true"
    assert param(request, "created_at") is None
    assert param(request, "limit") == "5"


def test_popular_images_window(scripted):
    scripted.on("GET", "/rest/v1/images", httpx.Response(200, json=[]))

    run_with_backend(scripted, lambda backend: image_service(backend).get_popular_images(timeframe="day"))

    assert param(scripted.requests[0], "created_at").startswith("gte.")


def test_search_matches_title_or_description(scripted):
    scripted.on("GET", "/rest/v1/images", httpx.Response(200, json=[]))

    run_with_backend(scripted, lambda backend: image_service(backend).search_images("cat*"))

    assert param(scripted.requests[0], "or") == "(title.ilike.*cat*,description.ilike.*cat*)"


def test_get_image_by_id_ignores_view_count_failure(scripted):
    scripted.on("GET", "/rest/v1/images", httpx.Response(200, json=[image_row("img1")]))
    scripted.on("POST", "/rest/v1/rpc/increment_view_count", httpx.Response(500))

    image = run_with_backend(scripted, lambda backend: image_service(backend).get_image_by_id("img1"))

    assert image.id == "img1"
    assert len(scripted.calls("POST", "/rest/v1/rpc/increment_view_count")) == 1


def test_get_image_by_id_missing(scripted):
    scripted.on("GET", "/rest/v1/images", httpx.Response(200, json=[]))

    assert run_with_backend(scripted, lambda backend: image_service(backend).get_image_by_id("x")) is None
    assert scripted.calls("POST") == []


def test_popular_tags(scripted):
    scripted.on(
        "GET",
        "/rest/v1/images",
        httpx.Response(200, json=[{"tags": ["sky", "sea"]}, {"tags": ["sky"]}, {"tags": None}]),
    )

    tags = run_with_backend(scripted, lambda backend: image_service(backend).get_popular_tags(limit=1))

    assert [(t.name, t.count) for t in tags] == [("sky", 2)]


def test_popular_tags_degrades(scripted):
    scripted.on("GET", "/rest/v1/images", httpx.Response(500))

    assert run_with_backend(scripted, lambda backend: image_service(backend).get_popular_tags()) == []


def test_upload_rejects_invalid_file_without_request(scripted):
    async def scenario(backend):
        service = image_service(backend)
        with pytest.raises(InvalidFileError):
            await service.upload_image(b"not an image", "a.png", "image/png", ImageCreate(title="A"), "u1")
        with pytest.raises(InvalidFileError) as info:
            await service.upload_image(png_bytes(), "a.bmp", "image/bmp", ImageCreate(title="A"), "u1")
        return info.value

    error = run_with_backend(scripted, scenario)
    assert error.message == "File must be a valid image (JPEG, PNG, WebP, or GIF)"
    assert scripted.requests == []


def test_upload_stores_file_then_row(scripted):
    scripted.on("POST", "/storage/v1/object/images/*", httpx.Response(200, json={}))
    scripted.on(
        "POST",
        "/rest/v1/images",
        lambda r: httpx.Response(201, json=[dict(json_body(r), id="img9")]),
    )

    image = run_with_backend(
        scripted,
        lambda backend: image_service(backend).upload_image(
            png_bytes(), "Dawn.PNG", "image/png", ImageCreate(title="Dawn", tags=["sky"]), "u1"
        ),
    )

    upload, insert = scripted.requests
    assert upload.url.path.endswith(".png")
    row = json_body(insert)
    assert row["image_url"] == upload.url.path.rsplit("/", 1)[-1]
    assert row["like_count"] == 0
    assert row["published_at"] is None
    assert image.id == "img9"
    assert image.image_url.startswith(f"{BASE_URL}/storage/v1/object/public/images/")


def test_upload_removes_orphan_when_insert_fails(scripted):
    scripted.on("POST", "/storage/v1/object/images/*", httpx.Response(200, json={}))
    scripted.on("POST", "/rest/v1/images", httpx.Response(500, json={"message": "boom"}))
    scripted.on("DELETE", "/storage/v1/object/images", httpx.Response(200, json=[]))

    async def scenario(backend):
        with pytest.raises(BackendError):
            await image_service(backend).upload_image(
                png_bytes(), "a.png", "image/png", ImageCreate(title="A"), "u1"
            )

    run_with_backend(scripted, scenario)

    upload = scripted.requests[0]
    cleanup = scripted.calls("DELETE")[0]
    assert json_body(cleanup) == {"prefixes": [upload.url.path.rsplit("/", 1)[-1]]}


def test_update_not_owned(scripted):
    scripted.on("PATCH", "/rest/v1/images", httpx.Response(200, json=[]))

    async def scenario(backend):
        with pytest.raises(NotOwnerError):
            await image_service(backend).update_image("img1", ImageUpdate(title="Mine"), "intruder")

    run_with_backend(scripted, scenario)
    assert json_body(scripted.requests[0]) == {"title": "Mine"}


def test_delete_removes_object_before_row(scripted):
    scripted.on("GET", "/rest/v1/images", httpx.Response(200, json=[{"image_url": "img1.jpg"}]))
    scripted.on("DELETE", "/storage/v1/object/images", httpx.Response(200, json=[]))
    scripted.on("DELETE", "/rest/v1/images", httpx.Response(200, json=[{"id": "img1"}]))

    run_with_backend(scripted, lambda backend: image_service(backend).delete_image("img1", "u1"))

    assert [(r.method, r.url.path) for r in scripted.requests] == [
        ("GET", "/rest/v1/images"),
        ("DELETE", "/storage/v1/object/images"),
        ("DELETE", "/rest/v1/images"),
    ]


def test_delete_not_owned_touches_nothing(scripted):
    scripted.on("GET", "/rest/v1/images", httpx.Response(200, json=[]))

    async def scenario(backend):
        with pytest.raises(NotOwnerError):
            await image_service(backend).delete_image("img1", "intruder")

    run_with_backend(scripted, scenario)
    assert scripted.calls("DELETE") == []


def test_unique_filename():
    first = ImageProcessor.generate_unique_filename("My Art.JPG")
    second = ImageProcessor.generate_unique_filename("noext", "image/webp")

    assert first.endswith(".jpg") and first != ImageProcessor.generate_unique_filename("My Art.JPG")
    assert second.endswith(".webp")
    assert ImageProcessor.get_image_dimensions(png_bytes((6, 3))) == (6, 3)


def test_upload_with_empty_representation_removes_orphan(scripted):
    scripted.on("POST", "/storage/v1/object/images/*", httpx.Response(200, json={}))
    scripted.on("POST", "/rest/v1/images", httpx.Response(201, json=[]))
    scripted.on("DELETE", "/storage/v1/object/images", httpx.Response(200, json=[]))

    async def scenario(backend):
        with pytest.raises(BackendError) as info:
            await image_service(backend).upload_image(
                png_bytes(), "a.png", "image/png", ImageCreate(title="A"), "u1"
            )
        return info.value

    error = run_with_backend(scripted, scenario)
    assert error.details == "Malformed response: no image row returned"
    assert len(scripted.calls("DELETE")) == 1
