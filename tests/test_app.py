import asyncio

import httpx

from conftest import BASE_URL, RecordingFeedback, image_row, make_session, param
from gallery_client import GalleryApp
from gallery_client.schemas import ImageFilters


def make_app(scripted, feedback=None) -> GalleryApp:
    return GalleryApp(BASE_URL, "anon-key", feedback=feedback, transport=scripted.transport())


def test_gallery_feed_pages_through_images(scripted):
    def respond(request):
        offset = int(param(request, "offset") or 0)
        rows = [image_row(f"img{i}") for i in range(3)][offset:offset + 2]
        return httpx.Response(200, json=rows)

    scripted.on("GET", "/rest/v1/images", respond)

    async def scenario():
        async with make_app(scripted) as app:
            feed = app.gallery_feed(ImageFilters(category="photo"), page_size=2)
            await feed.load_page()
            await feed.load_page()
            return [i.id for i in feed.items], feed.has_more

    assert asyncio.run(scenario()) == (["img0", "img1", "img2"], False)
    assert all(param(r, "category") == "eq.photo" for r in scripted.requests)


def test_search_feed_turns_hashtags_into_tag_filter(scripted):
    scripted.on("GET", "/rest/v1/images", httpx.Response(200, json=[]))

    async def scenario():
        async with make_app(scripted) as app:
            await app.search_feed("  sunset #sea ").load_page()

    asyncio.run(scenario())

    request = scripted.requests[0]
    assert param(request, "tags") == "ov.{sea}"
    assert param(request, "or") == "(title.ilike.*sunset*,description.ilike.*sunset*)"


def test_following_feed_signed_out_is_empty(scripted):
    async def scenario():
        async with make_app(scripted) as app:
            feed = app.following_feed()
            await feed.load_page()
            return feed.items, feed.has_more

    assert asyncio.run(scenario()) == ([], False)
    assert scripted.requests == []


def test_controllers_share_session_and_feedback(scripted):
    feedback = RecordingFeedback()

    async def scenario():
        async with make_app(scripted, feedback) as app:
            return await app.interaction_controller("img1").toggle_like()

    assert asyncio.run(scenario()) is False
    assert feedback.errors == ["Please sign in"]
    assert scripted.requests == []


def test_like_refreshes_cached_gallery_listing(scripted):
    server = {"liked": False}

    def likes(request):
        if param(request, "image_id") == "eq.img1":
            rows = [{"id": "l1"}] if server["liked"] else []
        else:
            rows = [{"image_id": "img1"}] if server["liked"] else []
        return httpx.Response(200, json=rows)

    def insert_like(request):
        server["liked"] = True
        return httpx.Response(201, json=[{"id": "l1"}])

    scripted.on("GET", "/rest/v1/images", httpx.Response(200, json=[image_row("img1")]))
    scripted.on("GET", "/rest/v1/likes", likes)
    scripted.on("GET", "/rest/v1/favorites", httpx.Response(200, json=[]))
    scripted.on("POST", "/rest/v1/likes", insert_like)
    scripted.on("POST", "/rest/v1/rpc/increment_like_count", httpx.Response(204))

    async def scenario():
        async with make_app(scripted) as app:
            app.session.set_session(make_session())
            before = await app.images.get_images(user_id="u1")
            assert await app.interaction_controller("img1").toggle_like() is True
            after = await app.images.get_images(user_id="u1")
            return before[0].is_liked, after[0].is_liked

    assert asyncio.run(scenario()) == (False, True)


def test_html_gateway_page_fails_toggle_with_feedback(scripted):
    feedback = RecordingFeedback()
    scripted.on("GET", "/rest/v1/likes", httpx.Response(200, text="<html>gateway</html>"))
    scripted.on("GET", "/rest/v1/images", httpx.Response(200, text="<html>gateway</html>"))

    async def scenario():
        async with make_app(scripted, feedback) as app:
            app.session.set_session(make_session())
            controller = app.interaction_controller("img1")
            return await controller.toggle_like(), controller.is_liked

    assert asyncio.run(scenario()) == (False, False)
    assert feedback.errors == ["Could not update like, please try again"]
