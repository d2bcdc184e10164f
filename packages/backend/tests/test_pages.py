"""Page rendering tests."""

import uuid

import pytest

from stockpulse.api.pages import SHELL_PAGES


@pytest.mark.asyncio
@pytest.mark.parametrize("path", sorted(SHELL_PAGES))
async def test_shell_pages_render(client, path):
    title, endpoint = SHELL_PAGES[path]
    r = await client.get(path)
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/html")
    assert f"<h1>{title}</h1>" in r.text
    if endpoint:
        assert f'data-endpoint="{endpoint}"' in r.text


@pytest.mark.asyncio
async def test_pages_carry_room_and_client_script(app, client):
    r = await client.get("/inventory-list")
    assert f'data-room="{app.state.settings.inventory_room}"' in r.text
    assert "/static/js/realtime.js" in r.text


@pytest.mark.asyncio
async def test_landing_page_has_no_client_script(unauthenticated_client):
    r = await unauthenticated_client.get("/")
    assert "/static/js/realtime.js" not in r.text


@pytest.mark.asyncio
async def test_profile_and_settings(client):
    r = await client.get("/profile")
    assert r.status_code == 200
    assert "tester-" in r.text

    r = await client.get("/settings")
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_inventory_redirects_to_list(client):
    r = await client.get("/inventory")
    assert r.status_code == 302
    assert r.headers["location"] == "/inventory-list"


@pytest.mark.asyncio
async def test_item_page(client):
    created = await client.post(
        "/api/items",
        json={"sku": "PG-1", "name": "Pallet jack", "quantity": 4, "low_stock_threshold": 5},
    )
    item_id = created.json()["id"]

    r = await client.get(f"/inventory/{item_id}")
    assert r.status_code == 200
    assert "Pallet jack" in r.text
    assert "Low stock" in r.text


@pytest.mark.asyncio
async def test_item_page_missing(client):
    r = await client.get(f"/inventory/{uuid.uuid4()}")
    assert r.status_code == 404
    assert "Page not found" in r.text


@pytest.mark.asyncio
async def test_unknown_page_renders_404(unauthenticated_client):
    r = await unauthenticated_client.get("/no-such-page")
    assert r.status_code == 404
    assert r.headers["content-type"].startswith("text/html")
    assert "Page not found" in r.text


@pytest.mark.asyncio
async def test_unknown_api_path_is_json(unauthenticated_client):
    r = await unauthenticated_client.get("/api/no-such-thing")
    assert r.status_code == 404
    assert r.json() == {"detail": "Not Found"}


@pytest.mark.asyncio
async def test_static_assets_are_served(unauthenticated_client):
    r = await unauthenticated_client.get("/static/js/realtime.js")
    assert r.status_code == 200
    assert "WebSocket" in r.text
