"""Tests for the variant selection endpoints."""

import pytest

from storefront.models.product import Product


@pytest.mark.asyncio
async def test_initial_selection_defaults_to_first_variant(client):
    response = await client.get("/products/tee/variants/initial")

    assert response.status_code == 200
    data = response.json()
    assert data["variant"]["id"] == "1"
    assert data["selection"] == {"color": "red", "size": "M"}
    assert [o["propertyName"] for o in data["options"]] == ["color", "size"]
    size = data["options"][1]
    assert size["selectedValue"] == "M"
    assert [(v["value"], v["inStock"]) for v in size["values"]] == [
        ("M", True),
        ("L", False),
    ]


@pytest.mark.asyncio
async def test_initial_selection_honours_preferred_variant(client):
    response = await client.get(
        "/products/tee/variants/initial", params={"preferredVariantId": "3"}
    )

    assert response.json()["selection"] == {"color": "blue", "size": "M"}


@pytest.mark.asyncio
async def test_select_resolves_exact_out_of_stock_variant(client):
    response = await client.post(
        "/products/tee/variants/select",
        json={"selection": {"color": "red"}, "propertyName": "size", "value": "L"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["selection"] == {"color": "red", "size": "L"}
    assert data["match"]["kind"] == "exact"
    assert data["match"]["variant"]["id"] == "2"
    assert data["confirmsSelection"] is True


@pytest.mark.asyncio
async def test_select_reports_partial_match(client):
    response = await client.post(
        "/products/tee/variants/select",
        json={"selection": {"color": "blue"}, "propertyName": "size", "value": "L"},
    )

    match = response.json()["match"]
    assert match["kind"] == "partial"
    assert match["missingProperties"] == ["color"]


@pytest.mark.asyncio
async def test_select_unknown_value_is_unprocessable(client):
    response = await client.post(
        "/products/tee/variants/select",
        json={"selection": {}, "propertyName": "color", "value": "green"},
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_unknown_product_and_empty_catalog(client, catalog):
    missing = await client.get("/products/nope/variants/initial")
    assert missing.status_code == 404

    catalog.products["plain"] = Product(id="plain", name="Plain")
    empty = await client.get("/products/plain/variants/initial")
    assert empty.status_code == 404
