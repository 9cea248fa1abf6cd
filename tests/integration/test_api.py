import pytest
from decimal import Decimal
from httpx import AsyncClient

API = "/api/v1"


async def create_received_purchase(client: AsyncClient, seed, headers, quantity="10", unit_cost="5.00") -> dict:
    response = await client.post(
        f"{API}/purchase/",
        json={
            "business_id": seed.business_id,
            "branch_id": seed.main_branch_id,
            "supplier_id": 3,
            "status": "ordered",
            "items": [{"product_id": seed.product_ids["COF-001"], "quantity_ordered": quantity, "unit_cost": unit_cost}],
        },
        headers=headers
    )
    assert response.status_code == 201
    purchase = response.json()

    response = await client.post(
        f"{API}/purchase/{purchase['id']}/receive",
        json={"items": [{"purchase_item_id": purchase["items"][0]["id"], "quantity_received": quantity}]},
        headers=headers
    )
    assert response.status_code == 200
    return response.json()


@pytest.mark.asyncio
class TestApi:
    """Smoke tests through the HTTP surface"""

    async def test_root(self, client: AsyncClient):
        response = await client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "active"

    async def test_actor_header_is_required(self, client: AsyncClient, seed):
        payload = {
            "business_id": seed.business_id,
            "branch_id": seed.main_branch_id,
            "product_id": seed.product_ids["COF-001"],
            "quantity": "1",
            "sale_id": 1,
        }
        response = await client.post(f"{API}/inventory/stock/sale", json=payload)
        assert response.status_code == 422

        response = await client.post(f"{API}/inventory/stock/sale", json=payload, headers={"X-Actor-Id": "0"})
        assert response.status_code == 401

    async def test_receive_purchase_and_read_stock(self, client: AsyncClient, seed, actor_headers):
        purchase = await create_received_purchase(client, seed, actor_headers)
        assert purchase["status"] == "received"
        assert purchase["received_by"] == 7
        assert purchase["purchase_number"].startswith("PO-")

        response = await client.get(
            f"{API}/inventory/stock/lookup",
            params={
                "business_id": seed.business_id,
                "branch_id": seed.main_branch_id,
                "product_id": seed.product_ids["COF-001"],
            }
        )
        assert response.status_code == 200
        stock = response.json()
        assert Decimal(stock["quantity"]) == Decimal("10")
        assert Decimal(stock["unit_cost"]) == Decimal("5")
        assert Decimal(stock["stock_value"]) == Decimal("50")
        assert stock["is_low_stock"] is False

        response = await client.get(f"{API}/inventory/stock/movements", params={"business_id": seed.business_id})
        movements = response.json()
        assert len(movements) == 1
        assert movements[0]["movement_type"] == "purchase"
        assert movements[0]["reference_type"] == "purchase"
        assert movements[0]["reference_id"] == purchase["id"]

        response = await client.get(f"{API}/inventory/stock/{stock['id']}/reconcile")
        assert response.json()["is_consistent"] is True

        response = await client.get(f"{API}/inventory/stock/{stock['id']}/batches")
        batches = response.json()
        assert len(batches) == 1
        assert batches[0]["purchase_reference"] == purchase["purchase_number"]

    async def test_over_receipt_returns_400(self, client: AsyncClient, seed, actor_headers):
        purchase = await create_received_purchase(client, seed, actor_headers, quantity="2")

        response = await client.post(
            f"{API}/purchase/{purchase['id']}/receive",
            json={"items": [{"purchase_item_id": purchase["items"][0]["id"], "quantity_received": "1"}]},
            headers=actor_headers
        )
        assert response.status_code == 400
        assert "already received" in response.json()["detail"]

    async def test_sale_reports_cost_of_goods_sold(self, client: AsyncClient, seed, actor_headers):
        await create_received_purchase(client, seed, actor_headers)

        response = await client.post(
            f"{API}/inventory/stock/sale",
            json={
                "business_id": seed.business_id,
                "branch_id": seed.main_branch_id,
                "product_id": seed.product_ids["COF-001"],
                "quantity": "4",
                "sale_id": 901,
            },
            headers=actor_headers
        )
        assert response.status_code == 200
        sale = response.json()
        assert Decimal(sale["cost_of_goods_sold"]) == Decimal("20")
        assert Decimal(sale["stock"]["quantity"]) == Decimal("6")
        assert len(sale["draws"]) == 1

        response = await client.post(
            f"{API}/inventory/stock/sale",
            json={
                "business_id": seed.business_id,
                "branch_id": seed.main_branch_id,
                "product_id": seed.product_ids["COF-001"],
                "quantity": "7",
                "sale_id": 902,
            },
            headers=actor_headers
        )
        assert response.status_code == 400

    async def test_transfer_flow(self, client: AsyncClient, seed, actor_headers):
        await create_received_purchase(client, seed, actor_headers)

        response = await client.post(
            f"{API}/inventory/transfer/",
            json={
                "business_id": seed.business_id,
                "from_branch_id": seed.main_branch_id,
                "to_branch_id": seed.warehouse_branch_id,
                "items": [{"product_id": seed.product_ids["COF-001"], "quantity_requested": "6"}],
            },
            headers=actor_headers
        )
        assert response.status_code == 201
        transfer = response.json()
        assert transfer["status"] == "pending"

        response = await client.post(f"{API}/inventory/transfer/{transfer['id']}/receive", json={}, headers=actor_headers)
        assert response.status_code == 409

        response = await client.post(f"{API}/inventory/transfer/{transfer['id']}/send", headers=actor_headers)
        assert response.json()["status"] == "in_transit"

        item_id = transfer["items"][0]["id"]
        response = await client.post(
            f"{API}/inventory/transfer/{transfer['id']}/receive",
            json={"items": [{"item_id": item_id, "quantity_received": "5"}]},
            headers=actor_headers
        )
        assert response.status_code == 200
        transfer = response.json()
        assert transfer["status"] == "completed"
        assert Decimal(transfer["items"][0]["discrepancy"]) == Decimal("1")

        response = await client.get(f"{API}/inventory/stock/summary", params={"business_id": seed.business_id})
        summary = {row["branch_id"]: row for row in response.json()}
        assert Decimal(summary[seed.main_branch_id]["total_quantity"]) == Decimal("4")
        assert Decimal(summary[seed.warehouse_branch_id]["total_quantity"]) == Decimal("5")

    async def test_same_branch_transfer_is_rejected(self, client: AsyncClient, seed, actor_headers):
        response = await client.post(
            f"{API}/inventory/transfer/",
            json={
                "business_id": seed.business_id,
                "from_branch_id": seed.main_branch_id,
                "to_branch_id": seed.main_branch_id,
                "items": [{"product_id": seed.product_ids["COF-001"], "quantity_requested": "1"}],
            },
            headers=actor_headers
        )
        assert response.status_code == 422

    async def test_adjustment_create_and_delete(self, client: AsyncClient, seed, actor_headers):
        await create_received_purchase(client, seed, actor_headers)

        response = await client.post(
            f"{API}/inventory/stock-adjustment/",
            json={
                "business_id": seed.business_id,
                "branch_id": seed.main_branch_id,
                "product_id": seed.product_ids["COF-001"],
                "adjustment_type": "decrease",
                "quantity_adjusted": "3",
                "reason": "damaged",
            },
            headers=actor_headers
        )
        assert response.status_code == 201
        adjustment = response.json()
        assert Decimal(adjustment["after_quantity"]) == Decimal("7")
        assert Decimal(adjustment["cost_impact"]) == Decimal("-15")
        assert adjustment["adjusted_by"] == 7

        response = await client.delete(f"{API}/inventory/stock-adjustment/{adjustment['id']}", headers=actor_headers)
        assert response.status_code == 204

        response = await client.get(f"{API}/inventory/stock-adjustment/{adjustment['id']}")
        assert response.status_code == 404

        response = await client.get(f"{API}/inventory/stock/", params={"business_id": seed.business_id})
        assert Decimal(response.json()[0]["quantity"]) == Decimal("10")
