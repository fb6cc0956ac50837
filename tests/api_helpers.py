"""Request helpers shared by the API tests."""
import uuid
from typing import Dict, Iterable, Optional

PO_URL = "/api/v1/procurement/purchase-orders"
GRN_URL = "/api/v1/procurement/goods-receipts"
INVOICE_URL = "/api/v1/procurement/purchase-invoices"
PAYMENT_URL = "/api/v1/procurement/supplier-payments"

ORDERED_PATH = ("pending", "approved", "ordered")
COMPLETED_PATH = ("inspected", "approved", "completed")


async def create_po(
    client,
    quantity: int = 100,
    unit_price: str = "10.00",
    statuses: Iterable[str] = ORDERED_PATH,
    warehouse_id: Optional[uuid.UUID] = None,
) -> Dict:
    response = await client.post(PO_URL, json={
        "supplier_id": str(uuid.uuid4()),
        "warehouse_id": str(warehouse_id or uuid.uuid4()),
        "items": [{
            "product_id": str(uuid.uuid4()),
            "variant_id": str(uuid.uuid4()),
            "quantity": quantity,
            "unit_price": unit_price,
        }],
    })
    assert response.status_code == 201, response.text
    po = response.json()["data"]
    for status in statuses:
        response = await client.patch(f"{PO_URL}/{po['id']}", json={"status": status})
        assert response.status_code == 200, response.text
        po = response.json()["data"]
    return po


async def create_grn(client, po: Dict, quantity: int, accepted: Optional[int] = None):
    line = {"purchase_order_item_id": po["items"][0]["id"], "quantity_received": quantity}
    if accepted is not None:
        line["quantity_accepted"] = accepted
    return await client.post(GRN_URL, json={"purchase_order_id": po["id"], "items": [line]})


async def move_grn(client, grn_id: str, statuses: Iterable[str] = COMPLETED_PATH) -> Dict:
    for status in statuses:
        response = await client.patch(f"{GRN_URL}/{grn_id}", json={"status": status})
        assert response.status_code == 200, response.text
    return response.json()["data"]


async def completed_grn(client, po: Dict, quantity: int, accepted: Optional[int] = None) -> Dict:
    response = await create_grn(client, po, quantity, accepted)
    assert response.status_code == 201, response.text
    return await move_grn(client, response.json()["data"]["id"])


async def create_invoice(client, grn: Dict, **fields) -> Dict:
    response = await client.post(INVOICE_URL, json={"goods_receipt_id": grn["id"], **fields})
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def create_payment(client, invoice: Dict, amount: str):
    return await client.post(PAYMENT_URL, json={
        "purchase_invoice_id": invoice["id"],
        "amount": amount,
        "payment_method": "bank_transfer",
    })


async def completed_payment(client, invoice: Dict, amount: str) -> Dict:
    response = await create_payment(client, invoice, amount)
    assert response.status_code == 201, response.text
    payment_id = response.json()["data"]["id"]
    for status in ("processing", "completed"):
        response = await client.patch(f"{PAYMENT_URL}/{payment_id}", json={"status": status})
        assert response.status_code == 200, response.text
    return response.json()["data"]


def error_message(response) -> str:
    body = response.json()
    assert body["success"] is False
    return body["error"]["message"]
