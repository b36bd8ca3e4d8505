import pytest
from fastapi.testclient import TestClient

from conftest import SCENARIO_ROWS, csv_bytes
from menusales.main import app


@pytest.fixture
def client(db):
    # Background runs open their own SessionLocal on the same test database
    with TestClient(app) as c:
        yield c


def _upload(client, content, filename="till.csv", **form):
    data = {"report_date": "2024-03-15", **form}
    return client.post(
        "/api/reports",
        files={"file": (filename, content, "text/csv")},
        data=data,
    )


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


# ─── upload + read ────────────────────────────────────────────────────────────

def test_upload_creates_report_and_processes_in_background(client, make_product):
    make_product("Latte", id="L")
    resp = _upload(client, csv_bytes([("Latte", "3", "9.00")]))
    assert resp.status_code == 201
    created = resp.json()
    assert created["status"] == "uploaded"
    assert created["period_key"] == "2024-03"
    assert created["column_mapping"] == {
        "productName": "Product Name", "quantity": "Quantity", "amount": "Amount",
    }

    report = client.get(f"/api/reports/{created['id']}").json()
    assert report["status"] == "processed"
    assert report["total_amount"] == pytest.approx(9.0)

    lines = client.get(f"/api/reports/{created['id']}/lines").json()
    assert [(l["product_id"], l["quantity"], l["amount"]) for l in lines] == [("L", 3.0, 9.0)]


def test_upload_with_custom_columns(client, make_product):
    make_product("Latte", id="L")
    content = csv_bytes([("Latte", "2", "5.00")], header="Item,Sold,Net")
    resp = _upload(
        client, content,
        product_name_column="Item", quantity_column="Sold", amount_column="Net",
    )
    report = client.get(f"/api/reports/{resp.json()['id']}").json()
    assert report["status"] == "processed"
    assert report["total_quantity"] == pytest.approx(2.0)


def test_upload_rejects_unknown_extension(client):
    resp = _upload(client, b"%PDF-1.4", filename="report.pdf")
    assert resp.status_code == 422
    assert ".csv" in resp.json()["detail"]["allowed"]


def test_upload_rejects_bad_period_key(client):
    resp = _upload(client, csv_bytes(SCENARIO_ROWS), period_key="March")
    assert resp.status_code == 422


def test_missing_report_is_404(client):
    assert client.get("/api/reports/nope").status_code == 404
    assert client.patch("/api/reports/nope", json={"status": "uploaded"}).status_code == 404


def test_list_filters_by_status(client, make_product):
    make_product("Cappuccino", id="P1")
    needs = _upload(client, csv_bytes(SCENARIO_ROWS)).json()
    done = _upload(client, csv_bytes([("Cappuccino", "1", "3.00")])).json()

    ids = [r["id"] for r in client.get("/api/reports", params={"status": "needs_mapping"}).json()]
    assert ids == [needs["id"]]
    ids = {r["id"] for r in client.get("/api/reports").json()}
    assert ids == {needs["id"], done["id"]}
    assert client.get("/api/reports", params={"workspace_id": "elsewhere"}).json() == []


# ─── operator edits ───────────────────────────────────────────────────────────

def test_patch_mapping_and_status_reprocesses(client, make_product):
    make_product("Cappuccino", id="P1")
    make_product("House Lemonade", id="P2")
    report = _upload(client, csv_bytes(SCENARIO_ROWS)).json()
    report = client.get(f"/api/reports/{report['id']}").json()
    assert report["status"] == "needs_mapping"
    assert report["unmapped_products"] == ["Unknown Drink X"]

    resp = client.patch(
        f"/api/reports/{report['id']}",
        json={"product_mapping": {"Unknown Drink X": "P2"}, "status": "uploaded"},
    )
    assert resp.status_code == 200
    assert resp.json()["triggered"] is True

    report = client.get(f"/api/reports/{report['id']}").json()
    assert report["status"] == "processed"
    assert report["total_amount"] == pytest.approx(3960.0)
    assert report["total_quantity"] == pytest.approx(1250.0)


def test_patch_without_status_change_does_not_trigger(client, make_product):
    make_product("Latte", id="L")
    report = _upload(client, csv_bytes([("Latte", "1", "3.00")])).json()

    resp = client.patch(f"/api/reports/{report['id']}", json={"product_mapping": {"x": "L"}})
    assert resp.json()["triggered"] is False
    assert resp.json()["report"]["status"] == "processed"

    resp = client.patch(f"/api/reports/{report['id']}", json={"status": "processed"})
    assert resp.json()["triggered"] is False


def test_patch_rejects_unknown_status(client, make_product):
    make_product("Latte", id="L")
    report = _upload(client, csv_bytes([("Latte", "1", "3.00")])).json()
    resp = client.patch(f"/api/reports/{report['id']}", json={"status": "done"})
    assert resp.status_code == 422


# ─── matching assistance ──────────────────────────────────────────────────────

def _needs_mapping_report(client, make_product):
    make_product("Cappuccino", id="P1")
    make_product("Coke / Diet / Zero (330ml)", id="COKE")
    rows = [("Cappuccino", "2", "6.00"), ("DIET COKE 330 ml", "1", "2.50")]
    report = _upload(client, csv_bytes(rows)).json()
    report = client.get(f"/api/reports/{report['id']}").json()
    assert report["status"] == "needs_mapping"
    return report


def test_suggestions_for_unmapped_names(client, make_product):
    report = _needs_mapping_report(client, make_product)
    suggestions = client.get(f"/api/reports/{report['id']}/suggestions").json()
    assert [s["raw_name"] for s in suggestions] == ["DIET COKE 330 ml"]
    top = suggestions[0]["candidates"][0]
    assert (top["product_id"], top["reason"], top["score"]) == ("COKE", "alias", 1.0)

    one = client.get(f"/api/reports/{report['id']}/suggestions", params={"name": "Capuccino"}).json()
    assert one[0]["raw_name"] == "Capuccino"


def test_auto_match_maps_and_reprocesses(client, make_product):
    report = _needs_mapping_report(client, make_product)

    resp = client.post(f"/api/reports/{report['id']}/auto-match", json={"threshold": 0.9})
    body = resp.json()
    assert resp.status_code == 200
    assert body["mapped"]["DIET COKE 330 ml"]["product_id"] == "COKE"
    assert body["remaining"] == []
    assert body["triggered"] is True

    report = client.get(f"/api/reports/{report['id']}").json()
    assert report["status"] == "processed"
    assert report["product_mapping"] == {"DIET COKE 330 ml": "COKE"}
    assert report["total_amount"] == pytest.approx(8.5)


def test_auto_match_with_nothing_confident_changes_nothing(client, make_product):
    make_product("Cappuccino", id="P1")
    report = _upload(client, csv_bytes(SCENARIO_ROWS)).json()

    body = client.post(f"/api/reports/{report['id']}/auto-match").json()
    assert body["mapped"] == {}
    assert body["remaining"] == ["Unknown Drink X"]
    assert body["triggered"] is False
    assert body["threshold"] == pytest.approx(0.8)
    assert client.get(f"/api/reports/{report['id']}").json()["status"] == "needs_mapping"


def test_auto_match_threshold_validated(client, make_product):
    report = _needs_mapping_report(client, make_product)
    resp = client.post(f"/api/reports/{report['id']}/auto-match", json={"threshold": 1.5})
    assert resp.status_code == 422


# ─── metrics ──────────────────────────────────────────────────────────────────

def test_metrics_endpoints(client, make_product, make_group):
    hot = make_group("Hot Drinks", group_id="hot")
    make_product("Cappuccino", id="P1", category_id=hot.id)
    make_product("House Lemonade", id="P2")
    report = _upload(client, csv_bytes(SCENARIO_ROWS)).json()
    client.patch(
        f"/api/reports/{report['id']}",
        json={"product_mapping": {"Unknown Drink X": "P2"}, "status": "uploaded"},
    )

    products = client.get("/api/metrics/products", params={"period_key": "2024-03"}).json()
    by_id = {p["product_id"]: p for p in products}
    assert by_id["P1"]["id"] == "monthlyProductSummary_2024-03_P1"
    assert by_id["P1"]["total_amount"] == pytest.approx(3840.0)
    assert by_id["P2"]["total_qty"] == pytest.approx(50.0)

    categories = client.get("/api/metrics/categories", params={"period_key": "2024-03"}).json()
    shares = {c["category_id"]: c["share_of_total"] for c in categories}
    assert shares["hot"] == pytest.approx(3840.0 / 3960.0)
    assert sum(shares.values()) == pytest.approx(1.0)

    assert client.get("/api/metrics/products", params={"period_key": "2024-04"}).json() == []
    assert client.get("/api/metrics/products", params={"period_key": "03-2024"}).status_code == 422
