import os
import sys
import tempfile
from datetime import date
from pathlib import Path

# Settings are read at import time: point them at a throwaway database first
_TMP = tempfile.mkdtemp(prefix="menusales-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP}/test.db"
os.environ["RAW_DATA_PATH"] = os.path.join(_TMP, "objects")
os.environ["SLACK_WEBHOOK_URL"] = ""

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT / "backend") not in sys.path:
    sys.path.insert(0, str(ROOT / "backend"))

import pytest

from menusales.database import Base, SessionLocal, engine, new_id
from menusales.models import MenuGroup, Product, ProductAlly, SalesReport
from menusales.utils.object_store import LocalObjectStore
from menusales.utils.similarity import normalize_name

HEADER = "Product Name,Quantity,Amount"

SCENARIO_ROWS = [
    ("Cappuccino", "1,200", "£3,840.00"),
    ("Unknown Drink X", "50", "120.00"),
]


def csv_bytes(rows, header: str = HEADER) -> bytes:
    lines = [header]
    for row in rows:
        lines.append(",".join(f'"{cell}"' for cell in row))
    return ("\n".join(lines) + "\n").encode("utf-8")


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def store(tmp_path):
    return LocalObjectStore(str(tmp_path / "objects"))


@pytest.fixture
def make_product(db):
    def _make(name, workspace_id="default", **kwargs):
        product = Product(id=kwargs.pop("id", new_id()), workspace_id=workspace_id, name=name, **kwargs)
        db.add(product)
        db.commit()
        return product
    return _make


@pytest.fixture
def make_group(db):
    def _make(label, workspace_id="default", group_id=None):
        group = MenuGroup(id=group_id or new_id(), workspace_id=workspace_id, label=label)
        db.add(group)
        db.commit()
        return group
    return _make


@pytest.fixture
def make_ally(db):
    def _make(sales_name, product_id):
        ally = ProductAlly(
            id=new_id(),
            sales_name=sales_name,
            normalized_name=normalize_name(sales_name),
            product_id=product_id,
        )
        db.add(ally)
        db.commit()
        return ally
    return _make


@pytest.fixture
def make_report(db, store):
    def _make(content: bytes, filename="report.csv", workspace_id="default",
              report_date=date(2024, 3, 15), **kwargs):
        report_id = new_id()
        ext = os.path.splitext(filename)[1]
        path = store.put(f"{workspace_id}/uploads/{report_id}{ext}", content)
        report = SalesReport(
            id=report_id,
            workspace_id=workspace_id,
            report_date=report_date,
            status="uploaded",
            source_file_path=path,
            original_filename=filename,
            product_mapping=kwargs.pop("product_mapping", {}),
            unmapped_products=[],
            **kwargs,
        )
        db.add(report)
        db.commit()
        return report
    return _make
