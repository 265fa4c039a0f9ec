import copy
import json
from pathlib import Path

import pytest

from ublconv.model import Invoice

DATA_DIR = Path(__file__).parent / "data"


def load_invoice_dict(name: str = "invoice-standard.json") -> dict:
    return json.loads((DATA_DIR / name).read_text(encoding="utf-8"))


@pytest.fixture
def invoice_dict():
    return copy.deepcopy(load_invoice_dict())


@pytest.fixture
def invoice(invoice_dict):
    return Invoice.from_dict(invoice_dict)
