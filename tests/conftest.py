import sys
from io import BytesIO
from pathlib import Path

import openpyxl
import pytest


def pytest_configure():
    # Ensure the repo root is on sys.path so `import teams_admin` works without an editable install.
    root = str(Path(__file__).resolve().parent.parent)
    if root not in sys.path:
        sys.path.insert(0, root)


def build_workbook(rows) -> bytes:
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    for row in rows:
        sheet.append(list(row))
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def workbook_bytes():
    return build_workbook
