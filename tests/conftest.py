import io
import logging
import os
import sys
from pathlib import Path
from typing import Callable, Sequence

import pytest


def pytest_configure():
    # Ensure `scripts/` is importable as top-level for `excel_protector.*` imports
    root = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
    scripts_path = os.path.join(root, "scripts")
    if scripts_path not in sys.path:
        sys.path.insert(0, scripts_path)


@pytest.fixture(autouse=True)
def _reset_root_handlers():
    yield
    # main() installs plain StreamHandler/FileHandler on the root logger
    root = logging.getLogger()
    for handler in list(root.handlers):
        if type(handler) in (logging.StreamHandler, logging.FileHandler):
            root.removeHandler(handler)
            handler.close()


@pytest.fixture
def make_workbook() -> Callable[..., Path]:
    """Write a small plain .xlsx and return its path."""
    from openpyxl import Workbook

    def _make(path: Path, sheets: Sequence[str] = ("Sheet1",)) -> Path:
        wb = Workbook()
        first = wb.active
        first.title = sheets[0]
        for name in sheets[1:]:
            wb.create_sheet(name)
        for index, ws in enumerate(wb.worksheets):
            ws["A1"] = "斜面"
            ws["B1"] = index
            ws.append(["row", 1.5, "=B1*2"])
        wb.save(path)
        return path

    return _make


@pytest.fixture
def encrypt_with() -> Callable[[Path, str], Path]:
    """Encrypt a plain .xlsx in place directly through msoffcrypto."""
    from msoffcrypto.format.ooxml import OOXMLFile

    def _encrypt(path: Path, password: str) -> Path:
        out = io.BytesIO()
        with path.open("rb") as f:
            OOXMLFile(f).encrypt(password, out)
        path.write_bytes(out.getvalue())
        return path

    return _encrypt
