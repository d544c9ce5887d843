"""
Excel 活頁簿讀寫（含開啟密碼）

功能：
- 使用 msoffcrypto-tool 判斷／解開／加上 Excel 開啟密碼（ECMA-376 Agile）
- 使用 openpyxl 讀取活頁簿並重新輸出
- 輸出內容固定（ZIP 時間戳、文件修改時間不隨執行時間變動），
  同一份內容輸出兩次會得到相同的位元組

輸入：Excel 檔案內容 (bytes) 與密碼
輸出：openpyxl Workbook 物件或輸出後的 bytes

Authors: 楊翔志 & AI Collective
Studio: tranquility-base
"""

import io
import zipfile
from typing import List, Optional

import msoffcrypto
from msoffcrypto.format.ooxml import OOXMLFile
from openpyxl import Workbook, load_workbook
from openpyxl.writer.excel import ExcelWriter

# ZIP 格式可表示的最早時間
ZIP_FIXED_DATE_TIME = (1980, 1, 1, 0, 0, 0)
ZIP_FILE_MODE = 0o600 << 16


class ExcelProtectorError(Exception):
    """本工具所有錯誤的基底類別"""


class WorkbookLoadError(ExcelProtectorError):
    """活頁簿無法開啟（需要密碼、密碼錯誤或檔案損毀）"""


class WorkbookSaveError(ExcelProtectorError):
    """活頁簿無法輸出或加密"""


class WorkbookUnopenableError(ExcelProtectorError):
    """無密碼與指定密碼都無法開啟檔案"""


def _open_office_file(data: bytes) -> "msoffcrypto.base.BaseOfficeFile":
    try:
        return msoffcrypto.OfficeFile(io.BytesIO(data))
    except Exception as e:
        raise WorkbookLoadError(f"不支援的檔案格式，訊息: {e}") from e


def is_encrypted_package(data: bytes) -> bool:
    """檔案內容是否為加密的 Office 容器"""
    return _open_office_file(data).is_encrypted()


def _decrypt_package(office_file, password: str) -> bytes:
    decrypted = io.BytesIO()
    try:
        office_file.load_key(password=password, verify_password=True)
        office_file.decrypt(decrypted)
    except msoffcrypto.exceptions.InvalidKeyError as e:
        raise WorkbookLoadError("密碼錯誤") from e
    except Exception as e:
        raise WorkbookLoadError(f"解密失敗，訊息: {e}") from e
    return decrypted.getvalue()


def load_workbook_bytes(data: bytes, password: Optional[str] = None) -> Workbook:
    """
    由 bytes 開啟活頁簿

    - 未加密：直接以 openpyxl 讀取（若有給密碼則忽略）
    - 已加密：需提供密碼，先以 msoffcrypto 驗證密碼並解密再讀取
    """
    office_file = _open_office_file(data)
    if office_file.is_encrypted():
        if password is None:
            raise WorkbookLoadError("檔案已加密，需要密碼才能開啟")
        data = _decrypt_package(office_file, password)

    try:
        return load_workbook(io.BytesIO(data), rich_text=True)
    except Exception as e:
        raise WorkbookLoadError(f"活頁簿讀取失敗，訊息: {e}") from e


def _normalize_package(package: bytes) -> bytes:
    """重新封裝 ZIP，統一每個項目的時間戳與權限"""
    output = io.BytesIO()
    with zipfile.ZipFile(io.BytesIO(package)) as source, \
            zipfile.ZipFile(output, "w", zipfile.ZIP_DEFLATED, allowZip64=True) as target:
        for info in source.infolist():
            entry = zipfile.ZipInfo(info.filename, date_time=ZIP_FIXED_DATE_TIME)
            entry.compress_type = zipfile.ZIP_DEFLATED
            entry.external_attr = ZIP_FILE_MODE
            target.writestr(entry, source.read(info.filename))
    return output.getvalue()


def _write_package(workbook: Workbook) -> bytes:
    # 不經過 Workbook.save()：save 會把文件修改時間改成現在時間
    buffer = io.BytesIO()
    archive = zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED, allowZip64=True)
    ExcelWriter(workbook, archive).save()
    return _normalize_package(buffer.getvalue())


def save_workbook_bytes(workbook: Workbook, password: Optional[str] = None) -> bytes:
    """
    將活頁簿輸出為 bytes；有指定密碼時以 msoffcrypto 加上開啟密碼
    """
    try:
        package = _write_package(workbook)
    except Exception as e:
        raise WorkbookSaveError(f"活頁簿輸出失敗，訊息: {e}") from e

    if password is None:
        return package

    encrypted = io.BytesIO()
    try:
        OOXMLFile(io.BytesIO(package)).encrypt(password, encrypted)
    except Exception as e:
        raise WorkbookSaveError(f"加密失敗，訊息: {e}") from e
    return encrypted.getvalue()


def sheet_names(data: bytes, password: Optional[str] = None) -> List[str]:
    """依順序列出工作表名稱"""
    return load_workbook_bytes(data, password).sheetnames
