# -*- coding: utf-8 -*-
"""
Excel 開啟密碼 加密／解密／往返驗證

用途：
    - encrypt：為未加密的 Excel 加上開啟密碼（原地覆寫，已加密則跳過）
    - decrypt：移除 Excel 開啟密碼（原地覆寫，未加密則跳過）
    - verify ：在記憶體中執行 加密→解密，確認內容不會因此損毀（不修改檔案）

判斷檔案是否已加密一律實際嘗試開啟（先無密碼、再用指定密碼），不使用任何快取。

Authors: 楊翔志 & AI Collective
Studio: tranquility-base
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Union

from .codec import (
    WorkbookLoadError,
    WorkbookUnopenableError,
    load_workbook_bytes,
    save_workbook_bytes,
    sheet_names,
)
from .utils import format_size, sha256_hex, write_bytes_atomic

logger = logging.getLogger(__name__)


class ProtectionState(Enum):
    UNPROTECTED = "unprotected"
    PROTECTED = "protected"
    UNOPENABLE = "unopenable"


@dataclass
class VerifyReport:
    """往返驗證結果"""
    file_name: str
    original_size: int
    original_hash: str
    encrypted_size: int
    decrypted_size: int
    decrypted_hash: str
    passthrough_size: int
    passthrough_hash: str
    sheets_original: List[str] = field(default_factory=list)
    sheets_decrypted: List[str] = field(default_factory=list)

    @property
    def passthrough_match(self) -> bool:
        return self.passthrough_hash == self.decrypted_hash

    @property
    def sheets_match(self) -> bool:
        return self.sheets_original == self.sheets_decrypted

    @property
    def size_diff(self) -> int:
        return abs(self.original_size - self.decrypted_size)

    @property
    def size_ratio(self) -> float:
        """原始檔與解密後的大小差（%）"""
        if self.original_size == 0:
            return 0.0
        return self.size_diff / self.original_size * 100


def probe_protection(data: bytes, password: str) -> ProtectionState:
    """
    判斷檔案目前是否需要密碼才能開啟

    1. 無密碼可開啟 → UNPROTECTED
    2. 指定密碼可開啟 → PROTECTED
    3. 兩者皆失敗 → UNOPENABLE（密碼錯誤或檔案損毀）

    只有活頁簿讀取錯誤算是「開啟失敗」，其餘例外直接往上拋。
    """
    try:
        load_workbook_bytes(data)
        return ProtectionState.UNPROTECTED
    except WorkbookLoadError as e:
        logger.debug(f"無密碼開啟失敗：{e}")

    try:
        load_workbook_bytes(data, password)
        return ProtectionState.PROTECTED
    except WorkbookLoadError as e:
        logger.debug(f"指定密碼開啟失敗：{e}")

    return ProtectionState.UNOPENABLE


def _require_openable(data: bytes, password: str) -> ProtectionState:
    state = probe_protection(data, password)
    if state is ProtectionState.UNOPENABLE:
        raise WorkbookUnopenableError("無法開啟檔案（密碼可能錯誤）")
    return state


def encrypt_file(file_path: Union[str, Path], password: str) -> bool:
    """
    為檔案加上開啟密碼並覆寫原檔

    Returns:
        True 表示已加密寫回；False 表示原本就已加密而跳過
    """
    file_path = Path(file_path)
    data = file_path.read_bytes()

    if _require_openable(data, password) is ProtectionState.PROTECTED:
        logger.info(f"  ⏭️  {file_path.name} (已加密，跳過)")
        return False

    workbook = load_workbook_bytes(data)
    write_bytes_atomic(file_path, save_workbook_bytes(workbook, password))

    logger.info(f"  🔒 {file_path.name} → 加密完成")
    return True


def decrypt_file(file_path: Union[str, Path], password: str) -> bool:
    """
    以密碼開啟檔案，移除開啟密碼後覆寫原檔

    Returns:
        True 表示已解密寫回；False 表示原本就未加密而跳過
    """
    file_path = Path(file_path)
    data = file_path.read_bytes()

    if _require_openable(data, password) is ProtectionState.UNPROTECTED:
        logger.info(f"  ⏭️  {file_path.name} (未加密，跳過)")
        return False

    workbook = load_workbook_bytes(data, password)
    write_bytes_atomic(file_path, save_workbook_bytes(workbook))

    logger.info(f"  🔓 {file_path.name} → 解密完成")
    return True


def verify_file(file_path: Union[str, Path], password: str) -> VerifyReport:
    """
    往返驗證：加密→解密後的內容，應與 openpyxl 直接讀寫一次（不加密）的結果完全一致。

    openpyxl 會重建內部 XML，所以與原始檔案不會位元組一致；
    判定標準只看「直通輸出 vs 解密後」的 SHA-256，大小差與工作表名稱僅供參考。
    """
    file_path = Path(file_path)
    logger.info(f"🔍 驗證開始：{file_path.name}")

    # 原始檔案
    original = file_path.read_bytes()
    original_hash = sha256_hex(original)
    logger.info(f"  原始檔案：{format_size(len(original))} (SHA-256: {original_hash[:16]}...)")

    # Step 1: 無密碼讀取 → 加密輸出
    logger.info("  Step 1: 加密中...")
    encrypted = save_workbook_bytes(load_workbook_bytes(original), password)
    logger.info(f"  加密後：{format_size(len(encrypted))}")

    # Step 2: 以密碼讀取加密內容 → 無密碼輸出
    logger.info("  Step 2: 解密中...")
    decrypted = save_workbook_bytes(load_workbook_bytes(encrypted, password))
    decrypted_hash = sha256_hex(decrypted)
    logger.info(f"  解密後：{format_size(len(decrypted))} (SHA-256: {decrypted_hash[:16]}...)")

    # Step 3: 直通輸出（不加密，只經過 openpyxl 讀寫一次）
    passthrough = save_workbook_bytes(load_workbook_bytes(original))
    passthrough_hash = sha256_hex(passthrough)
    logger.info(f"  直通輸出：{format_size(len(passthrough))} (SHA-256: {passthrough_hash[:16]}...)")

    report = VerifyReport(
        file_name=file_path.name,
        original_size=len(original),
        original_hash=original_hash,
        encrypted_size=len(encrypted),
        decrypted_size=len(decrypted),
        decrypted_hash=decrypted_hash,
        passthrough_size=len(passthrough),
        passthrough_hash=passthrough_hash,
    )

    logger.info("  --- 比較結果 ---")
    logger.info(f"  直通輸出 vs 解密後：{'✅ 一致' if report.passthrough_match else '⚠️  不一致'}")
    logger.info(f"  原始 vs 解密後 大小差：{format_size(report.size_diff)} ({report.size_ratio:.2f}%)")

    # Step 4: 工作表結構比較
    logger.info("  --- 工作表結構比較 ---")
    report.sheets_original = sheet_names(original)
    report.sheets_decrypted = sheet_names(decrypted)
    logger.info(f"  原始工作表數：{len(report.sheets_original)} [{', '.join(report.sheets_original)}]")
    logger.info(f"  解密工作表數：{len(report.sheets_decrypted)} [{', '.join(report.sheets_decrypted)}]")
    logger.info(f"  工作表結構：{'✅ 一致' if report.sheets_match else '❌ 不一致'}")

    # 最終判定
    if report.passthrough_match:
        logger.info("  ✅ 驗證成功：加密→解密後內容保持一致")
    else:
        logger.warning("  ⚠️  驗證注意：直通輸出與解密後的雜湊不一致")
    return report
