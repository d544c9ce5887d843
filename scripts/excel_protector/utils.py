# -*- coding: utf-8 -*-
"""
工具集：
- 設定檔載入 (yaml)
- 路徑確保、原子寫檔
- 目標 Excel 檔案搜尋（排除 Office 鎖定檔 ~$）
- SHA-256 雜湊、檔案大小格式化

輸入：
- config/excel_protector.yaml（可選）
- 目標資料夾

輸出：
- Settings 設定物件
- 目標檔案清單

Authors: 楊翔志 & AI Collective
Studio: tranquility-base
"""

import hashlib
import logging
import os
import stat
import tempfile
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

logger = logging.getLogger(__name__)

# 路徑設定
PROJECT_ROOT: Path = Path(__file__).resolve().parents[2]
LOGS_DIR: Path = PROJECT_ROOT / "logs"
DEFAULT_CONFIG_PATH: Path = PROJECT_ROOT / "config" / "excel_protector.yaml"

# 批次模式檔案篩選條件
TARGET_EXTENSION = ".xlsx"
LOCK_FILE_PREFIX = "~$"


@dataclass
class Settings:
    """執行設定（預設值可由 yaml 覆寫）"""
    log_dir: Path = LOGS_DIR
    log_level: str = "INFO"
    log_to_file: bool = True
    extension: str = TARGET_EXTENSION
    lock_prefix: str = LOCK_FILE_PREFIX


def _coerce_setting(key: str, value: Any) -> Any:
    """依預設值型態檢查設定值，型態不符時拋出 ValueError"""
    default = getattr(Settings(), key)
    if isinstance(default, Path):
        if isinstance(value, (str, Path)) and str(value).strip():
            return Path(value)
    elif isinstance(default, bool):
        if isinstance(value, bool):
            return value
    elif isinstance(value, str) and value:
        return value
    raise ValueError(f"設定項目 {key} 的值無效：{value!r}")


def load_settings_yaml(yaml_path: Optional[Union[str, Path]] = None) -> Settings:
    """
    載入 yaml 設定檔並套用到預設設定上

    Args:
        yaml_path: 設定檔路徑；未指定時使用 config/excel_protector.yaml（不存在則全部採用預設值）

    Returns:
        Settings 物件
    """
    settings = Settings()
    path = Path(yaml_path) if yaml_path else DEFAULT_CONFIG_PATH

    if not path.exists():
        # 明確指定的設定檔不存在才視為錯誤
        if yaml_path:
            raise FileNotFoundError(f"找不到設定檔：{path}")
        return settings

    with path.open("r", encoding="utf-8") as f:
        try:
            data: Dict[str, Any] = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"設定檔無法解析：{path} - {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"設定檔格式錯誤（應為 key: value 對應）：{path}")

    known_keys = {field.name for field in fields(Settings)}
    for key, value in data.items():
        if key not in known_keys:
            logger.warning(f"忽略未知的設定項目：{key}")
            continue
        setattr(settings, key, _coerce_setting(key, value))

    log_dir = Path(settings.log_dir).expanduser()
    settings.log_dir = log_dir if log_dir.is_absolute() else PROJECT_ROOT / log_dir
    settings.log_level = str(settings.log_level).upper()
    return settings


def ensure_dir(path: Union[str, Path]) -> None:
    """確保目錄存在（支援 Path 或 str）"""
    if isinstance(path, (str, Path)):
        Path(path).mkdir(parents=True, exist_ok=True)
    else:
        raise ValueError(f"無法處理型態: {type(path)}")


def write_bytes_atomic(path: Union[str, Path], data: bytes) -> None:
    """
    以暫存檔寫入後再取代原檔，避免寫到一半中斷時留下損毀的檔案
    """
    path = Path(path)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f"temp_{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        if path.exists():
            # 沿用原檔權限（mkstemp 預設為 0600）
            os.chmod(tmp_name, stat.S_IMODE(path.stat().st_mode))
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def find_target_files(directory: Union[str, Path],
                      extension: str = TARGET_EXTENSION,
                      lock_prefix: str = LOCK_FILE_PREFIX) -> List[Path]:
    """
    列出資料夾第一層中符合副檔名（區分大小寫）且非 Office 鎖定檔的檔案

    Args:
        directory: 目標資料夾
        extension: 副檔名，預設 .xlsx
        lock_prefix: 鎖定檔前綴，預設 ~$

    Returns:
        依檔名排序的絕對路徑清單
    """
    directory = Path(directory).resolve()
    return [
        path for path in sorted(directory.iterdir(), key=lambda p: p.name)
        if path.is_file()
        and path.name.endswith(extension)
        and not path.name.startswith(lock_prefix)
    ]


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def format_size(size: int) -> str:
    """位元組數轉為易讀格式（B / KB / MB）"""
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.2f} MB"
