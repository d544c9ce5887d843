# -*- coding: utf-8 -*-
"""
Excel 開啟密碼 批次加密／解密／往返驗證 主程式

使用：
    excel-protector encrypt <密碼> <檔案或資料夾>
    excel-protector decrypt <密碼> <檔案或資料夾>
    excel-protector verify  <密碼> <檔案或資料夾>

例：
    excel-protector encrypt 1234 "Demo New.xlsx"
    excel-protector decrypt 1234 ./xlsx_folder/
    excel-protector verify  1234 "Demo New.xlsx"    ← 加密→解密 往返驗證

流程：
    1. 解析參數，目標路徑轉為絕對路徑並確認存在
    2. 目標為資料夾：處理第一層所有 .xlsx（排除 ~$ 鎖定檔），單檔失敗不中斷，最後輸出成功／失敗數
    3. 目標為單一檔案：直接處理，失敗時輸出 Error 並以狀態碼 1 結束

輸出：
- 控制台即時進度
- logs/excel_protector_*.log

Authors: 楊翔志 & AI Collective
Studio: tranquility-base
"""

import argparse
import logging
import sys
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .protector import decrypt_file, encrypt_file, verify_file
from .utils import Settings, ensure_dir, find_target_files, load_settings_yaml

logger = logging.getLogger(__name__)

OPERATIONS: Dict[str, Callable] = {
    "encrypt": encrypt_file,
    "decrypt": decrypt_file,
    "verify": verify_file,
}

OPERATION_LABELS = {
    "encrypt": "加密",
    "decrypt": "解密",
    "verify": "驗證",
}

USAGE_EXAMPLES = """使用方式:
  加密:  excel-protector encrypt <密碼> <檔案或資料夾>
  解密:  excel-protector decrypt <密碼> <檔案或資料夾>
  驗證:  excel-protector verify  <密碼> <檔案>
"""


@dataclass
class BatchResult:
    success: int = 0
    failed: int = 0
    failures: List[Tuple[str, str]] = field(default_factory=list)


class UsageArgumentParser(argparse.ArgumentParser):
    """參數錯誤時印出使用方式並以狀態碼 1 結束"""

    def error(self, message):
        self.print_usage(sys.stderr)
        sys.stderr.write(USAGE_EXAMPLES)
        self.exit(1, f"錯誤：{message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = UsageArgumentParser(
        prog="excel-protector",
        description="Excel 開啟密碼 批次加密／解密／往返驗證",
        epilog=USAGE_EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("command", choices=list(OPERATIONS), help="要執行的操作")
    parser.add_argument("password", help="開啟密碼")
    parser.add_argument("target", help="目標 .xlsx 檔案或資料夾")
    parser.add_argument("--config", help="yaml 設定檔路徑 (預設: config/excel_protector.yaml)")
    parser.add_argument("--log-dir", help="log 輸出目錄 (預設: logs/)")
    parser.add_argument("--no-log-file", action="store_true", help="只輸出到控制台，不寫 log 檔")
    parser.add_argument("-v", "--verbose", action="store_true", help="顯示除錯訊息")
    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.password:
        parser.error("密碼不可為空白")
    return args


def setup_logging(settings: Settings) -> logging.Logger:
    """設定日誌（控制台＋log 檔）"""
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.log_to_file:
        ensure_dir(settings.log_dir)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_path = Path(settings.log_dir) / f"excel_protector_{timestamp}.log"
        handlers.insert(0, logging.FileHandler(log_path, encoding="utf-8"))

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=handlers,
        force=True,
    )
    return logging.getLogger(__name__)


def resolve_target(raw_path: str) -> Optional[Path]:
    """轉為絕對路徑；不存在時回傳 None"""
    resolved = Path(raw_path).expanduser().resolve()
    if not resolved.exists():
        return None
    return resolved


def run_batch(directory: Path, command: str, password: str, settings: Settings) -> BatchResult:
    """
    批次處理資料夾內的 .xlsx，單一檔案失敗只記錄並繼續下一個
    """
    result = BatchResult()
    files = find_target_files(directory, settings.extension, settings.lock_prefix)

    if not files:
        logger.info(f"找不到目標 {settings.extension} 檔案")
        return result

    operation = OPERATIONS[command]
    logger.info(f"共 {len(files)} 個檔案，開始{OPERATION_LABELS[command]}...")

    for file_path in files:
        try:
            operation(file_path, password)
            result.success += 1
        except Exception as e:
            logger.error(f"  ❌ {file_path.name}: {e}")
            result.failed += 1
            result.failures.append((file_path.name, str(e)))

    logger.info(f"完成：{result.success} 個成功，{result.failed} 個失敗")
    return result


def run_single(file_path: Path, command: str, password: str) -> None:
    """單一檔案：失敗直接往上拋"""
    OPERATIONS[command](file_path, password)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)

    try:
        settings = load_settings_yaml(args.config)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.log_dir:
        settings.log_dir = Path(args.log_dir)
    if args.no_log_file:
        settings.log_to_file = False
    if args.verbose:
        settings.log_level = "DEBUG"
    setup_logging(settings)

    target = resolve_target(args.target)
    if target is None:
        logger.error(f"找不到目標：{Path(args.target).expanduser().resolve()}")
        return 1

    if target.is_dir():
        run_batch(target, args.command, args.password, settings)
        return 0

    try:
        run_single(target, args.command, args.password)
    except Exception as e:
        logger.error(f"處理失敗：{target.name} - {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
