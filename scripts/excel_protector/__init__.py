"""Excel 開啟密碼 批次加密／解密／往返驗證工具"""

__version__ = "1.0.0"
