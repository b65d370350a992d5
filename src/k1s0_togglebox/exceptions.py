"""togglebox ライブラリの例外型定義"""

from __future__ import annotations


class ToggleBoxError(Exception):
    """togglebox ライブラリのエラー基底クラス。"""

    def __init__(
        self,
        code: str,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return f"{self.code}: {super().__str__()}"


class ConfigurationError(ToggleBoxError):
    """クライアント構築時の設定エラー。"""


class NetworkError(ToggleBoxError):
    """通信エラー。HTTP ステータスがあれば status_code に保持する。"""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(code, message, cause)
        self.status_code = status_code


class NotFoundError(ToggleBoxError):
    """フラグまたは実験が定義に存在しない。"""


class ToggleBoxErrorCodes:
    """エラーコード定数。"""

    CONFIG_ERROR: str = "CONFIG_ERROR"
    READ_FILE: str = "READ_FILE_ERROR"
    PARSE_YAML: str = "PARSE_YAML_ERROR"
    VALIDATION: str = "VALIDATION_ERROR"
    NETWORK_ERROR: str = "NETWORK_ERROR"
    HTTP_ERROR: str = "HTTP_ERROR"
    INVALID_RESPONSE: str = "INVALID_RESPONSE"
    FLAG_NOT_FOUND: str = "FLAG_NOT_FOUND"
    EXPERIMENT_NOT_FOUND: str = "EXPERIMENT_NOT_FOUND"
