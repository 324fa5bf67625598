"""キャッシュのエラー定義。"""
from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """エラーコード。"""

    INVALID_IMPLEMENTATION = "invalid_implementation"
    BAD_FILE_NAME = "bad_file_name"
    FILE_UNREADABLE = "file_unreadable"
    INVALID_KEY = "invalid_key"


class CacheError(Exception):
    """キャッシュ操作で発生するエラーの基底クラス。"""

    code: ErrorCode

    def __init__(self, message: str, code: Optional[ErrorCode] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"


class InvalidImplementation(CacheError):
    """バックエンドの指定が不正な場合のエラー。"""

    code = ErrorCode.INVALID_IMPLEMENTATION

    def __init__(self, implementation: object):
        super().__init__(f"invalid implementation: {implementation!r}")
        self.implementation = implementation


class BadFileName(CacheError):
    """プール名に使用できない文字が含まれている場合のエラー。"""

    code = ErrorCode.BAD_FILE_NAME

    def __init__(self, name: str):
        super().__init__(f"bad file name: {name}")
        self.name = name


class FileUnreadable(CacheError):
    """キャッシュファイルを読み込めない場合のエラー。"""

    code = ErrorCode.FILE_UNREADABLE

    def __init__(self, path: object):
        super().__init__(f"cannot read file: {path}")
        self.path = path


class InvalidKey(CacheError, TypeError):
    """文字列に変換できないキーが渡された場合のエラー。"""

    code = ErrorCode.INVALID_KEY

    def __init__(self, key: object):
        super().__init__(f"invalid cache item key given: {key!r}")
        self.key = key
