"""キャッシュの設定。"""
import os
from pathlib import Path
from typing import Any, Optional, Union

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator

from cachepool.cache_manager import has_implementation
from cachepool.codec import has_codec
from cachepool.exceptions import InvalidImplementation


class Configuration(BaseModel):
    """キャッシュシステムの設定を保持するクラス。

    ``implementation`` は登録済みのマネージャーの識別子でなければならず、
    生成時と代入時の両方で検証される。
    """

    implementation: str = "filesystem"
    directory: Optional[Path] = None
    default_expiration: int = 0
    serializer: str = "msgpack"

    model_config = ConfigDict(
        validate_assignment=True,
        json_schema_extra={
            "example": {
                "implementation": "filesystem",
                "directory": "/var/cache/myapp",
                "default_expiration": 3600,
                "serializer": "msgpack",
            }
        },
    )

    @field_validator("implementation", mode="before")
    @classmethod
    def check_implementation(cls, value: Any) -> str:
        if not isinstance(value, str) or not has_implementation(value):
            raise InvalidImplementation(value)
        return value

    @field_validator("serializer", mode="before")
    @classmethod
    def check_serializer(cls, value: Any) -> str:
        if not isinstance(value, str) or not has_codec(value):
            raise InvalidImplementation(value)
        return value

    @classmethod
    def from_env(cls, prefix: str = "CACHEPOOL_") -> "Configuration":
        """環境変数（.envファイルを含む）から設定を読み込む。

        Args:
            prefix: 環境変数名のプレフィックス

        Returns:
            設定
        """
        load_dotenv(find_dotenv(usecwd=True))

        values = {}
        for field in ("implementation", "directory", "default_expiration", "serializer"):
            value = os.getenv(f"{prefix}{field.upper()}")
            if value is not None:
                values[field] = value
        return cls(**values)

    def set_implementation(self, implementation: str) -> "Configuration":
        """使用するバックエンドを設定する。

        Raises:
            InvalidImplementation: 未登録のバックエンドの場合
        """
        self.implementation = implementation
        return self

    def get_implementation(self) -> str:
        return self.implementation

    def set_directory(self, directory: Union[str, Path]) -> "Configuration":
        self.directory = Path(directory)
        return self

    def get_directory(self) -> Optional[Path]:
        return self.directory

    def set_default_expiration(self, seconds: int) -> "Configuration":
        """デフォルトの有効期限（秒）を設定する。0は無期限、負の値はそのまま受け付ける。"""
        self.default_expiration = seconds
        return self

    def get_default_expiration(self) -> int:
        return self.default_expiration
