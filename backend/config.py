# backend/config.py
import os
from dataclasses import dataclass, field
from typing import List, Optional


def _first_env(*names: str, default: Optional[str] = None) -> Optional[str]:
    for n in names:
        v = os.environ.get(n)
        if v is not None and v.strip() != "":
            return v.strip()
    return default


def _env_list(name: str, default: List[str]) -> List[str]:
    # 例: "http://localhost:5500,https://dvj7er4qsb0m.cloudfront.net"
    raw = os.environ.get(name, "")
    parts = [s.strip() for s in raw.split(",") if s.strip()]
    return parts or list(default)


@dataclass(frozen=True)
class Settings:
    """
    各ハンドラが使う設定。起動時に一度だけ環境変数から組み立てて、
    コンポーネントへ明示的に渡す（モジュール内で os.environ を読まない）。
    """

    table_name: str = "todo"
    queue_url: str = ""
    topic_arn: str = ""
    signin_topic_arn: str = ""
    allowed_origins: List[str] = field(default_factory=lambda: ["*"])
    default_owner: str = "anonymous"
    region: Optional[str] = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        topic_arn = _first_env("NOTIFICATION_TOPIC_ARN", "SNS_TOPIC_ARN", default="")
        return cls(
            table_name=_first_env("TABLE_NAME", default="todo"),
            queue_url=_first_env("TASK_EXPIRY_QUEUE_URL", "EXPIRY_QUEUE_URL", default=""),
            topic_arn=topic_arn,
            signin_topic_arn=_first_env("TOPIC_ARN", default=topic_arn),
            allowed_origins=_env_list("ALLOWED_ORIGINS", ["*"]),
            default_owner=_first_env("USER_ID", default="anonymous"),
            region=_first_env("AWS_REGION", "AWS_DEFAULT_REGION"),
            log_level=_first_env("LOG_LEVEL", default="INFO").upper(),
        )
