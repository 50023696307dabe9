# backend/logging_setup.py
import logging
import sys

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# boto 系はデバッグ時以外うるさい
_NOISY = ("boto3", "botocore", "urllib3")


def setup_logging(level: str = "INFO") -> None:
    """
    ルートロガーを設定する。コールドスタート時に一度だけ呼ぶ。
    Lambda ランタイムが先に付けたハンドラは外して重複出力を防ぐ。
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    for h in list(root.handlers):
        root.removeHandler(h)

    ch = logging.StreamHandler(sys.stdout)
    ch.setFormatter(logging.Formatter(_FORMAT))
    root.addHandler(ch)

    for name in _NOISY:
        logging.getLogger(name).setLevel(logging.WARNING)
