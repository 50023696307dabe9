# backend/expiry.py
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from config import Settings
from errors import StorageWriteError
from events import ExpiryMessage
from notifier import ChangeNotifier
from tasks import STATUS_EXPIRED

logger = logging.getLogger(__name__)


def format_deadline(deadline_ms: Optional[int]) -> str:
    if deadline_ms is None:
        return "-"
    return datetime.fromtimestamp(deadline_ms / 1000, tz=timezone.utc).isoformat()


class ExpiryWorker:
    """
    遅延キューから届いたメッセージでタスクを EXPIRED にして通知する。

    同じメッセージが何度届いても結果は EXPIRED のまま（status の条件は付けない）。
    既に削除されたタスクは作り直さず、通知も出さずに読み飛ばす。
    """

    def __init__(self, table, notifier: ChangeNotifier):
        self.table = table
        self.notifier = notifier

    @classmethod
    def from_settings(cls, settings: Settings) -> "ExpiryWorker":
        dynamodb = boto3.resource("dynamodb", region_name=settings.region)
        return cls(
            dynamodb.Table(settings.table_name),
            ChangeNotifier.create(settings.topic_arn, settings.region),
        )

    def expire(self, message: ExpiryMessage) -> bool:
        """
        EXPIRED にできたら True。削除済みのタスクなら何もせず False
        （update_item はキーが無いと作ってしまうので attribute_exists で防ぐ）。
        """
        try:
            self.table.update_item(
                Key={"owner_id": message.owner_id, "task_id": message.task_id},
                UpdateExpression="SET #s = :expired",
                ConditionExpression="attribute_exists(task_id)",
                ExpressionAttributeNames={"#s": "status"},
                ExpressionAttributeValues={":expired": STATUS_EXPIRED},
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                logger.info("task %s was deleted; skip expiry", message.task_id)
                return False
            raise StorageWriteError(f"failed to expire task {message.task_id}") from e
        except BotoCoreError as e:
            raise StorageWriteError(f"failed to expire task {message.task_id}") from e

        # 通知はベストエフォート。結果は見ない
        self.notifier.publish(
            f"Task {message.task_id} has expired! Due: {format_deadline(message.deadline)}",
            subject="Task Expired",
        )
        logger.info("Task marked expired and notification sent: %s", message.task_id)
        return True

    def process(self, records: Iterable[Dict[str, Any]]) -> Dict[str, int]:
        counts = {"expired": 0, "skipped": 0, "failed": 0}
        for rec in records:
            try:
                if self.expire(ExpiryMessage.from_body(rec.get("body"))):
                    counts["expired"] += 1
                else:
                    counts["skipped"] += 1
            except Exception:
                counts["failed"] += 1
                logger.exception("Error in expiry worker for message %s", rec.get("messageId"))
        return counts
