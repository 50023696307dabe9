# backend/relay.py
import logging
import time
from typing import Any, Callable, Dict, Iterable, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from errors import RelayProcessingError
from events import ChangeEvent, ExpiryMessage, to_int

logger = logging.getLogger(__name__)

MAX_DELAY_SECONDS = 900  # SQS の DelaySeconds 上限 (15分)
_WATCHED = ("INSERT", "MODIFY")


def compute_delay_seconds(deadline_ms: int, now: Optional[float] = None) -> int:
    """
    deadline までの秒数を 0〜900 に丸めたもの。
    もう過ぎていれば 0（すぐ配信）。
    """
    if now is None:
        now = time.time()
    diff = deadline_ms // 1000 - int(now)
    return max(0, min(diff, MAX_DELAY_SECONDS))


class ChangeCaptureRelay:
    """
    DynamoDB Streams の INSERT / MODIFY を見て、期限切れ処理用の
    遅延メッセージを SQS に積む。

    更新のたびに同じタスクのメッセージがもう一度積まれるが、
    ExpiryWorker 側が冪等なのでそのままにしている。
    """

    def __init__(self, sqs, queue_url: str, clock: Callable[[], float] = time.time):
        self.sqs = sqs
        self.queue_url = queue_url
        self.clock = clock

    @classmethod
    def create(cls, queue_url: str, region: Optional[str] = None) -> "ChangeCaptureRelay":
        return cls(boto3.client("sqs", region_name=region), queue_url)

    def handle_event(self, change: ChangeEvent) -> bool:
        if change.event_kind not in _WATCHED or not change.after_image:
            return False

        image = change.after_image
        try:
            deadline = to_int(image.get("deadline"))
        except ValueError as e:
            raise RelayProcessingError(str(e)) from e
        if deadline is None:
            # deadline の無いタスクは自動では期限切れにならない
            return False

        task_id = image.get("task_id")
        owner_id = image.get("owner_id")
        if not task_id or not owner_id:
            raise RelayProcessingError(f"image without task key: {image!r}")

        message = ExpiryMessage(task_id=task_id, owner_id=owner_id, deadline=deadline)
        delay = compute_delay_seconds(deadline, now=self.clock())
        try:
            self.sqs.send_message(
                QueueUrl=self.queue_url,
                MessageBody=message.to_body(),
                DelaySeconds=delay,
            )
        except (ClientError, BotoCoreError) as e:
            raise RelayProcessingError(f"send_message failed for task {task_id}") from e

        logger.info("queued expiry for task %s (delay=%ss)", task_id, delay)
        return True

    def process(self, records: Iterable[Dict[str, Any]]) -> Dict[str, int]:
        counts = {"enqueued": 0, "skipped": 0, "failed": 0}
        for rec in records:
            try:
                change = ChangeEvent.from_stream_record(rec)
                if self.handle_event(change):
                    counts["enqueued"] += 1
                else:
                    counts["skipped"] += 1
            except Exception:
                # 1件の失敗でバッチ全体を止めない。再試行もしない
                counts["failed"] += 1
                logger.exception("Error processing stream record %s", rec.get("eventID"))
        return counts
