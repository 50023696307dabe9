# backend/notifier.py
import logging
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from errors import NotificationError

logger = logging.getLogger(__name__)


class ChangeNotifier:
    """SNS への通知。失敗してもログに残すだけで、呼び出し元には影響させない。"""

    def __init__(self, sns, topic_arn: str):
        self.sns = sns
        self.topic_arn = topic_arn

    @classmethod
    def create(cls, topic_arn: str, region: Optional[str] = None) -> "ChangeNotifier":
        return cls(boto3.client("sns", region_name=region), topic_arn)

    def publish(self, message: str, subject: Optional[str] = None) -> Optional[str]:
        if not self.topic_arn:
            logger.warning("notification topic is not configured; dropped: %s", message)
            return None

        kwargs = {"TopicArn": self.topic_arn, "Message": message}
        if subject:
            kwargs["Subject"] = subject
        try:
            resp = self.sns.publish(**kwargs)
        except (ClientError, BotoCoreError) as e:
            err = NotificationError(f"publish to {self.topic_arn} failed: {e}")
            logger.exception("%s", err)
            return None

        message_id = resp.get("MessageId")
        logger.info("SNS notification sent: %s", message_id)
        return message_id
