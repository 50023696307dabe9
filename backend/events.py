# backend/events.py
"""
Lambda に届くトリガーの種類ごとの型。

1つの関数に複数のトリガー（API Gateway / DynamoDB Streams / SQS / Cognito）が
繋がるので、まず classify() で種類を決めてから、種類ごとのハンドラへ渡す。
"""
import json
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Optional

from boto3.dynamodb.types import TypeDeserializer

from errors import InvalidMessage

_deserializer = TypeDeserializer()


class TriggerKind(Enum):
    HTTP = "http"
    STREAM = "stream"
    QUEUE = "queue"
    POST_AUTH = "post_auth"
    UNKNOWN = "unknown"


def classify(event: Any) -> TriggerKind:
    if not isinstance(event, dict):
        return TriggerKind.UNKNOWN

    records = event.get("Records") or []
    if records and isinstance(records[0], dict):
        source = records[0].get("eventSource") or records[0].get("EventSource")
        if source == "aws:dynamodb":
            return TriggerKind.STREAM
        if source == "aws:sqs":
            return TriggerKind.QUEUE

    if str(event.get("triggerSource") or "").startswith("PostAuthentication"):
        return TriggerKind.POST_AUTH

    rc = event.get("requestContext") or {}
    # REST API(v1) は httpMethod, HTTP API(v2) は requestContext.http
    if "httpMethod" in event or (isinstance(rc, dict) and "http" in rc):
        return TriggerKind.HTTP

    return TriggerKind.UNKNOWN


def to_int(v: Any) -> Optional[int]:
    """DynamoDB の Decimal や文字列の数値を int にする。None はそのまま。"""
    if v is None:
        return None
    if isinstance(v, bool):
        raise ValueError(f"not a number: {v!r}")
    if isinstance(v, int):
        return v
    try:
        return int(Decimal(str(v)))
    except (InvalidOperation, ValueError, OverflowError) as e:
        raise ValueError(f"not a number: {v!r}") from e


@dataclass(frozen=True)
class ChangeEvent:
    """DynamoDB Streams の1レコード。使うのは NewImage だけ。"""

    event_kind: str
    after_image: Optional[Dict[str, Any]]

    @classmethod
    def from_stream_record(cls, record: Dict[str, Any]) -> "ChangeEvent":
        new_image = (record.get("dynamodb") or {}).get("NewImage")
        image = None
        if new_image:
            image = {k: _deserializer.deserialize(v) for k, v in new_image.items()}
        return cls(event_kind=record.get("eventName", ""), after_image=image)


@dataclass(frozen=True)
class ExpiryMessage:
    task_id: str
    owner_id: str
    deadline: Optional[int] = None  # ms

    def to_body(self) -> str:
        return json.dumps(
            {"task_id": self.task_id, "owner_id": self.owner_id, "deadline": self.deadline}
        )

    @classmethod
    def from_body(cls, body: str) -> "ExpiryMessage":
        try:
            payload = json.loads(body)
        except (TypeError, ValueError) as e:
            raise InvalidMessage(f"body is not JSON: {body!r}") from e
        if not isinstance(payload, dict):
            raise InvalidMessage(f"body is not an object: {body!r}")

        # 旧フォーマット (taskId / userId) も受ける
        task_id = payload.get("task_id") or payload.get("taskId")
        owner_id = (
            payload.get("owner_id") or payload.get("user_id") or payload.get("userId")
        )
        if not task_id or not owner_id:
            raise InvalidMessage(f"missing task_id/owner_id: {body!r}")

        try:
            deadline = to_int(payload.get("deadline"))
        except ValueError as e:
            raise InvalidMessage(str(e)) from e
        return cls(task_id=str(task_id), owner_id=str(owner_id), deadline=deadline)


@dataclass(frozen=True)
class AuthEvent:
    username: str
    email: Optional[str] = None

    @classmethod
    def from_cognito(cls, event: Dict[str, Any]) -> "AuthEvent":
        attrs = (event.get("request") or {}).get("userAttributes") or {}
        return cls(username=event.get("userName", ""), email=attrs.get("email"))
