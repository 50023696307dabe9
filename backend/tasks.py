# backend/tasks.py
import logging
import time
import uuid
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, List, Optional

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import BotoCoreError, ClientError

from config import Settings
from errors import NoFieldsProvided, NotFound, StorageReadError, StorageWriteError
from events import to_int

logger = logging.getLogger(__name__)

# ==== ライフサイクル ====
STATUS_PENDING = "Pending"
STATUS_EXPIRED = "EXPIRED"
TASK_TTL_MS = 300_000  # 作成から5分で期限切れ

_STORAGE_ERRORS = (ClientError, BotoCoreError)


@dataclass
class Task:
    owner_id: str
    task_id: str
    description: str = ""
    status: str = STATUS_PENDING
    deadline: Optional[int] = None  # ms
    expire_at: Optional[int] = None  # s (DynamoDB TTL 用)

    def to_item(self) -> Dict[str, Any]:
        item = {
            "owner_id": self.owner_id,
            "task_id": self.task_id,
            "description": self.description,
            "status": self.status,
        }
        if self.deadline is not None:
            item["deadline"] = self.deadline
        if self.expire_at is not None:
            item["expire_at"] = self.expire_at
        return item

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> "Task":
        # 古いレコードは description / status が無いことがある
        return cls(
            owner_id=item["owner_id"],
            task_id=item["task_id"],
            description=item.get("description", ""),
            status=item.get("status", STATUS_PENDING),
            deadline=to_int(item.get("deadline")),
            expire_at=to_int(item.get("expire_at")),
        )


def _update_spec(fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    set_expr, names, values = [], {}, {}
    for k in ("description", "status"):
        if fields.get(k) is not None:
            set_expr.append(f"#_{k} = :{k}")
            names[f"#_{k}"] = k
            values[f":{k}"] = fields[k]

    if not set_expr:
        return None

    return {
        "UpdateExpression": "SET " + ", ".join(set_expr),
        "ExpressionAttributeNames": names,
        "ExpressionAttributeValues": values,
    }


class TaskService:
    """
    Task テーブルに対する CRUD。
    deadline / expire_at を計算するのは create() だけ。
    """

    def __init__(self, table, clock: Callable[[], float] = time.time):
        self.table = table
        self.clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> "TaskService":
        dynamodb = boto3.resource("dynamodb", region_name=settings.region)
        return cls(dynamodb.Table(settings.table_name))

    def _key(self, owner_id: str, task_id: str) -> Dict[str, str]:
        return {"owner_id": owner_id, "task_id": task_id}

    # ---------- Create ----------
    def create(self, owner_id: str, description: str) -> Task:
        deadline = int(self.clock() * 1000) + TASK_TTL_MS
        task = Task(
            owner_id=owner_id,
            task_id=str(uuid.uuid4()),
            description=description,
            status=STATUS_PENDING,
            deadline=deadline,
            expire_at=deadline // 1000,
        )
        try:
            self.table.put_item(Item=task.to_item())
        except _STORAGE_ERRORS as e:
            raise StorageWriteError(f"put_item failed for task {task.task_id}") from e
        logger.info("created task %s for %s (deadline=%s)", task.task_id, owner_id, deadline)
        return task

    # ---------- Get ----------
    def get(self, owner_id: str, task_id: str) -> Task:
        try:
            resp = self.table.get_item(Key=self._key(owner_id, task_id))
        except _STORAGE_ERRORS as e:
            raise StorageReadError(f"get_item failed for task {task_id}") from e
        item = resp.get("Item")
        if not item:
            raise NotFound(owner_id, task_id)
        try:
            return Task.from_item(item)
        except (KeyError, ValueError) as e:
            raise StorageReadError(f"unreadable record for task {task_id}") from e

    # ---------- List ----------
    def list(self, owner_id: str) -> List[Task]:
        kwargs = {"KeyConditionExpression": Key("owner_id").eq(owner_id)}
        items = []
        try:
            while True:
                resp = self.table.query(**kwargs)
                items.extend(resp.get("Items", []))
                last_key = resp.get("LastEvaluatedKey")
                if not last_key:
                    break
                kwargs["ExclusiveStartKey"] = last_key
        except _STORAGE_ERRORS as e:
            raise StorageReadError(f"query failed for owner {owner_id}") from e
        tasks = []
        for it in items:
            # 壊れたレコードが1件あっても一覧全体は返す
            try:
                tasks.append(Task.from_item(it))
            except (KeyError, ValueError):
                logger.exception("skip unreadable record %s for %s", it.get("task_id"), owner_id)
        return tasks

    # ---------- Update ----------
    def update(
        self,
        owner_id: str,
        task_id: str,
        description: Optional[str] = None,
        status: Optional[str] = None,
    ) -> None:
        spec = _update_spec({"description": description, "status": status})
        if not spec:
            raise NoFieldsProvided()
        try:
            self.table.update_item(Key=self._key(owner_id, task_id), **spec)
        except _STORAGE_ERRORS as e:
            raise StorageWriteError(f"update_item failed for task {task_id}") from e

    # ---------- Delete ----------
    def delete(self, owner_id: str, task_id: str) -> None:
        # 存在しないキーでもエラーにならない（冪等）
        try:
            self.table.delete_item(Key=self._key(owner_id, task_id))
        except _STORAGE_ERRORS as e:
            raise StorageWriteError(f"delete_item failed for task {task_id}") from e
