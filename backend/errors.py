# backend/errors.py


class TodoError(Exception):
    """バックエンドが投げる例外の基底クラス。"""


class NotFound(TodoError):
    def __init__(self, owner_id: str, task_id: str):
        super().__init__(f"task not found: owner={owner_id} task={task_id}")
        self.owner_id = owner_id
        self.task_id = task_id


class NoFieldsProvided(TodoError):
    def __init__(self):
        super().__init__("No valid fields provided for update")


class StorageReadError(TodoError):
    pass


class StorageWriteError(TodoError):
    pass


class RelayProcessingError(TodoError):
    """Streams の1レコードを読めなかった、または SQS に積めなかった。"""


class InvalidMessage(TodoError):
    """遅延キューのメッセージが JSON でない、またはキー項目が無い。"""


class NotificationError(TodoError):
    """SNS への publish 失敗。ログに残すだけ。"""
