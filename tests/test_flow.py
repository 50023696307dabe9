# tests/test_flow.py
from tasks import STATUS_EXPIRED, STATUS_PENDING

from .conftest import T0
from .fakes import sqs_record, stream_record


def test_created_task_expires_after_deadline(service, relay, worker, table, sqs, sns, clock) -> None:
    # t=0: タスク作成
    task = service.create("u1", "Buy milk")
    assert task.deadline == int(T0 * 1000) + 300_000

    # DynamoDB Streams が書き込みを拾う
    stored = table.get_item(Key={"owner_id": "u1", "task_id": task.task_id})["Item"]
    relay.process([stream_record("INSERT", stored)])
    assert len(sqs.sent) == 1
    assert sqs.sent[0]["DelaySeconds"] == 300
    assert service.get("u1", task.task_id).status == STATUS_PENDING

    # t=300s: 遅延メッセージが届く
    clock.now = T0 + 300
    worker.process([sqs_record(sqs.sent[0]["MessageBody"])])

    assert service.get("u1", task.task_id).status == STATUS_EXPIRED
    assert len(sns.published) == 1
    assert task.task_id in sns.published[0]["Message"]


def test_update_before_deadline_schedules_duplicate_expiry(
    service, relay, worker, table, sqs, sns
) -> None:
    task = service.create("u1", "x")
    key = {"owner_id": "u1", "task_id": task.task_id}
    relay.process([stream_record("INSERT", table.get_item(Key=key)["Item"])])

    service.update("u1", task.task_id, description="y")
    relay.process([stream_record("MODIFY", table.get_item(Key=key)["Item"])])
    assert len(sqs.sent) == 2

    worker.process([sqs_record(m["MessageBody"]) for m in sqs.sent])

    got = service.get("u1", task.task_id)
    assert got.status == STATUS_EXPIRED
    assert got.description == "y"
    # 重複メッセージの分だけ通知も2回出る
    assert len(sns.published) == 2
