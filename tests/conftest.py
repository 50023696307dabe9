# tests/conftest.py
import pytest

from expiry import ExpiryWorker
from notifier import ChangeNotifier
from relay import ChangeCaptureRelay
from tasks import TaskService

from .fakes import FakeSNS, FakeSQS, FakeTable, FixedClock

T0 = 1_700_000_000.0
QUEUE_URL = "https://sqs.ap-northeast-3.amazonaws.com/123456789012/task-expiry"
TOPIC_ARN = "arn:aws:sns:ap-northeast-3:123456789012:task-notifications"


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock(T0)


@pytest.fixture()
def table() -> FakeTable:
    return FakeTable()


@pytest.fixture()
def sqs() -> FakeSQS:
    return FakeSQS()


@pytest.fixture()
def sns() -> FakeSNS:
    return FakeSNS()


@pytest.fixture()
def service(table, clock) -> TaskService:
    return TaskService(table, clock=clock)


@pytest.fixture()
def notifier(sns) -> ChangeNotifier:
    return ChangeNotifier(sns, TOPIC_ARN)


@pytest.fixture()
def relay(sqs, clock) -> ChangeCaptureRelay:
    return ChangeCaptureRelay(sqs, QUEUE_URL, clock=clock)


@pytest.fixture()
def worker(table, notifier) -> ExpiryWorker:
    return ExpiryWorker(table, notifier)
