# backend/handler.py
import logging
from typing import Any, Callable, Dict, Optional

import serverless_wsgi

from app import app
from auth import notify_sign_in
from config import Settings
from events import AuthEvent, TriggerKind, classify
from expiry import ExpiryWorker
from logging_setup import setup_logging
from notifier import ChangeNotifier
from relay import ChangeCaptureRelay

settings = Settings.from_env()
setup_logging(settings.log_level)
logger = logging.getLogger(__name__)

# コンテナごとに一度だけ作る
_relay: Optional[ChangeCaptureRelay] = None
_worker: Optional[ExpiryWorker] = None
_signin_notifier: Optional[ChangeNotifier] = None


def _get_relay() -> ChangeCaptureRelay:
    global _relay
    if _relay is None:
        _relay = ChangeCaptureRelay.create(settings.queue_url, settings.region)
    return _relay


def _get_worker() -> ExpiryWorker:
    global _worker
    if _worker is None:
        _worker = ExpiryWorker.from_settings(settings)
    return _worker


def _get_signin_notifier() -> ChangeNotifier:
    global _signin_notifier
    if _signin_notifier is None:
        _signin_notifier = ChangeNotifier.create(settings.signin_topic_arn, settings.region)
    return _signin_notifier


def _claims(event: Dict[str, Any]) -> Dict[str, Any]:
    rc = event.get("requestContext", {}) or {}
    authorizer = rc.get("authorizer", {}) or {}

    # HTTP API(v2)
    if isinstance(authorizer, dict) and "jwt" in authorizer:
        return (authorizer.get("jwt") or {}).get("claims", {}) or {}
    # REST API(v1) の一般的パターン
    if isinstance(authorizer, dict) and "claims" in authorizer:
        return authorizer.get("claims") or {}
    return {}


def http_handler(event, context):
    """
    - API Gateway HTTP API(v2) / REST API どちらでもOK
    - JWTのsub/emailをヘッダに積んで Flask 側で拾えるようにする
    """
    claims = _claims(event)
    sub = claims.get("sub")
    email = claims.get("email") or claims.get("cognito:username")

    headers = event.get("headers") or {}
    if sub:
        headers["X-User-Sub"] = sub
    if email:
        headers["X-User-Email"] = email
    event["headers"] = headers

    return serverless_wsgi.handle_request(app, event, context)


def stream_handler(event, context):
    return _get_relay().process(event.get("Records", []))


def expiry_handler(event, context):
    return _get_worker().process(event.get("Records", []))


def post_auth_handler(event, context):
    notify_sign_in(AuthEvent.from_cognito(event), _get_signin_notifier())
    # Cognito にはイベントをそのまま返す
    return event


def _unknown_handler(event, context):
    keys = sorted(event)[:5] if isinstance(event, dict) else type(event).__name__
    logger.warning("ignored event with unknown trigger: %s", keys)
    return {"ignored": True}


_DISPATCH: Dict[TriggerKind, Callable[[Any, Any], Any]] = {
    TriggerKind.HTTP: http_handler,
    TriggerKind.STREAM: stream_handler,
    TriggerKind.QUEUE: expiry_handler,
    TriggerKind.POST_AUTH: post_auth_handler,
    TriggerKind.UNKNOWN: _unknown_handler,
}


def handler(event, context):
    """1つの関数に複数のトリガーを繋いだとき用の入口。"""
    kind = classify(event)
    logger.debug("dispatching %s event", kind.value)
    return _DISPATCH[kind](event, context)
