import os
import json
import asyncio
import signal
import socket
import logging
import redis.asyncio as redis
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy import text, bindparam
from sqlalchemy.dialects.postgresql import JSONB, INET
from sqlalchemy.exc import SQLAlchemyError, DBAPIError
from ticketcore.core.config import DATABASE_URL, AUDIT_STREAM, AUDIT_GROUP, AUDIT_BATCH, AUDIT_BLOCK_MS
from ticketcore.core.redis import create_redis


logger = logging.getLogger("ticketcore.audit.worker")

RETRY_EVERY_S = 30
RETRY_MIN_IDLE_MS = 60000

INSERT_AUDIT = text("""
    INSERT INTO audit.audit_logs
    (request_id, scope, action, actor_user_id, actor_role, actor_ip, route,
     object_type, object_id, event_id, booking_id, status, reason, meta)
    VALUES
    (:request_id, :scope, :action, :actor_user_id, :actor_role, :actor_ip, :route,
     :object_type, :object_id, :event_id, :booking_id, :status, :reason, :meta)
""").bindparams(
    bindparam("actor_ip", type_=INET),
    bindparam("meta", type_=JSONB),
)


class InvalidAuditPayload(ValueError):
    pass


def parse_payload(raw_json: str | None) -> dict:
    try:
        payload = json.loads(raw_json) if raw_json else {}
    except json.JSONDecodeError as e:
        raise InvalidAuditPayload(f"malformed JSON: {e}") from e
    if not isinstance(payload, dict):
        raise InvalidAuditPayload("payload is not a JSON object")
    if not payload.get("scope") or not payload.get("action"):
        raise InvalidAuditPayload("missing required fields: scope/action")
    return payload


def params_from_payload(payload: dict) -> dict:
    status = (payload.get("status") or "SUCCESS").upper()
    return {
        "request_id": payload.get("request_id"),
        "scope": payload["scope"],
        "action": payload["action"],
        "actor_user_id": payload.get("actor_user_id"),
        "actor_role": payload.get("actor_role"),
        "actor_ip": payload.get("actor_ip"),
        "route": payload.get("route"),
        "object_type": payload.get("object_type"),
        "object_id": payload.get("object_id"),
        "event_id": payload.get("event_id"),
        "booking_id": payload.get("booking_id"),
        "status": "SUCCESS" if status == "SUCCESS" else "FAIL",
        "reason": payload.get("reason"),
        "meta": dict(payload.get("meta") or {}),
    }


async def store_entries(db: AsyncSession, r: redis.Redis, entries) -> int:
    """
    Insert stream entries and ack them one by one.
    Invalid payloads are acked and dropped; database failures stay in the pending list for a later retry.
    """
    stored = 0
    for msg_id, fields in entries:
        try:
            params = params_from_payload(parse_payload(fields.get("json")))
            async with db.begin_nested():
                await db.execute(INSERT_AUDIT, params)
        except (DBAPIError, SQLAlchemyError):
            logger.exception("DB insert failed; keeping id=%s in PEL", msg_id)
            continue
        except InvalidAuditPayload as e:
            logger.warning("Invalid payload; dropping id=%s err=%s", msg_id, e)
        else:
            stored += 1

        try:
            await r.xack(AUDIT_STREAM, AUDIT_GROUP, msg_id)
        except redis.RedisError:
            logger.exception("XACK failed id=%s", msg_id)
    return stored


async def _ensure_group(r: redis.Redis) -> None:
    try:
        await r.xgroup_create(name=AUDIT_STREAM, groupname=AUDIT_GROUP, id="$", mkstream=True)
        logger.info("XGROUP created stream=%s group=%s", AUDIT_STREAM, AUDIT_GROUP)
    except redis.ResponseError as e:
        if "BUSYGROUP" not in str(e):
            raise
        logger.info("XGROUP already exists stream=%s group=%s", AUDIT_STREAM, AUDIT_GROUP)


async def run() -> None:
    r = await create_redis()
    await _ensure_group(r)

    engine = create_async_engine(DATABASE_URL, pool_pre_ping=True)
    session = async_sessionmaker(bind=engine, expire_on_commit=False)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            pass

    consumer = f"{socket.gethostname()}-{os.getpid()}"
    logger.info(
        "Audit worker started | stream=%s group=%s consumer=%s batch=%d block_ms=%d",
        AUDIT_STREAM, AUDIT_GROUP, consumer, AUDIT_BATCH, AUDIT_BLOCK_MS,
    )

    last_retry = loop.time()
    try:
        while not stop.is_set():
            resp = await r.xreadgroup(
                groupname=AUDIT_GROUP,
                consumername=consumer,
                streams={AUDIT_STREAM: ">"},
                count=AUDIT_BATCH,
                block=AUDIT_BLOCK_MS,
            )
            if resp:
                async with session() as db:
                    async with db.begin():
                        await store_entries(db, r, resp[0][1])

            if loop.time() - last_retry > RETRY_EVERY_S:
                last_retry = loop.time()
                try:
                    _, msgs, _ = await r.xautoclaim(
                        name=AUDIT_STREAM,
                        groupname=AUDIT_GROUP,
                        consumername=consumer,
                        min_idle_time=RETRY_MIN_IDLE_MS,
                        start_id="0",
                        count=AUDIT_BATCH,
                    )
                    if msgs:
                        logger.info("XAUTOCLAIM: retrying %d pending messages", len(msgs))
                        async with session() as db:
                            async with db.begin():
                                await store_entries(db, r, msgs)
                except (redis.RedisError, SQLAlchemyError):
                    logger.exception("XAUTOCLAIM retry failed")
    finally:
        logger.info("Shutting down audit worker...")
        await r.aclose()
        await engine.dispose()
        logger.info("Audit worker stopped.")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(name)s | %(message)s")
    asyncio.run(run())
