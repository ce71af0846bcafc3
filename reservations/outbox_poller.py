import asyncio
import logging
from aiokafka import AIOKafkaProducer
from aiokafka.errors import KafkaConnectionError
from sqlalchemy.orm import Session
from sqlalchemy.sql import select

from .database import SessionLocal
from .models import OutboxEvent
from .config import settings

logger = logging.getLogger("outbox_poller")

BATCH_SIZE = 100


async def publish_pending_events(db: Session, producer) -> int:
    """
    Sends one batch of PENDING outbox rows and deletes the ones Kafka accepted.

    Rows are locked for the duration so two pollers never send the same event.
    A row that fails to send stays PENDING and is picked up on the next round.
    Returns the number of events published.
    """
    stmt = select(OutboxEvent).where(
        OutboxEvent.status == "PENDING"
    ).order_by(OutboxEvent.id).limit(BATCH_SIZE).with_for_update()

    pending_events = db.execute(stmt).scalars().all()
    if not pending_events:
        db.rollback()
        return 0

    logger.info(f"Publishing {len(pending_events)} outbox events.")
    published = 0
    for event in pending_events:
        try:
            await producer.send_and_wait(
                topic=event.topic,
                value=event.payload.encode("utf-8")
            )
        except Exception as e:
            logger.error(f"Outbox event {event.id} not published, will retry: {e}")
            continue
        db.delete(event)
        published += 1

    db.commit()
    if published:
        logger.info(f"Published {published}/{len(pending_events)} outbox events.")
    return published


async def connect_producer(retry_delay: int = 5, max_retries: int = 5) -> AIOKafkaProducer | None:
    """Starts a Kafka producer, retrying while the broker comes up. Returns None if it never does."""
    for attempt in range(1, max_retries + 1):
        producer = AIOKafkaProducer(bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS)
        try:
            await producer.start()
            logger.info(f"Outbox poller connected to Kafka on attempt {attempt}.")
            return producer
        except KafkaConnectionError as e:
            await producer.stop()
            logger.warning(
                f"Kafka connection attempt {attempt}/{max_retries} failed: {e}. Retrying in {retry_delay} seconds...")
            if attempt < max_retries:
                await asyncio.sleep(retry_delay)

    logger.error(f"Kafka unreachable after {max_retries} attempts; booking events stay in the outbox.")
    return None


async def _poll_once(producer) -> None:
    db: Session = SessionLocal()
    try:
        await publish_pending_events(db, producer)
    except Exception as e:
        db.rollback()
        logger.error(f"Outbox round failed: {e}")
    finally:
        db.close()


async def run_outbox_poller(poll_interval: int = settings.OUTBOX_POLL_INTERVAL_SECONDS):
    """Publishes booking events from the outbox every `poll_interval` seconds until cancelled."""
    producer = await connect_producer()
    if producer is None:
        return

    logger.info(f"Outbox poller running every {poll_interval}s.")
    try:
        while True:
            await _poll_once(producer)
            await asyncio.sleep(poll_interval)
    finally:
        await producer.stop()
        logger.info("Outbox poller stopped; Kafka producer closed.")
