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


async def connect_producer(retry_delay: int = 5, max_retries: int = 5) -> AIOKafkaProducer | None:
    """
    Starts a Kafka producer, retrying the initial connection.
    Returns None if Kafka stays unreachable.
    """
    retries = 0
    while retries < max_retries:
        producer = AIOKafkaProducer(bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS)
        try:
            await producer.start()
            logger.info(f"Outbox poller connected to Kafka on attempt {retries + 1}.")
            return producer
        except KafkaConnectionError as e:
            retries += 1
            logger.warning(
                f"Kafka connection attempt {retries}/{max_retries} failed: {e}. Retrying in {retry_delay} seconds...")
            await producer.stop()
            if retries >= max_retries:
                logger.error("Outbox poller failed to connect to Kafka after multiple retries. Exiting.")
                return None
            await asyncio.sleep(retry_delay)
        except Exception as e:
            logger.error(f"Unexpected error starting Kafka producer: {e}")
            await producer.stop()
            return None
    return None


async def publish_pending_events(db: Session, producer: AIOKafkaProducer, batch_size: int = 100) -> int:
    """
    Sends one batch of pending outbox events and deletes the ones Kafka accepted.
    Events that fail stay in the outbox and are retried on the next poll.
    """
    stmt = select(OutboxEvent).where(
        OutboxEvent.status == "PENDING"
    ).order_by(OutboxEvent.id).limit(batch_size).with_for_update()

    pending_events = db.execute(stmt).scalars().all()
    if not pending_events:
        return 0

    logger.info(f"Found {len(pending_events)} pending events in outbox.")
    events_processed = 0
    for event in pending_events:
        try:
            await producer.send_and_wait(
                topic=event.topic,
                value=event.payload.encode("utf-8")
            )
            db.delete(event)
            events_processed += 1
        except Exception as e:
            logger.error(f"Failed to send event {event.id} to Kafka: {e}")

    if events_processed > 0:
        db.commit()
        logger.info(f"Successfully processed {events_processed} events.")
    return events_processed


async def run_outbox_poller(poll_interval: int = 5, retry_delay: int = 5, max_retries: int = 5):
    """
    Continuously polls the OutboxEvent table and sends pending alerts to Kafka.
    """
    logger.info("Starting outbox poller...")

    producer = await connect_producer(retry_delay=retry_delay, max_retries=max_retries)
    if producer is None:
        return

    try:
        while True:
            db: Session = SessionLocal()
            try:
                await publish_pending_events(db, producer)
            except Exception as e:
                logger.error(f"Error in poller loop: {e}")
                db.rollback()
            finally:
                db.close()

            await asyncio.sleep(poll_interval)

    except asyncio.CancelledError:
        logger.info("Outbox poller task cancelled.")
    finally:
        logger.info("Stopping Kafka producer...")
        await producer.stop()
        logger.info("Outbox poller shut down.")
