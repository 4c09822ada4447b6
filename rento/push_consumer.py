import asyncio
import json
import logging
import httpx
from aiokafka import AIOKafkaConsumer
from aiokafka.errors import KafkaConnectionError
from sqlalchemy.orm import Session

from .database import SessionLocal
from .config import settings
from . import crud

logger = logging.getLogger("push_consumer")


async def send_push_notification(client: httpx.AsyncClient, push_token: str, title: str, body: str, data: dict) -> bool:
    """
    Posts one message to the push service. Returns False on any delivery failure.
    """
    push_message = {
        "to": push_token,
        "sound": "default",
        "title": title,
        "body": body,
        "data": data or {},
    }
    try:
        response = await client.post(
            settings.PUSH_SERVICE_URL,
            json=push_message,
            headers={"Accept": "application/json"},
        )
        response.raise_for_status()
    except httpx.HTTPError as e:
        logger.error(f"Error sending push notification: {e}")
        return False
    return True


async def handle_alert(db: Session, client: httpx.AsyncClient, raw_value: bytes) -> bool:
    """
    Delivers one alert from the Kafka topic to the recipient's device.
    Malformed alerts and users without a push token are skipped.
    """
    try:
        alert = json.loads(raw_value.decode("utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.error(f"Failed to decode alert: {raw_value!r}")
        return False

    user_id = alert.get("user_id")
    title = alert.get("title")
    body = alert.get("body")
    if user_id is None or title is None or body is None:
        logger.warning(f"Skipping malformed alert: {alert}")
        return False

    profile = crud.get_profile(db, user_id)
    if profile is None or not profile.push_token:
        logger.info(f"No push token found for user: {user_id}")
        return False

    sent = await send_push_notification(client, profile.push_token, title, body, alert.get("data") or {})
    if sent:
        logger.info(f"Push notification {alert.get('notification_id')} sent to user {user_id}")
    return sent


async def connect_consumer(retry_delay: int = 5, max_retries: int = 5) -> AIOKafkaConsumer | None:
    """
    Starts a Kafka consumer on the alert topic, retrying the initial connection.
    Returns None if Kafka stays unreachable.
    """
    retries = 0
    while retries < max_retries:
        consumer = AIOKafkaConsumer(
            settings.KAFKA_ALERT_TOPIC,
            bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
            group_id="push_dispatcher_group",
            auto_offset_reset="earliest"
        )
        try:
            await consumer.start()
            logger.info(f"Push consumer connected to Kafka on attempt {retries + 1}.")
            return consumer
        except KafkaConnectionError as e:
            retries += 1
            logger.warning(
                f"Kafka connection attempt {retries}/{max_retries} failed: {e}. Retrying in {retry_delay} seconds...")
            await consumer.stop()
            if retries >= max_retries:
                logger.error("Push consumer failed to connect to Kafka after multiple retries. Exiting.")
                return None
            await asyncio.sleep(retry_delay)
    return None


async def run_push_consumer(retry_delay: int = 5, max_retries: int = 5):
    """
    Consumes alerts from Kafka and forwards them to the push service.
    """
    logger.info("Starting push consumer...")
    consumer = await connect_consumer(retry_delay=retry_delay, max_retries=max_retries)
    if consumer is None:
        return

    logger.info("Push consumer started. Listening for alerts...")
    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            async for msg in consumer:
                db: Session = SessionLocal()
                try:
                    await handle_alert(db, client, msg.value)
                except Exception as e:
                    logger.error(f"Error processing alert: {e}")
                finally:
                    db.close()
    except asyncio.CancelledError:
        logger.info("Push consumer task cancelled.")
    finally:
        logger.info("Stopping push consumer...")
        await consumer.stop()
