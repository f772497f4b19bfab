import json
import threading
import time

import pika
import structlog

from .. import config

logger = structlog.get_logger(__name__)


class RabbitMQProducer:
    """
    Handles the connection to RabbitMQ and publishing of domain events
    (``order.created``, ``order.status_changed``) to the topic exchange.

    One connection is shared by the API worker threads and the consumer
    thread. pika connections are not thread-safe, so every publish holds
    ``_lock``. A connection dropped while idle is reopened once per publish.
    """

    def __init__(self, host=None, exchange_name=None, exchange_type="topic", attempts=None):
        self.host = host or config.RABBITMQ_HOST or "rabbitmq"
        self.exchange_name = exchange_name or config.EVENTS_EXCHANGE
        self.exchange_type = exchange_type
        self.attempts = attempts or config.RABBITMQ_CONNECT_ATTEMPTS
        self.connection = None
        self.channel = None
        self._lock = threading.Lock()
        self.connect()

    def connect(self):
        """Establishes a connection to RabbitMQ, retrying while the broker boots."""
        for attempt in range(1, self.attempts + 1):
            try:
                credentials = pika.PlainCredentials('guest', 'guest')
                parameters = pika.ConnectionParameters(
                    host=self.host,
                    credentials=credentials,
                    heartbeat=600,
                    blocked_connection_timeout=300,
                )
                self.connection = pika.BlockingConnection(parameters)
                self.channel = self.connection.channel()

                # Declare the exchange (durable ensures it survives restarts)
                self.channel.exchange_declare(
                    exchange=self.exchange_name,
                    exchange_type=self.exchange_type,
                    durable=True
                )
                logger.info("rabbitmq_connected", host=self.host, exchange=self.exchange_name)
                return
            except pika.exceptions.AMQPConnectionError:
                logger.warning("rabbitmq_not_ready", host=self.host, attempt=attempt, of=self.attempts)
                if attempt < self.attempts:
                    time.sleep(5)
        raise ConnectionError(f"RabbitMQ at {self.host} unreachable after {self.attempts} attempts")

    def publish(self, routing_key, message):
        """
        Publishes a message to the exchange with a specific routing key.

        Args:
            routing_key (str): The topic key (e.g., 'order.created').
            message (dict): JSON-serializable payload.
        """
        body = json.dumps(message)
        with self._lock:
            # Reconnect if the connection was lost
            if not self.connection or self.connection.is_closed:
                self.connect()
            try:
                self._basic_publish(routing_key, body)
            except pika.exceptions.AMQPError as e:
                logger.warning("rabbitmq_publish_retry", routing_key=routing_key, error=repr(e))
                self.connect()
                self._basic_publish(routing_key, body)
        logger.info("event_sent", routing_key=routing_key, order_id=message.get("order_id"))

    def _basic_publish(self, routing_key, body):
        self.channel.basic_publish(
            exchange=self.exchange_name,
            routing_key=routing_key,
            body=body,
            properties=pika.BasicProperties(
                delivery_mode=2,  # Make message persistent
                content_type='application/json'
            )
        )

    def close(self):
        """Closes the connection cleanly."""
        with self._lock:
            if self.connection and not self.connection.is_closed:
                self.connection.close()


class LogOnlyProducer:
    """Producer used when no broker is configured: events go to the log only."""

    def publish(self, routing_key, message):
        logger.info("event_logged", routing_key=routing_key, order_id=message.get("order_id"))

    def close(self):
        pass


def make_producer():
    if config.RABBITMQ_HOST:
        return RabbitMQProducer()
    return LogOnlyProducer()
