"""
Example usage of the APNs client.

Delivers a handful of notifications through a pooled connection, printing
every error response and skipped message.
"""

from apns_client import ConnectionPool, Delivery, Message, MessageIdAllocator, Payload
from apns_client.metrics import instrumented_callbacks

CONFIG = {
    "host": "gateway.sandbox.push.apple.com",
    "cert": "/etc/apns/sandbox.pem",
    "cert_pass": "",
}

TOKENS = [
    "1b7b8de5888bb742ba744a2a5c8e52c6481d1deeecc283e830533b7c6bf1d099",
    "2a5f4de5888bb742ba744a2a5c8e52c6481d1deeecc283e830533b7c6bf1d044",
]


def on_apns_error(delivery, status, message_id):
    print(f"rejected message {message_id} (status {status})")


def on_message_skip(delivery, message):
    print(f"gave up on message {message.message_id}")


def main():
    ids = MessageIdAllocator()
    messages = [
        Message.create(token, Payload(aps={"alert": "New version is out!", "badge": 1}), allocator=ids)
        for token in TOKENS
    ]

    with ConnectionPool(CONFIG, max_idle=2) as pool:
        delivery = Delivery(
            messages,
            connection_config=CONFIG,
            connection_pool=pool,
            callbacks=instrumented_callbacks(
                {"on_apns_error": on_apns_error, "on_message_skip": on_message_skip}
            ),
        )
        delivery.process()
        print(f"done, {len(delivery.exceptions)} exceptions")


if __name__ == "__main__":
    main()
