#!/usr/bin/env python3
"""
Example get program: waits up to 15 seconds for one message on the demo queue
"""

import logging
import sys

from simple_mq import (
    BrokerError,
    configure,
    create_consumer,
    make_factory,
    print_error,
    queue_context,
    queue_uri,
    receive_text,
    resolve_queue,
)
from simple_mq.config import ONE_SHOT_HOST, load_params, log_level, queue_name

RECEIVE_TIMEOUT = 15


def main() -> int:
    logging.basicConfig(level=log_level())
    status = 1
    try:
        factory = make_factory()
        configure(factory, load_params(host=ONE_SHOT_HOST))
        with queue_context(factory) as context:
            destination = resolve_queue(context, queue_uri(queue_name()))
            consumer = create_consumer(context, destination)
            body = receive_text(consumer, RECEIVE_TIMEOUT)
            # Printed whether or not a message arrived
            print("\nReceived Message\n")
            if body is not None:
                print(body)
        print("SUCCESS")
        status = 0
    except BrokerError as e:
        print_error(e)
        print("FAILURE")
        status = -1
    return status


if __name__ == "__main__":
    sys.exit(main())
