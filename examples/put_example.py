#!/usr/bin/env python3
"""
Example put program: sends a single text message to the demo queue
"""

import logging
import sys
import time

from simple_mq import (
    BrokerError,
    configure,
    create_producer,
    make_factory,
    print_error,
    queue_context,
    queue_uri,
    resolve_queue,
    send_text,
)
from simple_mq.config import ONE_SHOT_HOST, load_params, log_level, queue_name


def main() -> int:
    logging.basicConfig(level=log_level())
    status = 1
    try:
        factory = make_factory()
        configure(factory, load_params(host=ONE_SHOT_HOST))
        with queue_context(factory) as context:
            destination = resolve_queue(context, queue_uri(queue_name()))
            producer = create_producer(context)
            unique_number = int(time.time() * 1000) % 1000
            message = send_text(producer, destination, f"testing 1 2 ..{unique_number}")
            print(f"Sent Message:\n{message}")
        print("SUCCESS")
        status = 0
    except BrokerError as e:
        print_error(e)
        print("FAILURE")
        status = -1
    return status


if __name__ == "__main__":
    sys.exit(main())
