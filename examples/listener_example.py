#!/usr/bin/env python3
"""
Example listener program: attaches a message listener to the demo queue and
takes start/stop/send/exit commands from standard input
"""

import logging
import sys

from simple_mq import BrokerError, print_error, run_listener
from simple_mq.config import load_params, log_level, queue_name


def main() -> int:
    logging.basicConfig(level=log_level())
    try:
        params = load_params()
    except BrokerError as e:
        print_error(e)
        return -1
    try:
        return run_listener(params, queue_name())
    except KeyboardInterrupt:
        print("\n--Exiting --")
        return 0


if __name__ == "__main__":
    sys.exit(main())
