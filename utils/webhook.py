#!/usr/bin/env python3
"""
Webhook delivery for captured credential records
"""

import json
import logging
from typing import Optional

import requests

from utils import VERSION

WEBHOOK_TIMEOUT = 15  # seconds

logger = logging.getLogger("credtrap.webhook")


class WebhookError(Exception):
    """Delivery to a webhook endpoint failed"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def send_webhook(url: str, message: str) -> None:
    """
    POST a message to a chat-style webhook as {"text": message}

    Args:
        url: Webhook endpoint
        message: Text body, normally a JSON-encoded record

    Raises:
        WebhookError: On a transport failure or a non-2xx response
    """
    body = json.dumps({"text": message})
    headers = {
        "Content-Type": "application/json",
        "User-Agent": f"credtrap/{VERSION}",
    }

    try:
        response = requests.post(url, data=body, headers=headers, timeout=WEBHOOK_TIMEOUT)
    except requests.RequestException as e:
        raise WebhookError(f"webhook request to {url} failed: {e}") from e

    if response.status_code < 200 or response.status_code > 299:
        raise WebhookError(f"bad response: {response.status_code}", status_code=response.status_code)

    logger.debug(f"Delivered webhook to {url}")
