from __future__ import annotations
import json
import logging
from typing import Sequence
from nats.aio.client import Client as NATS
from .config import get_settings

logger = logging.getLogger(__name__)
_settings = get_settings()
_nats = NATS()

async def nats_connect():
    if not _nats.is_connected:
        servers: Sequence[str] = [u.strip() for u in _settings.nats_urls.split(",") if u.strip()]
        await _nats.connect(servers=servers)

async def nats_close():
    try:
        if _nats.is_connected:
            await _nats.drain()
    except Exception as exc:
        logger.warning("nats drain failed: %s", exc)

async def publish_checkin(evt: dict):
    """
    evt = {
      "employee_id": str,
      "company_id": str,
      "date": "YYYY-MM-DD",
      "checked_at": iso8601,
      "idempotency_key": "company_id:employee_id:date"
    }
    """
    await nats_connect()
    await _nats.publish(_settings.nats_subject_checkin, json.dumps(evt).encode("utf-8"))
