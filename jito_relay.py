"""
Jito block-engine relay client
"""

import aiohttp
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import config

logger = logging.getLogger(__name__)

RATE_LIMIT_CODE = -32097


class RelayOutcome(str, Enum):
    ACCEPTED = "accepted"
    ALREADY_PROCESSED = "already_processed"
    RATE_LIMITED = "rate_limited"
    ERROR = "error"


@dataclass(frozen=True)
class RelayResponse:
    outcome: RelayOutcome
    signature: Optional[str] = None
    message: str = ""


def classify_response(status: int, body) -> RelayResponse:
    """Map an HTTP status and JSON-RPC body onto a relay outcome"""
    body = body if isinstance(body, dict) else {}
    error = body.get("error")
    message = ""
    code = None
    if isinstance(error, dict):
        message = str(error.get("message", ""))
        code = error.get("code")
    elif error:
        message = str(error)

    if "already processed" in message.lower():
        return RelayResponse(RelayOutcome.ALREADY_PROCESSED, message=message)
    if status == 429 or code == RATE_LIMIT_CODE or "rate limit" in message.lower():
        return RelayResponse(RelayOutcome.RATE_LIMITED, message=message or f"HTTP {status}")
    if status == 200 and body.get("result"):
        return RelayResponse(RelayOutcome.ACCEPTED, signature=str(body["result"]))
    return RelayResponse(RelayOutcome.ERROR, message=message or f"HTTP {status}")


class JitoRelayClient:

    def __init__(self, timeout: float = None):
        self.timeout = timeout or config.JITO_REQUEST_TIMEOUT

    async def send(self, endpoint: str, tx_base64: str) -> RelayResponse:
        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "sendTransaction",
            "params": [tx_base64, {"encoding": "base64"}]
        }

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    endpoint,
                    json=payload,
                    headers={"Content-Type": "application/json"},
                    timeout=aiohttp.ClientTimeout(total=self.timeout)
                ) as response:
                    try:
                        body = await response.json(content_type=None)
                    except Exception:
                        body = {"error": {"message": await response.text()}}
                    result = classify_response(response.status, body)

        except asyncio.TimeoutError:
            return RelayResponse(RelayOutcome.ERROR, message="timeout")
        except Exception as e:
            return RelayResponse(RelayOutcome.ERROR, message=str(e))

        if result.outcome == RelayOutcome.ACCEPTED:
            logger.info(f"🚀 Jito accepted: {result.signature[:16]}...")
        else:
            logger.warning(f"⚠️ Jito {result.outcome.value} at {endpoint.split('//')[-1].split('/')[0]}: {result.message[:120]}")
        return result
