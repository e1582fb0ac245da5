"""
Slack webhook notification sender.

Posts a summary of every finished generator run to the configured
incoming webhook. Delivery is best-effort: failures are logged only.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx

from core.config import settings

if TYPE_CHECKING:
    from workers.ai_generator.models import GenerationResult

logger = logging.getLogger(__name__)


async def send_slack_alert(
    text: str,
    *,
    blocks: list[dict] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> bool:
    """
    Send a message to the configured Slack webhook.

    Args:
        text: Fallback text for notifications.
        blocks: Optional Slack Block Kit blocks for rich formatting.
        transport: Optional httpx transport (tests).

    Returns:
        True if sent successfully, False otherwise.
    """
    if not settings.slack_webhook_url:
        logger.debug("SLACK_WEBHOOK_URL not configured. Alert skipped.")
        return False

    payload: dict = {"text": text}
    if blocks:
        payload["blocks"] = blocks

    try:
        async with httpx.AsyncClient(timeout=10.0, transport=transport) as client:
            response = await client.post(
                settings.slack_webhook_url,
                json=payload,
            )
            response.raise_for_status()
            logger.info("Slack alert sent successfully.")
            return True
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        logger.error("Failed to send Slack alert: %s", exc)
        return False


def format_generation_summary(result: GenerationResult, *, failure: str | None = None) -> str:
    if failure:
        header = f":x: AI generator run #{result.log_id} failed: {failure}"
    else:
        header = f":white_check_mark: AI generator run #{result.log_id} completed in {result.duration_ms / 1000:.1f}s"

    lines = [
        header,
        f"• Products: {result.products_found} found, {result.products_added} added, "
        f"{result.products_updated} updated, {result.products_skipped} skipped",
        f"• Coupons: {result.coupons_found} found, {result.coupons_added} added",
    ]
    if result.errors:
        lines.append(f"• Errors ({len(result.errors)}):")
        lines.extend(f"    – {error}" for error in result.errors[:5])
        if len(result.errors) > 5:
            lines.append(f"    … and {len(result.errors) - 5} more")
    return "\n".join(lines)


async def notify_generation_finished(result: GenerationResult, *, failure: str | None = None) -> bool:
    return await send_slack_alert(format_generation_summary(result, failure=failure))
