"""
Response augmentation for ad-eligible tiers.

Ad selection is a pure function of wall-clock time: the ad type rotates
once per 60-second bucket, so identical inputs within a minute always
produce identical output.
"""

import time

from gateway.catalog.schema import Tier

AD_ROTATION_MS = 60_000
AD_SEPARATOR = "\n\n---\n"
DEFAULT_UPGRADE_MESSAGE = (
    "💡 **Upgrade to unlock more features!** "
    "Visit the plans page to see our pricing options."
)


def select_ad_type(ad_types: tuple[str, ...], now_ms: int) -> str:
    """
    Pick the ad type for a point in time.

    Args:
        ad_types: Rotation order; must not be empty.
        now_ms: Epoch milliseconds.

    Returns:
        ad_types[floor(now_ms / 60000) % len(ad_types)]
    """
    return ad_types[(now_ms // AD_ROTATION_MS) % len(ad_types)]


class ResponseAugmenter:
    """Appends tier-specific supplemental content to agent responses."""

    def augment(self, response: str, tier: Tier, now_ms: int | None = None) -> str:
        """
        Append the current ad to a response when the tier is ad-eligible.

        Args:
            response: Agent response text.
            tier: Caller's tier.
            now_ms: Epoch milliseconds (defaults to wall clock).

        Returns:
            The response, with supplemental content for ad-eligible tiers.
        """
        policy = tier.ad_delivery
        if policy is None or not policy.enabled:
            return response

        if now_ms is None:
            now_ms = int(time.time() * 1000)

        ad_types = policy.ad_types or ("upgrade_promotion",)
        template = policy.templates.get(select_ad_type(ad_types, now_ms))
        if not template:
            return f"{response}{AD_SEPARATOR}{DEFAULT_UPGRADE_MESSAGE}"
        return f"{response}{AD_SEPARATOR}💡 {template}"
