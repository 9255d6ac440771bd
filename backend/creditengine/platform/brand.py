"""Centralized brand configuration for user-facing copy."""

BRAND_NAME = "ShipShow"
BRAND_SLUG = "shipshow"
BRAND_DOMAIN = "shipshow.io"
BRAND_APP_DESCRIPTION = "Credit award engine for the ShipShow demo-video leaderboard"


def brand_origins() -> list[str]:
    return [f"https://{BRAND_DOMAIN}", f"https://www.{BRAND_DOMAIN}"]
