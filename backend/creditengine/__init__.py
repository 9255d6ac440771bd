"""ShipShow credit award engine: exactly-once credits for views and purchases."""
