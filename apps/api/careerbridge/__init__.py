"""CareerBridge API - student / alumni / company career matching."""
