"""Example webhook relay: Shopify product events synced to WooCommerce."""

import json

from catalog_bridge import BridgeConfig
from catalog_bridge.webhook import create_webhook_app


# Load configuration; "webhook_targets": ["woo"] selects the destination
with open('config.json') as f:
    config_data = json.load(f)

config = BridgeConfig(**config_data)

# Create webhook app
app = create_webhook_app(config)

# Run with: uvicorn examples.webhook_server:app --reload
