"""HTTP surface for the webhook and send paths."""
