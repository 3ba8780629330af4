"""WhatsApp CLI for pipeline administration."""
