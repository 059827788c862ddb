"""Agent core: loop, context builder, memory."""
