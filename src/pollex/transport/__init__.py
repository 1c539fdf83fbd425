"""Transports — drive ``MainManager.poll`` from an outside channel."""
