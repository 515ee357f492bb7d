"""MindBridge platform backend."""
