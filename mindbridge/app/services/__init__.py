"""Domain services for the MindBridge backend."""
