"""Core storage, embedding and model provider layers."""
