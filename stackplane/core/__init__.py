"""Core building blocks: address blocks, status mapping, templates, remote service."""
