"""Apidog Markdown to OpenAPI / flat Markdown interchange engine."""
