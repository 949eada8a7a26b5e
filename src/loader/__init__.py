# src/loader/__init__.py — v1
