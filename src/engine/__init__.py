# src/engine/__init__.py — v1
