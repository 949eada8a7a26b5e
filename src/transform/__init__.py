# src/transform/__init__.py — v1
