# src/query/__init__.py — v1
