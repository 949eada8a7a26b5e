# src/graph_store/__init__.py — v1
