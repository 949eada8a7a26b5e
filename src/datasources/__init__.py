# src/datasources/__init__.py — v1
