"""Shared utilities: logging setup, terminal output, JWT auth"""
