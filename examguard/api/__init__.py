"""HTTP API and live channel"""
