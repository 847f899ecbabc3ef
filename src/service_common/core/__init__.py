"""
Core components shared by every service.

This package contains:
- Exception hierarchy mapped to HTTP errors
- Safe logging and body masking
- CSV parsing
- Ant-style path matching
- Metrics collection
"""
