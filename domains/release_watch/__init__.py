"""
Release Watch Domain

Watches download directories for multi-part archive sets and unpacks them:
- watchers - change notification and the control loop
- scanners - full rescans of watched trees
- processors - checksum verification, extraction and post-processing
"""

__all__ = ["watchers", "scanners", "processors"]
