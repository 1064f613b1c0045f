"""
Release Watch Scanners

On-demand walks of the watched directories.
"""
