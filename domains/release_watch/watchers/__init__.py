"""
Release Watch Watchers

Long-running services that receive change events and control commands.
"""
