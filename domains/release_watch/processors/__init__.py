"""
Release Watch Processors

- checksums.py - SFV checksum lists
- archives.py - archive decoding
- unpacker.py - verification, extraction, cleanup and post-processing
"""
