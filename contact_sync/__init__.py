"""
contact-sync: dedupe a contact feed against a remote directory and push
creates and updates in batches.
"""

__version__ = "0.1.0"
