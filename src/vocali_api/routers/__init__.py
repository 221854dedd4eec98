"""
API router package for Vocali.

Contains the health endpoints, the mount point for the transcription
subsystem, and the fallback handler for unmatched routes.
"""
