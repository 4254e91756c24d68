"""
Backend package for the BD Quake Monitor API.

This package provides a FastAPI application that serves the regional USGS
earthquake feed through a short-lived cache, a signature-cached Gemini
situation report, and alert subscription storage.
"""
