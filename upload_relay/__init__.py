"""
Klym Upload Relay - accepts a file over HTTP and publishes it to S3.

This package contains the complete application:
- core: Framework-agnostic upload pipeline
- infrastructure: Object storage integration
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
