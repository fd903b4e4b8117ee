"""
Service identity and event source constants
"""

SERVICE_NAME = "attendance-engine"

# Event sources
SOURCE_WEB = "WEB"
SOURCE_ADMIN = "ADMIN"
SOURCE_SYSTEM = "SYSTEM"
