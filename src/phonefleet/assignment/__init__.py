"""Assignment module - hands devices to field staff and tracks them back.

This module provides the assignment lifecycle:
- Create an assignment and move the device to ASSIGNED atomically
- Ship, deliver and receive returns through explicit transitions
- Cancel or close assignments, restoring or releasing the device
- Register devices by hand and soft-delete devices leaving the fleet

Architecture: Clean Architecture with Hexagonal (Ports & Adapters)
"""
