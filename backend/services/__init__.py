"""
Services package - Business logic layer.

This package contains all business logic services that operate on Django models
but are decoupled from the HTTP/WebSocket layer.

Modules:
    - pricing: Trip distance/duration estimates and suggested fares
    - ride_management: Core ride lifecycle operations
    - wallet: Append-only wallet ledger
    - notifications: In-app notifications with socket/push forwarding
    - context: ServiceContext passed to lifecycle operations
"""
