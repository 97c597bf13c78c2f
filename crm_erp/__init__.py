"""
CRM-to-ERP Bridge.

- api/: Intake HTTP endpoints (users, health)
- core/: Configuration, logging, database, errors, resilience
- events/: UserCreated event codec, publisher, broker and ERP consumer
- models/, repositories/: Record store tables and access
- services/: User intake and ERP processing
"""
