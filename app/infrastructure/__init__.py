"""Infrastructure modules for the membership service.

Centralized infrastructure components:
- configuration: Settings management (Settings and per-concern sections)
- logging: structlog setup (configure_logging, get_module_logger)
- operations: Operation results and error classification
- persistence: Key/value property store
- resilience: Retry-on-error policy, polling and the retry queue
- clients: Google Workspace and AWS API clients
- services: Dependency injection providers (get_settings, ...)
"""
