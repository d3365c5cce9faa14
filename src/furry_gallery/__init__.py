"""
Furry photo gallery API.

Modules:
- config: settings read from environment variables
- db: PostgreSQL connection pool + query helpers
- auth_utils: password hashing, JWT tokens and account operations
- api_auth: request authentication and permission checks
- listing: pagination/filtering for list endpoints
- schemas: Pydantic models for the REST API
- routers: route modules, mounted in main
"""
