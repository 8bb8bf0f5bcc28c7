"""Core cross-cutting concerns: errors, security, authentication, rate limiting."""
