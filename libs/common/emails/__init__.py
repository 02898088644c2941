"""
InterioWale notification package.

Modules:
- client: EmailClient for sending email via the Communications Service API
- store: order notification templates
"""
