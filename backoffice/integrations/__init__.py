"""backoffice.integrations — External service gateway modules.

All outbound HTTP calls to third-party APIs must go through a gateway in
this package, never via bare `requests` calls in services or blueprints.

Current gateways:
  drive_gateway.DriveGateway — Google Drive v3 REST API (asset storage)
"""
