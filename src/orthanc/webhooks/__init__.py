"""Helpers for endpoints receiving Orthanc webhook deliveries.

Example:
    ```python
    from orthanc.webhooks import parse_event

    event = parse_event(request_body, secret="whsec_...", signature=signature_header)
    if event.event == "memory.created":
        ...
    ```

Subscriptions themselves are managed through ``OrthancClient``
(``create_webhook``, ``list_webhooks``, ...).
"""

from .signature import compute_signature, parse_event, verify_signature

__all__ = [
    "compute_signature",
    "parse_event",
    "verify_signature",
]
