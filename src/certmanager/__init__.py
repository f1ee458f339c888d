"""Certificate Manager.

Keep TLS certificates for Docker containers in step with their labels,
issuing, renewing and revoking them through ``acme.sh`` and copying
them into the containers that request them.
"""

__version__ = "1.0.0"
