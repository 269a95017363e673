# Overview: Request decorators for tenant-scoped API routes.

from functools import wraps
from flask import request, jsonify, g

from .services.tenant_service import TenantAccessError, resolve_tenant


TENANT_HEADER = "X-Tenant-Code"


def require_tenant(f):
    """
    Establish tenant context from the X-Tenant-Code header.

    MULTI-TENANT: Sets the following Flask g attributes:
    - g.org_id: The organization ID (tenant context) - REQUIRED
    - g.tenant: The Organization row

    Returns 401 when the header is missing and 404 when the code is unknown
    or the organization is inactive.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        code = request.headers.get(TENANT_HEADER)
        if not code or not code.strip():
            return jsonify({"error": f"{TENANT_HEADER} header required"}), 401

        try:
            org = resolve_tenant(code)
        except TenantAccessError as e:
            return jsonify({"error": str(e)}), 404

        g.tenant = org
        g.org_id = org.id

        return f(*args, **kwargs)

    return decorated_function
