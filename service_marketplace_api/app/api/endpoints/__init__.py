"""
Endpoint modules.

Each module defines an APIRouter for one domain (users, services,
service requests, payments).  Handlers stay thin: they parse the
request, call the service layer and translate domain errors into
HTTP errors.
"""
