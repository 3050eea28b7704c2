# Routes package init
"""
School Directory Backend: API Routes Package
=============================================

Route Inventory:
    - schools.py: /api/schools/*   (school CRUD, image uploads, AI description)
    - images.py:  /api/images/*    (school image lookup, stored image list/metadata/delete)
    - health.py:  GET /health, GET /api/health (service health check)

Routes stay thin: read the request, call a service, wrap the result.
Errors propagate to the global handlers registered in app.main.
"""
