"""
FastAPI routers grouped by area (auth, seller, admin, health).

Each module exposes an APIRouter included by app.py.
"""
