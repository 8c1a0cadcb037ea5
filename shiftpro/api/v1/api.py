"""
V1 API router aggregator — wires all endpoint modules together.
"""

from fastapi import APIRouter

from shiftpro.api.v1.endpoints import boss, calendar, employee, health, limits

api_router = APIRouter()

# Health
api_router.include_router(health.router)

# Calendar arithmetic (grid, week ranges, weekly tallies)
api_router.include_router(calendar.router)

# Stored policies
api_router.include_router(limits.router)

# Boss authoring and publication
api_router.include_router(boss.router)

# Employee selection
api_router.include_router(employee.router)
