from fastapi import APIRouter

from .endpoints import (
    auth,
    awards,
    bids,
    budget,
    contacts,
    procurement,
    projects,
    rfps,
    schedule,
    tasks,
    users,
    vendors,
    webhooks,
)

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["authentication"])
api_router.include_router(projects.router, prefix="/projects", tags=["projects"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(tasks.router, prefix="/tasks", tags=["tasks"])
api_router.include_router(budget.router, prefix="/budget", tags=["budget"])
api_router.include_router(contacts.router, prefix="/contacts", tags=["contacts"])
api_router.include_router(schedule.router, prefix="/schedule", tags=["schedule"])
api_router.include_router(procurement.router, prefix="/procurement", tags=["procurement"])
api_router.include_router(vendors.router, prefix="/vendors", tags=["vendors"])
api_router.include_router(rfps.router, tags=["rfps"])
api_router.include_router(bids.router, prefix="/bids", tags=["bids"])
api_router.include_router(awards.router, prefix="/awards", tags=["awards"])
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
