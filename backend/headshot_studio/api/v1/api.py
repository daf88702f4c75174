"""API v1 router aggregation."""

from fastapi import APIRouter

from headshot_studio.api.v1.routers import auth, credits, generation, stripe

api_router = APIRouter()

api_router.include_router(auth.router)  # Signup, login, logout
api_router.include_router(credits.router)  # Balance, history, packages
api_router.include_router(stripe.router)  # Stripe checkout and webhook
api_router.include_router(generation.router)  # Costed generations
