# backend/soora/main.py

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from soora.api import admin_api, auth, delivery_api, order_api, payment_api
from soora.core.config import get_settings
from soora.core.logging_config import setup_logging

setup_logging(get_settings().log_level)

app = FastAPI(title="Soora API")

# Add CORS middleware to allow the storefront to call the API
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include the API routers
app.include_router(auth.router, prefix="/api/v1")
app.include_router(order_api.router, prefix="/api/v1")
app.include_router(admin_api.router, prefix="/api/v1")
app.include_router(delivery_api.router, prefix="/api/v1")
app.include_router(payment_api.router, prefix="/api/v1")

@app.get("/")
def read_root():
    return {"message": "Welcome to the Soora API!"}

@app.get("/health")
def health():
    return {"status": "ok"}
