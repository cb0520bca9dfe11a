"""
Sarvam Backend API

A FastAPI backend for accounts, image posts and group expense sharing.
This module sets up the app and mounts routers - all endpoint logic is in routers/.
"""

import os
import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

import models
from database import engine
from errors import register_error_handlers
from utils.storage import UPLOAD_DIR, UPLOAD_URL_PATH

# Import routers
from routers import auth, profile, posts, expenses


logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)

# Create database tables
models.Base.metadata.create_all(bind=engine)

# Create uploads directory if not exists
os.makedirs(UPLOAD_DIR, exist_ok=True)

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

# Initialize FastAPI app
app = FastAPI(
    title="Sarvam API",
    description="API for accounts, posts and expense groups",
    version="1.0.0"
)

# Mount static files for uploaded images
app.mount(UPLOAD_URL_PATH, StaticFiles(directory=UPLOAD_DIR), name="uploads")

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=CORS_ORIGINS != ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Include routers
app.include_router(auth.router)
app.include_router(profile.router)
app.include_router(posts.router)
app.include_router(expenses.router)


@app.get("/")
def root():
    return {"status": "ok", "app": "Sarvam API"}
