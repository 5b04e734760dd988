import logging
import os
from typing import Optional

from fastapi import APIRouter, FastAPI, Depends, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordRequestForm
from fastapi.staticfiles import StaticFiles

from ..config import settings
from ..entities import User, UserCreate
from ..errors import MemoryLaneError
from ..logging_config import setup_logging
from ..storage import IStorage, build_storage
from .deps import authenticate_user, get_current_user, get_storage
from .routers import router as api_router
from .schemas import Token, UserOut, UserRegister, UserUpdate
from .security import create_access_token, get_password_hash

logger = logging.getLogger(__name__)

OPENAPI_TAGS = [
    {"name": "Authentication", "description": "Registration, login and the current user's profile"},
    {"name": "Users", "description": "Browse user profiles"},
    {"name": "Memories", "description": "Create, update, view and delete memories and their comments"},
    {"name": "Friends", "description": "Friend requests and friendships"},
    {"name": "Groups", "description": "Groups, memberships and group memories"},
    {"name": "Notifications", "description": "Notifications generated by friend requests, comments and invites"},
    {"name": "Uploads", "description": "Image uploads"},
    {"name": "Calendar", "description": "Month grid of memories"},
]


auth_router = APIRouter()


# Root Health Check
@auth_router.get("/", summary="Health Check", tags=["General"])
def health_check():
    """Simple health check endpoint."""
    return {"message": "Healthy"}


#####################
# AUTH ENDPOINTS
#####################

# PUBLIC_INTERFACE
@auth_router.post("/api/register", response_model=UserOut, status_code=201, summary="Register a new user", tags=["Authentication"])
def register(user: UserRegister, storage: IStorage = Depends(get_storage)):
    """
    Register a new user.
    Returns the newly created user record (excluding password).
    """
    data = user.model_dump()
    data["password"] = get_password_hash(user.password)
    return storage.create_user(UserCreate(**data))

# PUBLIC_INTERFACE
@auth_router.post("/api/login", response_model=Token, summary="Login and get JWT token", tags=["Authentication"])
def login(form_data: OAuth2PasswordRequestForm = Depends(), storage: IStorage = Depends(get_storage)):
    """
    User login.
    Returns JWT access token on success.
    """
    user = authenticate_user(storage, form_data.username, form_data.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid credentials.")
    access_token = create_access_token(data={"sub": str(user.id)})
    return {"access_token": access_token, "token_type": "bearer"}

# PUBLIC_INTERFACE
@auth_router.get("/api/user", response_model=UserOut, summary="Get current user profile", tags=["Authentication"])
def get_profile(current_user: User = Depends(get_current_user)):
    """
    Get details about the current authed user.
    """
    return current_user

# PUBLIC_INTERFACE
@auth_router.put("/api/user", response_model=UserOut, summary="Update current user profile", tags=["Authentication"])
def update_profile(
    profile: UserUpdate,
    storage: IStorage = Depends(get_storage),
    current_user: User = Depends(get_current_user),
):
    """
    Update the current user's username, display name, bio or avatar.
    """
    return storage.update_user(current_user.id, profile.model_dump(exclude_unset=True, exclude_none=True))


# Error handlers

def memorylane_exception_handler(request: Request, exc: MemoryLaneError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )

def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


def create_app(storage: Optional[IStorage] = None) -> FastAPI:
    """
    Build the FastAPI application around ``storage`` (or the backing
    selected by STORAGE_BACKEND when omitted).
    """
    setup_logging(settings.log_level)

    app = FastAPI(
        title=settings.project_name,
        description="Backend API for recording memories and sharing them with friends and groups.",
        version=settings.api_version,
        openapi_tags=OPENAPI_TAGS,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.storage = storage if storage is not None else build_storage(settings)

    app.add_exception_handler(MemoryLaneError, memorylane_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    app.include_router(auth_router)
    app.include_router(api_router, prefix="/api")

    os.makedirs(settings.upload_dir, exist_ok=True)
    app.mount("/uploads", StaticFiles(directory=settings.upload_dir), name="uploads")

    logger.info("%s %s ready", settings.project_name, settings.api_version)
    return app


app = create_app()


def run() -> None:
    """Serve the app with Uvicorn on HOST/PORT (defaults 0.0.0.0:8000)."""
    import uvicorn

    uvicorn.run(
        "memorylane_backend.api.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
