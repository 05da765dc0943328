"""
User endpoints.

Registration accepts multipart form data so a profile photo can be
uploaded together with the user's details.  Login verifies the
password hash and returns the user plus a bearer token.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status
from pydantic import ValidationError as PydanticValidationError

from service_marketplace_api.app.core.errors import MarketplaceError, from_pydantic
from service_marketplace_api.app.core.security import create_access_token, get_current_user
from service_marketplace_api.app.core.uploads import discard_uploads, save_upload
from service_marketplace_api.app.schemas.address import address_from_form
from service_marketplace_api.app.schemas.user import UserCreate, UserLogin, UserRead
from service_marketplace_api.app.services.user_service import UserService


router = APIRouter()


@router.post("/register", response_model=UserRead, status_code=status.HTTP_201_CREATED)
async def register_user(
    request: Request,
    name: str = Form(...),
    email: str = Form(...),
    phone_number: str = Form(..., alias="phoneNumber"),
    password: str = Form(...),
    photo: Optional[UploadFile] = File(None),
) -> UserRead:
    """Register a new user with an optional profile photo.

    ``address`` is sent either as a JSON string or in bracket notation
    (``address[street]``, ``address[city]`` ...).
    """
    try:
        data = UserCreate(
            name=name,
            email=email,
            phone_number=phone_number,
            address=address_from_form(await request.form(), "address"),
            password=password,
        )
    except PydanticValidationError as e:
        raise from_pydantic(e, email=email).to_http() from e
    except MarketplaceError as e:
        raise e.to_http() from e

    photo_path = None
    try:
        if photo is not None and photo.filename:
            photo_path = await save_upload(photo, "photo")
        return await UserService.create_user(data.model_copy(update={"photo": photo_path}))
    except Exception as e:
        if photo_path:
            discard_uploads([photo_path])
        if isinstance(e, MarketplaceError):
            raise e.to_http() from e
        raise


@router.post("/login")
async def login_user(credentials: UserLogin) -> dict:
    """Authenticate by email and password.

    Returns the user and a bearer token; wrong credentials give
    HTTP 400.
    """
    user = await UserService.authenticate(credentials.email, credentials.password)
    if not user:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid credentials")
    token = create_access_token({"sub": user.email, "user_id": user.id})
    return {
        "message": "Login successful",
        "user": user,
        "access_token": token,
        "token_type": "bearer",
    }


@router.get("/me", response_model=UserRead)
async def read_current_user(current_user: dict = Depends(get_current_user)) -> UserRead:
    """Return the user the bearer token was issued to."""
    user_id = current_user.get("user_id")
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token carries no user")
    try:
        return await UserService.get_user(int(user_id))
    except MarketplaceError as e:
        raise e.to_http() from e


@router.get("/{user_id}", response_model=UserRead)
async def read_user(user_id: int) -> UserRead:
    try:
        return await UserService.get_user(user_id)
    except MarketplaceError as e:
        raise e.to_http() from e
