"""
HTTP routes for the food diary API.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Response, UploadFile

from food_diary.attachments import ImageUpload, discard_image, upload_image
from food_diary.auth import MIN_PASSWORD_LENGTH, AuthClient, is_valid_email
from food_diary.config import Settings, get_settings
from food_diary.db import AccountRecord, DbClient, FoodRecord, UserProfileRecord
from food_diary.dependencies import (
    get_auth_client,
    get_current_user,
    get_db_client,
    get_food_storage,
    get_session_token,
    get_user_storage,
)
from food_diary.errors import AuthError, ImageUploadError, RecordNotFoundError, ValidationError
from food_diary.images import resolve_image_ref, validate_image
from food_diary.listing import count_pages, filter_by_name, page_slice
from food_diary.schemas import (
    FoodEntryResponse,
    FoodListResponse,
    LoginRequest,
    ProfileResponse,
    SessionResponse,
    StatusResponse,
)
from food_diary.storage import StorageClient
from food_diary.types import Gender, Meal

logger = logging.getLogger(__name__)

router = APIRouter()

AUTH_ERROR_STATUS = {
    AuthError.EMAIL_ALREADY_IN_USE: 409,
    AuthError.INVALID_EMAIL: 422,
    AuthError.WEAK_PASSWORD: 422,
}


def _auth_http_error(exc: AuthError) -> HTTPException:
    return HTTPException(
        status_code=AUTH_ERROR_STATUS.get(exc.code, 401),
        detail=exc.message,
    )


def _validation_http_error(errors: dict[str, str]) -> HTTPException:
    return HTTPException(
        status_code=422, detail={"message": "Invalid input", "errors": errors}
    )


async def _read_image(
    file: Optional[UploadFile], settings: Settings
) -> Optional[ImageUpload]:
    """Read and validate an optional image field; no file means no change."""
    if file is None or not file.filename:
        return None
    data = await file.read()
    validate_image(
        file.filename, file.content_type, data, max_bytes=settings.max_image_bytes
    )
    return ImageUpload(filename=file.filename, content_type=file.content_type, data=data)


def _parse_meal(value: str, errors: dict[str, str]) -> Optional[Meal]:
    try:
        return Meal(value or Meal.BREAKFAST.value)
    except ValueError:
        errors["meal"] = "Meal must be one of " + ", ".join(m.value for m in Meal)
        return None


def _load_profile(db: DbClient, user: AccountRecord) -> UserProfileRecord:
    profile = db.get_profile(user.user_id)
    if profile is None:
        return UserProfileRecord(
            user_id=user.user_id,
            full_name=user.display_name,
            email=user.email,
            image_ref=user.photo_url,
        )
    if not profile.full_name:
        profile.full_name = user.display_name
    if not profile.email:
        profile.email = user.email
    if not profile.image_ref:
        profile.image_ref = user.photo_url
    return profile


def _profile_response(
    profile: UserProfileRecord, storage: StorageClient
) -> ProfileResponse:
    return ProfileResponse(
        user_id=profile.user_id,
        full_name=profile.full_name,
        email=profile.email,
        gender=profile.gender,
        image_ref=profile.image_ref,
        image_url=resolve_image_ref(profile.image_ref, storage),
        updated_at=profile.updated_at,
    )


def _food_response(record: FoodRecord, storage: StorageClient) -> FoodEntryResponse:
    return FoodEntryResponse(
        id=record.id,
        name=record.name,
        meal=record.meal,
        log_date=record.log_date,
        image_ref=record.image_ref,
        image_url=resolve_image_ref(record.image_ref, storage),
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def _owned_food(db: DbClient, food_id: str, user: AccountRecord) -> FoodRecord:
    record = db.get_food(food_id)
    if record is None or record.user_id != user.user_id:
        raise HTTPException(status_code=404, detail="Food entry not found")
    return record


@router.post("/auth/register", response_model=ProfileResponse, status_code=201)
async def register(
    full_name: str = Form(""),
    email: str = Form(""),
    password: str = Form(""),
    gender: str = Form(""),
    image: Optional[UploadFile] = File(None),
    db: DbClient = Depends(get_db_client),
    auth: AuthClient = Depends(get_auth_client),
    storage: StorageClient = Depends(get_user_storage),
    settings: Settings = Depends(get_settings),
):
    """
    Create an account and its profile record. The caller stays signed out.
    """
    errors: dict[str, str] = {}
    full_name = full_name.strip()
    email = email.strip()
    if not full_name:
        errors["full_name"] = "Full name is required"
    if not email:
        errors["email"] = "Email is required"
    elif not is_valid_email(email):
        errors["email"] = "Invalid email address"
    if not password:
        errors["password"] = "Password is required"
    elif len(password) < MIN_PASSWORD_LENGTH:
        errors["password"] = f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    if gender not in (Gender.MALE.value, Gender.FEMALE.value, Gender.OTHER.value):
        errors["gender"] = "Please select a gender"
    try:
        upload = await _read_image(image, settings)
    except ValidationError as exc:
        errors.update(exc.errors)
        upload = None
    if errors:
        raise _validation_http_error(errors)

    image_url = None
    if upload:
        try:
            image_url = upload_image(storage, upload)
        except ImageUploadError as exc:
            logger.warning("Registering %s without a profile image: %s", email, exc)

    try:
        account = auth.sign_up(email, password)
    except AuthError as exc:
        discard_image(storage, image_url)
        raise _auth_http_error(exc)

    auth.update_user(account.user_id, display_name=full_name, photo_url=image_url)
    profile = db.merge_profile(
        account.user_id,
        {
            "full_name": full_name,
            "email": account.email,
            "gender": gender,
            "image_ref": image_url,
        },
    )
    return _profile_response(profile, storage)


@router.post("/auth/login", response_model=SessionResponse)
def login(
    payload: LoginRequest,
    db: DbClient = Depends(get_db_client),
    auth: AuthClient = Depends(get_auth_client),
    storage: StorageClient = Depends(get_user_storage),
):
    if not payload.email.strip() or not payload.password:
        raise HTTPException(status_code=422, detail="Email and password are required")
    try:
        session = auth.sign_in(payload.email.strip(), payload.password)
    except AuthError as exc:
        raise _auth_http_error(exc)
    profile = _load_profile(db, session.user)
    return SessionResponse(
        access_token=session.token,
        user_id=session.user.user_id,
        full_name=profile.full_name,
        image_url=resolve_image_ref(profile.image_ref, storage),
    )


@router.post("/auth/logout", response_model=StatusResponse)
def logout(
    token: str = Depends(get_session_token),
    auth: AuthClient = Depends(get_auth_client),
):
    try:
        auth.sign_out(token)
    except AuthError as exc:
        raise _auth_http_error(exc)
    return StatusResponse(status="ok")


@router.get("/profile", response_model=ProfileResponse)
def get_profile(
    user: AccountRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_user_storage),
):
    return _profile_response(_load_profile(db, user), storage)


@router.put("/profile", response_model=ProfileResponse)
async def update_profile(
    full_name: str = Form(""),
    gender: str = Form(""),
    new_password: str = Form(""),
    image: Optional[UploadFile] = File(None),
    user: AccountRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    auth: AuthClient = Depends(get_auth_client),
    storage: StorageClient = Depends(get_user_storage),
    settings: Settings = Depends(get_settings),
):
    errors: dict[str, str] = {}
    full_name = full_name.strip()
    if not full_name:
        errors["full_name"] = "Full name is required"
    if new_password and len(new_password) < MIN_PASSWORD_LENGTH:
        errors["new_password"] = (
            f"New password must be at least {MIN_PASSWORD_LENGTH} characters"
        )
    if gender not in {g.value for g in Gender}:
        errors["gender"] = "Unknown gender"
    try:
        upload = await _read_image(image, settings)
    except ValidationError as exc:
        errors.update(exc.errors)
        upload = None
    if errors:
        raise _validation_http_error(errors)

    current = _load_profile(db, user)
    old_ref = current.image_ref
    new_url = None
    if upload:
        try:
            new_url = upload_image(storage, upload)
        except ImageUploadError as exc:
            raise HTTPException(status_code=502, detail=str(exc))
    final_ref = new_url or old_ref

    try:
        auth.update_user(
            user.user_id,
            display_name=full_name,
            photo_url=final_ref,
            password=new_password or None,
        )
    except AuthError as exc:
        discard_image(storage, new_url)
        raise _auth_http_error(exc)

    profile = db.merge_profile(
        user.user_id,
        {
            "full_name": full_name,
            "email": current.email,
            "gender": gender,
            "image_ref": final_ref,
        },
    )
    if new_url and old_ref:
        discard_image(storage, old_ref)
    return _profile_response(profile, storage)


@router.get("/foods", response_model=FoodListResponse)
def list_foods(
    search: str = Query(""),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=1000),
    user: AccountRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_food_storage),
    settings: Settings = Depends(get_settings),
):
    rows = db.query_foods(user.user_id, limit=settings.food_query_limit)
    filtered = filter_by_name(rows, search, lambda row: row.name)
    return FoodListResponse(
        items=[_food_response(r, storage) for r in page_slice(filtered, page, page_size)],
        total=len(filtered),
        page=page,
        page_size=page_size,
        total_pages=count_pages(len(filtered), page_size),
    )


@router.get("/foods/{food_id}", response_model=FoodEntryResponse)
def get_food(
    food_id: str,
    user: AccountRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_food_storage),
):
    return _food_response(_owned_food(db, food_id, user), storage)


@router.post("/foods", response_model=FoodEntryResponse, status_code=201)
async def create_food(
    name: str = Form(""),
    meal: str = Form(Meal.BREAKFAST.value),
    log_date: str = Form(""),
    image: Optional[UploadFile] = File(None),
    user: AccountRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_food_storage),
    settings: Settings = Depends(get_settings),
):
    errors: dict[str, str] = {}
    name = name.strip()
    if not name:
        errors["name"] = "Food name is required"
    parsed_meal = _parse_meal(meal, errors)
    parsed_date = datetime.now(timezone.utc).date()
    if log_date:
        try:
            parsed_date = date.fromisoformat(log_date)
        except ValueError:
            errors["log_date"] = "Date must be YYYY-MM-DD"
    try:
        upload = await _read_image(image, settings)
    except ValidationError as exc:
        errors.update(exc.errors)
        upload = None
    if errors:
        raise _validation_http_error(errors)

    image_url = None
    if upload:
        try:
            image_url = upload_image(storage, upload)
        except ImageUploadError as exc:
            raise HTTPException(status_code=502, detail=str(exc))

    record = db.create_food(
        user.user_id,
        name=name,
        meal=parsed_meal,
        log_date=parsed_date,
        image_ref=image_url,
    )
    return _food_response(record, storage)


@router.put("/foods/{food_id}", response_model=FoodEntryResponse)
async def update_food(
    food_id: str,
    name: str = Form(""),
    meal: str = Form(Meal.BREAKFAST.value),
    image: Optional[UploadFile] = File(None),
    user: AccountRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_food_storage),
    settings: Settings = Depends(get_settings),
):
    existing = _owned_food(db, food_id, user)

    errors: dict[str, str] = {}
    name = name.strip()
    if not name:
        errors["name"] = "Food name is required"
    parsed_meal = _parse_meal(meal, errors)
    try:
        upload = await _read_image(image, settings)
    except ValidationError as exc:
        errors.update(exc.errors)
        upload = None
    if errors:
        raise _validation_http_error(errors)

    new_url = None
    if upload:
        try:
            new_url = upload_image(storage, upload)
        except ImageUploadError as exc:
            raise HTTPException(status_code=502, detail=str(exc))

    try:
        record = db.update_food(
            food_id, name=name, meal=parsed_meal, image_ref=new_url
        )
    except RecordNotFoundError:
        discard_image(storage, new_url)
        raise HTTPException(status_code=404, detail="Food entry not found")
    if new_url and existing.image_ref:
        discard_image(storage, existing.image_ref)
    return _food_response(record, storage)


@router.delete("/foods/{food_id}", status_code=204)
def delete_food(
    food_id: str,
    user: AccountRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_food_storage),
):
    record = _owned_food(db, food_id, user)
    try:
        db.delete_food(food_id)
    except RecordNotFoundError:
        raise HTTPException(status_code=404, detail="Food entry not found")
    discard_image(storage, record.image_ref)
    return Response(status_code=204)
