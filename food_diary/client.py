"""
Python client for the food diary API.

``FoodDiaryApi`` keeps the session display fields (token, user id, name,
avatar URL) the way a browser front end keeps them in local storage, and
doubles as the backend of a ``FoodListing``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Optional

import requests

from food_diary.errors import FoodDiaryError

REQUEST_TIMEOUT = 30  # seconds
LISTING_FETCH_LIMIT = 1000

ImageFile = tuple[str, bytes, str]  # (filename, payload, content type)


class ApiError(FoodDiaryError):
    """Non-2xx response from the API."""

    def __init__(self, status_code: int, detail: Any):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"HTTP {status_code}: {detail}")

    @property
    def message(self) -> str:
        if isinstance(self.detail, dict):
            return str(self.detail.get("message", self.detail))
        return str(self.detail)

    @property
    def field_errors(self) -> dict:
        if isinstance(self.detail, dict):
            return dict(self.detail.get("errors") or {})
        return {}


@dataclass
class Session:
    token: Optional[str] = None
    user_id: Optional[str] = None
    full_name: str = ""
    image_url: Optional[str] = None

    @property
    def signed_in(self) -> bool:
        return bool(self.token)

    def clear(self) -> None:
        self.token = None
        self.user_id = None
        self.full_name = ""
        self.image_url = None


@dataclass
class FoodEntry:
    id: str
    name: str
    meal: str
    log_date: date
    image_ref: Optional[str] = None
    image_url: Optional[str] = None

    @classmethod
    def from_json(cls, payload: dict) -> "FoodEntry":
        return cls(
            id=payload["id"],
            name=payload.get("name") or "",
            meal=payload.get("meal") or "Breakfast",
            log_date=date.fromisoformat(payload["log_date"]),
            image_ref=payload.get("image_ref"),
            image_url=payload.get("image_url"),
        )


def _error_detail(response) -> Any:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:500]
    if isinstance(payload, dict) and "detail" in payload:
        return payload["detail"]
    return payload


class FoodDiaryApi:
    """
    Thin wrapper over the HTTP API.

    ``http`` is anything with a requests-style ``request(method, url, ...)``;
    it defaults to a ``requests.Session``.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        http=None,
        api_prefix: str = "/api",
        timeout: float = REQUEST_TIMEOUT,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_prefix = api_prefix
        self.http = http if http is not None else requests.Session()
        self.timeout = timeout
        self.session = Session()

    def _request(self, method: str, path: str, **kwargs):
        headers = dict(kwargs.pop("headers", None) or {})
        if self.session.token:
            headers["Authorization"] = f"Bearer {self.session.token}"
        url = f"{self.base_url}{self.api_prefix}{path}"
        response = self.http.request(
            method, url, headers=headers, timeout=self.timeout, **kwargs
        )
        if response.status_code >= 400:
            raise ApiError(response.status_code, _error_detail(response))
        return response

    @staticmethod
    def _files(image: Optional[ImageFile]) -> Optional[dict]:
        return {"image": image} if image else None

    def register(
        self,
        full_name: str,
        email: str,
        password: str,
        gender: str,
        image: Optional[ImageFile] = None,
    ) -> dict:
        data = {
            "full_name": full_name,
            "email": email,
            "password": password,
            "gender": gender,
        }
        return self._request(
            "POST", "/auth/register", data=data, files=self._files(image)
        ).json()

    def login(self, email: str, password: str) -> Session:
        payload = self._request(
            "POST", "/auth/login", json={"email": email, "password": password}
        ).json()
        self.session = Session(
            token=payload["access_token"],
            user_id=payload["user_id"],
            full_name=payload.get("full_name") or "",
            image_url=payload.get("image_url"),
        )
        return self.session

    def logout(self) -> None:
        try:
            if self.session.token:
                self._request("POST", "/auth/logout")
        finally:
            self.session.clear()

    def get_profile(self) -> dict:
        return self._request("GET", "/profile").json()

    def update_profile(
        self,
        full_name: str,
        gender: str = "",
        new_password: str = "",
        image: Optional[ImageFile] = None,
    ) -> dict:
        data = {"full_name": full_name, "gender": gender, "new_password": new_password}
        profile = self._request(
            "PUT", "/profile", data=data, files=self._files(image)
        ).json()
        self.session.full_name = profile["full_name"]
        self.session.image_url = profile.get("image_url")
        return profile

    def list_foods(self, search: str = "", page: int = 1, page_size: int = 10) -> dict:
        params = {"search": search, "page": page, "page_size": page_size}
        return self._request("GET", "/foods", params=params).json()

    def get_food(self, food_id: str) -> FoodEntry:
        return FoodEntry.from_json(self._request("GET", f"/foods/{food_id}").json())

    def create_food(
        self,
        name: str,
        meal: str = "Breakfast",
        log_date: Optional[date] = None,
        image: Optional[ImageFile] = None,
    ) -> FoodEntry:
        data = {"name": name, "meal": meal}
        if log_date:
            data["log_date"] = log_date.isoformat()
        response = self._request("POST", "/foods", data=data, files=self._files(image))
        return FoodEntry.from_json(response.json())

    def update_food(
        self,
        food_id: str,
        name: str,
        meal: str,
        image: Optional[ImageFile] = None,
    ) -> FoodEntry:
        response = self._request(
            "PUT",
            f"/foods/{food_id}",
            data={"name": name, "meal": meal},
            files=self._files(image),
        )
        return FoodEntry.from_json(response.json())

    def delete_food(self, food_id: str) -> None:
        self._request("DELETE", f"/foods/{food_id}")

    def fetch_entries(self) -> list[FoodEntry]:
        payload = self.list_foods(page=1, page_size=LISTING_FETCH_LIMIT)
        return [FoodEntry.from_json(item) for item in payload["items"]]

    def delete_entry(self, entry_id: str) -> None:
        self.delete_food(entry_id)
