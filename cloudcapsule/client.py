import os
from typing import Any, Dict, List, Optional, Tuple

import requests

API_BASE = os.environ.get("CAPSULE_API_BASE", "http://127.0.0.1:8000")


class ApiError(RuntimeError):
    def __init__(self, status_code: int, detail: str) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"{status_code}: {detail}")


class CapsuleClient:
    """Thin wrapper over the HTTP API, used by the Streamlit dashboard."""

    def __init__(self, base_url: str = API_BASE, token: Optional[str] = None, timeout: float = 30) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    def _request(self, method: str, path: str, **kwargs) -> Any:
        r = requests.request(
            method,
            f"{self.base_url}{path}",
            headers=self._headers(),
            timeout=self.timeout,
            **kwargs,
        )
        if r.status_code >= 400:
            try:
                detail = r.json().get("detail", r.text)
            except ValueError:
                detail = r.text
            raise ApiError(r.status_code, str(detail))
        return r.json()

    # auth

    def register(self, username: str, email: str, password: str) -> Dict[str, Any]:
        out = self._request("POST", "/api/auth/register", json={"username": username, "email": email, "password": password})
        self.token = out["access_token"]
        return out["user"]

    def login(self, email: str, password: str) -> Dict[str, Any]:
        out = self._request("POST", "/api/auth/login", json={"email": email, "password": password})
        self.token = out["access_token"]
        return out["user"]

    def me(self) -> Dict[str, Any]:
        return self._request("GET", "/api/auth/me")

    # capsules

    def list_capsules(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/capsules")

    def get_capsule(self, capsule_id: int) -> Dict[str, Any]:
        return self._request("GET", f"/api/capsules/{capsule_id}")

    def create_capsule(self, payload: Dict[str, Any]) -> int:
        return self._request("POST", "/api/capsules", json=payload)["id"]

    def update_capsule(self, capsule_id: int, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("PUT", f"/api/capsules/{capsule_id}", json=payload)

    def delete_capsule(self, capsule_id: int) -> None:
        self._request("DELETE", f"/api/capsules/{capsule_id}")

    def check_opened(self, only_new: bool = True) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/capsules/check-opened", params={"only_new": str(only_new).lower()})

    def upload_photos(self, files: List[Tuple[str, bytes, str]]) -> List[str]:
        """files: (filename, data, content_type) triples"""
        if not files:
            return []
        multipart = [("photos", (name, data, content_type)) for name, data, content_type in files]
        return self._request("POST", "/api/uploads", files=multipart)["urls"]
