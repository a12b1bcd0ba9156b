from __future__ import annotations

import logging
import re
from typing import Any

import requests

from .exceptions import (
    AuthorizationDenied,
    ContractError,
    TransportError,
    Unauthenticated,
    ValidationError,
)
from .settings import AccessSettings, get_access_settings

logger = logging.getLogger(__name__)

_RETRYABLE_STATUSES = (502, 503, 504)
_VALIDATION_STATUSES = (400, 404, 409, 422)


def _flatten_field_errors(errors: Any) -> dict[str, list[str]]:
    if not isinstance(errors, dict):
        return {}
    flattened: dict[str, list[str]] = {}
    for field, messages in errors.items():
        clean_field = re.sub(r"\[\d+\]", "", str(field))
        if isinstance(messages, (list, tuple)):
            items = [str(m) for m in messages]
        else:
            items = [str(messages)]
        flattened.setdefault(clean_field, []).extend(items)
    return flattened


class PermissionApiClient:
    """HTTP client for the permission and user-administration endpoints."""

    def __init__(self, config: AccessSettings | None = None) -> None:
        self.config = config or get_access_settings()

    def is_configured(self) -> bool:
        return bool(self.config.base_url)

    def _url(self, path: str) -> str:
        if not self.is_configured():
            raise ContractError("Access API base URL is not configured.")
        return f"{self.config.base_url}{path}"

    # ------------------------------------------------------------------
    # Current principal
    # ------------------------------------------------------------------

    def get_my_permissions(self, bearer_token: str) -> dict[str, Any]:
        return self._request("GET", self._url("/me/permissions"), bearer_token=bearer_token)

    def check_permission(self, permission: str, *, bearer_token: str) -> dict[str, Any]:
        return self._request(
            "POST",
            self._url("/me/permissions/check"),
            bearer_token=bearer_token,
            json={"permission": permission},
        )

    def check_any_permissions(self, permissions: list[str], *, bearer_token: str) -> dict[str, Any]:
        return self._request(
            "POST",
            self._url("/me/permissions/check-any"),
            bearer_token=bearer_token,
            json={"permissions": permissions},
        )

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def get_role_hierarchy(self, *, bearer_token: str) -> dict[str, Any]:
        return self._request("GET", self._url("/admin/roles/hierarchy"), bearer_token=bearer_token)

    def assign_role(self, user_id: str, role: str, *, bearer_token: str) -> dict[str, Any]:
        return self._request(
            "POST",
            self._url(f"/admin/users/{user_id}/role"),
            bearer_token=bearer_token,
            json={"role": role},
        )

    def add_permissions(self, user_id: str, permissions: list[str], *, bearer_token: str) -> dict[str, Any]:
        return self._request(
            "POST",
            self._url(f"/admin/users/{user_id}/permissions"),
            bearer_token=bearer_token,
            json={"permissions": permissions},
        )

    def remove_permissions(self, user_id: str, permissions: list[str], *, bearer_token: str) -> dict[str, Any]:
        return self._request(
            "DELETE",
            self._url(f"/admin/users/{user_id}/permissions"),
            bearer_token=bearer_token,
            json={"permissions": permissions},
        )

    def reset_permissions(self, user_id: str, *, bearer_token: str) -> dict[str, Any]:
        return self._request(
            "POST",
            self._url(f"/admin/users/{user_id}/reset-permissions"),
            bearer_token=bearer_token,
        )

    def bulk_assign_role(self, user_ids: list[str], role: str, *, bearer_token: str) -> dict[str, Any]:
        return self._request(
            "POST",
            self._url("/admin/users/bulk-assign-role"),
            bearer_token=bearer_token,
            json={"userIds": user_ids, "role": role},
        )

    def validate_role_change(self, user_id: str, new_role: str, *, bearer_token: str) -> dict[str, Any]:
        return self._request(
            "POST",
            self._url(f"/admin/users/{user_id}/validate-role-change"),
            bearer_token=bearer_token,
            json={"newRole": new_role},
        )

    def get_permission_analysis(self, user_id: str, *, bearer_token: str) -> dict[str, Any]:
        return self._request(
            "GET",
            self._url(f"/admin/users/{user_id}/permissions/analysis"),
            bearer_token=bearer_token,
        )

    def _raise_for_status(self, response: requests.Response) -> None:
        try:
            body = response.json()
        except ValueError:
            body = None
        message = ""
        if isinstance(body, dict):
            message = str(body.get("message") or body.get("title") or body.get("error") or "")
        message = message or response.text[:300] or f"HTTP {response.status_code}"

        status = response.status_code
        if status == 401:
            raise Unauthenticated(message)
        if status == 403:
            raise AuthorizationDenied(message)
        if status in _VALIDATION_STATUSES:
            errors = body.get("errors") if isinstance(body, dict) else None
            raise ValidationError(message, _flatten_field_errors(errors))
        if status >= 500:
            raise TransportError(f"Access API request failed ({status}): {message}")
        raise ContractError(f"Access API request failed ({status}): {message}")

    def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        headers = kwargs.pop("headers", {})
        bearer_token = kwargs.pop("bearer_token", None)
        if bearer_token:
            headers["Authorization"] = f"Bearer {bearer_token}"
        headers["Accept"] = "application/json"

        last_exception: Exception | None = None
        for _ in range(self.config.max_retries + 1):
            try:
                response = requests.request(
                    method=method,
                    url=url,
                    timeout=self.config.timeout_seconds,
                    headers=headers,
                    **kwargs,
                )
            except requests.RequestException as exc:
                last_exception = exc
                logger.debug("Access API %s %s raised %s", method, url, exc)
                continue

            if response.status_code in _RETRYABLE_STATUSES:
                last_exception = TransportError(
                    f"Upstream unavailable with status {response.status_code}"
                )
                continue
            if response.status_code >= 400:
                self._raise_for_status(response)
            if response.status_code == 204 or not response.content:
                return {}
            try:
                payload = response.json()
            except ValueError as exc:
                raise ContractError("Access API response is not valid JSON.") from exc
            # The backend wraps most payloads as {"data": ...}.
            if isinstance(payload, dict) and isinstance(payload.get("data"), (dict, list)):
                return payload["data"]
            return payload

        raise TransportError(f"Access API request failed after retries: {last_exception!s}")
