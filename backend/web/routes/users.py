"""
Users API routes: profiles, administration, registration and bootstrap.

Why:
    Admins approve accounts and assign roles; every such change goes through
    `UsersService`, which keeps identity-provider claims and the user document
    in sync. Registration and the first-admin bootstrap are public.

Permissions:
    - Profile: any authenticated caller.
    - List/lookup/approve/role: approved `admin`.
    - Register, first-admin bootstrap: unauthenticated.
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from web.responses import container, current_sub, error_response, json_private, private_error

users_router = APIRouter(tags=["Users"])


class ApprovalPayload(BaseModel):
    approved: Optional[bool] = None


class RolePayload(BaseModel):
    role: Optional[str] = None


class RegisterPayload(BaseModel):
    email: Optional[str] = Field(default=None, max_length=320)
    password: Optional[str] = Field(default=None, max_length=256)
    displayName: Optional[str] = Field(default=None, max_length=200)
    role: Optional[str] = None


class FirstAdminPayload(BaseModel):
    email: Optional[str] = Field(default=None, max_length=320)
    password: Optional[str] = Field(default=None, max_length=256)
    displayName: Optional[str] = Field(default=None, max_length=200)


@users_router.get("/api/users/profile")
def get_user_profile(request: Request, userId: Optional[str] = None):
    """Return a user profile (the caller's own when `userId` is omitted)."""
    sub = current_sub(request)
    if not sub:
        return private_error("unauthenticated")
    try:
        user = container(request).users.get_user_profile(sub, userId)
    except Exception as exc:
        return error_response(exc, operation="getUserProfile")
    return json_private({"user": user})


@users_router.get("/api/users")
def list_users(request: Request, role: Optional[str] = None, approved: Optional[bool] = None):
    sub = current_sub(request)
    if not sub:
        return private_error("unauthenticated")
    try:
        users = container(request).users.list_users(sub, role=role, approved=approved)
    except Exception as exc:
        return error_response(exc, operation="getUsers")
    return json_private({"users": users})


@users_router.get("/api/users/lookup")
def lookup_user(request: Request, email: Optional[str] = None):
    sub = current_sub(request)
    if not sub:
        return private_error("unauthenticated")
    try:
        user = container(request).users.find_user_by_email(sub, email)
    except Exception as exc:
        return error_response(exc, operation="lookupUser")
    return json_private({"user": user})


@users_router.post("/api/users/{user_id}/approval")
def approve_user(request: Request, user_id: str, payload: ApprovalPayload):
    """Approve or reject a registration and refresh the user's claims."""
    sub = current_sub(request)
    if not sub:
        return private_error("unauthenticated")
    try:
        message = container(request).users.approve_user(sub, user_id, payload.approved)
    except Exception as exc:
        return error_response(exc, operation="approveUser")
    return json_private({"message": message})


@users_router.put("/api/users/{user_id}/role")
def update_user_role(request: Request, user_id: str, payload: RolePayload):
    sub = current_sub(request)
    if not sub:
        return private_error("unauthenticated")
    try:
        message = container(request).users.update_user_role(sub, user_id, payload.role)
    except Exception as exc:
        return error_response(exc, operation="updateUserRole")
    return json_private({"message": message})


@users_router.post("/api/users/register")
def register_user(request: Request, payload: RegisterPayload):
    """Self-service registration as lecturer (default) or moderator.

    The account is created unapproved and without claims until an admin
    approves it.
    """
    try:
        uid = container(request).users.register_user(
            email=payload.email,
            password=payload.password,
            display_name=payload.displayName,
            role=payload.role,
        )
    except Exception as exc:
        return error_response(exc, operation="registerUser")
    return json_private({"userId": uid, "message": "Registration received, awaiting approval"}, status_code=201)


@users_router.post("/api/bootstrap/admin")
def create_first_admin(request: Request, payload: FirstAdminPayload):
    """Create the first admin account; 409 once any admin exists."""
    try:
        uid = container(request).users.create_first_admin(
            email=payload.email,
            password=payload.password,
            display_name=payload.displayName,
        )
    except Exception as exc:
        return error_response(exc, operation="createFirstAdmin")
    return json_private({"userId": uid, "message": "First admin user created successfully"}, status_code=201)
