from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from storefront.audit.loggers import log_admin_action, log_user_activity
from storefront.auth.dependencies import require_permissions
from storefront.auth.repository import get_user_role_names, revoke_all_tokens_per_user
from storefront.auth.utils import hash_password, validate_password, verify_password
from storefront.common.pagination import PageParams, page_params, page_payload, paginate
from storefront.common.utils import now, success_response
from storefront.db.dependencies import get_session
from storefront.schema.full_schema import Address
from storefront.user.constants import MAX_ADDRESSES_PER_USER, logger
from storefront.user.dependencies import current_user_id
from storefront.user.models import (AddressCreateIn, AddressUpdateIn, ChangePasswordIn, ProfileUpdateIn, SetRolesIn,
                                    UserStatusIn)
from storefront.user.repository import (clear_default_address, count_addresses, get_address, get_password_credential,
                                        get_user, get_user_by_pid, list_addresses, list_users_stmt, replace_user_roles,
                                        role_names_for_users)
from storefront.user.utils import address_out, user_out

user_router = APIRouter()
user_admin_router = APIRouter()


@user_router.get("/me")
async def get_user_profile(request: Request, session: AsyncSession = Depends(get_session)):
    user = await get_user(session, current_user_id(request))
    roles = await get_user_role_names(session, user.id)
    return success_response({"user": user_out(user, roles)})


@user_router.patch("/me")
async def update_user_profile(request: Request, payload: ProfileUpdateIn, session: AsyncSession = Depends(get_session)):
    user = await get_user(session, current_user_id(request))

    updates = payload.model_dump(exclude_unset=True)
    if "phone" in updates and updates["phone"] != user.phone:
        user.phone_verified_at = None
    for field, value in updates.items():
        setattr(user, field, value)
    user.updated_at = now()
    await session.commit()

    log_user_activity(user.id, "PROFILE_UPDATED", {"fields": sorted(updates)})
    return success_response({"user": user_out(user, await get_user_role_names(session, user.id))})


@user_router.post("/me/password")
async def change_password(request: Request, payload: ChangePasswordIn, session: AsyncSession = Depends(get_session)):

    user_identifier = current_user_id(request)

    is_valid, detail = validate_password(payload.new_password)
    if not is_valid:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)

    cred = await get_password_credential(session, user_identifier)
    if not verify_password(payload.current_password, cred.password_hash):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Current password is incorrect")

    cred.password_hash = hash_password(payload.new_password)
    cred.updated_at = now()

    await revoke_all_tokens_per_user(session, user_identifier, revoked_by="password_change")
    await session.commit()

    logger.info("user.password.changed", extra={"user_public_id": request.state.user_public_id})
    return success_response({"message": "Password changed successfully"}, 200)


# ---------------------------------------------------------------- addresses

@user_router.get("/me/addresses")
async def get_my_addresses(request: Request, session: AsyncSession = Depends(get_session)):
    rows = await list_addresses(session, current_user_id(request))
    return success_response({"items": [address_out(a) for a in rows]})


@user_router.post("/me/addresses", status_code=status.HTTP_201_CREATED)
async def add_address(request: Request, payload: AddressCreateIn, session: AsyncSession = Depends(get_session)):
    user_id = current_user_id(request)

    existing = await count_addresses(session, user_id)
    if existing >= MAX_ADDRESSES_PER_USER:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Address limit reached")

    data = payload.model_dump()
    # first address becomes the default
    if data["is_default"] or existing == 0:
        await clear_default_address(session, user_id)
        data["is_default"] = True

    address = Address(user_id=user_id, **data)
    session.add(address)
    await session.commit()

    return success_response({"address": address_out(address)}, status.HTTP_201_CREATED)


@user_router.patch("/me/addresses/{address_id}")
async def update_address(request: Request, address_id: str, payload: AddressUpdateIn,
                         session: AsyncSession = Depends(get_session)):
    user_id = current_user_id(request)
    address = await get_address(session, user_id, address_id)

    updates = payload.model_dump(exclude_unset=True)
    if updates.get("is_default"):
        await clear_default_address(session, user_id)
    for field, value in updates.items():
        setattr(address, field, value)
    address.updated_at = now()
    await session.commit()

    return success_response({"address": address_out(address)})


@user_router.delete("/me/addresses/{address_id}")
async def delete_address(request: Request, address_id: str, session: AsyncSession = Depends(get_session)):
    address = await get_address(session, current_user_id(request), address_id)
    address.is_active = False
    address.is_default = False
    address.updated_at = now()
    await session.commit()
    return success_response({"message": "Address deleted"})


# ---------------------------------------------------------------- admin

@user_admin_router.get("", dependencies=[require_permissions("user:manage")])
async def admin_list_users(search: Optional[str] = Query(None, max_length=100),
                           role: Optional[str] = Query(None),
                           include_inactive: bool = Query(False),
                           params: PageParams = Depends(page_params),
                           session: AsyncSession = Depends(get_session)):
    rows, meta = await paginate(session, list_users_stmt(search, role, include_inactive), params)
    users = [r[0] for r in rows]
    roles = await role_names_for_users(session, [u.id for u in users])
    return success_response(page_payload([user_out(u, roles.get(u.id, [])) for u in users], meta))


@user_admin_router.get("/{user_id}", dependencies=[require_permissions("user:manage")])
async def admin_get_user(user_id: str, session: AsyncSession = Depends(get_session)):
    user = await get_user_by_pid(session, user_id)
    return success_response({"user": user_out(user, await get_user_role_names(session, user.id))})


@user_admin_router.patch("/{user_id}/status", dependencies=[require_permissions("user:manage")])
async def admin_set_user_status(request: Request, user_id: str, payload: UserStatusIn,
                                session: AsyncSession = Depends(get_session)):
    user = await get_user_by_pid(session, user_id)
    if user.id == current_user_id(request) and not payload.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot deactivate your own account")

    previous = user.is_active
    user.is_active = payload.is_active
    user.updated_at = now()
    if not payload.is_active:
        await revoke_all_tokens_per_user(session, user.id, revoked_by="admin_deactivation")
    await session.commit()

    log_admin_action(request, "USER_STATUS_CHANGED", "user", user.public_id,
                     {"is_active": {"from": previous, "to": payload.is_active}, "reason": payload.reason})
    return success_response({"user": user_out(user, await get_user_role_names(session, user.id))})


@user_admin_router.put("/{user_id}/roles", dependencies=[require_permissions("role:manage")])
async def admin_set_user_roles(request: Request, user_id: str, payload: SetRolesIn,
                               session: AsyncSession = Depends(get_session)):
    user = await get_user_by_pid(session, user_id)
    previous = await get_user_role_names(session, user.id)

    roles = await replace_user_roles(session, user, payload.role_names)
    await session.commit()

    log_admin_action(request, "USER_ROLES_CHANGED", "user", user.public_id,
                     {"roles": {"from": previous, "to": roles}, "reason": payload.reason})
    return success_response({"user": user_out(user, roles)})
